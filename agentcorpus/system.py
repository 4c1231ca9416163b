"""
Agent corpus system: wires extractors, the Gemini client, storage and
the two request entry points (training and chat) from a SystemConfig.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from .agents import ChatOrchestrator, JsonFileAgentRepository, TrainingAggregator
from .agents.repository import AgentRepository
from .config import SystemConfig
from .llm.key_rotation import KeyRotationClient
from .llm.response_generator import ResponseGenerator
from .models import ChatMessage, ChatOutcome, TrainingOutcome, TrainingSources, UploadedFile
from .processors import (
    AudioExtractor, AudioTranscriber, DocumentExtractor, FormatNormalizer, ImageDescriber,
    VideoExtractor, WebsiteExtractor, YouTubeExtractor
)


logger = logging.getLogger(__name__)


class AgentCorpusSystem:
    """
    Entry point for training agents and chatting with them.

    Features:
    - Multi-source training with per-source failure reporting
    - Multimodal chat turns (text, image, audio)
    - Credential rotation shared by every external call
    """

    def __init__(
        self,
        config: SystemConfig,
        repository: Optional[AgentRepository] = None,
        llm: Optional[KeyRotationClient] = None,
    ):
        """
        Initialize the system.

        Args:
            config: System configuration
            repository: Agent store; a JSON file store at ``storage.corpus_path`` by default
            llm: Resilient model client; built from ``config.gemini`` by default

        Raises:
            ValueError: If no API key is configured
        """
        self.config = config
        self.repository = repository or JsonFileAgentRepository(config.storage.corpus_path)
        self.llm = llm or KeyRotationClient.from_config(config.gemini)

        self.normalizer = FormatNormalizer(config.processing)
        self.response_generator = ResponseGenerator(self.llm)

        self.trainer = TrainingAggregator(
            self.repository,
            DocumentExtractor(config.processing),
            AudioExtractor(self.llm, self.normalizer),
            VideoExtractor(self.llm, config.processing),
            WebsiteExtractor(config.crawler),
            YouTubeExtractor(self.llm),
        )
        self.chat_orchestrator = ChatOrchestrator(
            self.repository,
            self.normalizer,
            ImageDescriber(self.llm),
            AudioTranscriber(self.llm),
            self.response_generator,
        )

        logger.info(f"AgentCorpusSystem initialized with {len(self.llm.rotator)} API keys")

    async def train(self, agent_id: str, sources: TrainingSources) -> TrainingOutcome:
        return await self.trainer.train(agent_id, sources)

    async def chat(
        self,
        agent_id: str,
        question: Optional[str] = None,
        image: Optional[UploadedFile] = None,
        audio: Optional[UploadedFile] = None,
        previous_messages: Sequence[ChatMessage] = (),
    ) -> ChatOutcome:
        return await self.chat_orchestrator.chat(agent_id, question, image, audio, previous_messages)

    async def status(self, agent_id: str) -> Optional[Dict[str, Any]]:
        return await self.trainer.status(agent_id)

    def get_system_stats(self) -> Dict[str, Any]:
        return {
            'api_keys': len(self.llm.rotator),
            'active_key_index': self.llm.rotator.index,
            'gemini_client': self.llm.client.get_generation_stats(),
            'response_generator': self.response_generator.get_generation_statistics(),
        }

    def close(self) -> None:
        self.llm.client.close()

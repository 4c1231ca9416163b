"""
Training aggregator.

Runs the extractor for every source present in a training request,
stops at the first failure, and on success replaces the agent's corpus
with the collected entries.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .repository import AgentRepository
from .validation import ValidationError, require_agent_id
from ..models import (
    AgentRecord, ExtractionResult, SourceKind, TrainingEntry, TrainingOutcome, TrainingSources
)
from ..processors.audio_processor import AudioExtractor
from ..processors.document_processor import DocumentExtractor
from ..processors.tempfiles import TempFileScope
from ..processors.video_processor import VideoExtractor
from ..processors.website_scraper import WebsiteExtractor
from ..processors.youtube_processor import YouTubeExtractor


logger = logging.getLogger(__name__)


class TrainingAggregator:
    """
    Builds an agent's corpus from a multi-source training request.

    Sources run in a fixed order: documents, audio, video, website,
    YouTube. Every temporary upload belonging to the request is deleted
    when the request ends, whether or not its extractor ran.
    """

    def __init__(
        self,
        repository: AgentRepository,
        document_extractor: DocumentExtractor,
        audio_extractor: AudioExtractor,
        video_extractor: VideoExtractor,
        website_extractor: WebsiteExtractor,
        youtube_extractor: YouTubeExtractor,
    ):
        self.repository = repository
        self.document_extractor = document_extractor
        self.audio_extractor = audio_extractor
        self.video_extractor = video_extractor
        self.website_extractor = website_extractor
        self.youtube_extractor = youtube_extractor

    def _plan(self, sources: TrainingSources) -> List[Tuple[str, Callable[[], Awaitable[ExtractionResult]]]]:
        """Ordered (label, extraction call) pairs for the sources present."""
        steps = []
        for document in sources.documents:
            steps.append((
                document.original_name,
                lambda document=document: self.document_extractor.extract(document.path, document.original_name),
            ))
        if sources.audio:
            steps.append((sources.audio.original_name, lambda: self.audio_extractor.extract(sources.audio)))
        if sources.video_file_name:
            steps.append((sources.video_file_name, lambda: self.video_extractor.extract(sources.video_file_name)))
        if sources.website_url:
            steps.append((sources.website_url, lambda: self.website_extractor.extract(sources.website_url)))
        if sources.youtube_url:
            steps.append((sources.youtube_url, lambda: self.youtube_extractor.extract(sources.youtube_url)))
        return steps

    def _video_path(self, sources: TrainingSources) -> Optional[str]:
        if not sources.video_file_name:
            return None
        try:
            return str(self.video_extractor.resolve(sources.video_file_name))
        except Exception as e:
            logger.warning(f"Cannot resolve video upload {sources.video_file_name}: {e}")
            return None

    async def train(self, agent_id: str, sources: TrainingSources) -> TrainingOutcome:
        """
        Train an agent from the given sources.

        Args:
            agent_id: Identifier of the agent to (re)train
            sources: Documents, audio, video, website and YouTube inputs

        Returns:
            TrainingOutcome listing the contributing source kinds, or the
            first failure tagged with its source kind

        Raises:
            ValidationError: If the agent id is invalid or no source is given
        """
        if sources is None:
            raise ValidationError("No valid training data provided")

        entries: List[TrainingEntry] = []
        with TempFileScope(*sources.temporary_paths(), self._video_path(sources)):
            agent_id = require_agent_id(agent_id)
            if sources.is_empty():
                raise ValidationError("No valid training data provided")

            for label, run in self._plan(sources):
                result = await run()
                if not result.ok:
                    logger.error(
                        f"Training agent {agent_id} failed on {result.source_kind.value} source {label}: {result.error}"
                    )
                    return TrainingOutcome.failed(agent_id, result)

                new_entries = result.training_entries()
                entries.extend(new_entries)
                logger.info(
                    f"Extracted {len(new_entries)} {result.source_kind.value} entries from {label}"
                )

        existing = await self.repository.find(agent_id)
        record = AgentRecord(
            agent_id=agent_id,
            agent_name=existing.agent_name if existing else "",
            is_trained=True,
            training_data=entries,
        )
        await self.repository.upsert(record)

        trained_sources: List[SourceKind] = []
        for entry in entries:
            if entry.source_kind not in trained_sources:
                trained_sources.append(entry.source_kind)

        logger.info(
            f"Agent {agent_id} trained with {len(entries)} entries from "
            f"{', '.join(kind.value for kind in trained_sources)}"
        )
        return TrainingOutcome(agent_id=agent_id, trained_sources=trained_sources)

    async def status(self, agent_id: str) -> Optional[Dict[str, Any]]:
        return await agent_status(self.repository, agent_id)


async def agent_status(repository: AgentRepository, agent_id: str) -> Optional[Dict[str, Any]]:
    """Return ``{agentId, isTrained, agentName}`` or None for unknown agents."""
    agent_id = require_agent_id(agent_id)
    record = await repository.find(agent_id)
    if record is None:
        return None
    return {
        "agentId": record.agent_id,
        "isTrained": record.is_trained,
        "agentName": record.agent_name,
    }

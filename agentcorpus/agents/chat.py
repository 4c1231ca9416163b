"""
Chat orchestrator.

Turns a question plus optional image and audio uploads into one message,
asks the response generator for an answer grounded in the agent's
corpus, and returns it together with the generated media descriptions.
"""

import logging
from typing import Optional, Sequence

from .repository import AgentRepository
from .validation import ValidationError, require_agent_id
from ..llm.response_generator import ResponseGenerator
from ..models import ChatMessage, ChatOutcome, UploadedFile, compose_user_message
from ..processors.audio_processor import AudioTranscriber
from ..processors.image_processor import ImageDescriber
from ..processors.normalizer import FormatNormalizer
from ..processors.tempfiles import TempFileScope


logger = logging.getLogger(__name__)


class ChatOrchestrator:
    """Answers chat turns for trained agents."""

    def __init__(
        self,
        repository: AgentRepository,
        normalizer: FormatNormalizer,
        describer: ImageDescriber,
        transcriber: AudioTranscriber,
        response_generator: ResponseGenerator,
    ):
        self.repository = repository
        self.normalizer = normalizer
        self.describer = describer
        self.transcriber = transcriber
        self.response_generator = response_generator

    async def chat(
        self,
        agent_id: str,
        question: Optional[str] = None,
        image: Optional[UploadedFile] = None,
        audio: Optional[UploadedFile] = None,
        previous_messages: Sequence[ChatMessage] = (),
    ) -> ChatOutcome:
        """
        Answer one chat turn.

        Any subset of question, image and audio is accepted as long as one
        is present. Uploaded media, original and converted, is deleted
        before this returns.

        Raises:
            ValidationError: If the agent id is invalid, the agent is missing
                or untrained, or no input is given
        """
        with TempFileScope(image.path if image else None, audio.path if audio else None) as scope:
            agent_id = require_agent_id(agent_id)
            if not ((question and question.strip()) or image or audio):
                raise ValidationError("At least one of text, image, or audio is required")

            record = await self.repository.find(agent_id)
            if record is None:
                raise ValidationError(f"Agent {agent_id} not found")
            if not record.is_trained:
                raise ValidationError(f"Agent {agent_id} is not trained")

            image_description = None
            if image:
                try:
                    image_path = scope.add(await self.normalizer.normalize_image(image.path, image.original_name))
                    image_description = await self.describer.describe(image_path, image.original_name)
                except Exception as e:
                    logger.error(f"Image processing failed for agent {agent_id}: {e}")
                    return ChatOutcome.failed(f"Image processing failed: {e}")

            audio_transcription = None
            if audio:
                try:
                    audio_path = scope.add(await self.normalizer.normalize_audio(audio.path, audio.original_name))
                    audio_transcription = await self.transcriber.transcribe(audio_path, audio.original_name)
                except Exception as e:
                    logger.error(f"Audio processing failed for agent {agent_id}: {e}")
                    return ChatOutcome.failed(f"Audio processing failed: {e}")

            message = compose_user_message(question, image_description, audio_transcription)

            try:
                response = await self.response_generator.generate(
                    record.training_data, list(previous_messages), message
                )
            except Exception as e:
                logger.error(f"Response generation failed for agent {agent_id}: {e}")
                return ChatOutcome.failed(f"Failed to generate response: {e}")

        response.image_description = image_description
        response.audio_transcription = audio_transcription
        return ChatOutcome(response=response)

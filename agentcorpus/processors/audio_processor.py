"""
Audio processing for training and chat.

Training uploads are normalized, sent to the Gemini Files API and
described by the model; chat uploads get a plain transcription. Local
files are removed in the cleanup phase whatever the outcome.
"""

import logging
from typing import Optional

from .base import SourceExtractor, ContentExtractionError, file_extension
from .normalizer import FormatNormalizer
from .tempfiles import TempFileScope
from ..llm.key_rotation import KeyRotationClient
from ..models import SourceKind, UploadedFile


logger = logging.getLogger(__name__)


AUDIO_MIME_TYPES = {
    'mp3': 'audio/mp3',
    'wav': 'audio/wav',
    'ogg': 'audio/ogg',
    'aac': 'audio/aac',
}

TRANSCRIPTION_SYSTEM_PROMPT = """
You are an AI audio transcription assistant. Your task is to generate an accurate transcription of the provided audio file.

AI Response (text):
The transcribed text from the audio.
"""


def audio_mime_type(file_path: str) -> str:
    ext = file_extension(file_path)
    if ext not in AUDIO_MIME_TYPES:
        raise ContentExtractionError(
            "Unsupported file format. Only audio files are allowed.", file_path=file_path
        )
    return AUDIO_MIME_TYPES[ext]


class AudioExtractor(SourceExtractor):
    """
    Turns an uploaded audio file into a free-text description for training.

    Unsupported containers are transcoded first; a failed conversion ends
    the extraction before anything is sent to the service.
    """

    source_kind = SourceKind.AUDIO

    def __init__(self, llm: KeyRotationClient, normalizer: FormatNormalizer,
                 prompt: str = "Tell me about this audio clip."):
        self.llm = llm
        self.normalizer = normalizer
        self.prompt = prompt

    async def _extract(self, upload: UploadedFile) -> str:
        with TempFileScope(upload.path) as scope:
            audio_path = scope.add(
                await self.normalizer.normalize_audio(upload.path, upload.original_name)
            )
            return await self.llm.process_media(
                audio_path,
                audio_mime_type(audio_path),
                self.prompt,
                model=self.llm.config.text_model,
                display_name=upload.original_name,
                policy=self.llm.fixed_policy,
                operation_name="audio training transcription",
            )


class AudioTranscriber:
    """Transcribes a normalized chat audio clip to text."""

    def __init__(self, llm: KeyRotationClient):
        self.llm = llm

    async def transcribe(self, audio_path: str, display_name: Optional[str] = None) -> str:
        """
        Transcribe an audio file that has already been normalized.

        Raises:
            ContentExtractionError: If the file is not a supported audio format
            ExhaustedRetriesError: If the service stays unavailable
        """
        transcript = await self.llm.process_media(
            audio_path,
            audio_mime_type(audio_path),
            "Generate a transcript of the audio.",
            model=self.llm.config.text_model,
            system_instruction=TRANSCRIPTION_SYSTEM_PROMPT,
            display_name=display_name,
            policy=self.llm.fixed_policy,
            operation_name="audio transcription",
        )
        logger.info(f"Transcribed {audio_path}: {len(transcript)} characters")
        return transcript

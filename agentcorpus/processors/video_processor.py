"""Video extractor: summarizes an uploaded video file with the Gemini service."""

import logging
import mimetypes
from pathlib import Path

from .base import SourceExtractor, ContentExtractionError, UnsupportedFormatError
from .tempfiles import TempFileScope
from ..config import ProcessingConfig
from ..llm.key_rotation import KeyRotationClient
from ..models import SourceKind


logger = logging.getLogger(__name__)


class VideoExtractor(SourceExtractor):
    """
    Resolves a stored video by name and asks the model to summarize it.

    The local file and the remote copy are removed once the request ends.
    """

    source_kind = SourceKind.VIDEO

    def __init__(self, llm: KeyRotationClient, config: ProcessingConfig,
                 prompt: str = "Summarize this video."):
        self.llm = llm
        self.config = config
        self.prompt = prompt

    def resolve(self, file_name: str) -> Path:
        """Locate a stored upload inside the upload directory."""
        upload_dir = Path(self.config.upload_directory).resolve()
        file_path = (upload_dir / file_name).resolve()
        if upload_dir not in file_path.parents:
            raise ContentExtractionError(f"Invalid video file name: {file_name}")
        return file_path

    async def _extract(self, file_name: str) -> str:
        file_path = self.resolve(file_name)
        with TempFileScope(str(file_path)):
            if not file_path.exists():
                raise ContentExtractionError(f"File not found: {file_path}", file_path=str(file_path))

            mime_type, _ = mimetypes.guess_type(file_name)
            if not mime_type or not mime_type.startswith("video/"):
                raise UnsupportedFormatError("Unsupported file format.", file_path=str(file_path))

            summary = await self.llm.process_media(
                str(file_path),
                mime_type,
                self.prompt,
                display_name=file_name,
                policy=self.llm.fixed_policy,
                operation_name="video summary",
            )
            logger.info(f"Summarized video {file_name}: {len(summary)} characters")
            return summary

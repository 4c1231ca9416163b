"""
Base interfaces and abstract classes for source extractors.

Defines the common interface that every training source (documents,
audio, video, websites, YouTube transcripts) implements so the training
aggregator can decide per source without handling raw exceptions.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..models import ExtractionFailure, ExtractionResult, ExtractionSuccess, SourceKind


logger = logging.getLogger(__name__)


class SourceExtractor(ABC):
    """
    Abstract base class for all source extractors.

    Subclasses implement ``_extract`` and may raise freely; ``extract``
    resolves every outcome into an ExtractionSuccess or ExtractionFailure.
    """

    source_kind: SourceKind

    async def extract(self, *args, **kwargs) -> ExtractionResult:
        """
        Run the extractor and resolve the outcome into a result object.

        Returns:
            ExtractionSuccess with non-empty text, or ExtractionFailure
            tagged with this extractor's source kind
        """
        try:
            result = await self._extract(*args, **kwargs)
        except Exception as e:
            logger.error(f"{self.source_kind.value} extraction failed: {e}")
            return ExtractionFailure(error=str(e), source_kind=self.source_kind)

        if isinstance(result, ExtractionSuccess):
            return result

        if not result or not result.strip():
            return ExtractionFailure(
                error=str(EmptyContentError(f"No content extracted from {self.source_kind.value} source")),
                source_kind=self.source_kind,
            )
        return ExtractionSuccess(text=result, source_kind=self.source_kind)

    @abstractmethod
    async def _extract(self, *args, **kwargs):
        """
        Produce plain text (or a prepared ExtractionSuccess) for the source.

        Raises:
            ProcessingError: If the source cannot be turned into text
        """
        pass


class ProcessingError(Exception):
    """Exception raised during source processing."""

    def __init__(self, message: str, file_path: Optional[str] = None, cause: Optional[Exception] = None):
        self.message = message
        self.file_path = file_path
        self.cause = cause
        super().__init__(self.message)


class UnsupportedFormatError(ProcessingError):
    """Exception raised when file format is not supported."""
    pass


class EmptyContentError(ProcessingError):
    """Exception raised when a source yields only whitespace."""
    pass


class NoContentScrapedError(ProcessingError):
    """Exception raised when a website crawl yields no page content."""
    pass


class ConversionError(ProcessingError):
    """Exception raised when media transcoding fails."""
    pass


class ContentExtractionError(ProcessingError):
    """Exception raised when content extraction fails."""
    pass


def file_extension(file_path: str) -> str:
    """Lower-cased extension of a path, without the leading dot."""
    return Path(file_path).suffix.lower().lstrip('.')

"""
Source extractors package.

Provides text extraction for documents, audio, video, websites and
YouTube transcripts, plus the media format normalizer used by training
and chat.
"""

from .base import (
    SourceExtractor, ProcessingError, UnsupportedFormatError, EmptyContentError,
    NoContentScrapedError, ConversionError, ContentExtractionError
)
from .normalizer import FormatNormalizer
from .tempfiles import TempFileScope, discard_file
from .document_processor import DocumentExtractor
from .audio_processor import AudioExtractor, AudioTranscriber
from .video_processor import VideoExtractor
from .image_processor import ImageDescriber
from .website_scraper import WebsiteExtractor, WebsiteCrawler, PlaywrightRenderer
from .youtube_processor import YouTubeExtractor

__all__ = [
    'SourceExtractor',
    'FormatNormalizer',
    'TempFileScope',
    'discard_file',
    'DocumentExtractor',
    'AudioExtractor',
    'AudioTranscriber',
    'VideoExtractor',
    'ImageDescriber',
    'WebsiteExtractor',
    'WebsiteCrawler',
    'PlaywrightRenderer',
    'YouTubeExtractor',
    'ProcessingError',
    'UnsupportedFormatError',
    'EmptyContentError',
    'NoContentScrapedError',
    'ConversionError',
    'ContentExtractionError'
]

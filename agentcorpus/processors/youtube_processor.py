"""
YouTube extractor: turns a video's transcript into structured training records.

The transcript track is fetched with youtube-transcript-api, cleaned of
bracketed annotations and HTML entities, and then restructured by the
generative model into records of ``{fullTranscript, contentTokenCount}``.
"""

import asyncio
import logging
import re
from typing import List
from urllib.parse import parse_qs, urlparse

from youtube_transcript_api import NoTranscriptFound, TranscriptsDisabled, YouTubeTranscriptApi

from .base import SourceExtractor, ContentExtractionError
from ..llm.key_rotation import KeyRotationClient
from ..llm.schemas import TRANSCRIPT_SCHEMA, validate_transcript_records
from ..models import ExtractionSuccess, SourceKind


logger = logging.getLogger(__name__)


HTML_ENTITIES = [
    ("&#39;", "'"),
    ("&quot;", '"'),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&nbsp;", " "),
    ("&amp;", "&"),
]

ANNOTATION_PATTERN = re.compile(r"\[.*?\]")
WHITESPACE_PATTERN = re.compile(r"\s+")

# Path prefixes on youtube.com that carry the video id as the next segment
ID_PATH_PREFIXES = ("shorts", "embed", "live")


def extract_video_id(url: str) -> str:
    """
    Extract the video id from a ``youtube.com/watch?v=`` or ``youtu.be/<id>`` URL.

    Raises:
        ContentExtractionError: If no video id can be found
    """
    parsed = urlparse((url or "").strip())
    host = (parsed.hostname or "").lower()
    video_id = None

    if host == "youtube.com" or host.endswith(".youtube.com"):
        video_id = parse_qs(parsed.query).get("v", [None])[0]
        if not video_id:
            segments = [segment for segment in parsed.path.split("/") if segment]
            if len(segments) >= 2 and segments[0] in ID_PATH_PREFIXES:
                video_id = segments[1]
    elif host == "youtu.be":
        segments = [segment for segment in parsed.path.split("/") if segment]
        video_id = segments[0] if segments else None

    if not video_id:
        raise ContentExtractionError(
            "Failed to parse YouTube URL: Invalid YouTube URL: No video ID found."
        )
    return video_id


def clean_transcript(text: str) -> str:
    """Remove ``[Music]``-style annotations and decode common HTML entities."""
    text = ANNOTATION_PATTERN.sub("", text)
    for entity, replacement in HTML_ENTITIES:
        text = text.replace(entity, replacement)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


class YouTubeExtractor(SourceExtractor):
    """Fetches, cleans and restructures a YouTube transcript."""

    source_kind = SourceKind.YOUTUBE

    def __init__(self, llm: KeyRotationClient, languages: List[str] = None):
        self.llm = llm
        self.languages = languages or ["en"]

    def fetch_transcript(self, video_id: str) -> str:
        """Fetch the transcript track and join its snippets."""
        try:
            transcript = YouTubeTranscriptApi().fetch(video_id, languages=self.languages)
        except TranscriptsDisabled:
            raise ContentExtractionError(
                f"Transcript is disabled for video ID {video_id}. Consider alternative training sources."
            )
        except NoTranscriptFound:
            raise ContentExtractionError(
                f"No {'/'.join(self.languages)} transcript found for video ID {video_id}."
            )
        except Exception as e:
            raise ContentExtractionError(f"Failed to fetch transcript: {e}", cause=e)

        return " ".join(snippet.text for snippet in transcript)

    def build_prompt(self, transcript: str) -> str:
        return (
            "Transform the provided YouTube video transcript into a structured format suitable "
            "for training another AI model. Estimate the token count of the transcript content. "
            f"Here is the transcript:\n\n{transcript}"
        )

    async def _extract(self, url: str) -> ExtractionSuccess:
        video_id = extract_video_id(url)
        raw_transcript = await asyncio.to_thread(self.fetch_transcript, video_id)
        cleaned = clean_transcript(raw_transcript)
        if not cleaned:
            raise ContentExtractionError(f"Transcript for video ID {video_id} is empty")
        logger.info(f"Successfully fetched and cleaned transcript for URL: {url}")

        try:
            records = await self.llm.generate_json(
                self.build_prompt(cleaned),
                TRANSCRIPT_SCHEMA,
                validate_transcript_records,
                policy=self.llm.rotating_policy,
                operation_name="youtube transcript transformation",
            )
        except Exception as e:
            raise ContentExtractionError(f"Failed to transform transcript: {e}", cause=e)

        transcripts = [record["fullTranscript"].strip() for record in records]
        logger.info(f"Transformed transcript for {url} into {len(transcripts)} records")
        return ExtractionSuccess(
            text="\n\n".join(transcripts),
            source_kind=self.source_kind,
            entries=transcripts,
        )

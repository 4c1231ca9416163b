"""
Core data models for the agent corpus system.

This module defines the fundamental data structures used throughout
the system for representing training entries, agent corpora, extraction
results, conversion jobs and chat exchanges.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class SourceKind(Enum):
    """Enumeration of training source kinds."""
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"
    WEBSITE = "website"
    YOUTUBE = "youtube"


@dataclass(frozen=True)
class TrainingEntry:
    """
    One normalized text contribution to an agent's corpus.

    Entries are immutable and never carry empty text.
    """
    text: str
    source_kind: SourceKind

    def __post_init__(self):
        if not isinstance(self.text, str) or not self.text.strip():
            raise ValueError("TrainingEntry text must be a non-empty string")

    def to_dict(self) -> Dict[str, str]:
        return {"data": self.text, "source": self.source_kind.value}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "TrainingEntry":
        return cls(text=data["data"], source_kind=SourceKind(data["source"]))


@dataclass
class AgentRecord:
    """
    An agent together with its ordered training corpus.

    The corpus is replaced as a whole whenever the agent is retrained.
    """
    agent_id: str
    agent_name: str = ""
    is_trained: bool = False
    training_data: List[TrainingEntry] = field(default_factory=list)

    def __post_init__(self):
        if not self.agent_name:
            self.agent_name = f"AI Agent {self.agent_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agentId": self.agent_id,
            "agentName": self.agent_name,
            "isTrained": self.is_trained,
            "trainingData": [entry.to_dict() for entry in self.training_data],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentRecord":
        return cls(
            agent_id=data["agentId"],
            agent_name=data.get("agentName", ""),
            is_trained=bool(data.get("isTrained", False)),
            training_data=[TrainingEntry.from_dict(item) for item in data.get("trainingData", [])],
        )


@dataclass
class ConversionJob:
    """Transient description of a single media transcoding run."""
    input_path: str
    output_path: str
    source_format: Optional[str]
    target_format: str


@dataclass
class ChatMessage:
    """A prior conversation turn supplied by the caller."""
    role: str
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "text": self.text}


@dataclass
class UploadedFile:
    """A file saved by the upload layer plus the name the user gave it."""
    path: str
    original_name: str


@dataclass
class ExtractionSuccess:
    """Successful extraction: plain text, optionally split into several records."""
    text: str
    source_kind: SourceKind
    entries: List[str] = field(default_factory=list)

    ok = True

    def training_entries(self) -> List[TrainingEntry]:
        texts = self.entries or [self.text]
        return [TrainingEntry(text=text, source_kind=self.source_kind) for text in texts if text.strip()]


@dataclass
class ExtractionFailure:
    """Structured extraction failure tagged with the originating source kind."""
    error: str
    source_kind: SourceKind

    ok = False

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.error, "source": self.source_kind.value}


ExtractionResult = Union[ExtractionSuccess, ExtractionFailure]


@dataclass
class TrainingSources:
    """The set of sources submitted in a single training request."""
    documents: List[UploadedFile] = field(default_factory=list)
    audio: Optional[UploadedFile] = None
    video_file_name: Optional[str] = None
    website_url: Optional[str] = None
    youtube_url: Optional[str] = None

    def is_empty(self) -> bool:
        return not (
            self.documents or self.audio or self.video_file_name
            or self.website_url or self.youtube_url
        )

    def temporary_paths(self) -> List[str]:
        """Local files created by the upload layer for this request."""
        paths = [doc.path for doc in self.documents]
        if self.audio:
            paths.append(self.audio.path)
        return paths


@dataclass
class TrainingOutcome:
    """Result of a training request."""
    agent_id: str
    trained_sources: List[SourceKind] = field(default_factory=list)
    error: Optional[str] = None
    source_kind: Optional[SourceKind] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, agent_id: str, failure: ExtractionFailure) -> "TrainingOutcome":
        return cls(agent_id=agent_id, error=failure.error, source_kind=failure.source_kind)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"trainedSources": [kind.value for kind in self.trained_sources]}
        return {"error": self.error, "source": self.source_kind.value if self.source_kind else None}


@dataclass
class ChatResponse:
    """Structured, sourced answer produced by the chat orchestrator."""
    message: str
    sources: List[Dict[str, str]] = field(default_factory=list)
    image_description: Optional[str] = None
    audio_transcription: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"message": self.message, "sources": self.sources}
        if self.image_description is not None:
            data["imageDescription"] = self.image_description
        if self.audio_transcription is not None:
            data["audioTranscription"] = self.audio_transcription
        return data


@dataclass
class ChatOutcome:
    """Result of a chat request: a response or an error message."""
    response: Optional[ChatResponse] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.response is not None

    @classmethod
    def failed(cls, error: str) -> "ChatOutcome":
        return cls(error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.response is not None:
            return self.response.to_dict()
        return {"error": self.error}


def compose_user_message(
    question: Optional[str] = None,
    image_description: Optional[str] = None,
    audio_transcription: Optional[str] = None,
) -> str:
    """
    Build the current-turn message from the parts that are present.

    Parts are joined by a blank line in the order question, image
    description, audio transcription.
    """
    parts: List[str] = []
    if question and question.strip():
        parts.append(question.strip())
    if image_description:
        parts.append(f"Image Description: {image_description}")
    if audio_transcription:
        parts.append(f"Audio Transcription: {audio_transcription}")
    return "\n\n".join(parts)


def split_extension(filename: Optional[str]) -> Tuple[str, str]:
    """Return (stem, lower-cased extension without dot) for a file name."""
    if not filename:
        return "", ""
    name = filename.rsplit("/", 1)[-1]
    if "." not in name.lstrip("."):
        return name, ""
    stem, ext = name.rsplit(".", 1)
    return stem, ext.lower()

"""
Unit tests for core data models.
"""

import pytest

from agentcorpus.models import (
    AgentRecord, ChatOutcome, ChatResponse, ExtractionFailure, ExtractionSuccess, SourceKind,
    TrainingEntry, TrainingOutcome, TrainingSources, UploadedFile, compose_user_message,
    split_extension
)


class TestTrainingEntry:
    """Test cases for TrainingEntry."""

    def test_serialization_uses_stored_field_names(self):
        entry = TrainingEntry(text="Return policy: 30 days.", source_kind=SourceKind.DOCUMENT)
        assert entry.to_dict() == {"data": "Return policy: 30 days.", "source": "document"}
        assert TrainingEntry.from_dict(entry.to_dict()) == entry

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_text_rejected(self, text):
        with pytest.raises(ValueError):
            TrainingEntry(text=text, source_kind=SourceKind.AUDIO)


class TestAgentRecord:
    """Test cases for AgentRecord."""

    def test_default_name(self):
        assert AgentRecord(agent_id="a1").agent_name == "AI Agent a1"

    def test_dict_conversion(self):
        record = AgentRecord(
            agent_id="a1",
            agent_name="Support",
            is_trained=True,
            training_data=[TrainingEntry("hello", SourceKind.WEBSITE)],
        )
        data = record.to_dict()
        assert data == {
            "agentId": "a1",
            "agentName": "Support",
            "isTrained": True,
            "trainingData": [{"data": "hello", "source": "website"}],
        }
        assert AgentRecord.from_dict(data) == record


class TestExtractionResults:
    """Test cases for the extraction result union."""

    def test_success_without_entries_yields_single_entry(self):
        result = ExtractionSuccess(text="some text", source_kind=SourceKind.VIDEO)
        assert result.ok is True
        assert result.training_entries() == [TrainingEntry("some text", SourceKind.VIDEO)]

    def test_success_with_entries_yields_one_entry_each(self):
        result = ExtractionSuccess(text="a\n\nb", source_kind=SourceKind.YOUTUBE, entries=["a", "b", "  "])
        assert [entry.text for entry in result.training_entries()] == ["a", "b"]

    def test_failure(self):
        failure = ExtractionFailure(error="boom", source_kind=SourceKind.AUDIO)
        assert failure.ok is False
        assert failure.to_dict() == {"error": "boom", "source": "audio"}


class TestTrainingSources:
    """Test cases for TrainingSources."""

    def test_empty(self):
        assert TrainingSources().is_empty()
        assert not TrainingSources(website_url="https://example.com").is_empty()

    def test_temporary_paths(self):
        sources = TrainingSources(
            documents=[UploadedFile("/u/1", "a.txt"), UploadedFile("/u/2", "b.csv")],
            audio=UploadedFile("/u/3", "c.flac"),
            youtube_url="https://youtu.be/abc",
        )
        assert sources.temporary_paths() == ["/u/1", "/u/2", "/u/3"]


class TestOutcomes:
    """Test cases for training and chat outcomes."""

    def test_training_success(self):
        outcome = TrainingOutcome(agent_id="a1", trained_sources=[SourceKind.DOCUMENT, SourceKind.YOUTUBE])
        assert outcome.success
        assert outcome.to_dict() == {"trainedSources": ["document", "youtube"]}

    def test_training_failure(self):
        outcome = TrainingOutcome.failed("a1", ExtractionFailure("bad file", SourceKind.DOCUMENT))
        assert not outcome.success
        assert outcome.to_dict() == {"error": "bad file", "source": "document"}

    def test_chat_response_omits_absent_media(self):
        response = ChatResponse(message="Hi", sources=[{"sourceType": "document"}])
        assert response.to_dict() == {"message": "Hi", "sources": [{"sourceType": "document"}]}

    def test_chat_response_includes_media(self):
        response = ChatResponse(message="Hi", image_description="a cat", audio_transcription="hello")
        data = response.to_dict()
        assert data["imageDescription"] == "a cat"
        assert data["audioTranscription"] == "hello"

    def test_chat_failure(self):
        outcome = ChatOutcome.failed("nope")
        assert not outcome.success
        assert outcome.to_dict() == {"error": "nope"}


class TestComposeUserMessage:
    """Test cases for composing the current chat turn."""

    def test_all_parts_in_order(self):
        message = compose_user_message("What is this?", "a red bike", "how much is it")
        assert message == (
            "What is this?\n\n"
            "Image Description: a red bike\n\n"
            "Audio Transcription: how much is it"
        )

    def test_image_only(self):
        assert compose_user_message(None, "a red bike", None) == "Image Description: a red bike"

    def test_blank_question_ignored(self):
        assert compose_user_message("   ", None, "hello") == "Audio Transcription: hello"


class TestSplitExtension:
    """Test cases for split_extension."""

    @pytest.mark.parametrize("name,expected", [
        ("Report.PDF", ("Report", "pdf")),
        ("archive.tar.gz", ("archive.tar", "gz")),
        ("noext", ("noext", "")),
        (".hidden", (".hidden", "")),
        ("dir/clip.Mp3", ("clip", "mp3")),
        (None, ("", "")),
    ])
    def test_split(self, name, expected):
        assert split_extension(name) == expected

"""
Unit tests for response schema validators.
"""

import pytest

from agentcorpus.llm.schemas import (
    ResponseSchemaError, parse_json, validate_agent_response, validate_image_description,
    validate_plain_text, validate_transcript_records
)


class TestParseJson:

    def test_valid(self):
        assert parse_json('{"a": 1}') == {"a": 1}

    def test_invalid(self):
        with pytest.raises(ResponseSchemaError):
            parse_json("not json")


class TestAgentResponse:
    """Test cases for the chat reply validator."""

    def test_valid(self):
        payload = {"message": "Hi", "sources": [{"sourceType": "document"}, {"sourceType": "youtube"}]}
        assert validate_agent_response(payload) == payload

    @pytest.mark.parametrize("payload", [
        [],
        {"sources": []},
        {"message": 1, "sources": []},
        {"message": "Hi"},
        {"message": "Hi", "sources": [{}]},
        {"message": "Hi", "sources": ["document"]},
    ])
    def test_invalid(self, payload):
        with pytest.raises(ResponseSchemaError):
            validate_agent_response(payload)


class TestTranscriptRecords:
    """Test cases for the YouTube transcript validator."""

    def test_valid(self):
        records = [{"fullTranscript": "hello", "contentTokenCount": 3}]
        assert validate_transcript_records(records) == records

    def test_float_token_count_accepted(self):
        validate_transcript_records([{"fullTranscript": "hello", "contentTokenCount": 2.5}])

    @pytest.mark.parametrize("payload", [
        [],
        {"fullTranscript": "hello", "contentTokenCount": 3},
        [{"fullTranscript": "hello"}],
        [{"fullTranscript": "", "contentTokenCount": 3}],
        [{"fullTranscript": "hello", "contentTokenCount": "3"}],
        [{"fullTranscript": "hello", "contentTokenCount": True}],
        [{"fullTranscript": "ok", "contentTokenCount": 1}, {"fullTranscript": "bad"}],
    ])
    def test_any_invalid_item_fails_all(self, payload):
        with pytest.raises(ResponseSchemaError):
            validate_transcript_records(payload)


class TestMediaValidators:

    def test_image_description(self):
        assert validate_image_description({"description": " a dog "}) == "a dog"

    @pytest.mark.parametrize("payload", [{}, {"description": ""}, "a dog"])
    def test_image_description_invalid(self, payload):
        with pytest.raises(ResponseSchemaError):
            validate_image_description(payload)

    def test_plain_text(self):
        assert validate_plain_text(" words ") == "words"
        with pytest.raises(ResponseSchemaError):
            validate_plain_text("")

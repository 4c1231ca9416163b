"""
Unit tests for credential rotation and the retry engine.

Waits are injected so no test actually sleeps.
"""

import json
import pytest
from unittest.mock import AsyncMock, Mock

from agentcorpus.config import GeminiConfig
from agentcorpus.llm.gemini_client import ErrorCategory, RemoteFile, ServiceError
from agentcorpus.llm.key_rotation import (
    BackoffStrategy, CredentialRotator, ExhaustedRetriesError, KeyRotationClient, RetryPolicy
)
from agentcorpus.llm.schemas import ResponseSchemaError, validate_agent_response


def rate_limited():
    return ServiceError("429 RESOURCE_EXHAUSTED quota", ErrorCategory.RATE_LIMITED, 429)


def unavailable():
    return ServiceError("503 UNAVAILABLE", ErrorCategory.TRANSIENT, 503)


class TestCredentialRotator:
    """Test cases for CredentialRotator."""

    def test_empty_pool_rejected(self):
        with pytest.raises(ValueError):
            CredentialRotator(["", None])

    def test_advance_is_circular(self):
        rotator = CredentialRotator(["k1", "k2", "k3"])
        seen = [rotator.current]
        for _ in range(3):
            rotator.advance()
            seen.append(rotator.current)
        assert seen == ["k1", "k2", "k3", "k1"]

    def test_stale_advance_is_ignored(self):
        rotator = CredentialRotator(["k1", "k2", "k3"])
        index, _ = rotator.snapshot()
        rotator.advance(expected=index)
        rotator.advance(expected=index)
        assert rotator.current == "k2"


class TestRetryPolicy:
    """Test cases for RetryPolicy."""

    def test_fixed_budget(self):
        policy = RetryPolicy.fixed(retries=3, delay=5.0)
        assert policy.attempt_budget(10) == 4
        assert policy.delay_for(1) == policy.delay_for(3) == 5.0

    def test_per_key_budget(self):
        policy = RetryPolicy.per_key(attempts_per_key=2, delay=1.0, max_delay=6.0)
        assert policy.attempt_budget(3) == 6
        assert [policy.delay_for(n) for n in range(1, 5)] == [2.0, 4.0, 6.0, 6.0]

    def test_per_key_fixed_backoff(self):
        policy = RetryPolicy.per_key(2, delay=5.0, backoff=BackoffStrategy.FIXED)
        assert policy.delay_for(4) == 5.0


class TestKeyRotationClient:
    """Test suite for KeyRotationClient."""

    @pytest.fixture
    def sleep(self):
        return AsyncMock()

    @pytest.fixture
    def gemini(self):
        return Mock()

    @pytest.fixture
    def llm(self, gemini, sleep):
        config = GeminiConfig(api_keys=["k1", "k2", "k3"], file_poll_max_checks=3)
        return KeyRotationClient(gemini, CredentialRotator(config.api_keys), config, sleep=sleep)

    @pytest.mark.asyncio
    async def test_always_rate_limited_visits_keys_in_order(self, llm, sleep):
        used = []

        async def operation(api_key):
            used.append(api_key)
            raise rate_limited()

        policy = RetryPolicy.per_key(attempts_per_key=2, delay=1.0)
        result = await llm.run(operation, policy, "test op")

        assert not result.ok
        assert result.exhausted
        assert result.attempts == 6
        assert used == ["k1", "k2", "k3", "k1", "k2", "k3"]
        assert [c.args[0] for c in sleep.await_args_list] == [8.0, 16.0, 32.0]

    @pytest.mark.asyncio
    async def test_rate_limit_then_success_switches_key(self, llm, sleep):
        operation = AsyncMock(side_effect=[rate_limited(), "done"])

        result = await llm.run(operation, llm.fixed_policy, "test op")

        assert result.ok
        assert result.value == "done"
        assert result.attempts == 2
        assert [c.args[0] for c in operation.await_args_list] == ["k1", "k2"]
        assert llm.rotator.current == "k2"
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limit_on_single_key_backs_off(self, gemini, sleep):
        llm = KeyRotationClient(gemini, CredentialRotator(["only"]), GeminiConfig(api_keys=["only"]), sleep=sleep)
        operation = AsyncMock(side_effect=[rate_limited(), rate_limited(), "ok"])

        value = await llm.call(operation, RetryPolicy.fixed(3, 5.0), "test op")

        assert value == "ok"
        assert [c.args[0] for c in sleep.await_args_list] == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_transient_retries_same_key_with_fixed_delay(self, llm, sleep):
        operation = AsyncMock(side_effect=[unavailable(), unavailable(), "ok"])

        value = await llm.call(operation, RetryPolicy.fixed(3, 5.0), "test op")

        assert value == "ok"
        assert [c.args[0] for c in operation.await_args_list] == ["k1", "k1", "k1"]
        assert [c.args[0] for c in sleep.await_args_list] == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_fixed_budget_exhausted(self, llm):
        operation = AsyncMock(side_effect=unavailable())

        with pytest.raises(ExhaustedRetriesError) as exc_info:
            await llm.call(operation, RetryPolicy.fixed(3, 5.0), "audio transcription")

        assert operation.await_count == 4
        assert exc_info.value.attempts == 4
        assert "audio transcription" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_fatal_error_not_retried(self, llm, sleep):
        fatal = ServiceError("400 INVALID_ARGUMENT", ErrorCategory.FATAL, 400)
        operation = AsyncMock(side_effect=fatal)

        with pytest.raises(ServiceError) as exc_info:
            await llm.call(operation, llm.rotating_policy, "test op")

        assert exc_info.value is fatal
        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_schema_error_not_retried(self, llm, gemini):
        gemini.generate_content.return_value = json.dumps({"message": 42, "sources": []})

        with pytest.raises(ResponseSchemaError):
            await llm.generate_json("prompt", {"type": "OBJECT"}, validate_agent_response)

        assert gemini.generate_content.call_count == 1

    @pytest.mark.asyncio
    async def test_generate_json_validates_payload(self, llm, gemini):
        gemini.generate_content.return_value = json.dumps({
            "message": "30 days", "sources": [{"sourceType": "document", "extra": 1}]
        })

        payload = await llm.generate_json("prompt", {"type": "OBJECT"}, validate_agent_response)

        assert payload == {"message": "30 days", "sources": [{"sourceType": "document"}]}
        args = gemini.generate_content.call_args.args
        assert args[0] == "k1"
        assert args[4] == "application/json"
        assert args[5] == {"type": "OBJECT"}

    @pytest.mark.asyncio
    async def test_generate_text_rejects_empty(self, llm, gemini):
        gemini.generate_content.return_value = "   "
        with pytest.raises(ResponseSchemaError):
            await llm.generate_text("prompt")

    @pytest.mark.asyncio
    async def test_process_media_polls_and_deletes(self, llm, gemini, sleep):
        gemini.upload_file.return_value = RemoteFile("files/1", "uri-1", "audio/mp3", "PROCESSING")
        gemini.get_file.side_effect = [
            RemoteFile("files/1", "uri-1", "audio/mp3", "PROCESSING"),
            RemoteFile("files/1", "uri-1", "audio/mp3", "ACTIVE"),
        ]
        gemini.generate_content.return_value = " A short jingle. "

        text = await llm.process_media("/tmp/clip.mp3", "audio/mp3", "Describe")

        assert text == "A short jingle."
        assert gemini.get_file.call_count == 2
        gemini.delete_file.assert_called_once_with("k1", "files/1")
        parts = gemini.generate_content.call_args.args[2]
        assert parts[0] == {"file_data": {"mime_type": "audio/mp3", "file_uri": "uri-1"}}

    @pytest.mark.asyncio
    async def test_process_media_reuploads_after_key_switch(self, llm, gemini):
        gemini.upload_file.side_effect = [
            RemoteFile("files/1", "uri-1", "video/mp4", "ACTIVE"),
            RemoteFile("files/2", "uri-2", "video/mp4", "ACTIVE"),
        ]
        gemini.generate_content.side_effect = [rate_limited(), "summary"]

        text = await llm.process_media("/tmp/v.mp4", "video/mp4", "Summarize")

        assert text == "summary"
        assert [c.args[0] for c in gemini.upload_file.call_args_list] == ["k1", "k2"]
        assert [c.args for c in gemini.delete_file.call_args_list] == [("k1", "files/1"), ("k2", "files/2")]

    @pytest.mark.asyncio
    async def test_failed_file_processing(self, llm, gemini):
        gemini.upload_file.return_value = RemoteFile("files/1", "uri-1", "video/mp4", "FAILED")

        with pytest.raises(ServiceError, match="File processing failed"):
            await llm.process_media("/tmp/v.mp4", "video/mp4", "Summarize")

        gemini.generate_content.assert_not_called()
        gemini.delete_file.assert_called_once()

    @pytest.mark.asyncio
    async def test_remote_delete_failure_does_not_mask_result(self, llm, gemini):
        gemini.upload_file.return_value = RemoteFile("files/1", "uri-1", "image/png", "ACTIVE")
        gemini.generate_content.return_value = "a cat"
        gemini.delete_file.side_effect = ServiceError("404 NOT_FOUND")

        assert await llm.process_media("/tmp/i.png", "image/png", "Describe") == "a cat"

"""
Credential rotation and retry policy for calls to the Gemini service.

Every external call goes through ``KeyRotationClient``: quota errors
advance the credential cursor and retry, transient errors back off and
retry with the same credential, anything else stops immediately. The
attempt budget is always bounded.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple, TypeVar

from .gemini_client import (
    ErrorCategory, GeminiClient, RemoteFile, ServiceError, file_part, text_part
)
from .schemas import parse_json, validate_plain_text
from ..config import GeminiConfig

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ExhaustedRetriesError(Exception):
    """Retry budget spent without a successful call."""

    def __init__(self, operation_name: str, attempts: int, last_error: Optional[Exception] = None):
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to complete {operation_name} after {attempts} attempts: {last_error}"
        )


class CredentialRotator:
    """
    Ordered pool of API keys with a circular cursor.

    The cursor only moves on quota errors. ``advance`` takes the index the
    caller was using so two callers failing on the same key move the
    cursor once, not twice.
    """

    def __init__(self, keys: Sequence[str]):
        self._keys: List[str] = [key for key in keys if key]
        if not self._keys:
            raise ValueError("No valid GEMINI_API_KEY provided in environment variables.")
        self._index = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> str:
        return self._keys[self._index]

    def snapshot(self) -> Tuple[int, str]:
        """Return the cursor position and the key it points at."""
        with self._lock:
            return self._index, self._keys[self._index]

    def advance(self, expected: Optional[int] = None) -> int:
        """
        Move the cursor to the next key.

        Args:
            expected: Index the caller observed; the cursor only moves if it
                still points there

        Returns:
            The cursor position after the call
        """
        with self._lock:
            if expected is None or expected == self._index:
                self._index = (self._index + 1) % len(self._keys)
                logger.info(f"Switched to API key {self._index + 1} of {len(self._keys)}")
            return self._index


class BackoffStrategy(Enum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


@dataclass
class RetryPolicy:
    """
    Attempt budget and wait schedule for one call site.

    Either ``max_attempts`` is set (fixed budget) or ``attempts_per_key``
    (budget proportional to the credential pool).
    """
    max_attempts: Optional[int] = None
    attempts_per_key: Optional[int] = None
    backoff: BackoffStrategy = BackoffStrategy.FIXED
    delay: float = 5.0
    max_delay: float = 60.0

    @classmethod
    def fixed(cls, retries: int = 3, delay: float = 5.0) -> "RetryPolicy":
        """First attempt plus ``retries`` retries, with a constant wait."""
        return cls(max_attempts=retries + 1, backoff=BackoffStrategy.FIXED, delay=delay)

    @classmethod
    def per_key(cls, attempts_per_key: int = 2, delay: float = 1.0, max_delay: float = 60.0,
                backoff: BackoffStrategy = BackoffStrategy.EXPONENTIAL) -> "RetryPolicy":
        """``attempts_per_key`` attempts for each credential in the pool."""
        return cls(attempts_per_key=attempts_per_key, backoff=backoff, delay=delay, max_delay=max_delay)

    def attempt_budget(self, pool_size: int) -> int:
        if self.max_attempts is not None:
            return max(1, self.max_attempts)
        return max(1, (self.attempts_per_key or 1) * max(1, pool_size))

    def delay_for(self, failures: int) -> float:
        """Seconds to wait after the ``failures``-th failed attempt."""
        if self.backoff is BackoffStrategy.EXPONENTIAL:
            return min(self.delay * (2 ** failures), self.max_delay)
        return self.delay


@dataclass
class CallResult:
    """Tagged outcome of a resilient call."""
    ok: bool
    value: Any = None
    attempts: int = 0
    error: Optional[Exception] = None
    exhausted: bool = False


class KeyRotationClient:
    """
    Resilient wrapper around GeminiClient.

    Features:
    - Credential rotation on quota errors
    - Fixed or exponential backoff on transient errors
    - Bounded attempt budget per call site
    - Schema-checked JSON and text generation
    - Upload / poll / generate / delete flow for media files
    """

    def __init__(
        self,
        client: GeminiClient,
        rotator: CredentialRotator,
        config: Optional[GeminiConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.rotator = rotator
        self.config = config or GeminiConfig()
        self._sleep = sleep

        self.fixed_policy = RetryPolicy.fixed(self.config.fixed_max_retries, self.config.transient_delay)
        self.rotating_policy = RetryPolicy.per_key(
            self.config.attempts_per_key, self.config.backoff_base, self.config.max_backoff
        )

    @classmethod
    def from_config(cls, config: GeminiConfig) -> "KeyRotationClient":
        client = GeminiClient(config.base_url, config.upload_url, config.request_timeout)
        return cls(client, CredentialRotator(config.api_keys), config)

    async def run(
        self,
        operation: Callable[[str], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        operation_name: str = "operation",
    ) -> CallResult:
        """
        Run ``operation(api_key)`` under the retry policy.

        Returns:
            CallResult; never raises for errors raised by ``operation``
        """
        policy = policy or self.fixed_policy
        budget = policy.attempt_budget(len(self.rotator))
        last_error: Optional[Exception] = None
        tried: Set[int] = set()

        for attempt in range(1, budget + 1):
            index, api_key = self.rotator.snapshot()
            tried.add(index)
            wait = True
            try:
                value = await operation(api_key)
            except ServiceError as e:
                last_error = e
                if e.category is ErrorCategory.RATE_LIMITED:
                    logger.warning(
                        f"Rate limit exceeded for API key {index + 1} during {operation_name}. "
                        f"Switching key and retrying..."
                    )
                    # A key not yet tried in this call is used right away
                    wait = self.rotator.advance(expected=index) in tried
                elif e.category is ErrorCategory.TRANSIENT:
                    logger.warning(f"Service unavailable during {operation_name}: {e}")
                else:
                    logger.error(f"Non-retryable error in {operation_name}: {e}")
                    return CallResult(ok=False, attempts=attempt, error=e)
            except Exception as e:
                logger.error(f"Non-retryable error in {operation_name}: {e}")
                return CallResult(ok=False, attempts=attempt, error=e)
            else:
                if attempt > 1:
                    logger.info(f"Retry successful for {operation_name} on attempt {attempt}")
                return CallResult(ok=True, value=value, attempts=attempt)

            if attempt < budget and wait:
                delay = policy.delay_for(attempt)
                logger.info(f"Retrying {operation_name} in {delay:.1f}s (attempt {attempt + 1}/{budget})")
                await self._sleep(delay)

        logger.error(f"All {budget} attempts failed for {operation_name}")
        return CallResult(ok=False, attempts=budget, error=last_error, exhausted=True)

    async def call(
        self,
        operation: Callable[[str], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        operation_name: str = "operation",
    ) -> T:
        """
        Like ``run`` but unwraps the result.

        Raises:
            ExhaustedRetriesError: If the attempt budget was spent
            Exception: The first non-retryable error, unchanged
        """
        result = await self.run(operation, policy, operation_name)
        if result.ok:
            return result.value
        if result.exhausted:
            raise ExhaustedRetriesError(operation_name, result.attempts, result.error) from result.error
        raise result.error

    async def generate_json(
        self,
        prompt: str,
        schema: Dict[str, Any],
        validator: Callable[[Any], T],
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
        operation_name: str = "generate_json",
    ) -> T:
        """Generate JSON matching ``schema`` and return ``validator(payload)``."""
        model = model or self.config.text_model

        async def operation(api_key: str) -> T:
            text = await asyncio.to_thread(
                self.client.generate_content,
                api_key,
                model,
                [text_part(prompt)],
                system_instruction,
                "application/json",
                schema,
            )
            return validator(parse_json(text))

        return await self.call(operation, policy, operation_name)

    async def generate_text(
        self,
        prompt: str,
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
        operation_name: str = "generate_text",
    ) -> str:
        """Generate a plain-text reply; empty replies are rejected."""
        model = model or self.config.text_model

        async def operation(api_key: str) -> str:
            text = await asyncio.to_thread(
                self.client.generate_content,
                api_key,
                model,
                [text_part(prompt)],
                system_instruction,
                "text/plain",
            )
            return validate_plain_text(text)

        return await self.call(operation, policy, operation_name)

    async def process_media(
        self,
        file_path: str,
        mime_type: str,
        prompt: str,
        validator: Callable[[Any], T] = validate_plain_text,
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        display_name: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
        operation_name: str = "process_media",
    ) -> T:
        """
        Upload a local file, wait until it is processed, and prompt on it.

        The remote file is deleted after every attempt. Files belong to the
        key that uploaded them, so a key switch re-uploads.
        """
        model = model or self.config.media_model
        response_mime_type = "application/json" if response_schema is not None else "text/plain"

        async def operation(api_key: str) -> T:
            remote = await asyncio.to_thread(
                self.client.upload_file, api_key, file_path, mime_type, display_name
            )
            try:
                remote = await self.wait_for_file(api_key, remote)
                text = await asyncio.to_thread(
                    self.client.generate_content,
                    api_key,
                    model,
                    [file_part(remote), text_part(prompt)],
                    system_instruction,
                    response_mime_type,
                    response_schema,
                )
            finally:
                await self._delete_remote(api_key, remote)

            payload = parse_json(text) if response_schema is not None else text
            return validator(payload)

        return await self.call(operation, policy, operation_name)

    async def wait_for_file(self, api_key: str, remote: RemoteFile) -> RemoteFile:
        """
        Poll a remote file until it leaves the PROCESSING state.

        Raises:
            ServiceError: If processing fails or does not finish in time
        """
        checks = 0
        while remote.state == "PROCESSING":
            if checks >= self.config.file_poll_max_checks:
                raise ServiceError(f"File {remote.name} is still processing after {checks} checks")
            await self._sleep(self.config.file_poll_interval)
            remote = await asyncio.to_thread(self.client.get_file, api_key, remote.name)
            checks += 1

        if remote.state == "FAILED":
            raise ServiceError("File processing failed.")
        return remote

    async def _delete_remote(self, api_key: str, remote: RemoteFile) -> None:
        try:
            await asyncio.to_thread(self.client.delete_file, api_key, remote.name)
        except Exception as e:
            logger.warning(f"Failed to delete remote file {remote.name}: {e}")

"""
Gemini REST client for text generation and media file handling.

Talks to the Generative Language API with a plain requests session.
Every method takes the API key to use for that call, so credential
selection stays with the caller. HTTP failures are classified once,
here, into rate-limited, transient and fatal errors.
"""

import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """How the retry layer should treat a service error."""
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"


RATE_LIMIT_STATUS_CODES = {429}
TRANSIENT_STATUS_CODES = {500, 502, 503, 504}


class ServiceError(Exception):
    """Error reported by, or while reaching, the generative service."""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.FATAL,
                 status_code: Optional[int] = None):
        self.message = message
        self.category = category
        self.status_code = status_code
        super().__init__(message)


def classify_error(status_code: Optional[int], status: Optional[str] = None) -> ErrorCategory:
    """
    Map an HTTP status code and API status string to an ErrorCategory.

    Args:
        status_code: HTTP status code of the failed response
        status: ``error.status`` field from the API error body, if any

    Returns:
        ErrorCategory for the retry layer
    """
    if status_code in RATE_LIMIT_STATUS_CODES or status == "RESOURCE_EXHAUSTED":
        return ErrorCategory.RATE_LIMITED
    if status_code in TRANSIENT_STATUS_CODES or status in ("UNAVAILABLE", "DEADLINE_EXCEEDED"):
        return ErrorCategory.TRANSIENT
    return ErrorCategory.FATAL


@dataclass
class RemoteFile:
    """A file stored by the Files API."""
    name: str
    uri: str
    mime_type: str
    state: str = "STATE_UNSPECIFIED"

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RemoteFile":
        return cls(
            name=data.get("name", ""),
            uri=data.get("uri", ""),
            mime_type=data.get("mimeType", ""),
            state=data.get("state", "STATE_UNSPECIFIED"),
        )


def text_part(text: str) -> Dict[str, Any]:
    return {"text": text}


def file_part(remote_file: RemoteFile) -> Dict[str, Any]:
    return {"file_data": {"mime_type": remote_file.mime_type, "file_uri": remote_file.uri}}


class GeminiClient:
    """
    Client for the Gemini generateContent and Files endpoints.

    Provides:
    - Text and JSON generation with a declared response schema
    - Resumable media upload, status lookup and deletion
    - Typed error classification for the retry layer
    """

    def __init__(
        self,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        upload_url: str = "https://generativelanguage.googleapis.com/upload/v1beta/files",
        timeout: int = 300,
    ):
        """
        Initialize Gemini client.

        Args:
            base_url: Generative Language API base URL
            upload_url: Files API upload endpoint
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.upload_url = upload_url
        self.timeout = timeout
        self.session = requests.Session()

        # Performance tracking
        self._generation_stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'average_response_time': 0.0,
            'model_usage': {}
        }

        logger.info(f"GeminiClient initialized with base URL: {self.base_url}")

    def generate_content(
        self,
        api_key: str,
        model: str,
        parts: List[Dict[str, Any]],
        system_instruction: Optional[str] = None,
        response_mime_type: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Generate content for a single user turn.

        Args:
            api_key: Credential to use for this call
            model: Model name, e.g. ``gemini-1.5-flash``
            parts: Content parts (text and file references)
            system_instruction: Optional system prompt
            response_mime_type: ``application/json`` or ``text/plain``
            response_schema: Expected response shape for JSON output

        Returns:
            Concatenated text of the first candidate

        Raises:
            ServiceError: If the request fails or no text is returned
        """
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": parts}],
        }
        generation_config: Dict[str, Any] = {}
        if response_mime_type:
            generation_config["responseMimeType"] = response_mime_type
        if response_schema is not None:
            generation_config["responseSchema"] = response_schema
        if generation_config:
            payload["generationConfig"] = generation_config
        if system_instruction:
            payload["systemInstruction"] = {"parts": [text_part(system_instruction)]}

        start_time = time.time()
        try:
            result = self._request(
                "POST", f"{self.base_url}/models/{model}:generateContent", api_key, json=payload
            )
            text = self._candidate_text(result)
        except ServiceError:
            self._update_generation_stats(model, time.time() - start_time, False)
            raise

        response_time = time.time() - start_time
        self._update_generation_stats(model, response_time, True)
        logger.info(f"Generated {len(text)} characters using {model} in {response_time:.2f}s")
        return text

    def upload_file(self, api_key: str, file_path: str, mime_type: str,
                    display_name: Optional[str] = None) -> RemoteFile:
        """
        Upload a local file with the resumable upload protocol.

        Raises:
            ServiceError: If either upload step fails
        """
        size = os.path.getsize(file_path)
        start = self._raw_request(
            "POST",
            self.upload_url,
            api_key,
            headers={
                "X-Goog-Upload-Protocol": "resumable",
                "X-Goog-Upload-Command": "start",
                "X-Goog-Upload-Header-Content-Length": str(size),
                "X-Goog-Upload-Header-Content-Type": mime_type,
            },
            json={"file": {"display_name": display_name or os.path.basename(file_path)}},
        )
        upload_url = start.headers.get("X-Goog-Upload-URL")
        if not upload_url:
            raise ServiceError("File upload failed: no upload URL returned")

        with open(file_path, "rb") as handle:
            finished = self._raw_request(
                "POST",
                upload_url,
                api_key,
                headers={
                    "Content-Length": str(size),
                    "X-Goog-Upload-Offset": "0",
                    "X-Goog-Upload-Command": "upload, finalize",
                },
                data=handle,
            )

        remote = RemoteFile.from_api(self._json(finished).get("file", {}))
        if not remote.uri or not remote.mime_type:
            raise ServiceError("File upload failed, URI or MIME type is missing.")
        logger.info(f"Uploaded {file_path} as {remote.name}")
        return remote

    def get_file(self, api_key: str, name: str) -> RemoteFile:
        """Fetch the current metadata (including processing state) of a remote file."""
        return RemoteFile.from_api(self._request("GET", f"{self.base_url}/{name}", api_key))

    def delete_file(self, api_key: str, name: str) -> None:
        """Delete a remote file."""
        self._raw_request("DELETE", f"{self.base_url}/{name}", api_key)
        logger.debug(f"Deleted remote file {name}")

    def _request(self, method: str, url: str, api_key: str, **kwargs) -> Dict[str, Any]:
        return self._json(self._raw_request(method, url, api_key, **kwargs))

    def _raw_request(self, method: str, url: str, api_key: str,
                     headers: Optional[Dict[str, str]] = None, **kwargs) -> requests.Response:
        request_headers = {"x-goog-api-key": api_key}
        if headers:
            request_headers.update(headers)

        try:
            response = self.session.request(
                method, url, headers=request_headers, timeout=self.timeout, **kwargs
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise ServiceError(f"Service unreachable: {e}", ErrorCategory.TRANSIENT)
        except requests.RequestException as e:
            raise ServiceError(f"Request failed: {e}", ErrorCategory.FATAL)

        if response.status_code >= 400:
            raise self._error_from_response(response)
        return response

    def _error_from_response(self, response: requests.Response) -> ServiceError:
        status = None
        message = response.reason or ""
        try:
            error = response.json().get("error", {})
            status = error.get("status")
            message = error.get("message") or message
        except (ValueError, AttributeError):
            pass

        category = classify_error(response.status_code, status)
        return ServiceError(
            f"{response.status_code} {status or ''} {message}".strip(),
            category=category,
            status_code=response.status_code,
        )

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ServiceError(f"Invalid JSON from service: {e}")

    @staticmethod
    def _candidate_text(result: Dict[str, Any]) -> str:
        candidates = result.get("candidates") or []
        if not candidates:
            feedback = result.get("promptFeedback", {})
            raise ServiceError(f"Invalid response from the model: no candidates {feedback}".strip())

        parts = candidates[0].get("content", {}).get("parts", [])
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            raise ServiceError("Invalid response from the model: empty text")
        return text

    def _update_generation_stats(self, model: str, response_time: float, success: bool) -> None:
        """Update generation performance statistics."""
        self._generation_stats['total_requests'] += 1

        if success:
            self._generation_stats['successful_requests'] += 1
        else:
            self._generation_stats['failed_requests'] += 1

        total_requests = self._generation_stats['total_requests']
        current_avg = self._generation_stats['average_response_time']
        self._generation_stats['average_response_time'] = (
            (current_avg * (total_requests - 1) + response_time) / total_requests
        )

        usage = self._generation_stats['model_usage'].setdefault(model, {'requests': 0, 'failures': 0})
        usage['requests'] += 1
        if not success:
            usage['failures'] += 1

    def get_generation_stats(self) -> Dict[str, Any]:
        """
        Get generation performance statistics.

        Returns:
            Dictionary containing performance metrics
        """
        return self._generation_stats.copy()

    def close(self) -> None:
        self.session.close()

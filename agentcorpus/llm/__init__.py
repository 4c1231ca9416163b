"""Gemini service integration: REST client, key rotation and response generation."""

from .gemini_client import GeminiClient, ServiceError, ErrorCategory
from .key_rotation import KeyRotationClient, CredentialRotator, RetryPolicy, ExhaustedRetriesError
from .response_generator import ResponseGenerator
from .schemas import ResponseSchemaError

__all__ = [
    'GeminiClient',
    'ServiceError',
    'ErrorCategory',
    'KeyRotationClient',
    'CredentialRotator',
    'RetryPolicy',
    'ExhaustedRetriesError',
    'ResponseGenerator',
    'ResponseSchemaError'
]

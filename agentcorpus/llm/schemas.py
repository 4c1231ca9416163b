"""
Response schemas declared to the generative model and their validators.

Each schema is sent with the request as ``responseSchema``; the matching
validator checks the returned payload before it is accepted, because the
service does not guarantee conformance.
"""

import json
from typing import Any, Dict, List


class ResponseSchemaError(Exception):
    """Model output does not match the declared response shape."""
    pass


AGENT_RESPONSE_SCHEMA: Dict[str, Any] = {
    "description": "AI agent response with source attribution",
    "type": "OBJECT",
    "properties": {
        "message": {
            "type": "STRING",
            "description": "The response text from the AI agent",
            "nullable": False,
        },
        "sources": {
            "type": "ARRAY",
            "description": "List of sources used in the response",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "sourceType": {
                        "type": "STRING",
                        "description": "Type of source (audio, video, document, website, youtube)",
                        "nullable": False,
                    },
                },
                "required": ["sourceType"],
            },
        },
    },
    "required": ["message", "sources"],
}

TRANSCRIPT_SCHEMA: Dict[str, Any] = {
    "description": "Structured YouTube transcript data for AI training.",
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "fullTranscript": {
                "type": "STRING",
                "description": "The complete cleaned transcript text.",
            },
            "contentTokenCount": {
                "type": "NUMBER",
                "description": "Token count of the transcript content.",
            },
        },
        "required": ["fullTranscript", "contentTokenCount"],
    },
}

IMAGE_DESCRIPTION_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "description": {
            "type": "STRING",
            "description": "A detailed description of the image content.",
        },
    },
    "required": ["description"],
}


def parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        raise ResponseSchemaError(f"Failed to parse model response: {e}")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_agent_response(payload: Any) -> Dict[str, Any]:
    """Check ``{message: str, sources: [{sourceType: str}]}``."""
    if not isinstance(payload, dict):
        raise ResponseSchemaError("Invalid response format: expected an object")
    if not isinstance(payload.get("message"), str):
        raise ResponseSchemaError("Invalid response format: 'message' must be a string")

    sources = payload.get("sources")
    if not isinstance(sources, list):
        raise ResponseSchemaError("Invalid response format: 'sources' must be an array")
    for source in sources:
        if not isinstance(source, dict) or not isinstance(source.get("sourceType"), str):
            raise ResponseSchemaError("Invalid response source: missing sourceType")

    return {
        "message": payload["message"],
        "sources": [{"sourceType": source["sourceType"]} for source in sources],
    }


def validate_transcript_records(payload: Any) -> List[Dict[str, Any]]:
    """Check a non-empty array of ``{fullTranscript, contentTokenCount}`` records."""
    if not isinstance(payload, list) or not payload:
        raise ResponseSchemaError("Invalid response format: Expected non-empty array.")

    for item in payload:
        if (
            not isinstance(item, dict)
            or not isinstance(item.get("fullTranscript"), str)
            or not item["fullTranscript"].strip()
            or not _is_number(item.get("contentTokenCount"))
        ):
            raise ResponseSchemaError(
                "Invalid response item: Missing fullTranscript or contentTokenCount."
            )
    return payload


def validate_image_description(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise ResponseSchemaError("Invalid response format: expected an object")
    description = payload.get("description")
    if not isinstance(description, str) or not description.strip():
        raise ResponseSchemaError("No description found in the response.")
    return description.strip()


def validate_plain_text(text: Any) -> str:
    if not isinstance(text, str) or not text.strip():
        raise ResponseSchemaError("Invalid response from the model.")
    return text.strip()

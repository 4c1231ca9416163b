"""Request validation shared by training and chat."""

from typing import Any


class ValidationError(Exception):
    """Bad or missing identifiers or inputs; correctable by the caller."""
    pass


def require_agent_id(agent_id: Any) -> str:
    if not isinstance(agent_id, str) or not agent_id.strip():
        raise ValidationError("Invalid agentId")
    return agent_id.strip()

"""
Agent record storage.

The training aggregator and the chat orchestrator only need two
operations from storage: replace an agent's record and look one up.
Two implementations are provided: an in-process dictionary and a single
JSON document on disk keyed by agent id.
"""

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from ..models import AgentRecord


logger = logging.getLogger(__name__)


class AgentRepository(ABC):
    """Storage contract for agent records."""

    @abstractmethod
    async def upsert(self, record: AgentRecord) -> None:
        """Insert the record or replace the stored one with the same id."""
        pass

    @abstractmethod
    async def find(self, agent_id: str) -> Optional[AgentRecord]:
        """Return the stored record, or None if the agent is unknown."""
        pass

    async def list_ids(self) -> List[str]:
        return []


class InMemoryAgentRepository(AgentRepository):
    """Dictionary-backed repository, used by tests and single-process runs."""

    def __init__(self):
        self._records: Dict[str, AgentRecord] = {}

    async def upsert(self, record: AgentRecord) -> None:
        self._records[record.agent_id] = AgentRecord.from_dict(record.to_dict())

    async def find(self, agent_id: str) -> Optional[AgentRecord]:
        record = self._records.get(agent_id)
        if record is None:
            return None
        return AgentRecord.from_dict(record.to_dict())

    async def list_ids(self) -> List[str]:
        return list(self._records)


class JsonFileAgentRepository(AgentRepository):
    """
    Repository persisted as one JSON document.

    Writes go to a temporary file in the same directory which then
    replaces the document, so readers never see a partial file.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _load(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Corrupt agent store at {self.path}: expected an object")
        return data

    def _save(self, data: Dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, self.path)
        except Exception:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise

    def _upsert_sync(self, record: AgentRecord) -> None:
        data = self._load()
        data[record.agent_id] = record.to_dict()
        self._save(data)

    async def upsert(self, record: AgentRecord) -> None:
        async with self._lock:
            await asyncio.to_thread(self._upsert_sync, record)
        logger.info(f"Stored agent {record.agent_id} with {len(record.training_data)} training entries")

    async def find(self, agent_id: str) -> Optional[AgentRecord]:
        async with self._lock:
            data = await asyncio.to_thread(self._load)
        record = data.get(agent_id)
        return AgentRecord.from_dict(record) if record is not None else None

    async def list_ids(self) -> List[str]:
        async with self._lock:
            data = await asyncio.to_thread(self._load)
        return list(data)

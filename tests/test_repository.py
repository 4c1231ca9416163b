"""
Unit tests for agent record storage.
"""

import json
import pytest
from unittest.mock import patch

from agentcorpus.agents import InMemoryAgentRepository, JsonFileAgentRepository
from agentcorpus.models import AgentRecord, SourceKind, TrainingEntry


def make_record(agent_id="agent-1", texts=("first",)):
    return AgentRecord(
        agent_id=agent_id,
        is_trained=True,
        training_data=[TrainingEntry(text, SourceKind.DOCUMENT) for text in texts],
    )


class TestInMemoryAgentRepository:

    @pytest.mark.asyncio
    async def test_upsert_and_find(self):
        repository = InMemoryAgentRepository()
        assert await repository.find("agent-1") is None

        await repository.upsert(make_record())
        await repository.upsert(make_record(texts=("second", "third")))

        record = await repository.find("agent-1")
        assert [entry.text for entry in record.training_data] == ["second", "third"]
        assert await repository.list_ids() == ["agent-1"]

    @pytest.mark.asyncio
    async def test_stored_copy_is_isolated(self):
        repository = InMemoryAgentRepository()
        record = make_record()
        await repository.upsert(record)

        record.training_data.append(TrainingEntry("mutated", SourceKind.DOCUMENT))
        stored = await repository.find("agent-1")
        assert len(stored.training_data) == 1


class TestJsonFileAgentRepository:
    """Test suite for JsonFileAgentRepository."""

    @pytest.fixture
    def store_path(self, tmp_path):
        return tmp_path / "storage" / "agents.json"

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, store_path):
        await JsonFileAgentRepository(str(store_path)).upsert(make_record(texts=("a", "b")))

        record = await JsonFileAgentRepository(str(store_path)).find("agent-1")

        assert record == make_record(texts=("a", "b"))
        data = json.loads(store_path.read_text(encoding="utf-8"))
        assert data["agent-1"]["trainingData"] == [
            {"data": "a", "source": "document"},
            {"data": "b", "source": "document"},
        ]

    @pytest.mark.asyncio
    async def test_upsert_keeps_other_agents(self, store_path):
        repository = JsonFileAgentRepository(str(store_path))
        await repository.upsert(make_record("agent-1"))
        await repository.upsert(make_record("agent-2"))
        await repository.upsert(make_record("agent-1", texts=("new",)))

        assert sorted(await repository.list_ids()) == ["agent-1", "agent-2"]
        assert (await repository.find("agent-1")).training_data[0].text == "new"

    @pytest.mark.asyncio
    async def test_missing_file(self, store_path):
        assert await JsonFileAgentRepository(str(store_path)).find("agent-1") is None

    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous_document(self, store_path):
        repository = JsonFileAgentRepository(str(store_path))
        await repository.upsert(make_record(texts=("kept",)))

        with patch("agentcorpus.agents.repository.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                await repository.upsert(make_record(texts=("lost",)))

        assert (await repository.find("agent-1")).training_data[0].text == "kept"
        assert [p.name for p in store_path.parent.iterdir()] == ["agents.json"]

    @pytest.mark.asyncio
    async def test_corrupt_document(self, store_path):
        store_path.parent.mkdir(parents=True)
        store_path.write_text("[]", encoding="utf-8")
        with pytest.raises(ValueError, match="Corrupt agent store"):
            await JsonFileAgentRepository(str(store_path)).find("agent-1")

"""Local record store tests."""

import pytest

from flowsync.contracts import WorkflowRecord
from flowsync.defaults import FIRST_WORKFLOWS
from flowsync.errors import PersistenceFailed
from flowsync.fingerprint import fingerprint
from flowsync.storage import InMemoryStorage
from flowsync.store import WorkflowStore, default_workflow


class FakeClock:
    def __init__(self, now: int = 10_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class FailingStorage(InMemoryStorage):
    fail = False

    async def set(self, items):
        if self.fail:
            raise OSError("disk full")
        await super().set(items)


@pytest.mark.asyncio
async def test_load_seeds_defaults_on_first_run():
    storage = InMemoryStorage()
    store = WorkflowStore(storage)

    records = await store.load()

    assert set(records) == {item["id"] for item in FIRST_WORKFLOWS}
    assert store.is_first_time
    persisted = await storage.get(["workflows", "isFirstTime"])
    assert persisted["isFirstTime"] is False
    assert set(persisted["workflows"]) == set(records)


@pytest.mark.asyncio
async def test_load_seeds_when_first_time_flag_set():
    storage = InMemoryStorage({"isFirstTime": True, "workflows": {}})
    store = WorkflowStore(storage, defaults=[{"id": "seed", "name": "Seed"}])
    records = await store.load()
    assert list(records) == ["seed"]
    assert records["seed"].graph.nodes[0]["label"] == "trigger"


@pytest.mark.asyncio
async def test_load_reads_persisted_map_and_list():
    stored = WorkflowRecord(id="A", name="Stored").to_storage()
    store = WorkflowStore(InMemoryStorage({"workflows": {"A": stored}, "isFirstTime": False}))
    assert list(await store.load()) == ["A"]

    legacy = WorkflowStore(InMemoryStorage({"workflows": [stored]}))
    assert list(await legacy.load()) == ["A"]
    assert not legacy.is_first_time


@pytest.mark.asyncio
async def test_load_is_idempotent():
    storage = InMemoryStorage()
    store = WorkflowStore(storage)
    first = dict(await store.load())
    store.upsert(WorkflowRecord(id="unsaved"))

    second = await store.load()
    assert "unsaved" in second
    assert set(second) == set(first) | {"unsaved"}

    fresh = WorkflowStore(storage)
    assert set(await fresh.load()) == set(first)
    assert not fresh.is_first_time


@pytest.mark.asyncio
async def test_upsert_refreshes_timestamps_and_fingerprint():
    clock = FakeClock(5_000)
    store = WorkflowStore(InMemoryStorage(), defaults=[], clock=clock)
    await store.load()

    record = store.upsert(WorkflowRecord(id="A", createdAt=1, updatedAt=1))
    assert record.updated_at == 5_000
    assert record.created_at == 1

    record.graph.nodes.append({"id": "n1"})
    clock.now = 4_000
    updated = store.upsert(record.model_copy(deep=True))
    assert updated.updated_at == 5_000
    assert updated.fingerprint == fingerprint({"nodes": [{"id": "n1"}]})

    clock.now = 9_000
    assert store.upsert(WorkflowRecord(id="A", createdAt=7)).created_at == 1
    assert store.get("A").updated_at == 9_000
    assert len(store) == 1


@pytest.mark.asyncio
async def test_delete_ignores_unknown_ids():
    store = WorkflowStore(InMemoryStorage(), defaults=[])
    await store.load()
    store.upsert(WorkflowRecord(id="A"))
    store.upsert(WorkflowRecord(id="B"))

    assert store.delete("missing") == []
    assert store.delete(["A", "missing"]) == ["A"]
    assert store.ids() == ["B"]


@pytest.mark.asyncio
async def test_persist_failure_keeps_memory_state():
    storage = FailingStorage()
    store = WorkflowStore(storage, defaults=[])
    await store.load()
    store.upsert(WorkflowRecord(id="A"))

    storage.fail = True
    with pytest.raises(PersistenceFailed):
        await store.persist()
    assert "A" in store

    storage.fail = False
    await store.persist()
    assert set((await storage.get(["workflows"]))["workflows"]) == {"A"}


def test_default_workflow_fills_defaults():
    record = default_workflow({"name": "New"}, clock=FakeClock(42))
    assert record.id
    assert record.name == "New"
    assert record.created_at == record.updated_at == 42
    assert record.settings.on_error == "stop-workflow"
    assert [node["label"] for node in record.graph.nodes] == ["trigger"]
    assert record.fingerprint == fingerprint(record.graph)


def test_default_workflow_keeps_supplied_graph_and_duplicates_id():
    data = {"id": "A", "drawflow": {"nodes": [{"id": "n1", "label": "new-tab"}]}}
    assert default_workflow(data).id == "A"

    copy = default_workflow(data, duplicate_id=True)
    assert copy.id != "A"
    assert copy.graph.nodes == [{"id": "n1", "label": "new-tab"}]

"""Local mutation API tests."""

import pytest

from flowsync.contracts import WorkflowRecord
from flowsync.errors import BackupDeleteFailed, PersistenceFailed
from flowsync.fingerprint import fingerprint
from flowsync.service import WorkflowService
from flowsync.storage import InMemoryStorage
from flowsync.store import WorkflowStore
from flowsync.triggers import InMemoryTriggerRegistry

TRIGGER = {"id": "t1", "label": "trigger", "data": {"type": "interval"}}


class FakeBackup:
    def __init__(self, fail: bool = False, fail_ids=()) -> None:
        self.fail = fail
        self.fail_ids = set(fail_ids)
        self.deleted = []

    async def delete_backup(self, workflow_id):
        if self.fail or workflow_id in self.fail_ids:
            raise BackupDeleteFailed(workflow_id, "Unauthorized")
        self.deleted.append(workflow_id)


class FlakyStorage(InMemoryStorage):
    """Rejects writes of the workflow map once ``fail`` is set."""

    fail = False

    async def set(self, items):
        if self.fail and "workflows" in items:
            raise OSError("quota exceeded")
        await super().set(items)


async def _service(records=(), storage=None, backup=None):
    storage = storage or InMemoryStorage()
    store = WorkflowStore(storage, defaults=[])
    await store.load()
    for record in records:
        store.upsert(record)
    triggers = InMemoryTriggerRegistry()
    return WorkflowService(store, triggers, backup=backup), store, triggers, storage


def _workflow(workflow_id="A", is_disabled=False, nodes=None, **extra):
    return WorkflowRecord.model_validate(
        {
            "id": workflow_id,
            "isDisabled": is_disabled,
            "graph": {"nodes": nodes if nodes is not None else [TRIGGER]},
            **extra,
        }
    )


@pytest.mark.asyncio
async def test_update_shallow_overwrites_fields():
    service, store, _, storage = await _service([_workflow(settings={"restartTimes": 5})])

    updated = await service.update("A", {"name": "Renamed", "settings": {"onError": "keep-running"}})

    record = updated["A"]
    assert record.name == "Renamed"
    assert record.settings.on_error == "keep-running"
    assert record.settings.restart_times == 3
    persisted = (await storage.get(["workflows"]))["workflows"]
    assert persisted["A"]["name"] == "Renamed"


@pytest.mark.asyncio
async def test_update_deep_merges_nested_fields():
    service, store, _, _ = await _service([_workflow(settings={"restartTimes": 5})])

    await service.update("A", {"settings": {"onError": "keep-running"}}, deep=True)

    record = store.get("A")
    assert record.settings.on_error == "keep-running"
    assert record.settings.restart_times == 5


@pytest.mark.asyncio
async def test_update_refreshes_fingerprint_and_timestamp():
    service, store, _, _ = await _service([_workflow()])
    before = store.get("A")
    before_updated_at = before.updated_at
    nodes = [TRIGGER, {"id": "n2", "label": "new-tab"}]

    updated = await service.update("A", {"drawflow": {"nodes": nodes}})

    assert updated["A"].fingerprint == fingerprint({"nodes": nodes})
    assert updated["A"].updated_at >= before_updated_at


@pytest.mark.asyncio
async def test_update_with_predicate_and_unknown_id():
    service, store, _, _ = await _service(
        [_workflow("A"), _workflow("B", folderId="f1"), _workflow("C", folderId="f1")]
    )

    updated = await service.update(lambda wf: wf.folder_id == "f1", {"icon": "riStarLine"})
    assert set(updated) == {"B", "C"}
    assert store.get("A").icon == "riGlobalLine"

    assert await service.update("missing", {"name": "x"}) == {}


@pytest.mark.asyncio
async def test_enable_registers_trigger_once():
    service, _, triggers, _ = await _service([_workflow(is_disabled=True)])

    await service.update("A", {"isDisabled": False})

    assert triggers.calls == [("register", "A")]
    assert triggers.registered["A"] == TRIGGER


@pytest.mark.asyncio
async def test_disable_cleans_up_trigger_once():
    service, _, triggers, _ = await _service([_workflow(is_disabled=False)])

    await service.update("A", {"is_disabled": True})

    assert triggers.calls == [("cleanup", "A")]


@pytest.mark.asyncio
async def test_same_enabled_value_invokes_no_hook():
    service, _, triggers, _ = await _service([_workflow(is_disabled=False)])

    await service.update("A", {"isDisabled": False})
    await service.update("A", {"name": "no flag"})

    assert triggers.calls == []


@pytest.mark.asyncio
async def test_insert_or_update_creates_and_skips_unchanged():
    service, store, _, _ = await _service([_workflow()])

    result = await service.insert_or_update(
        [
            {"id": "A", "drawflow": {"nodes": [TRIGGER]}},
            {"id": "B", "name": "Imported"},
        ]
    )

    assert list(result) == ["B"]
    assert store.get("B").name == "Imported"


@pytest.mark.asyncio
async def test_insert_or_update_applies_recency_gate():
    service, store, _, _ = await _service([_workflow()])
    local = store.get("A")
    changed = [TRIGGER, {"id": "n2", "label": "new-tab"}]

    older = {"id": "A", "graph": {"nodes": changed}, "updatedAt": local.updated_at - 1}
    assert await service.insert_or_update([older], check_update_date=True) == {}
    assert store.get("A").graph.nodes == [TRIGGER]

    newer = {**older, "updatedAt": local.updated_at + 60_000, "name": "Newer"}
    result = await service.insert_or_update([newer], check_update_date=True)
    assert result["A"].graph.nodes == changed
    assert result["A"].name == "Newer"


@pytest.mark.asyncio
async def test_insert_or_update_duplicate_id_assigns_fresh_id():
    service, store, _, _ = await _service()

    result = await service.insert_or_update([{"id": "shared", "name": "Copy"}], duplicate_id=True)

    (new_id,) = result
    assert new_id != "shared"
    assert "shared" not in store


@pytest.mark.asyncio
async def test_duplicate_copies_graph_under_new_id():
    service, store, _, _ = await _service([_workflow(name="Original")])

    copy = await service.duplicate("A")

    assert copy.id != "A"
    assert copy.name == "Original - copy"
    assert copy.graph == store.get("A").graph
    assert len(store) == 2
    assert await service.duplicate("missing") is None


@pytest.mark.asyncio
async def test_delete_cleans_up_every_reference():
    storage = InMemoryStorage(
        {
            "state:A": {"running": True},
            "draft:A": {"name": "draft"},
            "draft-team:A": {},
            "draft:B": {"name": "keep"},
            "pinnedWorkflows": ["B", "A"],
            "backupIds": ["A"],
        }
    )
    backup = FakeBackup()
    service, store, triggers, storage = await _service(
        [_workflow("A"), _workflow("B")], storage=storage, backup=backup
    )

    removed = await service.delete("A")

    assert removed == ["A"]
    assert "A" not in store
    assert backup.deleted == ["A"]
    assert triggers.calls == [("cleanup", "A")]
    remaining = await storage.get(
        ["state:A", "draft:A", "draft-team:A", "draft:B", "pinnedWorkflows", "backupIds"]
    )
    assert remaining == {
        "draft:B": {"name": "keep"},
        "pinnedWorkflows": ["B"],
        "backupIds": [],
    }
    persisted = (await storage.get(["workflows"]))["workflows"]
    assert set(persisted) == {"B"}


@pytest.mark.asyncio
async def test_delete_unknown_id_is_noop():
    service, store, triggers, storage = await _service([_workflow("A")])

    assert await service.delete(["missing"]) == []
    assert "A" in store
    assert triggers.calls == []


@pytest.mark.asyncio
async def test_delete_surfaces_backup_failure_before_local_changes():
    storage = InMemoryStorage({"hostedWorkflows": {"A": {"hostId": "h"}}, "draft:A": {}})
    service, store, triggers, storage = await _service(
        [_workflow("A")], storage=storage, backup=FakeBackup(fail=True)
    )

    with pytest.raises(BackupDeleteFailed):
        await service.delete("A")

    assert "A" in store
    assert triggers.calls == []
    assert "draft:A" in await storage.get(["draft:A"])


@pytest.mark.asyncio
async def test_delete_many_removes_hosted_entries():
    storage = InMemoryStorage({"hostedWorkflows": {"A": {"hostId": "h"}, "Z": {}}})
    backup = FakeBackup()
    service, store, _, storage = await _service(
        [_workflow("A"), _workflow("B")], storage=storage, backup=backup
    )

    assert await service.delete(["A", "B", "missing"]) == ["A", "B"]
    assert backup.deleted == ["A"]
    assert (await storage.get(["hostedWorkflows"]))["hostedWorkflows"] == {"Z": {}}
    assert len(store) == 0


@pytest.mark.asyncio
async def test_update_dispatches_trigger_change_when_persist_fails():
    storage = FlakyStorage()
    service, store, triggers, _ = await _service([_workflow(is_disabled=False)], storage=storage)
    triggers.registered["A"] = TRIGGER
    storage.fail = True

    with pytest.raises(PersistenceFailed):
        await service.update("A", {"isDisabled": True})

    assert store.get("A").is_disabled is True
    assert triggers.calls == [("cleanup", "A")]
    assert "A" not in triggers.registered


@pytest.mark.asyncio
async def test_insert_or_update_dispatches_trigger_change_when_persist_fails():
    storage = FlakyStorage()
    service, store, triggers, _ = await _service([_workflow(is_disabled=True)], storage=storage)
    storage.fail = True
    nodes = [TRIGGER, {"id": "n2", "label": "new-tab"}]

    with pytest.raises(PersistenceFailed):
        await service.insert_or_update([{"id": "A", "isDisabled": False, "graph": {"nodes": nodes}}])

    assert store.get("A").is_disabled is False
    assert triggers.calls == [("register", "A")]


@pytest.mark.asyncio
async def test_delete_cleans_up_even_when_persist_fails():
    storage = FlakyStorage(
        {"state:A": {"running": True}, "draft:A": {}, "pinnedWorkflows": ["A", "B"]}
    )
    service, store, triggers, _ = await _service(
        [_workflow("A"), _workflow("B")], storage=storage
    )
    triggers.registered["A"] = TRIGGER
    storage.fail = True

    with pytest.raises(PersistenceFailed):
        await service.delete("A")

    assert "A" not in store
    assert triggers.calls == [("cleanup", "A")]
    assert triggers.registered == {}
    assert "state:A" not in storage.keys()
    assert "draft:A" not in storage.keys()
    assert (await storage.get(["pinnedWorkflows"]))["pinnedWorkflows"] == ["B"]


@pytest.mark.asyncio
async def test_delete_many_stops_at_failing_backup_and_keeps_earlier_deletions():
    storage = InMemoryStorage({"backupIds": ["A", "B", "C"]})
    backup = FakeBackup(fail_ids={"B"})
    service, store, triggers, storage = await _service(
        [_workflow("A"), _workflow("B"), _workflow("C")], storage=storage, backup=backup
    )

    with pytest.raises(BackupDeleteFailed) as exc_info:
        await service.delete(["A", "B", "C"])

    assert exc_info.value.workflow_id == "B"
    assert backup.deleted == ["A"]
    assert "A" not in store
    assert "B" in store and "C" in store
    assert triggers.calls == [("cleanup", "A")]
    assert (await storage.get(["backupIds"]))["backupIds"] == ["B", "C"]
    persisted = (await storage.get(["workflows"]))["workflows"]
    assert set(persisted) == {"B", "C"}

    backup.fail_ids.clear()
    assert await service.delete(["A", "B", "C"]) == ["B", "C"]
    assert backup.deleted == ["A", "B", "C"]
    assert len(store) == 0

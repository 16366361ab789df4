"""
Tests for TaskStore: mutations, invariants, persistence, emitted events.
"""
import json
import threading

import pytest

from taskboard.errors import NotFoundError, PersistenceError, ValidationError
from taskboard.persistence import JsonFilePersistence
from taskboard.schema import TaskStatus, TaskPriority
from taskboard.store import TaskStore

from conftest import FailingPersistence, RecordingEmitter


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Loading
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_load_missing_file_initializes_it(data_file, clock):
    """No snapshot yet: start empty and write an empty snapshot immediately"""
    store = TaskStore(JsonFilePersistence(data_file), clock=clock)
    assert store.load() == 0
    assert data_file.exists()
    assert json.loads(data_file.read_text()) == []


def test_load_existing_snapshot(data_file, clock):
    data_file.parent.mkdir(parents=True)
    data_file.write_text(json.dumps([
        {"id": "a", "title": "One", "status": "todo", "priority": "high",
         "tags": [], "assignee": "", "description": "", "order": 2,
         "created_at": "2026-01-01T00:00:00.000Z", "updated_at": "2026-01-02T00:00:00.000Z"},
    ]))
    store = TaskStore(JsonFilePersistence(data_file), clock=clock)
    assert store.load() == 1
    task = store.get("a")
    assert task.status is TaskStatus.TODO
    assert task.priority is TaskPriority.HIGH
    assert task.order == 2


def test_load_corrupt_file_starts_empty(data_file, clock):
    """Unparsable snapshot is logged, not fatal, and left untouched"""
    data_file.parent.mkdir(parents=True)
    data_file.write_text("{not json")
    store = TaskStore(JsonFilePersistence(data_file), clock=clock)
    assert store.load() == 0
    assert len(store) == 0
    assert data_file.read_text() == "{not json"


@pytest.mark.parametrize("payload", ['["oops"]', "[1]", "[null]", '[{"id": "a", "title": 7}]'])
def test_load_malformed_entries_starts_empty(data_file, clock, payload):
    """Entries that are not task objects are logged, not fatal"""
    data_file.parent.mkdir(parents=True)
    data_file.write_text(payload)
    store = TaskStore(JsonFilePersistence(data_file), clock=clock)
    assert store.load() == 0
    assert store.list_tasks() == []
    assert data_file.read_text() == payload


def test_load_null_order_is_listable(data_file, clock):
    data_file.parent.mkdir(parents=True)
    data_file.write_text(json.dumps([
        {"id": "a", "title": "A", "status": "todo", "order": None},
        {"id": "b", "title": "B", "status": "todo", "order": 1},
    ]))
    store = TaskStore(JsonFilePersistence(data_file), clock=clock)
    assert store.load() == 2
    assert [t.id for t in store.list_tasks()] == ["a", "b"]
    assert store.get("a").order == 0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Create / Get
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_create_applies_defaults_and_trims(store):
    task = store.create({"title": "  Write spec  "})
    assert task.title == "Write spec"
    assert task.status is TaskStatus.BACKLOG
    assert task.priority is TaskPriority.MEDIUM
    assert task.tags == []
    assert task.assignee == ""
    assert task.description == ""
    assert task.order == 0
    assert task.created_at == task.updated_at


def test_create_ids_are_unique(store):
    ids = {store.create({"title": f"Task {i}"}).id for i in range(50)}
    assert len(ids) == 50


def test_create_persists_snapshot(store, data_file):
    task = store.create({"title": "Persist me", "tags": ["a"]})
    saved = json.loads(data_file.read_text())
    assert [t["id"] for t in saved] == [task.id]
    assert saved[0]["tags"] == ["a"]


def test_create_emits_task_created(store, emitted):
    task = store.create({"title": "A"})
    assert emitted.types() == ["task_created"]
    event = emitted.events[0]
    assert event.task.id == task.id
    assert event.timestamp == task.created_at


def test_create_invalid_changes_nothing(store, emitted, data_file):
    before = data_file.read_text()
    with pytest.raises(ValidationError) as exc:
        store.create({"title": "A", "status": "blocked", "priority": "urgent"})
    assert len(exc.value.messages) == 2
    assert len(store) == 0
    assert emitted.events == []
    assert data_file.read_text() == before


def test_create_rejects_non_object(store):
    with pytest.raises(ValidationError):
        store.create(["title"])


def test_create_and_move_accept_enum_members(store):
    task = store.create({"title": "A", "status": TaskStatus.TODO, "priority": TaskPriority.HIGH})
    assert task.status is TaskStatus.TODO
    assert task.priority is TaskPriority.HIGH
    assert store.move(task.id, TaskStatus.DONE).status is TaskStatus.DONE


def test_create_honors_explicit_zero_order(store):
    assert store.create({"title": "A", "order": 0}).order == 0
    assert store.create({"title": "B", "order": 7}).order == 7


def test_get_returns_copy(store):
    task = store.create({"title": "A", "tags": ["x"]})
    fetched = store.get(task.id)
    fetched.tags.append("mutated")
    assert store.get(task.id).tags == ["x"]


def test_get_missing(store):
    with pytest.raises(NotFoundError):
        store.get("nope")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Update
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_update_preserves_identity_and_bumps_updated_at(store):
    task = store.create({"title": "A"})
    updated = store.update(task.id, {
        "title": " B ",
        "id": "other",
        "created_at": "1970-01-01T00:00:00.000000+00:00",
        "priority": "high",
    })
    assert updated.id == task.id
    assert updated.created_at == task.created_at
    assert updated.updated_at > task.updated_at
    assert updated.title == "B"
    assert updated.priority is TaskPriority.HIGH


def test_update_ignores_unknown_fields(store, data_file):
    task = store.create({"title": "A"})
    store.update(task.id, {"color": "red"})
    saved = json.loads(data_file.read_text())[0]
    assert "color" not in saved


def test_update_partial_keeps_other_fields(store):
    task = store.create({"title": "A", "description": "d", "tags": ["t"], "assignee": "kim"})
    updated = store.update(task.id, {"status": "review"})
    assert updated.status is TaskStatus.REVIEW
    assert updated.description == "d"
    assert updated.tags == ["t"]
    assert updated.assignee == "kim"


def test_update_invalid_status_no_change(store, emitted):
    task = store.create({"title": "A"})
    with pytest.raises(ValidationError):
        store.update(task.id, {"status": "blocked"})
    assert store.get(task.id).to_dict() == task.to_dict()
    assert emitted.types() == ["task_created"]


def test_update_missing_checked_before_validation(store):
    with pytest.raises(NotFoundError):
        store.update("nope", {"status": "blocked"})


def test_update_emits_task_updated(store, emitted):
    task = store.create({"title": "A"})
    updated = store.update(task.id, {"assignee": "lee"})
    assert emitted.types() == ["task_created", "task_updated"]
    assert emitted.events[-1].timestamp == updated.updated_at
    assert emitted.events[-1].task.assignee == "lee"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Move
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_move_without_order_keeps_order(store):
    task = store.create({"title": "A", "order": 5})
    moved = store.move(task.id, "in_progress")
    assert moved.status is TaskStatus.IN_PROGRESS
    assert moved.order == 5


def test_move_with_explicit_zero_order(store):
    task = store.create({"title": "A", "order": 5})
    assert store.move(task.id, "todo", 0).order == 0


def test_move_with_null_order_keeps_order(store):
    task = store.create({"title": "A", "order": 3})
    assert store.move(task.id, "todo", None).order == 3


def test_move_bumps_updated_at_only(store):
    task = store.create({"title": "A"})
    moved = store.move(task.id, "done")
    assert moved.created_at == task.created_at
    assert moved.updated_at > task.updated_at


def test_move_requires_valid_status(store, emitted):
    task = store.create({"title": "A"})
    with pytest.raises(ValidationError, match="Status is required"):
        store.move(task.id, None)
    with pytest.raises(ValidationError, match="Status must be one of"):
        store.move(task.id, "archived")
    assert store.get(task.id).status is TaskStatus.BACKLOG
    assert emitted.types() == ["task_created"]


def test_move_missing(store):
    with pytest.raises(NotFoundError):
        store.move("nope", "done")


def test_move_emits_task_moved(store, emitted):
    task = store.create({"title": "A"})
    store.move(task.id, "review", 1)
    assert emitted.types() == ["task_created", "task_moved"]
    assert emitted.events[-1].task.status is TaskStatus.REVIEW


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Delete / Clear done
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_delete_removes_and_emits_last_state(store, emitted):
    task = store.create({"title": "A"})
    store.update(task.id, {"title": "Final"})
    store.delete(task.id)
    assert len(store) == 0
    assert emitted.types()[-1] == "task_deleted"
    assert emitted.events[-1].task.title == "Final"
    with pytest.raises(NotFoundError):
        store.delete(task.id)


def test_clear_done(store, emitted, data_file):
    """3 done + 2 open: removes 3, keeps 2, emits 3 deletions"""
    for i in range(3):
        store.create({"title": f"Done {i}", "status": "done"})
    keep = [store.create({"title": f"Open {i}", "status": "todo"}) for i in range(2)]
    emitted.events.clear()

    assert store.clear_done() == 3
    assert {t.id for t in store.snapshot()} == {t.id for t in keep}
    assert emitted.types() == ["task_deleted"] * 3
    assert len(json.loads(data_file.read_text())) == 2


def test_clear_done_when_none(store, emitted):
    store.create({"title": "A"})
    emitted.events.clear()
    assert store.clear_done() == 0
    assert emitted.events == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Bulk create
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_bulk_mixed(store, emitted):
    result = store.bulk_create([{"title": "A"}, {"title": ""}])
    assert [t.title for t in result.tasks] == ["A"]
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Task 1: ")
    assert len(store) == 1
    assert emitted.types() == ["task_created"]


def test_bulk_all_invalid_fails_without_writing(store, emitted, data_file):
    before = data_file.read_text()
    with pytest.raises(ValidationError) as exc:
        store.bulk_create([{"title": ""}, {"status": "todo"}, "junk"])
    assert len(exc.value.messages) == 3
    assert exc.value.messages[2] == "Task 2: Task must be an object"
    assert len(store) == 0
    assert emitted.events == []
    assert data_file.read_text() == before


def test_bulk_events_in_creation_order(store, emitted):
    result = store.bulk_create([{"title": "A"}, {"title": "B"}, {"title": "C", "order": 0}])
    assert [e.task.title for e in emitted.events] == ["A", "B", "C"]
    assert [e.timestamp for e in emitted.events] == [t.created_at for t in result.tasks]
    assert len({t.id for t in result.tasks}) == 3
    assert result.errors == []


def test_bulk_persists_once(clock):
    class CountingPersistence:
        saves = 0

        def load(self):
            return []

        def save(self, tasks):
            self.saves += 1

    backend = CountingPersistence()
    store = TaskStore(backend, clock=clock)
    store.load()
    store.bulk_create([{"title": "A"}, {"title": "B"}, {"title": ""}])
    assert backend.saves == 1


def test_bulk_empty_list(store, emitted):
    result = store.bulk_create([])
    assert result.tasks == []
    assert result.errors == []
    assert emitted.events == []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Persistence failure
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_save_failure_keeps_memory_state(clock):
    """State stays ahead of disk: mutation applied, error raised, no event"""
    emitted = RecordingEmitter()
    backend = FailingPersistence()
    store = TaskStore(backend, emit=emitted, clock=clock)
    store.load()

    with pytest.raises(PersistenceError):
        store.create({"title": "A"})
    assert len(store) == 1
    assert backend.save_calls == 1
    assert emitted.events == []


def test_emit_failure_does_not_fail_mutation(persistence, clock):
    def broken_emit(event):
        raise RuntimeError("subscriber exploded")

    store = TaskStore(persistence, emit=broken_emit, clock=clock)
    store.load()
    task = store.create({"title": "A"})
    assert store.get(task.id).title == "A"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Concurrency
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_concurrent_updates_to_different_fields_are_not_lost(store):
    """Two writers touching different fields: both final values survive"""
    task = store.create({"title": "A"})

    def write(field_name):
        for i in range(50):
            store.update(task.id, {field_name: f"{field_name}-{i}"})

    threads = [
        threading.Thread(target=write, args=("description",)),
        threading.Thread(target=write, args=("assignee",)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    final = store.get(task.id)
    assert final.description == "description-49"
    assert final.assignee == "assignee-49"


def test_concurrent_creates(store):
    def create_many(n):
        for i in range(25):
            store.create({"title": f"{n}-{i}"})

    threads = [threading.Thread(target=create_many, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(store) == 100
    assert len({t.id for t in store.snapshot()}) == 100

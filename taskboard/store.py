"""
Task store: the single owner of board state.

Holds the task collection in memory, applies mutations under one lock,
writes a full snapshot through the persistence backend after each mutation,
and emits a TaskEvent for every visible change.

Durability is best-effort: if the snapshot write fails, the in-memory change
stays applied and PersistenceError is raised to the caller.
"""
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .errors import NotFoundError, PersistenceError, ValidationError
from .events import EventType, TaskEvent
from .query import TaskFilters, compute_stats, list_tasks
from .schema import Task, TaskStatus, TaskPriority, format_timestamp, utc_now
from .validation import pick_updatable, validate_move_input, validate_task_input

logger = logging.getLogger(__name__)

# Sentinel for "order not supplied"; an explicit 0 is a real position.
MISSING = object()


@dataclass
class BulkResult:
    """Outcome of bulk_create: created tasks plus per-index errors."""
    tasks: List[Task] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class TaskStore:
    """In-memory task collection with snapshot persistence and change events."""

    def __init__(
        self,
        persistence,
        emit: Optional[Callable[[TaskEvent], Any]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            persistence: object with load() -> list | None and save(list)
            emit: called with each TaskEvent after a successful mutation
            clock: returns the current aware UTC datetime
        """
        self.persistence = persistence
        self._emit_fn = emit
        self._clock = clock or utc_now
        self._tasks: List[Task] = []
        self._lock = threading.RLock()

    # ── Loading and persistence ─────────────────────────────────────────────

    def load(self) -> int:
        """
        Replace in-memory state with the stored snapshot.

        A missing snapshot starts empty and is written immediately. An
        unreadable snapshot starts empty without touching the file.

        Returns:
            number of tasks loaded.
        """
        with self._lock:
            try:
                data = self.persistence.load()
            except Exception as e:
                logger.error(f"Error loading tasks: {e}")
                self._tasks = []
                return 0

            if data is None:
                logger.info("No existing tasks file, starting with empty board")
                self._tasks = []
                self._persist()
                return 0

            try:
                self._tasks = [Task.from_dict(entry) for entry in data]
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                logger.error(f"Error parsing stored tasks: {e}")
                self._tasks = []
                return 0

            logger.info(f"Loaded {len(self._tasks)} tasks from storage")
            return len(self._tasks)

    def _persist(self) -> None:
        try:
            self.persistence.save([t.to_dict() for t in self._tasks])
        except Exception as e:
            logger.error(f"Error saving tasks: {e}")
            raise PersistenceError(f"Failed to save tasks: {e}") from e

    def _emit(self, event_type: EventType, task: Task, timestamp: Optional[str] = None) -> None:
        if self._emit_fn is None:
            return
        try:
            self._emit_fn(TaskEvent.make(event_type, task, timestamp or self._now()))
        except Exception as e:
            logger.error(f"Error emitting {event_type.value} for {task.id}: {e}")

    # ── Helpers ─────────────────────────────────────────────────────────────

    def _now(self) -> str:
        return format_timestamp(self._clock())

    def _index(self, task_id: str) -> int:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                return i
        raise NotFoundError(task_id)

    @staticmethod
    def _build(data: Dict[str, Any], now: str) -> Task:
        """New task from an already-validated create payload."""
        return Task(
            id=str(uuid.uuid4()),
            title=data["title"].strip(),
            description=data.get("description") or "",
            status=TaskStatus.parse(data.get("status") or TaskStatus.BACKLOG.value),
            priority=TaskPriority.parse(data.get("priority") or TaskPriority.MEDIUM.value),
            tags=list(data.get("tags") or []),
            assignee=data.get("assignee") or "",
            created_at=now,
            updated_at=now,
            order=data["order"] if "order" in data else 0,
        )

    # ── Reads ───────────────────────────────────────────────────────────────

    def snapshot(self) -> List[Task]:
        """Consistent copy of every task, in insertion order."""
        with self._lock:
            return [t.copy() for t in self._tasks]

    def get(self, task_id: str) -> Task:
        with self._lock:
            return self._tasks[self._index(task_id)].copy()

    def list_tasks(self, filters: Optional[TaskFilters] = None) -> List[Task]:
        """Filtered tasks in board order (status column, then order)."""
        return list_tasks(self.snapshot(), filters or TaskFilters())

    def stats(self) -> Dict[str, Any]:
        return compute_stats(self.snapshot(), self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    # ── Mutations ───────────────────────────────────────────────────────────

    def create(self, fields: Dict[str, Any]) -> Task:
        """Validate and add a task. Emits task_created."""
        if not isinstance(fields, dict):
            raise ValidationError("Task must be an object")
        errors = validate_task_input(fields)
        if errors:
            raise ValidationError(errors)

        with self._lock:
            task = self._build(fields, self._now())
            self._tasks.append(task)
            self._persist()
            self._emit(EventType.TASK_CREATED, task, task.created_at)
            return task.copy()

    def update(self, task_id: str, fields: Dict[str, Any]) -> Task:
        """Merge allow-listed fields onto an existing task. Emits task_updated."""
        with self._lock:
            index = self._index(task_id)
            if not isinstance(fields, dict):
                raise ValidationError("Task must be an object")
            errors = validate_task_input(fields, is_update=True)
            if errors:
                raise ValidationError(errors)

            changes = pick_updatable(fields)
            task = self._tasks[index].copy()
            if "title" in changes:
                task.title = changes["title"].strip()
            if "description" in changes:
                task.description = changes["description"]
            if "status" in changes:
                task.status = TaskStatus.parse(changes["status"])
            if "priority" in changes:
                task.priority = TaskPriority.parse(changes["priority"])
            if "tags" in changes:
                task.tags = list(changes["tags"])
            if "assignee" in changes:
                task.assignee = changes["assignee"]
            if "order" in changes:
                task.order = changes["order"]
            task.updated_at = self._now()

            self._tasks[index] = task
            self._persist()
            self._emit(EventType.TASK_UPDATED, task, task.updated_at)
            return task.copy()

    def move(self, task_id: str, status: Any, order: Any = MISSING) -> Task:
        """
        Move a task to another column. Emits task_moved.

        The current order is kept when order is MISSING or None.
        """
        with self._lock:
            index = self._index(task_id)
            payload = {"status": status}
            if order is not MISSING:
                payload["order"] = order
            errors = validate_move_input(payload)
            if errors:
                raise ValidationError(errors)

            task = self._tasks[index].copy()
            task.status = TaskStatus.parse(status)
            if order is not MISSING and order is not None:
                task.order = order
            task.updated_at = self._now()

            self._tasks[index] = task
            self._persist()
            self._emit(EventType.TASK_MOVED, task, task.updated_at)
            return task.copy()

    def delete(self, task_id: str) -> Task:
        """Remove a task. Emits task_deleted with its last state."""
        with self._lock:
            index = self._index(task_id)
            task = self._tasks.pop(index)
            self._persist()
            self._emit(EventType.TASK_DELETED, task)
            return task.copy()

    def bulk_create(self, field_sets: List[Any]) -> BulkResult:
        """
        Create many tasks, skipping invalid entries.

        Invalid entries are reported as "Task <index>: <messages>". If every
        entry failed, ValidationError is raised and nothing is written.
        Otherwise the snapshot is written once and one task_created event is
        emitted per created task, in order.
        """
        if not isinstance(field_sets, list):
            raise ValidationError("Tasks must be an array")

        with self._lock:
            result = BulkResult()
            for i, data in enumerate(field_sets):
                if isinstance(data, dict):
                    problems = validate_task_input(data)
                else:
                    problems = ["Task must be an object"]
                if problems:
                    result.errors.append(f"Task {i}: {'; '.join(problems)}")
                    continue
                result.tasks.append(self._build(data, self._now()))

            if result.errors and not result.tasks:
                raise ValidationError(result.errors)

            self._tasks.extend(result.tasks)
            self._persist()
            for task in result.tasks:
                self._emit(EventType.TASK_CREATED, task, task.created_at)

            result.tasks = [t.copy() for t in result.tasks]
            return result

    def clear_done(self) -> int:
        """Remove every done task. Emits one task_deleted per removed task."""
        with self._lock:
            removed = [t for t in self._tasks if t.status is TaskStatus.DONE]
            self._tasks = [t for t in self._tasks if t.status is not TaskStatus.DONE]
            self._persist()
            for task in removed:
                self._emit(EventType.TASK_DELETED, task)
            return len(removed)

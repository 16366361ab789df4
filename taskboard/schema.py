"""
Task schema and workflow columns.

Board columns, left to right:
  Backlog → Todo → In Progress → Review → Done

Any column may move to any other; the column sequence only drives display
order. Timestamps are UTC ISO-8601 strings with a fixed microsecond field so
that comparing them as text gives chronological order.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from .errors import ValidationError


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp, always with microseconds."""
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def normalize_timestamp(value: str) -> str:
    """Rewrite a stored ISO-8601 timestamp (e.g. "...Z" millis) in our format."""
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return value
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return format_timestamp(moment)


class TaskStatus(Enum):
    """Workflow columns, in board order."""
    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @classmethod
    def values(cls) -> List[str]:
        return [s.value for s in cls]

    @classmethod
    def parse(cls, value: Any) -> "TaskStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Status must be one of: {', '.join(cls.values())}")


_STATUS_RANK = {status: rank for rank, status in enumerate(TaskStatus)}


class TaskPriority(Enum):
    """Task urgency."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def values(cls) -> List[str]:
        return [p.value for p in cls]

    @classmethod
    def parse(cls, value: Any) -> "TaskPriority":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Priority must be one of: {', '.join(cls.values())}")


@dataclass
class Task:
    """One card on the board."""

    id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.BACKLOG
    priority: TaskPriority = TaskPriority.MEDIUM
    tags: List[str] = field(default_factory=list)
    assignee: str = ""
    created_at: str = field(default_factory=lambda: format_timestamp(utc_now()))
    updated_at: str = field(default_factory=lambda: format_timestamp(utc_now()))
    order: int = 0

    def copy(self) -> "Task":
        """Independent snapshot of this task."""
        return Task(
            id=self.id,
            title=self.title,
            description=self.description,
            status=self.status,
            priority=self.priority,
            tags=list(self.tags),
            assignee=self.assignee,
            created_at=self.created_at,
            updated_at=self.updated_at,
            order=self.order,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the wire/snapshot shape."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "tags": list(self.tags),
            "assignee": self.assignee,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """
        Deserialize from a snapshot entry.

        Raises ValidationError when the entry is not an object, an enum is
        unknown, or a text field holds a non-string. A non-integer order
        (legacy null) falls back to 0.
        """
        if not isinstance(data, dict):
            raise ValidationError("Task must be an object")
        for name in ("title", "description", "assignee"):
            if data.get(name) is not None and not isinstance(data[name], str):
                raise ValidationError(f"{name.capitalize()} must be a string")
        tags = data.get("tags") or []
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise ValidationError("All tags must be strings")
        order = data.get("order")
        if not isinstance(order, int) or isinstance(order, bool):
            order = 0

        now = format_timestamp(utc_now())
        created_at: Optional[str] = data.get("created_at")
        updated_at: Optional[str] = data.get("updated_at")
        if created_at:
            created_at = normalize_timestamp(created_at)
        if updated_at:
            updated_at = normalize_timestamp(updated_at)
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            description=data.get("description") or "",
            status=TaskStatus.parse(data.get("status", TaskStatus.BACKLOG.value)),
            priority=TaskPriority.parse(data.get("priority", TaskPriority.MEDIUM.value)),
            tags=list(tags),
            assignee=data.get("assignee") or "",
            created_at=created_at or now,
            updated_at=updated_at or created_at or now,
            order=order,
        )

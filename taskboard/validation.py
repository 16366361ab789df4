"""
Input validation for task payloads.

Every rule runs independently and all messages are collected, so a client
sees every problem with its payload at once. Callers must only act on the
payload when the returned list is empty.
"""
import logging
from typing import Any, Dict, List

from .schema import TaskStatus, TaskPriority

logger = logging.getLogger(__name__)

# Fields a client may set on create or change on update.
UPDATABLE_FIELDS = (
    "title",
    "description",
    "status",
    "priority",
    "tags",
    "assignee",
    "order",
)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_member(value: Any, enum_cls) -> bool:
    """Wire string or enum member of enum_cls."""
    return isinstance(value, enum_cls) or value in enum_cls.values()


def validate_task_input(data: Dict[str, Any], is_update: bool = False) -> List[str]:
    """
    Check a create or partial-update payload.

    Returns:
        list of human-readable violations; empty when acceptable.
    """
    errors = []

    if not is_update and not data.get("title"):
        errors.append("Title is required")

    if "title" in data:
        title = data["title"]
        if not isinstance(title, str):
            errors.append("Title must be a string")
        elif not title.strip():
            errors.append("Title cannot be empty")

    if "status" in data and not _is_member(data["status"], TaskStatus):
        errors.append(f"Status must be one of: {', '.join(TaskStatus.values())}")

    if "priority" in data and not _is_member(data["priority"], TaskPriority):
        errors.append(f"Priority must be one of: {', '.join(TaskPriority.values())}")

    if "tags" in data:
        tags = data["tags"]
        if not isinstance(tags, list):
            errors.append("Tags must be an array")
        elif not all(isinstance(tag, str) for tag in tags):
            errors.append("All tags must be strings")

    for name in ("description", "assignee"):
        if name in data and not isinstance(data[name], str):
            errors.append(f"{name.capitalize()} must be a string")

    if "order" in data and not _is_int(data["order"]):
        errors.append("Order must be an integer")

    return errors


def validate_move_input(data: Dict[str, Any]) -> List[str]:
    """Check a move payload: status required, order optional."""
    errors = []

    if not data.get("status"):
        errors.append("Status is required")
    elif not _is_member(data["status"], TaskStatus):
        errors.append(f"Status must be one of: {', '.join(TaskStatus.values())}")

    # null order means "keep the current position"
    if data.get("order") is not None and not _is_int(data["order"]):
        errors.append("Order must be an integer")

    return errors


def pick_updatable(data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only allow-listed fields; anything else is dropped."""
    unknown = sorted(set(data) - set(UPDATABLE_FIELDS))
    if unknown:
        logger.debug(f"Ignoring non-updatable fields: {', '.join(unknown)}")
    return {k: v for k, v in data.items() if k in UPDATABLE_FIELDS}

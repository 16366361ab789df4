"""
Read-only projections over the task collection: filtering, board order, stats.

None of these functions mutate the tasks they are given.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .schema import Task, TaskStatus, TaskPriority, format_timestamp

RECENT_WINDOW = timedelta(hours=24)


@dataclass
class TaskFilters:
    """Conjunctive list filters; None means "don't filter on this"."""
    status: Optional[str] = None
    priority: Optional[str] = None
    assignee: Optional[str] = None
    search: Optional[str] = None

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "TaskFilters":
        """Build from query-string args; empty values are ignored."""
        return cls(
            status=args.get("status") or None,
            priority=args.get("priority") or None,
            assignee=args.get("assignee") or None,
            search=args.get("search") or None,
        )


def filter_tasks(tasks: Iterable[Task], filters: TaskFilters) -> List[Task]:
    result = list(tasks)
    if filters.status:
        result = [t for t in result if t.status.value == filters.status]
    if filters.priority:
        result = [t for t in result if t.priority.value == filters.priority]
    if filters.assignee:
        result = [t for t in result if t.assignee == filters.assignee]
    if filters.search:
        needle = filters.search.lower()
        result = [
            t for t in result
            if needle in t.title.lower() or needle in t.description.lower()
        ]
    return result


def sort_tasks(tasks: Iterable[Task]) -> List[Task]:
    """Board order: status column left to right, then order ascending (stable)."""
    return sorted(tasks, key=lambda t: (t.status.rank, t.order))


def list_tasks(tasks: Iterable[Task], filters: TaskFilters) -> List[Task]:
    return sort_tasks(filter_tasks(tasks, filters))


def compute_stats(tasks: Iterable[Task], now: datetime) -> Dict[str, Any]:
    """
    Board statistics.

    Every status and priority bucket is present even when zero.
    recentlyCompleted counts done tasks last updated within 24h of now.
    """
    by_status = {s.value: 0 for s in TaskStatus}
    by_priority = {p.value: 0 for p in TaskPriority}
    cutoff = format_timestamp(now - RECENT_WINDOW)

    total = 0
    recently_completed = 0
    for task in tasks:
        total += 1
        by_status[task.status.value] += 1
        by_priority[task.priority.value] += 1
        if task.status is TaskStatus.DONE and task.updated_at >= cutoff:
            recently_completed += 1

    return {
        "total": total,
        "byStatus": by_status,
        "byPriority": by_priority,
        "recentlyCompleted": recently_completed,
    }

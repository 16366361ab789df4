"""
Task board exceptions.

ValidationError and NotFoundError are raised before any mutation.
PersistenceError is raised after the in-memory change has been applied.
"""
from typing import Iterable, List, Union


class TaskBoardError(Exception):
    """Base class for task board errors."""
    pass


class ValidationError(TaskBoardError):
    """Raised when task fields fail validation."""

    def __init__(self, messages: Union[str, Iterable[str]]):
        if isinstance(messages, str):
            messages = [messages]
        self.messages: List[str] = list(messages)
        super().__init__("; ".join(self.messages))


class NotFoundError(TaskBoardError):
    """Raised when a task id does not exist."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__("Task not found")


class PersistenceError(TaskBoardError):
    """Raised when the snapshot write fails after a mutation was applied."""
    pass


class MalformedInputError(TaskBoardError):
    """Raised when a request payload is structurally invalid."""
    pass

"""
Task events and the notification hub.

The store emits one TaskEvent per visible change. The hub fans each event out
to every connected subscriber. Delivery is fire-and-forget: no replay for
late subscribers, no acknowledgement, and a slow or dead subscriber never
blocks the publisher.
"""
import json
import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .schema import Task, format_timestamp, utc_now

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Outbound event kinds."""
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    TASK_MOVED = "task_moved"


@dataclass
class TaskEvent:
    """A change notification carrying the task's state after the change."""
    type: EventType
    task: Task
    timestamp: str

    @classmethod
    def make(cls, event_type: EventType, task: Task, timestamp: Optional[str] = None) -> "TaskEvent":
        return cls(
            type=event_type,
            task=task.copy(),
            timestamp=timestamp or format_timestamp(utc_now()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "task": self.task.to_dict(),
            "timestamp": self.timestamp,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


class Subscriber:
    """One live connection's inbox."""

    def __init__(self, max_queue: int = 256):
        self._queue: "queue.Queue[TaskEvent]" = queue.Queue(maxsize=max_queue)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        self._closed.set()

    def deliver(self, event: TaskEvent) -> bool:
        """Queue an event without blocking. Returns False if the inbox is full."""
        try:
            self._queue.put_nowait(event)
            return True
        except queue.Full:
            return False

    def get(self, timeout: Optional[float] = None) -> Optional[TaskEvent]:
        """Next event, or None if nothing arrived within timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def pending(self) -> int:
        return self._queue.qsize()


class NotificationHub:
    """Registry of live subscribers; broadcasts every event to all of them."""

    def __init__(self, max_queue: int = 256):
        self.max_queue = max_queue
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscriber:
        """Register a new connection. It only sees events published from now on."""
        sub = Subscriber(max_queue=self.max_queue)
        with self._lock:
            self._subscribers.append(sub)
        logger.info(f"Subscriber connected ({self.subscriber_count} live)")
        return sub

    def unsubscribe(self, sub: Subscriber) -> None:
        """Remove a connection. Safe to call more than once."""
        sub.close()
        with self._lock:
            if sub in self._subscribers:
                self._subscribers.remove(sub)
            else:
                return
        logger.info(f"Subscriber disconnected ({self.subscriber_count} live)")

    def publish(self, event: TaskEvent) -> int:
        """
        Deliver an event to every open subscriber.

        Closed subscribers are pruned. A subscriber whose inbox is full is
        closed and dropped so it cannot hold up anyone else.

        Returns:
            number of subscribers the event was queued for.
        """
        with self._lock:
            targets = list(self._subscribers)

        delivered = 0
        dropped = []
        for sub in targets:
            if sub.closed:
                dropped.append(sub)
                continue
            try:
                if sub.deliver(event):
                    delivered += 1
                else:
                    logger.warning(f"Dropping slow subscriber ({sub.pending()} events pending)")
                    sub.close()
                    dropped.append(sub)
            except Exception as e:
                logger.error(f"Error delivering {event.type.value}: {e}")
                sub.close()
                dropped.append(sub)

        if dropped:
            with self._lock:
                self._subscribers = [s for s in self._subscribers if s not in dropped]
        return delivered

    def close_all(self) -> None:
        """Close every subscriber (shutdown)."""
        with self._lock:
            subs, self._subscribers = self._subscribers, []
        for sub in subs:
            sub.close()

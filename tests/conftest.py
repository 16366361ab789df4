"""Shared test fixtures for the task board tests."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Ensure the repo root (board_server, board_cli, taskboard) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskboard.events import NotificationHub
from taskboard.persistence import JsonFilePersistence
from taskboard.store import TaskStore


class FakeClock:
    """Deterministic clock: every call advances by `step`."""

    def __init__(self, start=None, step=timedelta(milliseconds=1)):
        self.now = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        current = self.now
        self.now = self.now + self.step
        return current

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingEmitter:
    """Collects every event the store emits."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def types(self):
        return [e.type.value for e in self.events]


class FailingPersistence:
    """Loads empty, then fails every save."""

    def __init__(self):
        self.save_calls = 0

    def load(self):
        return []

    def save(self, tasks):
        self.save_calls += 1
        raise OSError("disk full")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "data" / "tasks.json"


@pytest.fixture
def persistence(data_file):
    return JsonFilePersistence(data_file)


@pytest.fixture
def emitted():
    return RecordingEmitter()


@pytest.fixture
def store(persistence, emitted, clock):
    s = TaskStore(persistence, emit=emitted, clock=clock)
    s.load()
    return s


@pytest.fixture
def hub():
    return NotificationHub(max_queue=16)

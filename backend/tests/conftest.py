from __future__ import annotations

import pytest

from servicewatch.services.monitor import MonitorService
from servicewatch.services.stores import HistoryStore, ServiceStore

from .fakes import FakeChecker, RecordingNotifier


@pytest.fixture
def history() -> HistoryStore:
    return HistoryStore(max_checks=100)


@pytest.fixture
def store(history: HistoryStore) -> ServiceStore:
    return ServiceStore(history=history)


@pytest.fixture
def checker() -> FakeChecker:
    return FakeChecker()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def monitor(store: ServiceStore, history: HistoryStore, checker: FakeChecker, notifier: RecordingNotifier) -> MonitorService:
    return MonitorService(store, history, checker, notifier)

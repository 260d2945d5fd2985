"""In-memory stores for monitored endpoints and their check history.

Both stores guard their maps with a lock held only for the in-memory
read/write, and hand out copies so callers never share a stored object.
"""
import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..errors import AlreadyExistsError, NotFoundError
from ..schemas.endpoint import MonitoredEndpoint
from ..schemas.history import CheckRecord, DEFAULT_MAX_CHECKS, HistoryLog, ServiceStatistics
from .statistics import compute_statistics

logger = logging.getLogger(__name__)


class HistoryStore:
    """Bounded per-endpoint check logs keyed by endpoint ID."""

    def __init__(self, max_checks: int = DEFAULT_MAX_CHECKS):
        self.max_checks = max_checks or DEFAULT_MAX_CHECKS
        self._histories: Dict[str, HistoryLog] = {}
        self._lock = threading.Lock()

    def add(self, history: HistoryLog):
        with self._lock:
            if history.service_id in self._histories:
                raise AlreadyExistsError(history.service_id, kind="history")
            self._histories[history.service_id] = self._bounded(history)

    def get(self, service_id: str) -> HistoryLog:
        with self._lock:
            history = self._histories.get(service_id)
            if history is None:
                raise NotFoundError(service_id, kind="history")
            return history.model_copy(deep=True)

    def update(self, history: HistoryLog):
        with self._lock:
            if history.service_id not in self._histories:
                raise NotFoundError(history.service_id, kind="history")
            self._histories[history.service_id] = self._bounded(history)

    def delete(self, service_id: str, missing_ok: bool = False):
        with self._lock:
            if self._histories.pop(service_id, None) is None and not missing_ok:
                raise NotFoundError(service_id, kind="history")

    def get_all(self) -> List[HistoryLog]:
        """All logs, newest first."""
        with self._lock:
            histories = [h.model_copy(deep=True) for h in self._histories.values()]
        histories.sort(key=lambda h: h.created_at, reverse=True)
        return histories

    def add_check_record(self, service_id: str, record: CheckRecord):
        """Append to the endpoint's log, creating the log on first use."""
        with self._lock:
            history = self._histories.get(service_id)
            if history is None:
                history = HistoryLog(service_id=service_id, max_checks=self.max_checks)
                self._histories[service_id] = history
            history.add_check(record.model_copy())

    def get_statistics(self, service_id: str, now: Optional[datetime] = None) -> ServiceStatistics:
        """Statistics for one endpoint; zeroed when it has never been checked."""
        with self._lock:
            history = self._histories.get(service_id)
            snapshot = history.model_copy(deep=True) if history is not None else None
        if snapshot is None:
            return ServiceStatistics(service_id=service_id)
        return compute_statistics(snapshot, now=now)

    def export(self) -> Dict[str, HistoryLog]:
        with self._lock:
            return {k: v.model_copy(deep=True) for k, v in self._histories.items()}

    def load(self, histories: Optional[Dict[str, HistoryLog]]):
        """Replace the contents with persisted logs."""
        if histories is None:
            return
        loaded = {}
        for service_id, history in histories.items():
            history = self._bounded(history.model_copy(deep=True))
            history.service_id = service_id
            loaded[service_id] = history
        with self._lock:
            self._histories = loaded

    def __contains__(self, service_id: str) -> bool:
        with self._lock:
            return service_id in self._histories

    def _bounded(self, history: HistoryLog) -> HistoryLog:
        history.max_checks = self.max_checks
        if len(history.checks) > self.max_checks:
            history.checks = history.checks[-self.max_checks:]
        return history


class ServiceStore:
    """Monitored endpoints keyed by their opaque ID.

    Every mutation calls the ``on_save`` hook; the hook must not block.
    """

    def __init__(self, history: Optional[HistoryStore] = None, on_save: Optional[Callable[[], None]] = None):
        self._services: Dict[str, MonitoredEndpoint] = {}
        self._lock = threading.Lock()
        self._history = history
        self._on_save = on_save

    def set_on_save(self, on_save: Optional[Callable[[], None]]):
        self._on_save = on_save

    def add(self, service: MonitoredEndpoint):
        with self._lock:
            if service.id in self._services:
                raise AlreadyExistsError(service.id)
            self._services[service.id] = service.model_copy(deep=True)
        self._trigger_save()

    def get(self, service_id: str) -> MonitoredEndpoint:
        with self._lock:
            service = self._services.get(service_id)
            if service is None:
                raise NotFoundError(service_id)
            return service.model_copy(deep=True)

    def update(self, service: MonitoredEndpoint):
        with self._lock:
            if service.id not in self._services:
                raise NotFoundError(service.id)
            self._services[service.id] = service.model_copy(deep=True)
        self._trigger_save()

    def delete(self, service_id: str):
        """Remove an endpoint together with its check history."""
        with self._lock:
            if self._services.pop(service_id, None) is None:
                raise NotFoundError(service_id)
        if self._history is not None:
            self._history.delete(service_id, missing_ok=True)
        self._trigger_save()

    def get_all(self) -> List[MonitoredEndpoint]:
        """All endpoints, newest first."""
        with self._lock:
            services = [s.model_copy(deep=True) for s in self._services.values()]
        services.sort(key=lambda s: s.created_at, reverse=True)
        return services

    def export(self) -> Dict[str, MonitoredEndpoint]:
        with self._lock:
            return {k: v.model_copy(deep=True) for k, v in self._services.items()}

    def load(self, services: Optional[Dict[str, MonitoredEndpoint]]):
        """Replace the contents with persisted endpoints. Does not trigger a save."""
        if services is None:
            return
        with self._lock:
            self._services = {k: v.model_copy(deep=True) for k, v in services.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._services)

    def __contains__(self, service_id: str) -> bool:
        with self._lock:
            return service_id in self._services

    def _trigger_save(self):
        if self._on_save is None:
            return
        try:
            self._on_save()
        except Exception as e:
            logger.error(f"Failed to schedule save: {e}")

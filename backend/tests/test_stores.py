from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from servicewatch.errors import AlreadyExistsError, NotFoundError
from servicewatch.schemas.endpoint import ServiceStatus
from servicewatch.schemas.history import CheckRecord, HistoryLog
from servicewatch.services.stores import HistoryStore, ServiceStore

from .fakes import T0, make_endpoint


def _record(offset: int, status: ServiceStatus = ServiceStatus.UP) -> CheckRecord:
    return CheckRecord(timestamp=T0 + timedelta(seconds=offset), status=status, response_time=10)


def test_get_returns_independent_copy(store: ServiceStore) -> None:
    service = make_endpoint()
    store.add(service)

    fetched = store.get(service.id)
    fetched.name = "changed"
    fetched.status = ServiceStatus.DOWN

    again = store.get(service.id)
    assert again.name == "api"
    assert again.status == ServiceStatus.UNKNOWN


def test_add_stores_a_copy(store: ServiceStore) -> None:
    service = make_endpoint()
    store.add(service)
    service.name = "mutated after add"
    assert store.get(service.id).name == "api"


def test_duplicate_add_raises(store: ServiceStore) -> None:
    service = make_endpoint()
    store.add(service)
    with pytest.raises(AlreadyExistsError) as exc_info:
        store.add(service)
    assert exc_info.value.item_id == service.id


def test_missing_ids_raise_not_found(store: ServiceStore) -> None:
    with pytest.raises(NotFoundError):
        store.get("nope")
    with pytest.raises(NotFoundError):
        store.update(make_endpoint())
    with pytest.raises(NotFoundError):
        store.delete("nope")


def test_get_all_is_newest_first(store: ServiceStore) -> None:
    old = make_endpoint("old", created_at=T0)
    mid = make_endpoint("mid", created_at=T0 + timedelta(hours=1))
    new = make_endpoint("new", created_at=T0 + timedelta(hours=2))
    for service in (mid, old, new):
        store.add(service)

    assert [s.name for s in store.get_all()] == ["new", "mid", "old"]


def test_delete_cascades_to_history(store: ServiceStore, history: HistoryStore) -> None:
    service = make_endpoint()
    store.add(service)
    history.add_check_record(service.id, _record(0))
    assert service.id in history

    store.delete(service.id)

    assert service.id not in store
    assert service.id not in history


def test_delete_without_history_is_fine(store: ServiceStore, history: HistoryStore) -> None:
    service = make_endpoint()
    store.add(service)
    store.delete(service.id)
    assert len(store) == 0


def test_mutations_trigger_save_hook(history: HistoryStore) -> None:
    calls = []
    store = ServiceStore(history=history, on_save=lambda: calls.append(1))
    service = make_endpoint()

    store.add(service)
    store.update(service)
    store.get(service.id)
    store.get_all()
    store.delete(service.id)

    assert len(calls) == 3


def test_load_does_not_trigger_save(history: HistoryStore) -> None:
    calls = []
    store = ServiceStore(history=history, on_save=lambda: calls.append(1))
    service = make_endpoint()
    store.load({service.id: service})
    assert calls == []
    assert store.get(service.id).name == "api"


def test_failing_save_hook_does_not_break_mutation(history: HistoryStore) -> None:
    def broken() -> None:
        raise RuntimeError("disk full")

    store = ServiceStore(history=history, on_save=broken)
    service = make_endpoint()
    store.add(service)
    assert service.id in store


def test_concurrent_adds_are_all_kept(store: ServiceStore) -> None:
    services = [make_endpoint(f"svc-{i}") for i in range(200)]

    def add_slice(items) -> None:
        for service in items:
            store.add(service)

    threads = [threading.Thread(target=add_slice, args=(services[i::4],)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store) == 200


def test_history_is_bounded_and_evicts_oldest() -> None:
    history = HistoryStore(max_checks=3)
    for offset in range(5):
        history.add_check_record("svc", _record(offset))

    log = history.get("svc")
    assert len(log.checks) == 3
    assert [c.timestamp for c in log.checks] == [T0 + timedelta(seconds=s) for s in (2, 3, 4)]


def test_default_history_bound_is_one_hundred() -> None:
    history = HistoryStore()
    for offset in range(150):
        history.add_check_record("svc", _record(offset))
    log = history.get("svc")
    assert len(log.checks) == 100
    assert log.checks[0].timestamp == T0 + timedelta(seconds=50)


def test_history_get_is_a_copy(history: HistoryStore) -> None:
    history.add_check_record("svc", _record(0))
    log = history.get("svc")
    log.checks.clear()
    assert len(history.get("svc").checks) == 1


def test_history_add_and_missing(history: HistoryStore) -> None:
    history.add(HistoryLog(service_id="svc"))
    with pytest.raises(AlreadyExistsError):
        history.add(HistoryLog(service_id="svc"))
    with pytest.raises(NotFoundError) as exc_info:
        history.get("other")
    assert exc_info.value.kind == "history"
    with pytest.raises(NotFoundError):
        history.update(HistoryLog(service_id="other"))
    with pytest.raises(NotFoundError):
        history.delete("other")
    history.delete("other", missing_ok=True)


def test_history_update_applies_bound() -> None:
    history = HistoryStore(max_checks=2)
    history.add(HistoryLog(service_id="svc"))
    history.update(HistoryLog(service_id="svc", checks=[_record(i) for i in range(4)]))
    assert len(history.get("svc").checks) == 2


def test_history_load_bounds_oversized_logs() -> None:
    history = HistoryStore(max_checks=2)
    history.load({"svc": HistoryLog(service_id="svc", checks=[_record(i) for i in range(5)], max_checks=50)})
    log = history.get("svc")
    assert log.max_checks == 2
    assert [c.timestamp for c in log.checks] == [T0 + timedelta(seconds=3), T0 + timedelta(seconds=4)]


def test_statistics_for_unchecked_service_are_zero(history: HistoryStore) -> None:
    stats = history.get_statistics("svc")
    assert stats.service_id == "svc"
    assert stats.total_checks == 0
    assert stats.uptime_percentage == 0
    assert stats.last_24_hours == []

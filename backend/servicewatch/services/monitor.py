"""Monitor service - runs checks, applies results and decides on notifications.

State transitions and the notifications they trigger:

    previous   new    notification
    --------   ----   ------------
    down       up     recovered
    up         down   down
    unknown    down   down
    up/unknown up     none
    down       down   none

The SSL expiry alert fires once when days-left enters (0, ssl_alert_days]
and is re-armed once days-left climbs back above the window.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..errors import NotFoundError
from ..schemas.endpoint import EndpointCreate, EndpointUpdate, MonitoredEndpoint, ServiceStatus
from ..schemas.history import CheckRecord, HistoryLog, ServiceStatistics
from ..utils.time_utils import utcnow
from .checker import CheckerService, CheckResult
from .stores import HistoryStore, ServiceStore

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 60
DEFAULT_TIMEOUT = 10
SSL_ALERT_DAYS = 30


class MonitorService:
    """Orchestrates checker, stores and notifier.

    ``notifier`` must provide ``notify_service_down``, ``notify_service_up``
    and ``notify_ssl_expiring``; each takes an endpoint snapshot and returns
    without waiting for delivery.
    """

    def __init__(
        self,
        store: ServiceStore,
        history: HistoryStore,
        checker: CheckerService,
        notifier,
        ssl_alert_days: int = SSL_ALERT_DAYS,
        max_concurrent_checks: int = 1,
        default_check_interval: int = DEFAULT_CHECK_INTERVAL,
        default_timeout: int = DEFAULT_TIMEOUT,
    ):
        self.store = store
        self.history = history
        self.checker = checker
        self.notifier = notifier
        self.ssl_alert_days = ssl_alert_days
        self.max_concurrent_checks = max(1, max_concurrent_checks)
        self.default_check_interval = default_check_interval
        self.default_timeout = default_timeout
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, service_id: str) -> asyncio.Lock:
        lock = self._locks.get(service_id)
        if lock is None:
            lock = self._locks[service_id] = asyncio.Lock()
        return lock

    # Checks

    async def check_service(self, service: MonitoredEndpoint) -> CheckResult:
        """Run one check without touching any state."""
        return await self.checker.check(service)

    async def apply_result(self, result: CheckResult) -> MonitoredEndpoint:
        """Record a check result and fire any notification it triggers.

        Results for the same endpoint are applied one at a time. Raises
        NotFoundError if the endpoint was deleted while it was being checked.
        """
        async with self._lock_for(result.service_id):
            try:
                return self._apply(result)
            except NotFoundError:
                self._locks.pop(result.service_id, None)
                raise

    def _apply(self, result: CheckResult) -> MonitoredEndpoint:
        service = self.store.get(result.service_id)
        previous_status = service.status
        pending: List[Callable[[MonitoredEndpoint], None]] = []

        service.status = result.status
        service.last_check = result.checked_at
        service.response_time = result.response_time
        service.error_message = result.error_message

        if result.tls is not None:
            service.ssl_cert_expiry = result.tls.expiry
            service.ssl_cert_issuer = result.tls.issuer
            service.ssl_days_left = result.tls.days_left
            if 0 < result.tls.days_left <= self.ssl_alert_days and not service.ssl_alert_sent:
                service.ssl_alert_sent = True
                pending.append(self.notifier.notify_ssl_expiring)
            elif result.tls.days_left > self.ssl_alert_days:
                service.ssl_alert_sent = False

        self.history.add_check_record(service.id, CheckRecord(
            timestamp=result.checked_at,
            status=result.status,
            response_time=result.response_time,
            error_message=result.error_message,
        ))

        if result.status == ServiceStatus.UP:
            service.last_uptime = result.checked_at
            if previous_status == ServiceStatus.DOWN:
                pending.append(self.notifier.notify_service_up)
        elif result.status == ServiceStatus.DOWN:
            service.last_downtime = result.checked_at
            if previous_status in (ServiceStatus.UP, ServiceStatus.UNKNOWN):
                pending.append(self.notifier.notify_service_down)

        self.store.update(service)

        for notify in pending:
            try:
                notify(service.model_copy(deep=True))
            except Exception as e:
                logger.error(f"Failed to dispatch notification for {service.name}: {e}")

        if previous_status != service.status:
            logger.info(f"Service {service.name}: {previous_status.value} -> {service.status.value}")
        return service

    async def run_check(self, service_id: str) -> MonitoredEndpoint:
        """Check one endpoint now and return its updated state."""
        service = self.store.get(service_id)
        result = await self.check_service(service)
        return await self.apply_result(result)

    async def check_all(self, due_only: bool = False, now: Optional[datetime] = None, slack: float = 0.0) -> int:
        """Check every endpoint in a snapshot of the store.

        With ``due_only`` only endpoints whose check interval has elapsed are
        checked. Errors for one endpoint are logged and do not stop the rest.
        Returns the number of endpoints checked.
        """
        services = self.store.get_all()
        if due_only:
            now = now or utcnow()
            services = [s for s in services if self.is_due(s, now, slack)]
        if not services:
            return 0

        semaphore = asyncio.Semaphore(self.max_concurrent_checks)

        async def check_with_limit(service: MonitoredEndpoint):
            async with semaphore:
                try:
                    result = await self.check_service(service)
                    await self.apply_result(result)
                except NotFoundError:
                    logger.debug(f"Service {service.id} was deleted during its check")
                except Exception as e:
                    logger.error(f"Error checking service {service.id}: {e}")

        if self.max_concurrent_checks == 1:
            for service in services:
                await check_with_limit(service)
        else:
            await asyncio.gather(*[check_with_limit(s) for s in services])

        logger.debug(f"Checked {len(services)} services")
        return len(services)

    def is_due(self, service: MonitoredEndpoint, now: datetime, slack: float = 0.0) -> bool:
        """True if the endpoint has never been checked or its interval has passed."""
        if service.last_check is None:
            return True
        interval = service.check_interval or self.default_check_interval
        elapsed = (now - service.last_check).total_seconds()
        return elapsed >= interval - slack

    # Endpoint management

    async def create_service(self, data: EndpointCreate, initial_check: bool = True) -> MonitoredEndpoint:
        """Register a new endpoint and, by default, check it once right away."""
        service = MonitoredEndpoint(**data.model_dump())
        self._apply_defaults(service)
        self.store.add(service)
        logger.info(f"Added service {service.name} ({service.check_type.value} {service.target})")
        if not initial_check:
            return self.store.get(service.id)
        return await self.run_check(service.id)

    async def update_service(self, service_id: str, data: EndpointUpdate) -> MonitoredEndpoint:
        """Replace the editable fields of an endpoint; status and timestamps are kept."""
        async with self._lock_for(service_id):
            existing = self.store.get(service_id)
            updated = existing.model_copy(update=data.model_dump())
            self._apply_defaults(updated)
            if updated.target != existing.target:
                updated.ssl_cert_expiry = None
                updated.ssl_cert_issuer = None
                updated.ssl_days_left = None
                updated.ssl_alert_sent = False
            self.store.update(updated)
            return updated

    def delete_service(self, service_id: str):
        """Delete an endpoint and its history."""
        self.store.delete(service_id)
        self._locks.pop(service_id, None)
        logger.info(f"Deleted service {service_id}")

    def get_service(self, service_id: str) -> MonitoredEndpoint:
        return self.store.get(service_id)

    def list_services(self) -> List[MonitoredEndpoint]:
        return self.store.get_all()

    def get_statistics(self, service_id: str) -> ServiceStatistics:
        self.store.get(service_id)
        return self.history.get_statistics(service_id)

    def get_history(self, service_id: str) -> HistoryLog:
        """The endpoint's check log; empty if it has never been checked."""
        self.store.get(service_id)
        try:
            return self.history.get(service_id)
        except NotFoundError:
            return HistoryLog(service_id=service_id, max_checks=self.history.max_checks)

    def _apply_defaults(self, service: MonitoredEndpoint):
        if not service.check_interval:
            service.check_interval = self.default_check_interval
        if not service.timeout:
            service.timeout = self.default_timeout

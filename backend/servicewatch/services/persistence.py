"""Persistence service - loads and saves the monitoring dataset.

The whole dataset (endpoints, check logs, notification and alert config) is
written as one snapshot per save. Saves are requested through ``AutoSaver``,
which never blocks the caller and coalesces bursts of requests.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..errors import PersistenceError
from ..models import CheckLog, Endpoint, History, Setting
from ..models.settings import DEFAULT_SETTINGS
from ..schemas.endpoint import MonitoredEndpoint
from ..schemas.history import CheckRecord, HistoryLog
from ..schemas.settings import SystemAlertConfig, TelegramConfig
from ..utils.background import BackgroundTasks
from ..utils.db_utils import retry_on_lock
from ..utils.time_utils import ensure_utc

logger = logging.getLogger(__name__)

ENDPOINT_DATETIME_FIELDS = ("last_check", "last_uptime", "last_downtime", "created_at", "ssl_cert_expiry")


@dataclass
class AppData:
    """Everything that survives a restart."""
    services: Dict[str, MonitoredEndpoint] = field(default_factory=dict)
    histories: Dict[str, HistoryLog] = field(default_factory=dict)
    telegram_config: TelegramConfig = field(default_factory=TelegramConfig)
    alert_config: SystemAlertConfig = field(default_factory=SystemAlertConfig)


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def settings_to_configs(values: Dict[str, str]):
    """Build (TelegramConfig, SystemAlertConfig) from key/value settings."""
    merged = dict(DEFAULT_SETTINGS)
    merged.update(values)
    telegram = TelegramConfig(
        bot_token=merged["telegram_bot_token"],
        chat_id=merged["telegram_chat_id"],
        enabled=_flag(merged["telegram_enabled"]),
    )
    alerts = SystemAlertConfig(
        disk_space_threshold=float(merged["disk_space_threshold"]),
        cpu_threshold=float(merged["cpu_threshold"]),
        memory_threshold=float(merged["memory_threshold"]),
        enabled=_flag(merged["system_alerts_enabled"]),
    )
    return telegram, alerts


def configs_to_settings(telegram: TelegramConfig, alerts: SystemAlertConfig) -> Dict[str, str]:
    return {
        "telegram_bot_token": telegram.bot_token,
        "telegram_chat_id": telegram.chat_id,
        "telegram_enabled": "1" if telegram.enabled else "0",
        "disk_space_threshold": str(alerts.disk_space_threshold),
        "cpu_threshold": str(alerts.cpu_threshold),
        "memory_threshold": str(alerts.memory_threshold),
        "system_alerts_enabled": "1" if alerts.enabled else "0",
    }


def endpoint_from_row(row: Endpoint) -> MonitoredEndpoint:
    data = {column.name: getattr(row, column.name) for column in Endpoint.__table__.columns}
    for name in ENDPOINT_DATETIME_FIELDS:
        data[name] = ensure_utc(data[name])
    if data["error_message"] is None:
        data["error_message"] = ""
    return MonitoredEndpoint(**data)


def endpoint_to_row(service: MonitoredEndpoint) -> Endpoint:
    data = service.model_dump()
    data["check_type"] = service.check_type.value
    data["status"] = service.status.value
    return Endpoint(**data)


class PersistenceService:
    """Reads and writes AppData through SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def load(self) -> AppData:
        """Load the stored dataset. Raises PersistenceError if it cannot be read."""
        try:
            async with self.session_factory() as session:
                endpoint_rows = (await session.execute(select(Endpoint))).scalars().all()
                history_rows = (await session.execute(select(History))).scalars().all()
                record_rows = (await session.execute(
                    select(CheckLog).order_by(CheckLog.service_id, CheckLog.position)
                )).scalars().all()
                setting_rows = (await session.execute(select(Setting))).scalars().all()

            data = AppData()
            for row in endpoint_rows:
                service = endpoint_from_row(row)
                data.services[service.id] = service

            for row in history_rows:
                data.histories[row.service_id] = HistoryLog(
                    service_id=row.service_id,
                    max_checks=row.max_checks,
                    created_at=ensure_utc(row.created_at),
                )
            for row in record_rows:
                history = data.histories.get(row.service_id)
                if history is None:
                    continue
                history.checks.append(CheckRecord(
                    timestamp=ensure_utc(row.timestamp),
                    status=row.status,
                    response_time=row.response_time or 0,
                    error_message=row.error_message or "",
                ))

            data.telegram_config, data.alert_config = settings_to_configs(
                {row.key: row.value for row in setting_rows}
            )
        except (SQLAlchemyError, ValidationError, ValueError, KeyError) as e:
            raise PersistenceError(f"failed to load data: {e}", cause=e) from e

        logger.info(f"Loaded {len(data.services)} service(s) and {len(data.histories)} history log(s)")
        return data

    async def save(self, data: AppData):
        """Replace the stored dataset with *data*."""
        try:
            await retry_on_lock(lambda: self._write(data))
        except SQLAlchemyError as e:
            raise PersistenceError(f"failed to save data: {e}", cause=e) from e

    async def _write(self, data: AppData):
        rows: List = [endpoint_to_row(s) for s in data.services.values()]
        records: List[CheckLog] = []
        for service_id, history in data.histories.items():
            rows.append(History(service_id=service_id, max_checks=history.max_checks, created_at=history.created_at))
            for position, record in enumerate(history.checks):
                records.append(CheckLog(
                    service_id=service_id,
                    position=position,
                    timestamp=record.timestamp,
                    status=record.status.value,
                    response_time=record.response_time,
                    error_message=record.error_message,
                ))

        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(delete(CheckLog))
                await session.execute(delete(History))
                await session.execute(delete(Endpoint))
                await session.flush()
                session.add_all(rows)
                # Headers first, check records reference them
                await session.flush()
                session.add_all(records)
                for key, value in configs_to_settings(data.telegram_config, data.alert_config).items():
                    await session.merge(Setting(key=key, value=value))


class AutoSaver:
    """Fire-and-forget save hook.

    ``request_save`` starts one background save; requests that arrive while
    it runs are folded into a single follow-up save of the latest snapshot.
    """

    def __init__(
        self,
        persistence: PersistenceService,
        snapshot_factory: Callable[[], AppData],
        tasks: Optional[BackgroundTasks] = None,
    ):
        self.persistence = persistence
        self.snapshot_factory = snapshot_factory
        self.tasks = tasks or BackgroundTasks("persistence")
        self._dirty = False
        self._task: Optional[asyncio.Task] = None

    def request_save(self):
        self._dirty = True
        if self._task is not None and not self._task.done():
            return
        self._task = self.tasks.spawn(self._run(), "save")

    async def _run(self):
        while self._dirty:
            self._dirty = False
            try:
                await self.persistence.save(self.snapshot_factory())
            except PersistenceError as e:
                logger.error(f"Error saving data: {e}")

    async def flush(self):
        """Wait for the pending save, then write anything still unsaved."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        if self._dirty:
            await self._run()

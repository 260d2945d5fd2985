"""Services for checking, monitoring, scheduling, alerting and persistence."""
from .checker import CheckerService, CheckResult
from .stores import HistoryStore, ServiceStore
from .monitor import MonitorService
from .telegram import TelegramService
from .resource_alerts import ResourceAlertMonitor
from .system import SystemService
from .scheduler import SchedulerService
from .persistence import AppData, AutoSaver, PersistenceService

__all__ = [
    "CheckerService",
    "CheckResult",
    "HistoryStore",
    "ServiceStore",
    "MonitorService",
    "TelegramService",
    "ResourceAlertMonitor",
    "SystemService",
    "SchedulerService",
    "AppData",
    "AutoSaver",
    "PersistenceService",
]

"""Pydantic schemas for domain types and API request/response models."""
from .endpoint import (
    CheckType,
    ServiceStatus,
    MonitoredEndpoint,
    EndpointCreate,
    EndpointUpdate,
)
from .history import (
    CheckRecord,
    HistoryLog,
    ServiceStatistics,
)
from .settings import (
    TelegramConfig,
    TelegramConfigUpdate,
    ResolvedTelegramConfig,
    SystemAlertConfig,
    MessageResponse,
)
from .system import (
    CPUInfo,
    MemoryInfo,
    DiskInfo,
    SystemInfo,
)

__all__ = [
    "CheckType",
    "ServiceStatus",
    "MonitoredEndpoint",
    "EndpointCreate",
    "EndpointUpdate",
    "CheckRecord",
    "HistoryLog",
    "ServiceStatistics",
    "TelegramConfig",
    "TelegramConfigUpdate",
    "ResolvedTelegramConfig",
    "SystemAlertConfig",
    "MessageResponse",
    "CPUInfo",
    "MemoryInfo",
    "DiskInfo",
    "SystemInfo",
]

"""Check history and statistics schemas."""
from datetime import datetime
from typing import List
from pydantic import BaseModel, Field

from ..utils.time_utils import utcnow
from .endpoint import ServiceStatus

DEFAULT_MAX_CHECKS = 100


class CheckRecord(BaseModel):
    """One entry of an endpoint's check log."""
    timestamp: datetime
    status: ServiceStatus
    response_time: int = 0  # milliseconds
    error_message: str = ""


class HistoryLog(BaseModel):
    """Bounded, oldest-first log of check records for one endpoint."""
    service_id: str
    checks: List[CheckRecord] = Field(default_factory=list)
    max_checks: int = DEFAULT_MAX_CHECKS
    created_at: datetime = Field(default_factory=utcnow)

    def add_check(self, record: CheckRecord):
        """Append *record*, evicting the oldest entries past ``max_checks``."""
        self.checks.append(record)
        if len(self.checks) > self.max_checks:
            del self.checks[: len(self.checks) - self.max_checks]


class ServiceStatistics(BaseModel):
    """Aggregates derived from a HistoryLog. Durations are in seconds."""
    service_id: str
    total_checks: int = 0
    up_count: int = 0
    down_count: int = 0
    uptime_percentage: float = 0.0
    average_response_time: int = 0  # milliseconds, up checks only
    current_uptime: int = 0
    current_downtime: int = 0
    total_uptime: int = 0
    total_downtime: int = 0
    last_24_hours: List[CheckRecord] = Field(default_factory=list)

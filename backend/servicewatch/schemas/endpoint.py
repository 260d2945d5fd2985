"""Monitored endpoint schemas."""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from ..utils.time_utils import utcnow


class CheckType(str, Enum):
    """Protocol used to probe an endpoint."""
    HTTP = "http"
    TCP = "tcp"
    UDP = "udp"


class ServiceStatus(str, Enum):
    """Stored status of an endpoint."""
    UNKNOWN = "unknown"
    UP = "up"
    DOWN = "down"


class MonitoredEndpoint(BaseModel):
    """A user-registered target subject to periodic health checks.

    ``status`` and the ``last_*`` fields are only ever written by the
    monitor engine when it applies a check result.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    check_type: CheckType = CheckType.HTTP
    url: Optional[str] = None  # HTTP checks
    host: Optional[str] = None  # TCP/UDP checks
    port: Optional[int] = None  # TCP/UDP checks
    check_interval: int = 0  # seconds, 0 = default
    timeout: int = 0  # seconds, 0 = default
    status: ServiceStatus = ServiceStatus.UNKNOWN
    last_check: Optional[datetime] = None
    last_uptime: Optional[datetime] = None
    last_downtime: Optional[datetime] = None
    response_time: int = 0  # milliseconds
    error_message: str = ""
    created_at: datetime = Field(default_factory=utcnow)

    # SSL certificate info (HTTPS endpoints only)
    ssl_cert_expiry: Optional[datetime] = None
    ssl_cert_issuer: Optional[str] = None
    ssl_days_left: Optional[int] = None
    ssl_alert_sent: bool = False

    # Telegram overrides, None/empty = use the global config
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    telegram_enabled: Optional[bool] = None

    class Config:
        from_attributes = True

    @property
    def target(self) -> str:
        """URL for HTTP endpoints, host:port otherwise."""
        if self.check_type == CheckType.HTTP:
            return self.url or ""
        return f"{self.host}:{self.port}"


class EndpointBase(BaseModel):
    """Fields a caller may set on an endpoint."""
    name: str = Field(..., min_length=1, max_length=255)
    check_type: CheckType = CheckType.HTTP
    url: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = Field(None, ge=1, le=65535)
    check_interval: int = Field(default=0, ge=0, le=86400)
    timeout: int = Field(default=0, ge=0, le=300)
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    telegram_enabled: Optional[bool] = None

    @model_validator(mode="after")
    def _check_target(self):
        if self.check_type == CheckType.HTTP:
            if not self.url:
                raise ValueError("url is required for http checks")
            if not self.url.lower().startswith(("http://", "https://")):
                raise ValueError("url must start with http:// or https://")
        elif not self.host or not self.port:
            raise ValueError(f"host and port are required for {self.check_type.value} checks")
        return self


class EndpointCreate(EndpointBase):
    """Schema for creating a new endpoint."""


class EndpointUpdate(EndpointBase):
    """Schema for editing an endpoint. Runtime status fields are preserved."""

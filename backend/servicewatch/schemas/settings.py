"""Notification and alert configuration schemas."""
from typing import Optional
from pydantic import BaseModel, Field


class TelegramConfig(BaseModel):
    """Default Telegram bot credentials."""
    bot_token: str = ""
    chat_id: str = ""
    enabled: bool = False


class TelegramConfigUpdate(BaseModel):
    """Schema for replacing the Telegram configuration."""
    bot_token: str = Field(..., min_length=1)
    chat_id: str = Field(..., min_length=1)
    enabled: bool = True


class ResolvedTelegramConfig(BaseModel):
    """Telegram settings in effect for one notification."""
    bot_token: str
    chat_id: str
    enabled: bool

    @property
    def deliverable(self) -> bool:
        return self.enabled and bool(self.bot_token) and bool(self.chat_id)


class SystemAlertConfig(BaseModel):
    """Thresholds (percent used) for host resource alerts."""
    disk_space_threshold: float = Field(default=80.0, ge=0, le=100)
    cpu_threshold: float = Field(default=90.0, ge=0, le=100)
    memory_threshold: float = Field(default=90.0, ge=0, le=100)
    enabled: bool = True


class MessageResponse(BaseModel):
    """Generic acknowledgement."""
    message: str
    config: Optional[TelegramConfig] = None

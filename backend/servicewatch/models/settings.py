"""Settings model - key-value store for global configuration."""
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime

from ..database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Setting(Base):
    """Global settings stored as key-value pairs."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


# Default settings
DEFAULT_SETTINGS = {
    # Telegram notification settings
    "telegram_bot_token": "",
    "telegram_chat_id": "",
    "telegram_enabled": "0",  # 0 or 1

    # Host resource alerts (percent used)
    "disk_space_threshold": "80.0",
    "cpu_threshold": "90.0",
    "memory_threshold": "90.0",
    "system_alerts_enabled": "1",  # 0 or 1
}

"""Endpoint model - persisted form of a monitored endpoint."""
from sqlalchemy import Boolean, Column, DateTime, Integer, String

from ..database import Base


class Endpoint(Base):
    """A monitored endpoint - HTTP, TCP or UDP check."""

    __tablename__ = "endpoints"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    check_type = Column(String, nullable=False, default="http")  # http, tcp, udp
    url = Column(String, nullable=True)  # HTTP checks
    host = Column(String, nullable=True)  # TCP/UDP checks
    port = Column(Integer, nullable=True)
    check_interval = Column(Integer, default=60)  # seconds
    timeout = Column(Integer, default=10)  # seconds
    status = Column(String, nullable=False, default="unknown")  # up, down, unknown
    last_check = Column(DateTime(timezone=True), nullable=True)
    last_uptime = Column(DateTime(timezone=True), nullable=True)
    last_downtime = Column(DateTime(timezone=True), nullable=True)
    response_time = Column(Integer, default=0)  # milliseconds
    error_message = Column(String, default="")
    created_at = Column(DateTime(timezone=True), nullable=False)

    ssl_cert_expiry = Column(DateTime(timezone=True), nullable=True)
    ssl_cert_issuer = Column(String, nullable=True)
    ssl_days_left = Column(Integer, nullable=True)
    ssl_alert_sent = Column(Boolean, default=False)

    # NULL = use the global Telegram config
    telegram_bot_token = Column(String, nullable=True)
    telegram_chat_id = Column(String, nullable=True)
    telegram_enabled = Column(Boolean, nullable=True)

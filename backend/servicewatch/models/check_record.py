"""Check history models - per-endpoint bounded logs."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from ..database import Base


class History(Base):
    """Header of one endpoint's check log."""

    __tablename__ = "histories"

    service_id = Column(String, primary_key=True)
    max_checks = Column(Integer, nullable=False, default=100)
    created_at = Column(DateTime(timezone=True), nullable=False)


class CheckLog(Base):
    """One check result in an endpoint's log."""

    __tablename__ = "check_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    service_id = Column(String, ForeignKey("histories.service_id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)  # 0 = oldest
    timestamp = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False)  # up, down
    response_time = Column(Integer, default=0)  # milliseconds
    error_message = Column(String, default="")

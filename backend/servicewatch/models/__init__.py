"""Database models."""
from .settings import Setting
from .endpoint import Endpoint
from .check_record import History, CheckLog

__all__ = ["Setting", "Endpoint", "History", "CheckLog"]

"""Request dependencies resolving the application's core components."""
from fastapi import Request

from ..services.monitor import MonitorService
from ..services.system import SystemService
from ..services.telegram import TelegramService


def get_monitor(request: Request) -> MonitorService:
    return request.app.state.core.monitor


def get_telegram(request: Request) -> TelegramService:
    return request.app.state.core.telegram


def get_system(request: Request) -> SystemService:
    return request.app.state.core.system

"""API routers."""
from .services import router as services_router
from .telegram import router as telegram_router
from .system import router as system_router

__all__ = ["services_router", "telegram_router", "system_router"]

"""Main FastAPI application and component wiring."""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from .config import Settings, settings, get_database_url
from .database import close_db, create_session_factory, open_database
from .errors import PersistenceError
from .routers import services_router, telegram_router, system_router
from .services.checker import CheckerService
from .services.monitor import MonitorService
from .services.persistence import AppData, AutoSaver, PersistenceService
from .services.scheduler import SchedulerService
from .services.stores import HistoryStore, ServiceStore
from .services.system import SystemService
from .services.telegram import TelegramService
from .utils.background import BackgroundTasks

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@dataclass
class ServiceWatchCore:
    """The in-memory monitoring system, independent of HTTP and storage."""
    config: Settings
    tasks: BackgroundTasks
    history: HistoryStore
    store: ServiceStore
    checker: CheckerService
    telegram: TelegramService
    monitor: MonitorService
    system: SystemService
    scheduler: SchedulerService

    def snapshot(self) -> AppData:
        return AppData(
            services=self.store.export(),
            histories=self.history.export(),
            telegram_config=self.telegram.get_raw_config(),
            alert_config=self.system.get_alert_config(),
        )

    def restore(self, data: AppData):
        """Install loaded data without triggering saves."""
        self.history.load(data.histories)
        self.store.load(data.services)
        self.telegram.load_config(data.telegram_config)
        self.system.load_alert_config(data.alert_config)

    def set_on_save(self, on_save: Optional[Callable[[], None]]):
        self.store.set_on_save(on_save)
        self.telegram.set_on_save(on_save)
        self.system.set_on_save(on_save)


def build_core(config: Settings = settings) -> ServiceWatchCore:
    """Create and connect all monitoring components."""
    tasks = BackgroundTasks("servicewatch")
    history = HistoryStore(max_checks=config.max_history_checks)
    store = ServiceStore(history=history)
    checker = CheckerService(
        default_timeout=config.default_timeout,
        udp_read_timeout=config.udp_read_timeout,
        verify_tls=config.http_verify_tls,
    )
    telegram = TelegramService(
        api_base=config.telegram_api_base,
        timeout=config.notification_timeout,
        tasks=tasks,
    )
    monitor = MonitorService(
        store,
        history,
        checker,
        telegram,
        ssl_alert_days=config.ssl_alert_days,
        max_concurrent_checks=config.max_concurrent_checks,
        default_check_interval=config.default_check_interval,
        default_timeout=config.default_timeout,
    )
    system = SystemService(telegram)
    scheduler = SchedulerService(
        monitor,
        tick_seconds=config.check_tick_seconds,
        respect_check_interval=config.respect_check_interval,
    )
    return ServiceWatchCore(
        config=config,
        tasks=tasks,
        history=history,
        store=store,
        checker=checker,
        telegram=telegram,
        monitor=monitor,
        system=system,
        scheduler=scheduler,
    )


async def open_persistence(config: Settings) -> Tuple[Optional[AsyncEngine], Optional[PersistenceService]]:
    """Open the database, or return (None, None) if it cannot be used."""
    try:
        engine = await open_database(get_database_url(config), config.data_path)
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database unavailable, running without saving: {e}")
        return None, None
    logger.info("Database initialized")
    return engine, PersistenceService(create_session_factory(engine))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    core: ServiceWatchCore = app.state.core
    logger.info("Starting ServiceWatch")

    engine, persistence = await open_persistence(core.config)
    saver: Optional[AutoSaver] = None
    if persistence is not None:
        try:
            core.restore(await persistence.load())
        except PersistenceError as e:
            logger.error(f"Failed to load stored data, starting empty: {e}")
        saver = AutoSaver(persistence, core.snapshot, core.tasks)
        core.set_on_save(saver.request_save)

    core.scheduler.start()

    yield

    # Shutdown
    core.scheduler.stop()
    await core.tasks.drain()
    core.set_on_save(None)
    if saver is not None:
        await saver.flush()
    if engine is not None:
        await close_db(engine)
    logger.info("Shutdown complete")


def create_app(core: Optional[ServiceWatchCore] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="ServiceWatch",
        description="Uptime monitoring for HTTP, TCP and UDP services with Telegram alerts",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.core = core or build_core()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(services_router)
    app.include_router(telegram_router)
    app.include_router(system_router)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "services": len(app.state.core.store),
            "scheduler_running": app.state.core.scheduler.running,
        }

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)

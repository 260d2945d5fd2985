"""Telegram notification service - alerts on state changes, SSL expiry and host resources."""
import logging
import threading
from typing import Callable, Coroutine, Optional

import httpx

from ..errors import TransportError
from ..schemas.endpoint import MonitoredEndpoint
from ..schemas.settings import ResolvedTelegramConfig, TelegramConfig
from ..utils.background import BackgroundTasks
from ..utils.time_utils import format_timestamp, utcnow

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.telegram.org"

# Characters reserved by Telegram's MarkdownV2 dialect
MARKDOWN_SPECIAL_CHARS = "_*[]()~`>#+-=|{}.!"

SYSTEM_ALERT_LABELS = {
    "disk": ("💾", "Disk Space"),
    "cpu": ("🔥", "CPU Usage"),
    "memory": ("⚠️", "Memory Usage"),
}


def escape_markdown(text: object) -> str:
    """Prefix every reserved MarkdownV2 character with a backslash."""
    return "".join(f"\\{ch}" if ch in MARKDOWN_SPECIAL_CHARS else ch for ch in str(text))


def mask_token(token: str) -> str:
    """Hide most of a bot token for display."""
    if not token:
        return ""
    if len(token) < 10:
        return "***"
    return f"{token[:5]}...{token[-5:]}"


def resolve_config(default: TelegramConfig, endpoint: Optional[MonitoredEndpoint] = None) -> ResolvedTelegramConfig:
    """Merge the global config with an endpoint's overrides.

    Empty or missing overrides inherit the global value.
    """
    resolved = ResolvedTelegramConfig(
        bot_token=default.bot_token,
        chat_id=default.chat_id,
        enabled=default.enabled,
    )
    if endpoint is None:
        return resolved
    if endpoint.telegram_bot_token:
        resolved.bot_token = endpoint.telegram_bot_token
    if endpoint.telegram_chat_id:
        resolved.chat_id = endpoint.telegram_chat_id
    if endpoint.telegram_enabled is not None:
        resolved.enabled = endpoint.telegram_enabled
    return resolved


class TelegramService:
    """Sends notifications through the Telegram Bot API.

    The ``send_*`` coroutines deliver one message and raise TransportError on
    failure. The ``notify_*`` methods are what the monitoring pipeline calls:
    they spawn the send in the background and only log failures.
    """

    def __init__(
        self,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        tasks: Optional[BackgroundTasks] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self.tasks = tasks or BackgroundTasks("telegram")
        self._config = TelegramConfig()
        self._lock = threading.Lock()
        self._on_save: Optional[Callable[[], None]] = None

    # Configuration

    def set_on_save(self, on_save: Optional[Callable[[], None]]):
        self._on_save = on_save

    def load_config(self, config: Optional[TelegramConfig]):
        """Install a persisted config without triggering a save."""
        if config is None:
            return
        with self._lock:
            self._config = config.model_copy()

    def get_raw_config(self) -> TelegramConfig:
        """Unmasked config, for persistence."""
        with self._lock:
            return self._config.model_copy()

    def get_config(self) -> TelegramConfig:
        """Config with the bot token masked."""
        with self._lock:
            return TelegramConfig(
                bot_token=mask_token(self._config.bot_token),
                chat_id=self._config.chat_id,
                enabled=self._config.enabled,
            )

    def set_config(self, config: TelegramConfig):
        with self._lock:
            self._config = config.model_copy()
        if self._on_save is not None:
            self._on_save()

    def is_enabled(self) -> bool:
        return resolve_config(self.get_raw_config()).deliverable

    def effective_config(self, endpoint: Optional[MonitoredEndpoint] = None) -> ResolvedTelegramConfig:
        return resolve_config(self.get_raw_config(), endpoint)

    # Fire-and-forget entry points

    def notify_service_down(self, endpoint: MonitoredEndpoint):
        self._dispatch(self.send_service_down_alert(endpoint), f"down:{endpoint.name}")

    def notify_service_up(self, endpoint: MonitoredEndpoint):
        self._dispatch(self.send_service_up_alert(endpoint), f"up:{endpoint.name}")

    def notify_ssl_expiring(self, endpoint: MonitoredEndpoint):
        self._dispatch(self.send_ssl_expiry_alert(endpoint), f"ssl:{endpoint.name}")

    def notify_system_alert(self, resource_type: str, device: str, current_value: float, threshold: float):
        self._dispatch(
            self.send_system_alert(resource_type, device, current_value, threshold),
            f"system:{resource_type}",
        )

    def _dispatch(self, coro: Coroutine, description: str):
        if self.tasks.spawn(self._deliver(coro, description), description) is None:
            coro.close()

    async def _deliver(self, coro: Coroutine, description: str):
        try:
            await coro
        except TransportError as e:
            logger.error(f"Failed to send Telegram alert ({description}): {e}")

    # Messages

    async def send_service_down_alert(self, endpoint: MonitoredEndpoint) -> bool:
        config = self.effective_config(endpoint)
        if not config.deliverable:
            return False
        message = (
            "🔴 *Service Down Alert*\n\n"
            f"*Service:* {escape_markdown(endpoint.name)}\n"
            f"*URL:* {escape_markdown(endpoint.target)}\n"
            "*Status:* DOWN\n"
            f"*Error:* {escape_markdown(endpoint.error_message)}\n"
            f"*Time:* {escape_markdown(format_timestamp(endpoint.last_check))}"
        )
        await self.post_message(config.bot_token, config.chat_id, message)
        return True

    async def send_service_up_alert(self, endpoint: MonitoredEndpoint) -> bool:
        config = self.effective_config(endpoint)
        if not config.deliverable:
            return False
        message = (
            "🟢 *Service Recovered*\n\n"
            f"*Service:* {escape_markdown(endpoint.name)}\n"
            f"*URL:* {escape_markdown(endpoint.target)}\n"
            "*Status:* UP\n"
            f"*Response Time:* {endpoint.response_time}ms\n"
            f"*Time:* {escape_markdown(format_timestamp(endpoint.last_check))}"
        )
        await self.post_message(config.bot_token, config.chat_id, message)
        return True

    async def send_ssl_expiry_alert(self, endpoint: MonitoredEndpoint) -> bool:
        config = self.effective_config(endpoint)
        if not config.deliverable:
            return False
        message = (
            "🔒 *SSL Certificate Expiry Alert*\n\n"
            f"*Service:* {escape_markdown(endpoint.name)}\n"
            f"*URL:* {escape_markdown(endpoint.target)}\n"
            f"*Days Until Expiry:* {escape_markdown(endpoint.ssl_days_left)}\n"
            f"*Expiry Date:* {escape_markdown(format_timestamp(endpoint.ssl_cert_expiry))}\n"
            f"*Issuer:* {escape_markdown(endpoint.ssl_cert_issuer or 'unknown')}\n"
            f"*Time:* {escape_markdown(format_timestamp(utcnow()))}\n\n"
            "_Please renew your SSL certificate\\._"
        )
        await self.post_message(config.bot_token, config.chat_id, message)
        return True

    async def send_system_alert(self, resource_type: str, device: str, current_value: float, threshold: float) -> bool:
        """Host resource alerts always use the global config."""
        config = self.effective_config()
        if not config.deliverable:
            return False

        emoji, resource_name = SYSTEM_ALERT_LABELS.get(resource_type, ("⚠️", "System Resource"))
        device_info = f"\n*Device:* {escape_markdown(device)}" if resource_type == "disk" and device else ""
        message = (
            f"{emoji} *{resource_name} Alert*\n\n"
            f"*Resource:* {resource_name}{device_info}\n"
            f"*Current Usage:* {escape_markdown(f'{current_value:.1f}')}%\n"
            f"*Threshold:* {escape_markdown(f'{threshold:.1f}')}%\n"
            f"*Time:* {escape_markdown(format_timestamp(utcnow()))}\n\n"
            "_Please check your system resources\\._"
        )
        await self.post_message(config.bot_token, config.chat_id, message)
        return True

    async def send_test_message(self):
        """Send a test notification with the global config, enabled or not."""
        config = self.get_raw_config()
        if not config.bot_token or not config.chat_id:
            raise TransportError("bot token and chat ID are required")
        message = (
            "✅ *Test Notification*\n\n"
            "Your monitoring service is successfully connected to Telegram\\!"
        )
        await self.post_message(config.bot_token, config.chat_id, message)

    async def post_message(self, bot_token: str, chat_id: str, text: str):
        """POST one message to the Bot API. Raises TransportError on any failure."""
        url = f"{self.api_base}/bot{bot_token}/sendMessage"
        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "MarkdownV2",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"failed to send message: {e}", cause=e) from e

        if response.status_code != 200:
            raise TransportError(f"telegram API returned status code: {response.status_code}")
        logger.info(f"Telegram message sent to chat {chat_id}")

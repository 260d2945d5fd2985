from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from servicewatch.errors import TransportError
from servicewatch.schemas.endpoint import ServiceStatus
from servicewatch.schemas.settings import TelegramConfig
from servicewatch.services.telegram import TelegramService, escape_markdown, mask_token, resolve_config

from .fakes import T0, make_endpoint

TOKEN = "123456:ABCDEFGHIJKLMNOP"


class _BotAPI:
    """Records sendMessage calls and answers with a fixed status."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": self.status_code == 200})

    def payloads(self) -> List[dict]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def bot_api() -> _BotAPI:
    return _BotAPI()


@pytest.fixture
def telegram(bot_api: _BotAPI) -> TelegramService:
    service = TelegramService(api_base="https://bot.test", transport=httpx.MockTransport(bot_api))
    service.load_config(TelegramConfig(bot_token=TOKEN, chat_id="42", enabled=True))
    return service


def test_escape_markdown_escapes_every_reserved_character() -> None:
    reserved = "_*[]()~`>#+-=|{}.!"
    assert escape_markdown(reserved) == "".join(f"\\{ch}" for ch in reserved)
    assert escape_markdown("plain text 123") == "plain text 123"
    assert escape_markdown("https://a-b.com/x?y=1") == "https://a\\-b\\.com/x?y\\=1"
    assert escape_markdown(12.5) == "12\\.5"


@pytest.mark.parametrize(
    "token, expected",
    [
        ("", ""),
        ("short", "***"),
        ("123456789", "***"),
        ("1234567890", "12345...67890"),
        (TOKEN, "12345...LMNOP"),
    ],
)
def test_mask_token(token: str, expected: str) -> None:
    assert mask_token(token) == expected


def test_resolve_config_merges_endpoint_overrides() -> None:
    default = TelegramConfig(bot_token="global-token", chat_id="1", enabled=True)

    inherit = resolve_config(default, make_endpoint(telegram_bot_token="", telegram_chat_id=None))
    assert (inherit.bot_token, inherit.chat_id, inherit.enabled) == ("global-token", "1", True)

    override = resolve_config(default, make_endpoint(telegram_chat_id="99", telegram_enabled=False))
    assert (override.bot_token, override.chat_id, override.enabled) == ("global-token", "99", False)

    enabled_locally = resolve_config(
        TelegramConfig(enabled=False),
        make_endpoint(telegram_bot_token="own", telegram_chat_id="7", telegram_enabled=True),
    )
    assert enabled_locally.deliverable is True


def test_get_config_masks_token(telegram: TelegramService) -> None:
    config = telegram.get_config()
    assert config.bot_token == "12345...LMNOP"
    assert config.chat_id == "42"
    assert telegram.get_raw_config().bot_token == TOKEN


def test_set_config_triggers_save(telegram: TelegramService) -> None:
    calls = []
    telegram.set_on_save(lambda: calls.append(1))
    telegram.set_config(TelegramConfig(bot_token=TOKEN, chat_id="43", enabled=False))
    assert calls == [1]
    assert telegram.is_enabled() is False


@pytest.mark.asyncio
async def test_down_alert_posts_escaped_markdown(telegram: TelegramService, bot_api: _BotAPI) -> None:
    endpoint = make_endpoint(
        "shop.example",
        url="https://shop.example/health",
        status=ServiceStatus.DOWN,
        error_message="HTTP status code: 503",
        last_check=T0,
    )

    assert await telegram.send_service_down_alert(endpoint) is True

    request = bot_api.requests[0]
    assert str(request.url) == f"https://bot.test/bot{TOKEN}/sendMessage"
    payload = bot_api.payloads()[0]
    assert payload["chat_id"] == "42"
    assert payload["parse_mode"] == "MarkdownV2"
    assert "*Service Down Alert*" in payload["text"]
    assert "shop\\.example" in payload["text"]
    assert "HTTP status code: 503" in payload["text"]
    assert "2024\\-01\\-01 12:00:00 UTC" in payload["text"]


@pytest.mark.asyncio
async def test_recovery_and_ssl_alerts(telegram: TelegramService, bot_api: _BotAPI) -> None:
    endpoint = make_endpoint(
        "api",
        url="https://api.example",
        response_time=87,
        last_check=T0,
        ssl_days_left=12,
        ssl_cert_expiry=T0,
        ssl_cert_issuer="R3",
    )

    await telegram.send_service_up_alert(endpoint)
    await telegram.send_ssl_expiry_alert(endpoint)

    up_text, ssl_text = [p["text"] for p in bot_api.payloads()]
    assert "*Service Recovered*" in up_text
    assert "87ms" in up_text
    assert "*Days Until Expiry:* 12" in ssl_text
    assert "*Issuer:* R3" in ssl_text


@pytest.mark.asyncio
async def test_system_alert_mentions_device_for_disk(telegram: TelegramService, bot_api: _BotAPI) -> None:
    await telegram.send_system_alert("disk", "/home", 91.25, 80)
    await telegram.send_system_alert("cpu", "", 95.0, 90)

    disk_text, cpu_text = [p["text"] for p in bot_api.payloads()]
    assert "*Device:* /home" in disk_text
    assert "91\\.2%" in disk_text or "91\\.3%" in disk_text
    assert "*Threshold:* 80\\.0%" in disk_text
    assert "CPU Usage" in cpu_text
    assert "Device" not in cpu_text


@pytest.mark.asyncio
async def test_disabled_config_sends_nothing(bot_api: _BotAPI) -> None:
    telegram = TelegramService(api_base="https://bot.test", transport=httpx.MockTransport(bot_api))
    telegram.load_config(TelegramConfig(bot_token=TOKEN, chat_id="42", enabled=False))

    assert await telegram.send_service_down_alert(make_endpoint()) is False
    assert await telegram.send_system_alert("cpu", "", 99, 90) is False
    assert bot_api.requests == []


@pytest.mark.asyncio
async def test_endpoint_override_routes_to_its_own_chat(telegram: TelegramService, bot_api: _BotAPI) -> None:
    endpoint = make_endpoint(telegram_bot_token="999:OVERRIDE-TOKEN", telegram_chat_id="-100")
    await telegram.send_service_down_alert(endpoint)

    assert "/bot999:OVERRIDE-TOKEN/sendMessage" in str(bot_api.requests[0].url)
    assert bot_api.payloads()[0]["chat_id"] == "-100"


@pytest.mark.asyncio
async def test_endpoint_can_opt_out(telegram: TelegramService, bot_api: _BotAPI) -> None:
    assert await telegram.send_service_down_alert(make_endpoint(telegram_enabled=False)) is False
    assert bot_api.requests == []


@pytest.mark.asyncio
async def test_non_200_raises_transport_error() -> None:
    telegram = TelegramService(api_base="https://bot.test", transport=httpx.MockTransport(_BotAPI(status_code=401)))
    with pytest.raises(TransportError, match="401"):
        await telegram.post_message(TOKEN, "42", "hi")


@pytest.mark.asyncio
async def test_network_failure_raises_transport_error() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    telegram = TelegramService(api_base="https://bot.test", transport=httpx.MockTransport(refuse))
    with pytest.raises(TransportError):
        await telegram.post_message(TOKEN, "42", "hi")


@pytest.mark.asyncio
async def test_test_message_uses_global_config_even_when_disabled(bot_api: _BotAPI) -> None:
    telegram = TelegramService(api_base="https://bot.test", transport=httpx.MockTransport(bot_api))
    telegram.load_config(TelegramConfig(bot_token=TOKEN, chat_id="42", enabled=False))

    await telegram.send_test_message()

    assert "Test Notification" in bot_api.payloads()[0]["text"]


@pytest.mark.asyncio
async def test_test_message_requires_credentials(bot_api: _BotAPI) -> None:
    telegram = TelegramService(api_base="https://bot.test", transport=httpx.MockTransport(bot_api))
    with pytest.raises(TransportError):
        await telegram.send_test_message()
    assert bot_api.requests == []


@pytest.mark.asyncio
async def test_notify_is_fire_and_forget(telegram: TelegramService, bot_api: _BotAPI) -> None:
    telegram.notify_service_down(make_endpoint(error_message="refused"))
    telegram.notify_system_alert("memory", "", 95.0, 90.0)
    assert bot_api.requests == []

    await telegram.tasks.drain()

    assert len(bot_api.requests) == 2


@pytest.mark.asyncio
async def test_notify_logs_delivery_failures(caplog) -> None:
    telegram = TelegramService(api_base="https://bot.test", transport=httpx.MockTransport(_BotAPI(status_code=500)))
    telegram.load_config(TelegramConfig(bot_token=TOKEN, chat_id="42", enabled=True))

    telegram.notify_service_up(make_endpoint())
    await telegram.tasks.drain()

    assert "Failed to send Telegram alert" in caplog.text


def test_notify_without_event_loop_is_dropped(telegram: TelegramService, bot_api: _BotAPI) -> None:
    telegram.notify_service_down(make_endpoint())
    assert telegram.tasks.pending == 0
    assert bot_api.requests == []

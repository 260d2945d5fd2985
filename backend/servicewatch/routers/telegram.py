"""Telegram notification settings API endpoints."""
from fastapi import APIRouter, Depends, HTTPException

from ..errors import TransportError
from ..schemas.settings import MessageResponse, TelegramConfig, TelegramConfigUpdate
from ..services.telegram import TelegramService
from .deps import get_telegram

router = APIRouter(prefix="/api/telegram", tags=["telegram"])


@router.get("/config", response_model=TelegramConfig)
async def get_config(telegram: TelegramService = Depends(get_telegram)):
    """Current config with the bot token masked."""
    return telegram.get_config()


@router.put("/config", response_model=MessageResponse)
async def update_config(update: TelegramConfigUpdate, telegram: TelegramService = Depends(get_telegram)):
    telegram.set_config(TelegramConfig(**update.model_dump()))
    return MessageResponse(message="Telegram configuration updated", config=telegram.get_config())


@router.post("/test", response_model=MessageResponse)
async def send_test(telegram: TelegramService = Depends(get_telegram)):
    """Send a test message using the global config."""
    try:
        await telegram.send_test_message()
    except TransportError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return MessageResponse(message="Test message sent successfully")

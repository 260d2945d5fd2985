"""Host information and resource alert API endpoints."""
from fastapi import APIRouter, Depends

from ..schemas.settings import MessageResponse, SystemAlertConfig
from ..schemas.system import SystemInfo
from ..services.system import SystemService
from .deps import get_system

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/info", response_model=SystemInfo)
async def get_system_info(system: SystemService = Depends(get_system)):
    """Sample the host. Resource alerts are evaluated on each call."""
    return system.get_system_info()


@router.get("/alert-config", response_model=SystemAlertConfig)
async def get_alert_config(system: SystemService = Depends(get_system)):
    return system.get_alert_config()


@router.put("/alert-config", response_model=MessageResponse)
async def update_alert_config(config: SystemAlertConfig, system: SystemService = Depends(get_system)):
    system.set_alert_config(config)
    return MessageResponse(message="System alert configuration updated")

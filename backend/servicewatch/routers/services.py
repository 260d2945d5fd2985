"""Monitored service CRUD and check API endpoints."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..errors import AlreadyExistsError, NotFoundError
from ..schemas.endpoint import EndpointCreate, EndpointUpdate, MonitoredEndpoint
from ..schemas.history import HistoryLog, ServiceStatistics
from ..services.monitor import MonitorService
from .deps import get_monitor

router = APIRouter(prefix="/api/services", tags=["services"])


def _not_found(service_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Service {service_id} not found")


@router.get("", response_model=List[MonitoredEndpoint])
async def list_services(monitor: MonitorService = Depends(get_monitor)):
    """List all services, newest first."""
    return monitor.list_services()


@router.post("", response_model=MonitoredEndpoint, status_code=201)
async def create_service(data: EndpointCreate, monitor: MonitorService = Depends(get_monitor)):
    """Register a service and run its first check."""
    try:
        return await monitor.create_service(data)
    except AlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except NotFoundError as e:
        # Deleted again before its first check finished
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{service_id}", response_model=MonitoredEndpoint)
async def get_service(service_id: str, monitor: MonitorService = Depends(get_monitor)):
    try:
        return monitor.get_service(service_id)
    except NotFoundError:
        raise _not_found(service_id)


@router.put("/{service_id}", response_model=MonitoredEndpoint)
async def update_service(
    service_id: str,
    data: EndpointUpdate,
    monitor: MonitorService = Depends(get_monitor),
):
    """Edit a service. Status and check timestamps are kept."""
    try:
        return await monitor.update_service(service_id, data)
    except NotFoundError:
        raise _not_found(service_id)


@router.delete("/{service_id}")
async def delete_service(service_id: str, monitor: MonitorService = Depends(get_monitor)):
    """Delete a service and its check history."""
    try:
        monitor.delete_service(service_id)
    except NotFoundError:
        raise _not_found(service_id)
    return {"message": "Service deleted successfully"}


@router.post("/{service_id}/check", response_model=MonitoredEndpoint)
async def check_service(service_id: str, monitor: MonitorService = Depends(get_monitor)):
    """Check a service immediately."""
    try:
        return await monitor.run_check(service_id)
    except NotFoundError:
        raise _not_found(service_id)


@router.get("/{service_id}/statistics", response_model=ServiceStatistics)
async def get_statistics(service_id: str, monitor: MonitorService = Depends(get_monitor)):
    try:
        return monitor.get_statistics(service_id)
    except NotFoundError:
        raise _not_found(service_id)


@router.get("/{service_id}/history", response_model=HistoryLog)
async def get_history(service_id: str, monitor: MonitorService = Depends(get_monitor)):
    """Recent checks, oldest first. Empty if the service was never checked."""
    try:
        return monitor.get_history(service_id)
    except NotFoundError:
        raise _not_found(service_id)

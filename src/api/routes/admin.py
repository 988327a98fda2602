"""
Admin / observability endpoints
===============================

DELETE /api/v1/admin/clear-all-data -- wipe everything but the super admin
GET    /api/v1/admin/health         -- health check with realtime stats
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_current_user, get_fleet_service
from src.api.middleware import limiter
from src.api.schemas import ClearDataResponse, HealthResponse
from src.infrastructure.models import UserModel
from src.services.fleet import FleetService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.delete(
    "/clear-all-data",
    response_model=ClearDataResponse,
    summary="Delete all bookings, feedback, vehicles and non-super-admin users",
)
@limiter.limit("10/minute")
async def clear_all_data(
    request: Request,
    current_user: UserModel = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
):
    cleared = await service.clear_all_data(current_user)
    return ClearDataResponse(cleared=cleared)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(request: Request):
    hub = getattr(request.app.state, "hub", None)
    realtime = await hub.snapshot() if hub is not None else {}
    return HealthResponse(realtime=realtime)

"""
Driver endpoints
================

GET   /api/v1/drivers/available          -- drivers who can take a booking
PATCH /api/v1/drivers/{driver_id}/status -- go online / offline
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_current_user, get_fleet_service
from src.api.middleware import limiter
from src.api.schemas import DriverStatusRequest, UserResponse
from src.infrastructure.models import UserModel
from src.services.fleet import FleetService

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get(
    "/available",
    response_model=list[UserResponse],
    summary="List available drivers",
    description=(
        "Approved, active drivers that own at least one active vehicle and "
        "have no booking in Booked, Reached Pickup, Order Picked Up or "
        "In Transit."
    ),
)
@limiter.limit("100/minute")
async def available_drivers(
    request: Request,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.available_drivers()


@router.patch("/{driver_id}/status", response_model=UserResponse, summary="Set driver status")
@limiter.limit("100/minute")
async def set_driver_status(
    request: Request,
    driver_id: int,
    body: DriverStatusRequest,
    current_user: UserModel = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
):
    return await service.set_driver_active(current_user, driver_id, body.is_active)

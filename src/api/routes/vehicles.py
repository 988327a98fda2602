"""
Vehicle endpoints
=================

GET   /api/v1/vehicles                              -- all vehicles
GET   /api/v1/vehicles/active                       -- dispatchable vehicles
GET   /api/v1/vehicles/for-driver/{driver_id}       -- a driver's vehicles
POST  /api/v1/vehicles                              -- register a vehicle (admin)
PATCH /api/v1/vehicles/{vehicle_id}                 -- edit a vehicle
PATCH /api/v1/vehicles/by-driver/{driver_id}/active-all -- toggle all of a driver's vehicles
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_current_user, get_fleet_service, require_admin
from src.api.middleware import limiter
from src.api.schemas import (
    ActiveFlagRequest,
    VehicleCreateRequest,
    VehicleResponse,
    VehicleUpdateRequest,
    to_location,
)
from src.infrastructure.models import UserModel
from src.services.fleet import FleetService

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.get("", response_model=list[VehicleResponse], summary="List all vehicles")
@limiter.limit("100/minute")
async def list_vehicles(
    request: Request,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.list_vehicles()


@router.get(
    "/active",
    response_model=list[VehicleResponse],
    summary="Vehicles that can take a booking right now",
    description=(
        "Active vehicles whose driver is approved and active and which are "
        "not attached to a booking in progress."
    ),
)
@limiter.limit("100/minute")
async def active_vehicles(
    request: Request,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.available_vehicles()


@router.get(
    "/for-driver/{driver_id}",
    response_model=list[VehicleResponse],
    summary="List a driver's vehicles",
)
@limiter.limit("100/minute")
async def vehicles_for_driver(
    request: Request,
    driver_id: int,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.vehicles_for_driver(driver_id)


@router.post("", status_code=201, response_model=VehicleResponse, summary="Register a vehicle")
@limiter.limit("100/minute")
async def create_vehicle(
    request: Request,
    body: VehicleCreateRequest,
    admin: UserModel = Depends(require_admin),
    service: FleetService = Depends(get_fleet_service),
):
    return await service.create_vehicle(
        admin,
        vehicle_name=body.vehicle_name,
        number=body.number,
        type=body.type,
        capacity=body.capacity,
        driver_id=body.driver_id,
        active=body.active,
        location=to_location(body.location),
    )


@router.patch("/{vehicle_id}", response_model=VehicleResponse, summary="Edit a vehicle")
@limiter.limit("100/minute")
async def update_vehicle(
    request: Request,
    vehicle_id: int,
    body: VehicleUpdateRequest,
    current_user: UserModel = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
):
    changes = body.model_dump(exclude_unset=True)
    if "location" in changes:
        changes["location"] = to_location(body.location)
    return await service.update_vehicle(current_user, vehicle_id, changes)


@router.patch(
    "/by-driver/{driver_id}/active-all",
    response_model=list[VehicleResponse],
    summary="Activate or deactivate every vehicle of a driver",
)
@limiter.limit("100/minute")
async def set_driver_vehicles_active(
    request: Request,
    driver_id: int,
    body: ActiveFlagRequest,
    current_user: UserModel = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
):
    return await service.set_driver_vehicles_active(current_user, driver_id, body.active)

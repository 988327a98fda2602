"""
User and admin endpoints
========================

POST   /api/v1/users                -- sign up as a customer or driver
GET    /api/v1/users                -- list users (admin)
PUT    /api/v1/users/{id}/approve   -- approve a driver (admin)
GET    /api/v1/admins               -- list admins (super admin)
POST   /api/v1/admins               -- create an admin (super admin)
DELETE /api/v1/admins/{id}          -- delete an admin (super admin)
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_current_user, get_fleet_service
from src.api.middleware import limiter
from src.api.schemas import AdminCreateRequest, UserCreateRequest, UserResponse
from src.infrastructure.models import UserModel
from src.services.fleet import FleetService

router = APIRouter(tags=["users"])


@router.post("/users", status_code=201, response_model=UserResponse, summary="Sign up")
@limiter.limit("100/minute")
async def register(
    request: Request,
    body: UserCreateRequest,
    service: FleetService = Depends(get_fleet_service),
):
    return await service.register(
        email=body.email, name=body.name, role=body.role, vehicle_type=body.vehicle_type
    )


@router.get("/users", response_model=list[UserResponse], summary="List users")
@limiter.limit("100/minute")
async def list_users(
    request: Request,
    current_user: UserModel = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
):
    return await service.list_users(current_user)


@router.put("/users/{user_id}/approve", response_model=UserResponse, summary="Approve a driver")
@limiter.limit("100/minute")
async def approve_user(
    request: Request,
    user_id: int,
    current_user: UserModel = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
):
    return await service.approve_driver(current_user, user_id)


@router.get("/admins", response_model=list[UserResponse], summary="List admins")
@limiter.limit("100/minute")
async def list_admins(
    request: Request,
    current_user: UserModel = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
):
    return await service.list_admins(current_user)


@router.post("/admins", status_code=201, response_model=UserResponse, summary="Create an admin")
@limiter.limit("100/minute")
async def create_admin(
    request: Request,
    body: AdminCreateRequest,
    current_user: UserModel = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
):
    return await service.create_admin(current_user, email=body.email, name=body.name)


@router.delete("/admins/{admin_id}", status_code=204, summary="Delete an admin")
@limiter.limit("100/minute")
async def delete_admin(
    request: Request,
    admin_id: int,
    current_user: UserModel = Depends(get_current_user),
    service: FleetService = Depends(get_fleet_service),
):
    await service.delete_admin(current_user, admin_id)

"""
Booking endpoints
=================

POST /api/v1/bookings                       -- customer requests a delivery
GET  /api/v1/bookings                       -- every booking (admin)
GET  /api/v1/bookings/{id}                  -- one booking
GET  /api/v1/bookings/customer/{id}         -- a customer's bookings
GET  /api/v1/bookings/driver/{id}           -- a driver's bookings
POST /api/v1/bookings/{id}/assign           -- admin dispatches to a driver
POST /api/v1/bookings/{id}/deny             -- admin denies the request
POST /api/v1/bookings/{id}/cancel           -- admin cancels
POST /api/v1/bookings/{id}/respond          -- driver accepts / rejects
POST /api/v1/bookings/{id}/reached-pickup   -- driver at pickup, issues OTP
POST /api/v1/bookings/{id}/resend-otp       -- reissue the pickup OTP
POST /api/v1/bookings/{id}/verify-otp       -- confirm pickup with the OTP
POST /api/v1/bookings/{id}/start-transit    -- driver leaves pickup
POST /api/v1/bookings/{id}/mark-delivered   -- driver completes delivery
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status

from src.api.dependencies import (
    get_current_user,
    get_dispatch_service,
    require_admin,
    require_customer,
    require_driver,
)
from src.api.middleware import limiter
from src.api.schemas import (
    AssignDriverRequest,
    BookingCreateRequest,
    BookingResponse,
    DriverLocationRequest,
    DriverRespondRequest,
    OtpResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
    to_location,
)
from src.infrastructure.models import UserModel
from src.services.dispatch import DispatchService

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Request a delivery",
    responses={200: {"description": "An identical recent request already exists."}},
)
@limiter.limit("100/minute")
async def create_booking(
    request: Request,
    response: Response,
    body: BookingCreateRequest,
    current_user: UserModel = Depends(require_customer),
    service: DispatchService = Depends(get_dispatch_service),
):
    booking, created = await service.create_booking(
        customer_id=current_user.id,
        customer_name=body.customer_name or current_user.name,
        customer_address=body.customer_address,
        vehicle_id=body.vehicle_id,
        pickup_location=to_location(body.pickup_location),
        destination_location=to_location(body.destination_location),
        distance=body.distance,
        price=body.price,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return booking


@router.get("", response_model=list[BookingResponse], summary="List all bookings")
@limiter.limit("100/minute")
async def list_bookings(
    request: Request,
    _admin: UserModel = Depends(require_admin),
    service: DispatchService = Depends(get_dispatch_service),
):
    return await service.list_bookings()


@router.get(
    "/customer/{customer_id}",
    response_model=list[BookingResponse],
    summary="List a customer's bookings",
)
@limiter.limit("100/minute")
async def customer_bookings(
    request: Request,
    customer_id: int,
    _user: UserModel = Depends(get_current_user),
    service: DispatchService = Depends(get_dispatch_service),
):
    return await service.customer_bookings(customer_id)


@router.get(
    "/driver/{driver_id}",
    response_model=list[BookingResponse],
    summary="List a driver's bookings",
)
@limiter.limit("100/minute")
async def driver_bookings(
    request: Request,
    driver_id: int,
    _user: UserModel = Depends(get_current_user),
    service: DispatchService = Depends(get_dispatch_service),
):
    return await service.driver_bookings(driver_id)


@router.get("/{booking_id}", response_model=BookingResponse, summary="Get a booking")
@limiter.limit("100/minute")
async def get_booking(
    request: Request,
    booking_id: int,
    _user: UserModel = Depends(get_current_user),
    service: DispatchService = Depends(get_dispatch_service),
):
    return await service.get_booking(booking_id)


# ── Admin ─────────────────────────────────────────────────────────────


@router.post(
    "/{booking_id}/assign",
    response_model=BookingResponse,
    summary="Assign a driver and vehicle",
    description=(
        "Moves a Requested (or Rejected) booking to Pending.  The driver must "
        "be approved, active, own an active vehicle and have no booking in "
        "progress."
    ),
)
@limiter.limit("100/minute")
async def assign_driver(
    request: Request,
    booking_id: int,
    body: AssignDriverRequest,
    _admin: UserModel = Depends(require_admin),
    service: DispatchService = Depends(get_dispatch_service),
):
    return await service.assign_driver(
        booking_id,
        driver_id=body.driver_id,
        driver_name=body.driver_name,
        vehicle_id=body.vehicle_id,
        vehicle_name=body.vehicle_name,
        vehicle_type=body.vehicle_type,
    )


@router.post("/{booking_id}/deny", response_model=BookingResponse, summary="Deny a request")
@limiter.limit("100/minute")
async def deny_booking(
    request: Request,
    booking_id: int,
    _admin: UserModel = Depends(require_admin),
    service: DispatchService = Depends(get_dispatch_service),
):
    return await service.deny_booking(booking_id)


@router.post("/{booking_id}/cancel", response_model=BookingResponse, summary="Cancel a booking")
@limiter.limit("100/minute")
async def cancel_booking(
    request: Request,
    booking_id: int,
    _admin: UserModel = Depends(require_admin),
    service: DispatchService = Depends(get_dispatch_service),
):
    return await service.cancel_booking(booking_id)


# ── Driver ────────────────────────────────────────────────────────────


@router.post(
    "/{booking_id}/respond",
    response_model=BookingResponse,
    summary="Accept or reject an assignment",
)
@limiter.limit("100/minute")
async def driver_respond(
    request: Request,
    booking_id: int,
    body: DriverRespondRequest,
    driver: UserModel = Depends(require_driver),
    service: DispatchService = Depends(get_dispatch_service),
):
    return await service.driver_respond(booking_id, body.accept, driver_id=driver.id)


@router.post(
    "/{booking_id}/reached-pickup",
    response_model=OtpResponse,
    summary="Arrive at pickup and issue the pickup OTP",
)
@limiter.limit("100/minute")
async def reached_pickup(
    request: Request,
    booking_id: int,
    body: Optional[DriverLocationRequest] = None,
    driver: UserModel = Depends(require_driver),
    service: DispatchService = Depends(get_dispatch_service),
):
    location = to_location(body.driver_location) if body else None
    otp, booking = await service.reached_pickup(
        booking_id, driver_location=location, driver_id=driver.id
    )
    return OtpResponse(
        otp=otp,
        booking=BookingResponse.model_validate(booking),
        message="Reached pickup location. OTP sent to customer.",
    )


@router.post(
    "/{booking_id}/start-transit",
    response_model=BookingResponse,
    summary="Leave pickup with the order",
)
@limiter.limit("100/minute")
async def start_transit(
    request: Request,
    booking_id: int,
    body: Optional[DriverLocationRequest] = None,
    driver: UserModel = Depends(require_driver),
    service: DispatchService = Depends(get_dispatch_service),
):
    location = to_location(body.driver_location) if body else None
    return await service.start_transit(
        booking_id, driver_location=location, driver_id=driver.id
    )


@router.post(
    "/{booking_id}/mark-delivered",
    response_model=BookingResponse,
    summary="Complete the delivery",
)
@limiter.limit("100/minute")
async def mark_delivered(
    request: Request,
    booking_id: int,
    body: Optional[DriverLocationRequest] = None,
    driver: UserModel = Depends(require_driver),
    service: DispatchService = Depends(get_dispatch_service),
):
    location = to_location(body.driver_location) if body else None
    return await service.mark_delivered(
        booking_id, driver_location=location, driver_id=driver.id
    )


# ── OTP ───────────────────────────────────────────────────────────────


@router.post(
    "/{booking_id}/resend-otp",
    response_model=OtpResponse,
    summary="Reissue the pickup OTP",
)
@limiter.limit("100/minute")
async def resend_otp(
    request: Request,
    booking_id: int,
    current_user: UserModel = Depends(get_current_user),
    service: DispatchService = Depends(get_dispatch_service),
):
    otp, booking = await service.resend_otp(booking_id, actor=current_user)
    return OtpResponse(
        otp=otp,
        booking=BookingResponse.model_validate(booking),
        message="OTP resent successfully",
    )


@router.post(
    "/{booking_id}/verify-otp",
    response_model=VerifyOtpResponse,
    summary="Confirm pickup with the OTP",
    responses={400: {"description": "Invalid or expired OTP."}},
)
@limiter.limit("100/minute")
async def verify_otp(
    request: Request,
    booking_id: int,
    body: VerifyOtpRequest,
    current_user: UserModel = Depends(get_current_user),
    service: DispatchService = Depends(get_dispatch_service),
):
    booking = await service.verify_otp(booking_id, body.otp, actor=current_user)
    return VerifyOtpResponse(booking=BookingResponse.model_validate(booking))

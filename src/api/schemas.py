"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.domain.entities import Location
from src.domain.enums import BookingStatus, UserRole, VehicleType


class LocationSchema(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: Optional[str] = None

    model_config = {"from_attributes": True}

    def to_domain(self) -> Location:
        return Location(lat=self.lat, lng=self.lng, address=self.address)


def to_location(value: Optional[LocationSchema]) -> Optional[Location]:
    return value.to_domain() if value else None


# ── Requests ──────────────────────────────────────────────────────────


class BookingCreateRequest(BaseModel):
    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    vehicle_id: Optional[int] = None
    pickup_location: Optional[LocationSchema] = None
    destination_location: Optional[LocationSchema] = None
    distance: Optional[float] = Field(None, ge=0, description="Kilometres; computed if omitted.")
    price: Optional[float] = Field(None, ge=0, description="Computed from distance if omitted.")


class AssignDriverRequest(BaseModel):
    driver_id: int
    driver_name: Optional[str] = None
    vehicle_id: Optional[int] = None
    vehicle_name: Optional[str] = None
    vehicle_type: Optional[str] = None


class DriverRespondRequest(BaseModel):
    accept: bool


class DriverLocationRequest(BaseModel):
    driver_location: Optional[LocationSchema] = None


class VerifyOtpRequest(BaseModel):
    otp: str = Field(..., min_length=1, max_length=12)


class FeedbackCreateRequest(BaseModel):
    booking_id: int
    driver_id: Optional[int] = None
    customer_name: Optional[str] = None
    driver_name: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class FeedbackUpdateRequest(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class UserCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: str = Field(..., min_length=1, max_length=120)
    role: UserRole = UserRole.CUSTOMER
    vehicle_type: Optional[VehicleType] = None


class AdminCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: str = Field(..., min_length=1, max_length=120)


class DriverStatusRequest(BaseModel):
    is_active: bool


class VehicleCreateRequest(BaseModel):
    vehicle_name: str = Field(..., min_length=1, max_length=120)
    number: str = Field(..., min_length=1, max_length=32)
    type: VehicleType
    capacity: float = Field(..., gt=0)
    driver_id: Optional[int] = None
    active: bool = True
    location: Optional[LocationSchema] = None


class VehicleUpdateRequest(BaseModel):
    vehicle_name: Optional[str] = Field(None, min_length=1, max_length=120)
    number: Optional[str] = Field(None, min_length=1, max_length=32)
    type: Optional[VehicleType] = None
    capacity: Optional[float] = Field(None, gt=0)
    driver_id: Optional[int] = None
    active: Optional[bool] = None
    location: Optional[LocationSchema] = None


class ActiveFlagRequest(BaseModel):
    active: bool


# ── Responses ─────────────────────────────────────────────────────────


class BookingResponse(BaseModel):
    id: int
    customer_id: int
    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    driver_id: Optional[int] = None
    driver_name: Optional[str] = None
    vehicle_id: Optional[int] = None
    vehicle_name: Optional[str] = None
    vehicle_type: Optional[str] = None
    status: BookingStatus
    pickup_location: Optional[LocationSchema] = None
    destination_location: Optional[LocationSchema] = None
    distance: float
    price: float
    driver_location: Optional[LocationSchema] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OtpResponse(BaseModel):
    success: bool = True
    otp: str
    booking: BookingResponse
    message: str


class VerifyOtpResponse(BaseModel):
    success: bool = True
    booking: BookingResponse
    message: str = "OTP verified successfully. Order picked up!"


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    role: UserRole
    is_super_admin: bool
    approved: bool
    is_active: bool
    vehicle_type: Optional[VehicleType] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VehicleResponse(BaseModel):
    id: int
    driver_id: Optional[int] = None
    driver_name: Optional[str] = None
    vehicle_name: str
    number: str
    type: VehicleType
    capacity: float
    active: bool
    location: Optional[LocationSchema] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FeedbackResponse(BaseModel):
    id: int
    booking_id: int
    customer_id: int
    customer_name: Optional[str] = None
    driver_id: int
    driver_name: Optional[str] = None
    rating: int
    comment: str
    is_edited: bool
    edited_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DriverStats(BaseModel):
    averageRating: float
    totalRatings: int


class FeedbackWithStats(BaseModel):
    feedback: FeedbackResponse
    driverStats: DriverStats


class DriverFeedbackResponse(BaseModel):
    feedbacks: list[FeedbackResponse]
    stats: DriverStats


class DriverStatsRow(BaseModel):
    driverId: int
    driverName: Optional[str] = None
    averageRating: float
    totalRatings: int
    latestFeedback: Optional[datetime] = None


class ClearDataResponse(BaseModel):
    success: bool = True
    cleared: dict[str, Any]


class HealthResponse(BaseModel):
    status: str = "ok"
    realtime: dict[str, Any] = {}


class ErrorResponse(BaseModel):
    model_config = {"extra": "allow"}

    kind: str
    detail: str

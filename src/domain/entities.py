"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Booking``: every status change goes through
  ``transition_to`` which consults the state machine tables.
- ``Booking`` is the aggregate root; drivers and vehicles are referenced
  by id only, so their updates never touch a booking implicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .enums import Actor, BookingStatus
from .state_machine import Transition, check_transition


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float
    address: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["Location"]:
        if not data:
            return None
        return cls(
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            address=data.get("address"),
        )

    def to_dict(self) -> dict[str, Any]:
        doc: dict[str, Any] = {"lat": self.lat, "lng": self.lng}
        if self.address is not None:
            doc["address"] = self.address
        return doc


def _loc(location: Optional[Location]) -> Optional[dict[str, Any]]:
    return location.to_dict() if location else None


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Booking:
    id: Optional[int] = None
    customer_id: int = 0
    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    driver_id: Optional[int] = None
    driver_name: Optional[str] = None
    vehicle_id: Optional[int] = None
    vehicle_name: Optional[str] = None
    vehicle_type: Optional[str] = None
    status: BookingStatus = BookingStatus.REQUESTED
    pickup_location: Optional[Location] = None
    destination_location: Optional[Location] = None
    distance: float = 0.0
    price: float = 0.0
    pickup_otp: Optional[str] = None
    otp_generated_at: Optional[datetime] = None
    driver_location: Optional[Location] = None
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def transition_to(self, new_status: BookingStatus, actor: Actor) -> Transition:
        """Move to *new_status* if *actor* may do so, else raise."""
        check_transition(self.status, new_status, actor)
        transition = Transition(self.id, self.status, new_status, actor)
        self.status = new_status
        return transition

    def assign(
        self,
        *,
        driver_id: int,
        driver_name: Optional[str],
        vehicle_id: int,
        vehicle_name: Optional[str],
        vehicle_type: Optional[str],
    ) -> None:
        self.driver_id = driver_id
        self.driver_name = driver_name
        self.vehicle_id = vehicle_id
        self.vehicle_name = vehicle_name
        self.vehicle_type = vehicle_type

    def clear_assignment(self) -> None:
        self.driver_id = None
        self.driver_name = None
        self.vehicle_id = None
        self.vehicle_name = None
        self.vehicle_type = None

    def clear_otp(self) -> None:
        self.pickup_otp = None
        self.otp_generated_at = None

    def to_document(self, *, include_otp: bool = False) -> dict[str, Any]:
        """camelCase view used in real-time payloads."""
        doc = {
            "id": str(self.id),
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "customerAddress": self.customer_address,
            "driverId": self.driver_id,
            "driverName": self.driver_name,
            "vehicleId": self.vehicle_id,
            "vehicleName": self.vehicle_name,
            "vehicleType": self.vehicle_type,
            "status": self.status.value,
            "pickupLocation": _loc(self.pickup_location),
            "destinationLocation": _loc(self.destination_location),
            "distance": self.distance,
            "price": self.price,
            "driverLocation": _loc(self.driver_location),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_otp:
            doc["otp"] = self.pickup_otp
        return doc

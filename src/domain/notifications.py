"""
Notification routing
====================

Maps a booking transition (or one of the few non-transition events) to
the ``(channel, event, payload)`` triples that should be emitted.

Channels
--------
* ``customer:<id>`` -- one customer's sessions
* ``driver:<id>``   -- one driver's sessions
* ``broadcast``     -- every connected session (admin dashboards, observers)

Routing is pure: nothing here talks to a socket.  Delivery is the
``Notifier``'s job and is at-most-once.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .entities import Booking, Location
from .enums import BookingStatus
from .state_machine import Transition

BROADCAST = "broadcast"

_S = BookingStatus


@dataclass(frozen=True)
class Notification:
    channel: str
    event: str
    payload: dict[str, Any]


def customer_channel(customer_id: Any) -> str:
    return f"customer:{customer_id}"


def driver_channel(driver_id: Any) -> str:
    return f"driver:{driver_id}"


def _loc(location: Optional[Location]) -> Optional[dict[str, Any]]:
    return location.to_dict() if location else None


def status_update(booking: Booking) -> Notification:
    """Catch-all dashboard refresh fired on every status change."""
    return Notification(
        BROADCAST,
        "booking_status_updated",
        {
            "id": str(booking.id),
            "status": booking.status.value,
            "customerId": booking.customer_id,
            "driverId": booking.driver_id,
            "driverName": booking.driver_name,
            "vehicleId": booking.vehicle_id,
        },
    )


def assignment_detail(booking: Booking) -> dict[str, Any]:
    return {
        "id": str(booking.id),
        "status": booking.status.value,
        "customerId": booking.customer_id,
        "customerName": booking.customer_name,
        "customerAddress": booking.customer_address,
        "driverId": booking.driver_id,
        "driverName": booking.driver_name,
        "vehicleId": booking.vehicle_id,
        "vehicleName": booking.vehicle_name,
        "vehicleType": booking.vehicle_type,
        "distance": booking.distance,
        "price": booking.price,
        "pickupLocation": _loc(booking.pickup_location),
        "destinationLocation": _loc(booking.destination_location),
    }


def otp_payload(booking: Booking, otp: str) -> dict[str, Any]:
    return {
        "id": str(booking.id),
        "otp": otp,
        "status": booking.status.value,
        "driverLocation": _loc(booking.driver_location),
    }


# ── Per-target routes ─────────────────────────────────────────────────


def _assigned(booking: Booking, otp: Optional[str]) -> list[Notification]:
    detail = assignment_detail(booking)
    channel = driver_channel(booking.driver_id)
    return [
        Notification(channel, "booking_assigned", detail),
        Notification(channel, "booking_request", dict(detail)),
        status_update(booking),
    ]


def _denied(booking: Booking, otp: Optional[str]) -> list[Notification]:
    return [
        Notification(
            customer_channel(booking.customer_id),
            "booking_denied",
            {"id": str(booking.id)},
        ),
        status_update(booking),
    ]


def _confirmed(booking: Booking, otp: Optional[str]) -> list[Notification]:
    payload = {
        "id": str(booking.id),
        "status": booking.status.value,
        "driverId": booking.driver_id,
        "driverName": booking.driver_name,
        "vehicleId": booking.vehicle_id,
        "vehicleName": booking.vehicle_name,
        "vehicleType": booking.vehicle_type,
        "customerName": booking.customer_name,
        "distance": booking.distance,
        "price": booking.price,
        "pickupLocation": _loc(booking.pickup_location),
        "destinationLocation": _loc(booking.destination_location),
    }
    if otp:
        payload["otp"] = otp
    return [
        Notification(customer_channel(booking.customer_id), "booking_confirmed", payload),
        status_update(booking),
    ]


def _rejected(booking: Booking, otp: Optional[str]) -> list[Notification]:
    # assignment is already cleared, so this is broadcast only
    return [status_update(booking)]


def _reached_pickup(booking: Booking, otp: Optional[str]) -> list[Notification]:
    notes = []
    if otp:
        notes.append(
            Notification(
                customer_channel(booking.customer_id),
                "pickup_otp_generated",
                otp_payload(booking, otp),
            )
        )
    notes.append(
        Notification(
            driver_channel(booking.driver_id),
            "pickup_reached",
            {"id": str(booking.id), "status": booking.status.value},
        )
    )
    notes.append(status_update(booking))
    return notes


def _picked_up(booking: Booking, otp: Optional[str]) -> list[Notification]:
    payload = {
        "id": str(booking.id),
        "status": booking.status.value,
        "pickupLocation": _loc(booking.pickup_location),
        "destinationLocation": _loc(booking.destination_location),
        "driverLocation": _loc(booking.driver_location),
    }
    return [
        Notification(customer_channel(booking.customer_id), "pickup_confirmed", payload),
        Notification(driver_channel(booking.driver_id), "pickup_confirmed", dict(payload)),
        status_update(booking),
    ]


def _in_transit(booking: Booking, otp: Optional[str]) -> list[Notification]:
    return [status_update(booking)]


def _delivered(booking: Booking, otp: Optional[str]) -> list[Notification]:
    payload = {
        "id": str(booking.id),
        "status": booking.status.value,
        "driverLocation": _loc(booking.driver_location),
        "driverId": booking.driver_id,
        "driverName": booking.driver_name,
    }
    return [
        Notification(customer_channel(booking.customer_id), "delivery_completed", payload),
        Notification(driver_channel(booking.driver_id), "delivery_completed", dict(payload)),
        Notification(BROADCAST, "delivery_completed", dict(payload)),
        status_update(booking),
    ]


def _cancelled(booking: Booking, otp: Optional[str]) -> list[Notification]:
    return [status_update(booking)]


_ROUTES: dict[BookingStatus, Callable[[Booking, Optional[str]], list[Notification]]] = {
    _S.PENDING: _assigned,
    _S.DENIED: _denied,
    _S.BOOKED: _confirmed,
    _S.REJECTED: _rejected,
    _S.REACHED_PICKUP: _reached_pickup,
    _S.ORDER_PICKED_UP: _picked_up,
    _S.IN_TRANSIT: _in_transit,
    _S.DELIVERED: _delivered,
    _S.CANCELLED: _cancelled,
}


def route_transition(
    transition: Transition, booking: Booking, otp: Optional[str] = None
) -> list[Notification]:
    """Notifications for a transition that has already been persisted.

    *otp* is only passed when the transition freshly generated one.
    """
    route = _ROUTES.get(transition.target)
    if route is None:
        return [status_update(booking)]
    return route(booking, otp)


# ── Non-transition events ─────────────────────────────────────────────


def booking_created(booking: Booking) -> list[Notification]:
    return [Notification(BROADCAST, "booking_created", booking.to_document())]


def otp_resent(booking: Booking, otp: str) -> list[Notification]:
    payload = otp_payload(booking, otp)
    notes = [
        Notification(customer_channel(booking.customer_id), "pickup_otp_generated", payload)
    ]
    if booking.driver_id is not None:
        notes.append(
            Notification(
                driver_channel(booking.driver_id), "pickup_otp_generated", dict(payload)
            )
        )
    return notes


def driver_location(booking: Booking, payload: dict[str, Any]) -> list[Notification]:
    """Relay a driver's location ping verbatim to the booking's customer."""
    return [
        Notification(
            customer_channel(booking.customer_id), "driver_location_update", payload
        )
    ]


def feedback_event(
    event: str, driver_id: Any, feedback: dict[str, Any], stats: dict[str, Any]
) -> list[Notification]:
    return [
        Notification(
            driver_channel(driver_id),
            event,
            {"feedback": feedback, "driverStats": stats},
        )
    ]


def vehicle_event(event: str, vehicle: dict[str, Any]) -> list[Notification]:
    return [Notification(BROADCAST, event, vehicle)]


def driver_status_event(driver_id: Any, is_active: bool, timestamp: str) -> list[Notification]:
    return [
        Notification(
            BROADCAST,
            "driver_status_updated",
            {"driverId": driver_id, "isActive": is_active, "timestamp": timestamp},
        )
    ]

"""
Dispatch service
================

Orchestrates one booking transition per call:

1. load the booking by id               (``NotFoundError``)
2. check the state machine              (``StateConflictError``)
3. apply side effects in memory         (OTP, assignment, driver location)
4. conditional update on ``version``    (``StateConflictError`` on a lost race)
5. commit, then publish notifications   (best-effort, never raises)

Nothing is published unless step 5's commit succeeded, and a failed
precondition leaves the stored row untouched.

The notifier is injected so tests can substitute a recording fake.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain import notifications as routes
from src.domain.availability import is_driver_available, is_vehicle_available
from src.domain.clock import utcnow
from src.domain.distance import route_km
from src.domain.entities import Booking, Location
from src.domain.enums import (
    OTP_RESEND_STATUSES,
    TRACKABLE_STATUSES,
    Actor,
    BookingStatus,
    UserRole,
)
from src.domain.errors import (
    NotFoundError,
    OtpExpiredError,
    OtpInvalidError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from src.domain.notifications import Notification
from src.domain.otp import generate_otp, verify_otp as check_otp
from src.domain.pricing import PricingEngine
from src.domain.state_machine import Transition, check_transition
from src.infrastructure.event_bus import Notifier
from src.infrastructure.repositories import (
    BookingRepository,
    UserRepository,
    VehicleRepository,
)

logger = logging.getLogger(__name__)

_S = BookingStatus


class DispatchService:
    def __init__(
        self,
        session: AsyncSession,
        notifier: Notifier,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.notifier = notifier
        self.clock = clock
        self.bookings = BookingRepository(session)
        self.users = UserRepository(session)
        self.vehicles = VehicleRepository(session)
        self.pricing = PricingEngine(settings.rate_per_km)
        self.otp_ttl = timedelta(minutes=settings.otp_ttl_minutes)
        self.duplicate_window = timedelta(minutes=settings.duplicate_window_minutes)

    # ── Helpers ───────────────────────────────────────────────────────

    async def _load(self, booking_id: int) -> Booking:
        booking = await self.bookings.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    @staticmethod
    def _ensure_driver(booking: Booking, driver_id: Optional[int]) -> None:
        if driver_id is not None and booking.driver_id != driver_id:
            raise StateConflictError(
                f"Booking {booking.id} is not addressed to driver {driver_id}",
                status=booking.status.value,
            )

    @staticmethod
    def _ensure_participant(booking: Booking, actor: Any) -> None:
        if actor is None:
            return
        role = UserRole(actor.role)
        if role == UserRole.ADMIN:
            return
        if role == UserRole.CUSTOMER and booking.customer_id == actor.id:
            return
        if role == UserRole.DRIVER and booking.driver_id == actor.id:
            return
        raise PermissionDeniedError(f"User {actor.id} is not a party to booking {booking.id}")

    async def _commit(
        self, booking: Booking, expected_version: int, transition: Optional[Transition]
    ) -> Booking:
        await self.bookings.save_transition(booking, expected_version)
        await self.session.commit()
        if transition is not None:
            logger.info(
                "Booking %s: %s -> %s by %s",
                booking.id,
                transition.source.value if transition.source else None,
                transition.target.value,
                transition.actor.value,
            )
        return booking

    async def _publish(self, notes: list[Notification]) -> None:
        try:
            await self.notifier.publish(notes)
        except Exception:
            logger.warning("Notification publish failed", exc_info=True)

    # ── Create ────────────────────────────────────────────────────────

    async def create_booking(
        self,
        *,
        customer_id: int,
        pickup_location: Optional[Location],
        destination_location: Optional[Location],
        customer_name: Optional[str] = None,
        customer_address: Optional[str] = None,
        vehicle_id: Optional[int] = None,
        distance: Optional[float] = None,
        price: Optional[float] = None,
    ) -> tuple[Booking, bool]:
        """Create a Requested booking.  Returns ``(booking, created)``.

        A Requested booking for the same customer and vehicle created within
        the duplicate window is returned as-is with ``created=False``.
        """
        if pickup_location is None or destination_location is None:
            raise ValidationError("pickupLocation and destinationLocation are required")
        if distance is not None and distance < 0:
            raise ValidationError("distance must be non-negative")
        if price is not None and price < 0:
            raise ValidationError("price must be non-negative")

        since = self.clock() - self.duplicate_window
        existing = await self.bookings.find_recent_duplicate(customer_id, vehicle_id, since)
        if existing is not None:
            logger.info("Duplicate request; returning booking %s", existing.id)
            return existing, False

        vehicle_name = vehicle_type = None
        if vehicle_id is not None:
            vehicle = await self.vehicles.get_by_id(vehicle_id)
            if vehicle is None:
                raise NotFoundError(f"Vehicle {vehicle_id} not found")
            vehicle_name = vehicle.vehicle_name
            vehicle_type = vehicle.type.value if vehicle.type else None

        if distance is None:
            distance = route_km(pickup_location, destination_location)
        if price is None:
            price = self.pricing.quote(distance)

        booking = await self.bookings.create(
            Booking(
                customer_id=customer_id,
                customer_name=customer_name,
                customer_address=customer_address,
                vehicle_id=vehicle_id,
                vehicle_name=vehicle_name,
                vehicle_type=vehicle_type,
                status=_S.REQUESTED,
                pickup_location=pickup_location,
                destination_location=destination_location,
                distance=distance,
                price=price,
            )
        )
        await self.session.commit()
        logger.info("Booking %s requested by customer %s", booking.id, customer_id)
        await self._publish(routes.booking_created(booking))
        return booking, True

    # ── Admin ─────────────────────────────────────────────────────────

    async def _resolve_vehicle(
        self, booking: Booking, driver_id: int, vehicle_id: Optional[int]
    ):
        """Explicit vehicle, else the booking's own if this driver may use it,
        else the driver's first active vehicle."""
        if vehicle_id is not None:
            vehicle = await self.vehicles.get_by_id(vehicle_id)
            if vehicle is None:
                raise NotFoundError(f"Vehicle {vehicle_id} not found")
            if vehicle.driver_id not in (None, driver_id):
                raise ValidationError(f"Vehicle {vehicle.id} belongs to another driver")
            return vehicle

        if booking.vehicle_id is not None:
            vehicle = await self.vehicles.get_by_id(booking.vehicle_id)
            if vehicle is not None and vehicle.driver_id in (None, driver_id):
                return vehicle

        for vehicle in await self.vehicles.for_driver(driver_id):
            if vehicle.active:
                return vehicle
        raise ValidationError(f"No vehicle could be resolved for driver {driver_id}")

    async def assign_driver(
        self,
        booking_id: int,
        *,
        driver_id: int,
        driver_name: Optional[str] = None,
        vehicle_id: Optional[int] = None,
        vehicle_name: Optional[str] = None,
        vehicle_type: Optional[str] = None,
    ) -> Booking:
        """Dispatch (or re-dispatch after a rejection) to an available driver."""
        booking = await self._load(booking_id)
        expected = booking.version
        check_transition(booking.status, _S.PENDING, Actor.ADMIN)

        driver = await self.users.get_by_id(driver_id)
        if driver is None or UserRole(driver.role) != UserRole.DRIVER:
            raise NotFoundError(f"Driver {driver_id} not found")
        if not driver.approved:
            raise StateConflictError(f"Driver {driver_id} is not approved")

        vehicle = await self._resolve_vehicle(booking, driver_id, vehicle_id)
        own_vehicles = await self.vehicles.for_driver(driver_id)
        driver_busy = await self.bookings.get_busy_for_driver(driver_id)
        if not is_driver_available(driver, own_vehicles, driver_busy):
            raise StateConflictError(f"Driver {driver_id} is not available")
        if not is_vehicle_available(vehicle, await self.bookings.get_busy(), driver):
            raise StateConflictError(f"Vehicle {vehicle.id} is not available")

        transition = booking.transition_to(_S.PENDING, Actor.ADMIN)
        booking.assign(
            driver_id=driver.id,
            driver_name=driver_name or driver.name,
            vehicle_id=vehicle.id,
            vehicle_name=vehicle_name or vehicle.vehicle_name,
            vehicle_type=vehicle_type or (vehicle.type.value if vehicle.type else None),
        )
        await self._commit(booking, expected, transition)
        await self._publish(routes.route_transition(transition, booking))
        return booking

    async def deny_booking(self, booking_id: int) -> Booking:
        """Admin rejects the request outright (Denied is terminal)."""
        booking = await self._load(booking_id)
        expected = booking.version
        transition = booking.transition_to(_S.DENIED, Actor.ADMIN)
        await self._commit(booking, expected, transition)
        await self._publish(routes.route_transition(transition, booking))
        return booking

    async def cancel_booking(self, booking_id: int) -> Booking:
        booking = await self._load(booking_id)
        expected = booking.version
        transition = booking.transition_to(_S.CANCELLED, Actor.ADMIN)
        await self._commit(booking, expected, transition)
        await self._publish(routes.route_transition(transition, booking))
        return booking

    # ── Driver ────────────────────────────────────────────────────────

    async def driver_respond(
        self, booking_id: int, accept: bool, driver_id: Optional[int] = None
    ) -> Booking:
        booking = await self._load(booking_id)
        expected = booking.version
        self._ensure_driver(booking, driver_id)

        fresh_otp = None
        if accept:
            transition = booking.transition_to(_S.BOOKED, Actor.DRIVER)
            if not booking.pickup_otp:
                fresh_otp = generate_otp(booking, self.clock())
        else:
            transition = booking.transition_to(_S.REJECTED, Actor.DRIVER)
            booking.clear_assignment()
            booking.clear_otp()

        await self._commit(booking, expected, transition)
        await self._publish(routes.route_transition(transition, booking, fresh_otp))
        return booking

    async def reached_pickup(
        self,
        booking_id: int,
        driver_location: Optional[Location] = None,
        driver_id: Optional[int] = None,
    ) -> tuple[str, Booking]:
        booking = await self._load(booking_id)
        expected = booking.version
        self._ensure_driver(booking, driver_id)

        transition = booking.transition_to(_S.REACHED_PICKUP, Actor.DRIVER)
        otp = generate_otp(booking, self.clock())
        if driver_location is not None:
            booking.driver_location = driver_location

        await self._commit(booking, expected, transition)
        await self._publish(routes.route_transition(transition, booking, otp))
        return otp, booking

    async def start_transit(
        self,
        booking_id: int,
        driver_location: Optional[Location] = None,
        driver_id: Optional[int] = None,
    ) -> Booking:
        booking = await self._load(booking_id)
        expected = booking.version
        self._ensure_driver(booking, driver_id)

        transition = booking.transition_to(_S.IN_TRANSIT, Actor.DRIVER)
        if driver_location is not None:
            booking.driver_location = driver_location

        await self._commit(booking, expected, transition)
        await self._publish(routes.route_transition(transition, booking))
        return booking

    async def mark_delivered(
        self,
        booking_id: int,
        driver_location: Optional[Location] = None,
        driver_id: Optional[int] = None,
    ) -> Booking:
        booking = await self._load(booking_id)
        expected = booking.version
        self._ensure_driver(booking, driver_id)

        transition = booking.transition_to(_S.DELIVERED, Actor.DRIVER)
        if driver_location is not None:
            booking.driver_location = driver_location

        await self._commit(booking, expected, transition)
        await self._publish(routes.route_transition(transition, booking))
        return booking

    # ── OTP ───────────────────────────────────────────────────────────

    async def resend_otp(self, booking_id: int, actor: Any = None) -> tuple[str, Booking]:
        """Overwrite the pickup code without changing status."""
        booking = await self._load(booking_id)
        expected = booking.version
        self._ensure_participant(booking, actor)
        if booking.status not in OTP_RESEND_STATUSES:
            raise StateConflictError(
                "Cannot resend OTP for this booking status",
                status=booking.status.value,
            )

        otp = generate_otp(booking, self.clock())
        await self._commit(booking, expected, None)
        logger.info("Booking %s: pickup OTP reissued", booking.id)
        await self._publish(routes.otp_resent(booking, otp))
        return otp, booking

    async def verify_otp(
        self, booking_id: int, submitted: Optional[str], actor: Any = None
    ) -> Booking:
        booking = await self._load(booking_id)
        expected = booking.version
        self._ensure_participant(booking, actor)
        if not submitted or not str(submitted).strip():
            raise ValidationError("otp is required")

        # status precondition before the code check
        check_transition(booking.status, _S.ORDER_PICKED_UP, Actor.SYSTEM)

        check = check_otp(booking, submitted, self.clock(), self.otp_ttl)
        if not check.valid:
            if check.expired:
                raise OtpExpiredError()
            raise OtpInvalidError()

        transition = booking.transition_to(_S.ORDER_PICKED_UP, Actor.SYSTEM)
        booking.clear_otp()
        await self._commit(booking, expected, transition)
        await self._publish(routes.route_transition(transition, booking))
        return booking

    # ── Tracking ──────────────────────────────────────────────────────

    async def relay_driver_location(
        self, driver_id: int, payload: dict[str, Any]
    ) -> Optional[Booking]:
        """Forward a driver's location ping to the booking's customer.

        The ping is relayed verbatim and not persisted, so it never competes
        with lifecycle writes for the booking version.
        """
        raw_id = payload.get("bookingId")
        try:
            booking_id = int(raw_id)
        except (TypeError, ValueError):
            raise ValidationError("bookingId is required")
        booking = await self._load(booking_id)
        self._ensure_driver(booking, driver_id)
        if booking.status not in TRACKABLE_STATUSES:
            raise StateConflictError(
                "Booking is not in an active delivery", status=booking.status.value
            )
        await self._publish(routes.driver_location(booking, payload))
        return booking

    # ── Reads ─────────────────────────────────────────────────────────

    async def get_booking(self, booking_id: int) -> Booking:
        return await self._load(booking_id)

    async def list_bookings(self) -> list[Booking]:
        return await self.bookings.list_all()

    async def customer_bookings(self, customer_id: int) -> list[Booking]:
        return await self.bookings.for_customer(customer_id)

    async def driver_bookings(self, driver_id: int) -> list[Booking]:
        return await self.bookings.for_driver(driver_id)

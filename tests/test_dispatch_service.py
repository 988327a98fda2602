"""
Integration tests for the dispatch service against SQLite.

Covers the full delivery lifecycle, driver rejection and reassignment,
OTP expiry and reissue, duplicate suppression, and the rule that a
failed operation neither writes nor notifies.
"""

import pytest

from src.domain.entities import Location
from src.domain.enums import BookingStatus as S
from src.domain.errors import (
    NotFoundError,
    OtpExpiredError,
    OtpInvalidError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from src.domain.notifications import BROADCAST
from src.services.dispatch import DispatchService
from src.services.fleet import FleetService

ORIGIN = Location(0.0, 0.0, "Origin")
ONE_DEGREE_EAST = Location(0.0, 1.0, "One degree east")


@pytest.fixture
def service(db_session, notifier, clock):
    return DispatchService(db_session, notifier, clock)


async def _request(service, people, **kwargs):
    booking, _ = await service.create_booking(
        customer_id=people["customer"].id,
        customer_name="Asha",
        pickup_location=kwargs.pop("pickup", ORIGIN),
        destination_location=kwargs.pop("destination", ONE_DEGREE_EAST),
        **kwargs,
    )
    return booking


async def _booked(service, people):
    booking = await _request(service, people)
    driver = people["driver"]
    await service.assign_driver(booking.id, driver_id=driver.id)
    return await service.driver_respond(booking.id, True, driver_id=driver.id)


def _pairs(notifier):
    return [(n.channel, n.event) for n in notifier.sent]


# ── Lifecycle ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_full_delivery_lifecycle(service, notifier, people, db_session):
    customer, driver, vehicle = people["customer"], people["driver"], people["vehicle"]

    booking, created = await service.create_booking(
        customer_id=customer.id,
        pickup_location=ORIGIN,
        destination_location=ONE_DEGREE_EAST,
    )
    assert created
    assert booking.status == S.REQUESTED
    assert booking.distance == 111.2
    assert booking.price == 1112.0
    assert (BROADCAST, "booking_created") in _pairs(notifier)

    booking = await service.assign_driver(booking.id, driver_id=driver.id, vehicle_id=vehicle.id)
    assert booking.status == S.PENDING
    assert booking.driver_id == driver.id
    assert booking.vehicle_id == vehicle.id
    assert (f"driver:{driver.id}", "booking_request") in _pairs(notifier)

    notifier.clear()
    booking = await service.driver_respond(booking.id, True, driver_id=driver.id)
    first_otp = booking.pickup_otp
    assert booking.status == S.BOOKED
    assert first_otp and len(first_otp) == 6
    confirmed = [n for n in notifier.sent if n.event == "booking_confirmed"]
    assert confirmed[0].channel == f"customer:{customer.id}"
    assert confirmed[0].payload["otp"] == first_otp

    fleet = FleetService(db_session, notifier)
    assert driver.id not in [d.id for d in await fleet.available_drivers()]

    second_otp, booking = await service.reached_pickup(booking.id, driver_id=driver.id)
    assert booking.status == S.REACHED_PICKUP
    assert booking.pickup_otp == second_otp
    if second_otp != first_otp:
        with pytest.raises(OtpInvalidError):
            await service.verify_otp(booking.id, first_otp)

    booking = await service.verify_otp(booking.id, second_otp)
    assert booking.status == S.ORDER_PICKED_UP
    assert booking.pickup_otp is None
    assert booking.otp_generated_at is None

    booking = await service.mark_delivered(booking.id, driver_id=driver.id)
    assert booking.status == S.DELIVERED
    assert driver.id in [d.id for d in await fleet.available_drivers()]


@pytest.mark.asyncio
async def test_version_increments_on_every_write(service, people):
    booking = await _request(service, people)
    assert booking.version == 1
    booking = await service.assign_driver(booking.id, driver_id=people["driver"].id)
    assert booking.version == 2
    stored = await service.get_booking(booking.id)
    assert stored.version == 2


@pytest.mark.asyncio
async def test_start_transit_then_deliver(service, people):
    booking = await _booked(service, people)
    driver_id = people["driver"].id
    otp, booking = await service.reached_pickup(booking.id, driver_id=driver_id)
    await service.verify_otp(booking.id, otp)
    here = Location(0.0, 0.5)
    booking = await service.start_transit(booking.id, driver_location=here, driver_id=driver_id)
    assert booking.status == S.IN_TRANSIT
    assert (await service.get_booking(booking.id)).driver_location == here
    booking = await service.mark_delivered(booking.id, driver_id=driver_id)
    assert booking.status == S.DELIVERED


# ── Rejection and reassignment ────────────────────────────────────────


@pytest.mark.asyncio
async def test_reject_then_reassign(service, notifier, people):
    driver, driver2 = people["driver"], people["driver2"]
    booking = await _request(service, people)
    await service.assign_driver(booking.id, driver_id=driver.id)

    notifier.clear()
    booking = await service.driver_respond(booking.id, False, driver_id=driver.id)
    assert booking.status == S.REJECTED
    assert booking.driver_id is None
    assert booking.vehicle_id is None
    assert _pairs(notifier) == [(BROADCAST, "booking_status_updated")]

    booking = await service.assign_driver(booking.id, driver_id=driver2.id)
    assert booking.status == S.PENDING
    assert booking.driver_id == driver2.id
    assert booking.vehicle_id == people["vehicle2"].id


@pytest.mark.asyncio
async def test_driver_cannot_answer_someone_elses_booking(service, notifier, people):
    booking = await _request(service, people)
    await service.assign_driver(booking.id, driver_id=people["driver"].id)
    notifier.clear()
    with pytest.raises(StateConflictError):
        await service.driver_respond(booking.id, True, driver_id=people["driver2"].id)
    assert notifier.sent == []
    assert (await service.get_booking(booking.id)).status == S.PENDING


# ── Assignment preconditions ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_cannot_assign_unapproved_driver(service, people):
    booking = await _request(service, people)
    with pytest.raises(StateConflictError):
        await service.assign_driver(booking.id, driver_id=people["unapproved"].id)


@pytest.mark.asyncio
async def test_cannot_assign_unknown_driver(service, people):
    booking = await _request(service, people)
    with pytest.raises(NotFoundError):
        await service.assign_driver(booking.id, driver_id=9999)
    with pytest.raises(NotFoundError):
        await service.assign_driver(booking.id, driver_id=people["customer"].id)


@pytest.mark.asyncio
async def test_cannot_assign_busy_driver(service, people):
    await _booked(service, people)
    second = await _request(service, people, vehicle_id=people["vehicle2"].id)
    with pytest.raises(StateConflictError):
        await service.assign_driver(second.id, driver_id=people["driver"].id)


@pytest.mark.asyncio
async def test_cannot_assign_inactive_driver(service, people, db_session):
    people["driver"].is_active = False
    await db_session.commit()
    booking = await _request(service, people)
    with pytest.raises(StateConflictError):
        await service.assign_driver(booking.id, driver_id=people["driver"].id)


@pytest.mark.asyncio
async def test_cannot_assign_with_another_drivers_vehicle(service, people):
    booking = await _request(service, people)
    with pytest.raises(ValidationError):
        await service.assign_driver(
            booking.id, driver_id=people["driver"].id, vehicle_id=people["vehicle2"].id
        )


# ── Failed operations do not write or notify ──────────────────────────


@pytest.mark.asyncio
async def test_illegal_transition_is_silent(service, notifier, people):
    booking = await _request(service, people)
    await service.assign_driver(booking.id, driver_id=people["driver"].id)
    notifier.clear()
    with pytest.raises(StateConflictError) as exc:
        await service.deny_booking(booking.id)
    assert exc.value.extra["status"] == "Pending"
    assert notifier.sent == []
    stored = await service.get_booking(booking.id)
    assert stored.status == S.PENDING
    assert stored.version == 2


@pytest.mark.asyncio
async def test_terminal_booking_accepts_nothing(service, people):
    booking = await _request(service, people)
    await service.cancel_booking(booking.id)
    with pytest.raises(StateConflictError):
        await service.cancel_booking(booking.id)
    with pytest.raises(StateConflictError):
        await service.assign_driver(booking.id, driver_id=people["driver"].id)


@pytest.mark.asyncio
async def test_unknown_booking(service):
    with pytest.raises(NotFoundError):
        await service.get_booking(12345)
    with pytest.raises(NotFoundError):
        await service.cancel_booking(12345)


@pytest.mark.asyncio
async def test_missing_locations_rejected(service, people):
    with pytest.raises(ValidationError):
        await service.create_booking(
            customer_id=people["customer"].id,
            pickup_location=None,
            destination_location=ONE_DEGREE_EAST,
        )
    assert await service.list_bookings() == []


# ── Duplicate suppression ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_duplicate_request_returns_same_booking(service, people):
    first, created = await service.create_booking(
        customer_id=people["customer"].id,
        pickup_location=ORIGIN,
        destination_location=ONE_DEGREE_EAST,
    )
    second, created_again = await service.create_booking(
        customer_id=people["customer"].id,
        pickup_location=ORIGIN,
        destination_location=ONE_DEGREE_EAST,
    )
    assert created and not created_again
    assert first.id == second.id
    assert len(await service.customer_bookings(people["customer"].id)) == 1


@pytest.mark.asyncio
async def test_different_vehicle_is_not_a_duplicate(service, people):
    first = await _request(service, people)
    second = await _request(service, people, vehicle_id=people["vehicle"].id)
    assert first.id != second.id
    assert second.vehicle_name == "Ace"


@pytest.mark.asyncio
async def test_duplicate_window_expires(service, people, clock):
    first = await _request(service, people)
    clock.advance(minutes=6)
    second = await _request(service, people)
    assert first.id != second.id


# ── OTP ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_expired_otp_then_resend(service, people, clock, notifier):
    booking = await _booked(service, people)
    otp, booking = await service.reached_pickup(booking.id, driver_id=people["driver"].id)

    clock.advance(minutes=31)
    with pytest.raises(OtpExpiredError) as exc:
        await service.verify_otp(booking.id, otp)
    assert exc.value.to_dict()["isExpired"] is True
    assert (await service.get_booking(booking.id)).status == S.REACHED_PICKUP

    notifier.clear()
    fresh, booking = await service.resend_otp(booking.id)
    assert booking.status == S.REACHED_PICKUP
    assert (f"customer:{people['customer'].id}", "pickup_otp_generated") in _pairs(notifier)

    booking = await service.verify_otp(booking.id, fresh)
    assert booking.status == S.ORDER_PICKED_UP


@pytest.mark.asyncio
async def test_otp_valid_at_exactly_thirty_minutes(service, people, clock):
    booking = await _booked(service, people)
    otp, booking = await service.reached_pickup(booking.id, driver_id=people["driver"].id)
    clock.advance(minutes=30)
    booking = await service.verify_otp(booking.id, otp)
    assert booking.status == S.ORDER_PICKED_UP


@pytest.mark.asyncio
async def test_wrong_otp_is_not_expired(service, people):
    booking = await _booked(service, people)
    otp, booking = await service.reached_pickup(booking.id, driver_id=people["driver"].id)
    wrong = "000000" if otp != "000000" else "999999"
    with pytest.raises(OtpInvalidError) as exc:
        await service.verify_otp(booking.id, wrong)
    assert exc.value.to_dict()["isExpired"] is False


@pytest.mark.asyncio
async def test_verify_requires_pickup_status(service, people):
    booking = await _booked(service, people)
    with pytest.raises(StateConflictError):
        await service.verify_otp(booking.id, booking.pickup_otp)


@pytest.mark.asyncio
async def test_empty_otp_rejected(service, people):
    booking = await _booked(service, people)
    with pytest.raises(ValidationError):
        await service.verify_otp(booking.id, "   ")


@pytest.mark.asyncio
async def test_resend_on_delivered_booking_conflicts(service, people):
    booking = await _booked(service, people)
    driver_id = people["driver"].id
    otp, _ = await service.reached_pickup(booking.id, driver_id=driver_id)
    await service.verify_otp(booking.id, otp)
    await service.mark_delivered(booking.id, driver_id=driver_id)
    with pytest.raises(StateConflictError):
        await service.resend_otp(booking.id)


@pytest.mark.asyncio
async def test_outsider_cannot_resend(service, people):
    booking = await _booked(service, people)
    with pytest.raises(PermissionDeniedError):
        await service.resend_otp(booking.id, actor=people["driver2"])
    otp, _ = await service.resend_otp(booking.id, actor=people["customer"])
    assert len(otp) == 6


# ── Driver location relay ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_location_relayed_to_customer(service, notifier, people):
    booking = await _booked(service, people)
    notifier.clear()
    ping = {"bookingId": str(booking.id), "lat": 0.1, "lng": 0.2}
    await service.relay_driver_location(people["driver"].id, ping)
    assert _pairs(notifier) == [
        (f"customer:{people['customer'].id}", "driver_location_update")
    ]
    assert notifier.sent[0].payload == ping
    assert (await service.get_booking(booking.id)).version == booking.version


@pytest.mark.asyncio
async def test_location_needs_booking_id(service, people):
    with pytest.raises(ValidationError):
        await service.relay_driver_location(people["driver"].id, {"lat": 1, "lng": 2})


@pytest.mark.asyncio
async def test_location_for_pending_booking_conflicts(service, people):
    booking = await _request(service, people)
    await service.assign_driver(booking.id, driver_id=people["driver"].id)
    with pytest.raises(StateConflictError):
        await service.relay_driver_location(
            people["driver"].id, {"bookingId": booking.id, "lat": 1, "lng": 2}
        )

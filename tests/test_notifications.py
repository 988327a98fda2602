"""Unit tests for transition -> notification routing."""

from src.domain.entities import Booking, Location
from src.domain.enums import Actor, BookingStatus as S
from src.domain.notifications import (
    BROADCAST,
    booking_created,
    driver_location,
    otp_resent,
    route_transition,
)
from src.domain.state_machine import Transition


def _booking(status, **kwargs):
    defaults = dict(
        id=42,
        customer_id=1,
        customer_name="Asha",
        driver_id=2,
        driver_name="Ravi",
        vehicle_id=3,
        vehicle_name="Ace",
        vehicle_type="Tata Ace",
        status=status,
        pickup_location=Location(0, 0),
        destination_location=Location(0, 1),
        distance=111.2,
        price=1112.0,
    )
    defaults.update(kwargs)
    return Booking(**defaults)


def _routed(source, target, actor, otp=None, **kwargs):
    booking = _booking(target, **kwargs)
    return route_transition(Transition(42, source, target, actor), booking, otp)


def _pairs(notes):
    return [(n.channel, n.event) for n in notes]


class TestRouteTransition:
    def test_assigned_goes_to_driver(self):
        notes = _routed(S.REQUESTED, S.PENDING, Actor.ADMIN)
        assert _pairs(notes) == [
            ("driver:2", "booking_assigned"),
            ("driver:2", "booking_request"),
            (BROADCAST, "booking_status_updated"),
        ]
        assert notes[0].payload["customerName"] == "Asha"

    def test_denied_goes_to_customer(self):
        notes = _routed(S.REQUESTED, S.DENIED, Actor.ADMIN, driver_id=None)
        assert ("customer:1", "booking_denied") in _pairs(notes)

    def test_confirmed_carries_fresh_otp(self):
        notes = _routed(S.PENDING, S.BOOKED, Actor.DRIVER, otp="123456")
        confirmed = notes[0]
        assert (confirmed.channel, confirmed.event) == ("customer:1", "booking_confirmed")
        assert confirmed.payload["otp"] == "123456"
        assert confirmed.payload["driverName"] == "Ravi"

    def test_confirmed_without_otp(self):
        notes = _routed(S.PENDING, S.BOOKED, Actor.DRIVER)
        assert "otp" not in notes[0].payload

    def test_rejected_is_broadcast_only(self):
        notes = _routed(S.PENDING, S.REJECTED, Actor.DRIVER, driver_id=None)
        assert _pairs(notes) == [(BROADCAST, "booking_status_updated")]

    def test_reached_pickup_sends_otp_to_customer(self):
        notes = _routed(S.BOOKED, S.REACHED_PICKUP, Actor.DRIVER, otp="654321")
        assert _pairs(notes) == [
            ("customer:1", "pickup_otp_generated"),
            ("driver:2", "pickup_reached"),
            (BROADCAST, "booking_status_updated"),
        ]
        assert notes[0].payload["otp"] == "654321"
        assert "otp" not in notes[1].payload

    def test_picked_up_notifies_both_parties(self):
        notes = _routed(S.REACHED_PICKUP, S.ORDER_PICKED_UP, Actor.SYSTEM)
        assert ("customer:1", "pickup_confirmed") in _pairs(notes)
        assert ("driver:2", "pickup_confirmed") in _pairs(notes)

    def test_delivered_fans_out(self):
        notes = _routed(S.IN_TRANSIT, S.DELIVERED, Actor.DRIVER)
        assert _pairs(notes) == [
            ("customer:1", "delivery_completed"),
            ("driver:2", "delivery_completed"),
            (BROADCAST, "delivery_completed"),
            (BROADCAST, "booking_status_updated"),
        ]

    def test_every_transition_updates_dashboards(self):
        for target in (S.PENDING, S.BOOKED, S.REACHED_PICKUP, S.IN_TRANSIT, S.CANCELLED):
            notes = _routed(S.REQUESTED, target, Actor.ADMIN)
            assert notes[-1].event == "booking_status_updated"
            assert notes[-1].payload["status"] == target.value


class TestOtherEvents:
    def test_booking_created_is_broadcast(self):
        notes = booking_created(_booking(S.REQUESTED, driver_id=None))
        assert _pairs(notes) == [(BROADCAST, "booking_created")]
        assert "otp" not in notes[0].payload

    def test_otp_resent_to_both_parties(self):
        notes = otp_resent(_booking(S.BOOKED), "000111")
        assert _pairs(notes) == [
            ("customer:1", "pickup_otp_generated"),
            ("driver:2", "pickup_otp_generated"),
        ]

    def test_driver_location_relayed_verbatim(self):
        ping = {"bookingId": "42", "lat": 19.1, "lng": 72.9, "heading": 90}
        notes = driver_location(_booking(S.IN_TRANSIT), ping)
        assert _pairs(notes) == [("customer:1", "driver_location_update")]
        assert notes[0].payload == ping

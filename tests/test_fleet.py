"""Tests for user registration, admin management and vehicles."""

import pytest

from src.domain.entities import Location
from src.domain.enums import BookingStatus, UserRole, VehicleType
from src.domain.errors import (
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from src.services.dispatch import DispatchService
from src.services.fleet import FleetService


@pytest.fixture
def fleet(db_session, notifier):
    return FleetService(db_session, notifier)


# ── Users ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_register_driver_starts_unapproved(fleet, people):
    driver = await fleet.register(
        email="New.Driver@Test.local",
        name="New Driver",
        role=UserRole.DRIVER,
        vehicle_type=VehicleType.TEMPO,
    )
    assert driver.email == "new.driver@test.local"
    assert driver.approved is False

    approved = await fleet.approve_driver(people["admin"], driver.id)
    assert approved.approved is True


@pytest.mark.asyncio
async def test_register_customer_is_approved(fleet):
    customer = await fleet.register(email="c@test.local", name="C")
    assert customer.role == UserRole.CUSTOMER
    assert customer.approved is True


@pytest.mark.asyncio
async def test_driver_needs_vehicle_type(fleet):
    with pytest.raises(ValidationError):
        await fleet.register(email="d@test.local", name="D", role=UserRole.DRIVER)


@pytest.mark.asyncio
async def test_cannot_self_register_as_admin(fleet):
    with pytest.raises(PermissionDeniedError):
        await fleet.register(email="a@test.local", name="A", role=UserRole.ADMIN)


@pytest.mark.asyncio
async def test_duplicate_email(fleet, people):
    with pytest.raises(DuplicateError):
        await fleet.register(email="CUST@test.local", name="Again")


@pytest.mark.asyncio
async def test_only_admin_approves(fleet, people):
    with pytest.raises(PermissionDeniedError):
        await fleet.approve_driver(people["customer"], people["unapproved"].id)


# ── Admins ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_super_admin_manages_admins(fleet, people):
    super_admin = people["admin"]
    admin = await fleet.create_admin(super_admin, email="ops@test.local", name="Ops")
    assert admin.role == UserRole.ADMIN
    assert admin.is_super_admin is False
    assert {a.id for a in await fleet.list_admins(super_admin)} == {super_admin.id, admin.id}

    with pytest.raises(PermissionDeniedError):
        await fleet.create_admin(admin, email="x@test.local", name="X")
    with pytest.raises(PermissionDeniedError):
        await fleet.delete_admin(super_admin, super_admin.id)

    await fleet.delete_admin(super_admin, admin.id)
    with pytest.raises(NotFoundError):
        await fleet.delete_admin(super_admin, admin.id)


# ── Drivers ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_driver_toggles_own_status(fleet, notifier, people):
    driver = people["driver"]
    updated = await fleet.set_driver_active(driver, driver.id, False)
    assert updated.is_active is False
    assert notifier.events() == ["driver_status_updated"]
    assert driver.id not in [d.id for d in await fleet.available_drivers()]

    with pytest.raises(PermissionDeniedError):
        await fleet.set_driver_active(driver, people["driver2"].id, False)


@pytest.mark.asyncio
async def test_available_drivers(fleet, people):
    ids = {d.id for d in await fleet.available_drivers()}
    assert ids == {people["driver"].id, people["driver2"].id}


# ── Vehicles ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_vehicle(fleet, notifier, people):
    vehicle = await fleet.create_vehicle(
        people["admin"],
        vehicle_name="Winger",
        number="MH05ZZ9999",
        type=VehicleType.TATA_WINGER,
        capacity=1000,
        driver_id=people["driver"].id,
        location=Location(19.1, 72.9),
    )
    assert vehicle.driver_name == "Ravi"
    assert vehicle.location == {"lat": 19.1, "lng": 72.9}
    assert notifier.events() == ["vehicle_added"]
    assert len(await fleet.vehicles_for_driver(people["driver"].id)) == 2


@pytest.mark.asyncio
async def test_vehicle_number_unique(fleet, people):
    with pytest.raises(DuplicateError) as exc:
        await fleet.create_vehicle(
            people["admin"],
            vehicle_name="Copy",
            number="MH01AA0001",
            type=VehicleType.TATA_ACE,
            capacity=750,
        )
    assert exc.value.to_dict()["field"] == "number"


@pytest.mark.asyncio
async def test_unapproved_driver_cannot_own_vehicle(fleet, people):
    with pytest.raises(ValidationError):
        await fleet.create_vehicle(
            people["admin"],
            vehicle_name="Ace",
            number="MH09XX0001",
            type=VehicleType.TATA_ACE,
            capacity=750,
            driver_id=people["unapproved"].id,
        )


@pytest.mark.asyncio
async def test_owner_may_only_toggle_active(fleet, people):
    driver, vehicle = people["driver"], people["vehicle"]
    updated = await fleet.update_vehicle(driver, vehicle.id, {"active": False})
    assert updated.active is False

    with pytest.raises(PermissionDeniedError):
        await fleet.update_vehicle(driver, vehicle.id, {"capacity": 9000})
    with pytest.raises(PermissionDeniedError):
        await fleet.update_vehicle(people["driver2"], vehicle.id, {"active": True})


@pytest.mark.asyncio
async def test_set_all_vehicles_active(fleet, people):
    vehicles = await fleet.set_driver_vehicles_active(people["admin"], people["driver"].id, False)
    assert [v.active for v in vehicles] == [False]
    assert people["vehicle"].id not in [v.id for v in await fleet.available_vehicles()]

    with pytest.raises(NotFoundError):
        await fleet.set_driver_vehicles_active(people["admin"], people["customer"].id, True)


@pytest.mark.asyncio
async def test_vehicle_on_busy_booking_not_available(fleet, db_session, notifier, people):
    dispatch = DispatchService(db_session, notifier)
    booking, _ = await dispatch.create_booking(
        customer_id=people["customer"].id,
        pickup_location=Location(0, 0),
        destination_location=Location(0, 1),
    )
    driver_id = people["driver"].id
    await dispatch.assign_driver(booking.id, driver_id=driver_id)
    booking = await dispatch.driver_respond(booking.id, True, driver_id=driver_id)
    assert booking.status == BookingStatus.BOOKED

    ids = {v.id for v in await fleet.available_vehicles()}
    assert people["vehicle"].id not in ids
    assert people["vehicle2"].id in ids


# ── Maintenance ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_clear_all_data_keeps_super_admin(fleet, people):
    with pytest.raises(PermissionDeniedError):
        await fleet.clear_all_data(people["customer"])

    cleared = await fleet.clear_all_data(people["admin"])
    assert cleared["vehicles"] == 2
    assert cleared["users"] == 4
    remaining = await fleet.list_users(people["admin"])
    assert [u.id for u in remaining] == [people["admin"].id]

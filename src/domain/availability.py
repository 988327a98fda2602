"""
Driver / vehicle availability
=============================

Availability is a *derived* predicate.  It is recomputed from the current
users, vehicles and bookings on every read and is never written back to a
user or vehicle row.

Driver
------
available  <=>  active  AND  approved
                AND  owns >= 1 active vehicle
                AND  has no booking in ``BUSY_STATUSES``

Exclusivity is per driver: one busy booking makes the driver unavailable
even if they have another idle vehicle.

Vehicle
-------
available  <=>  active  AND  not on a busy booking
                AND  (no driver  OR  driver is active)

Complexity: O(V + B) per call.
"""

from __future__ import annotations

from typing import Any, Iterable

from .enums import BUSY_STATUSES, BookingStatus


def _status(booking: Any) -> BookingStatus:
    return BookingStatus(booking.status)


def busy_driver_ids(bookings: Iterable[Any]) -> set[int]:
    return {
        b.driver_id
        for b in bookings
        if b.driver_id is not None and _status(b) in BUSY_STATUSES
    }


def busy_vehicle_ids(bookings: Iterable[Any]) -> set[int]:
    return {
        b.vehicle_id
        for b in bookings
        if b.vehicle_id is not None and _status(b) in BUSY_STATUSES
    }


def is_driver_available(
    driver: Any, vehicles: Iterable[Any], bookings: Iterable[Any]
) -> bool:
    if not driver.is_active or not driver.approved:
        return False
    has_vehicle = any(v.driver_id == driver.id and v.active for v in vehicles)
    if not has_vehicle:
        return False
    return driver.id not in busy_driver_ids(bookings)


def available_drivers(
    drivers: Iterable[Any], vehicles: Iterable[Any], bookings: Iterable[Any]
) -> list[Any]:
    vehicles = list(vehicles)
    busy = busy_driver_ids(bookings)
    active_owners = {v.driver_id for v in vehicles if v.active and v.driver_id}
    return [
        d
        for d in drivers
        if d.is_active and d.approved and d.id in active_owners and d.id not in busy
    ]


def is_vehicle_available(
    vehicle: Any, bookings: Iterable[Any], driver: Any = None
) -> bool:
    if not vehicle.active:
        return False
    if vehicle.id in busy_vehicle_ids(bookings):
        return False
    if vehicle.driver_id is not None:
        return driver is not None and bool(driver.is_active)
    return True


def available_vehicles(
    vehicles: Iterable[Any], bookings: Iterable[Any], drivers: Iterable[Any]
) -> list[Any]:
    busy = busy_vehicle_ids(bookings)
    by_id = {d.id: d for d in drivers}
    result = []
    for v in vehicles:
        if not v.active or v.id in busy:
            continue
        if v.driver_id is not None:
            driver = by_id.get(v.driver_id)
            if driver is None or not driver.is_active:
                continue
        result.append(v)
    return result

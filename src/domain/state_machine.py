"""
Booking lifecycle state machine
===============================

::

    Requested -> Pending -> Booked -> Reached Pickup -> Order Picked Up
              -> In Transit -> Delivered

Side exits: ``Requested -> Denied`` (admin), ``Pending -> Rejected``
(driver), ``Rejected -> Pending`` (admin reassign) and
``<any non-terminal> -> Cancelled`` (admin).

``BOOKING_TRANSITIONS`` (in :mod:`enums`) says *which* moves exist;
``TRANSITION_ACTORS`` says *who* may make each of them.  A move is legal
only if both tables agree.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .enums import BOOKING_TRANSITIONS, Actor, BookingStatus
from .errors import StateConflictError

_S = BookingStatus

TRANSITION_ACTORS: dict[tuple[BookingStatus, BookingStatus], frozenset[Actor]] = {
    (_S.REQUESTED, _S.PENDING): frozenset({Actor.ADMIN}),
    (_S.REQUESTED, _S.DENIED): frozenset({Actor.ADMIN}),
    (_S.REJECTED, _S.PENDING): frozenset({Actor.ADMIN}),
    (_S.PENDING, _S.BOOKED): frozenset({Actor.DRIVER}),
    (_S.PENDING, _S.REJECTED): frozenset({Actor.DRIVER}),
    (_S.BOOKED, _S.REACHED_PICKUP): frozenset({Actor.DRIVER}),
    (_S.ARRIVING, _S.REACHED_PICKUP): frozenset({Actor.DRIVER}),
    (_S.REACHED_PICKUP, _S.ORDER_PICKED_UP): frozenset({Actor.SYSTEM}),
    (_S.WAITING_FOR_PICKUP_CONFIRMATION, _S.ORDER_PICKED_UP): frozenset({Actor.SYSTEM}),
    (_S.ORDER_PICKED_UP, _S.IN_TRANSIT): frozenset({Actor.DRIVER}),
    (_S.ORDER_PICKED_UP, _S.DELIVERED): frozenset({Actor.DRIVER}),
    (_S.IN_TRANSIT, _S.DELIVERED): frozenset({Actor.DRIVER}),
}


@dataclass(frozen=True)
class Transition:
    """A status change one request believes it made."""

    booking_id: Optional[int]
    source: Optional[BookingStatus]
    target: BookingStatus
    actor: Actor


def allowed_actors(source: BookingStatus, target: BookingStatus) -> frozenset[Actor]:
    if target not in BOOKING_TRANSITIONS.get(source, set()):
        return frozenset()
    if target == _S.CANCELLED:
        return frozenset({Actor.ADMIN})
    return TRANSITION_ACTORS.get((source, target), frozenset())


def can_transition(source: BookingStatus, target: BookingStatus, actor: Actor) -> bool:
    return actor in allowed_actors(source, target)


def check_transition(
    source: BookingStatus, target: BookingStatus, actor: Actor
) -> None:
    """Raise :class:`StateConflictError` unless *actor* may move *source* -> *target*."""
    if target not in BOOKING_TRANSITIONS.get(source, set()):
        raise StateConflictError(
            f"Cannot transition booking from '{source.value}' to '{target.value}'",
            status=source.value,
        )
    if actor not in allowed_actors(source, target):
        raise StateConflictError(
            f"{actor.value} may not move a booking from '{source.value}' "
            f"to '{target.value}'",
            status=source.value,
        )

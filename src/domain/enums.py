"""Domain enumerations and state-transition rules."""

import enum


class BookingStatus(str, enum.Enum):
    REQUESTED = "Requested"
    PENDING = "Pending"
    BOOKED = "Booked"
    REJECTED = "Rejected"
    DENIED = "Denied"
    ARRIVING = "Arriving"  # legacy, never produced
    REACHED_PICKUP = "Reached Pickup"
    WAITING_FOR_PICKUP_CONFIRMATION = "Waiting for Pickup Confirmation"
    ORDER_PICKED_UP = "Order Picked Up"
    IN_TRANSIT = "In Transit"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"  # legacy, never produced
    CANCELLED = "Cancelled"


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    DRIVER = "DRIVER"
    CUSTOMER = "CUSTOMER"


class Actor(str, enum.Enum):
    """Who triggers a booking transition."""

    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"
    DRIVER = "DRIVER"
    SYSTEM = "SYSTEM"  # OTP verification


_S = BookingStatus

# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    _S.REQUESTED: {_S.PENDING, _S.DENIED, _S.CANCELLED},
    _S.PENDING: {_S.BOOKED, _S.REJECTED, _S.CANCELLED},
    _S.REJECTED: {_S.PENDING},
    _S.BOOKED: {_S.REACHED_PICKUP, _S.CANCELLED},
    _S.ARRIVING: {_S.REACHED_PICKUP, _S.CANCELLED},
    _S.REACHED_PICKUP: {_S.ORDER_PICKED_UP, _S.CANCELLED},
    _S.WAITING_FOR_PICKUP_CONFIRMATION: {_S.ORDER_PICKED_UP, _S.CANCELLED},
    _S.ORDER_PICKED_UP: {_S.IN_TRANSIT, _S.DELIVERED, _S.CANCELLED},
    _S.IN_TRANSIT: {_S.DELIVERED, _S.CANCELLED},
    _S.DELIVERED: set(),
    _S.COMPLETED: set(),
    _S.DENIED: set(),
    _S.CANCELLED: set(),
}

# Statuses that no actor other than an admin reassigning can leave.
TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset(
    {_S.DELIVERED, _S.COMPLETED, _S.REJECTED, _S.DENIED, _S.CANCELLED}
)

# A driver (and the vehicle on the booking) is busy while one of these holds.
BUSY_STATUSES: frozenset[BookingStatus] = frozenset(
    {_S.BOOKED, _S.REACHED_PICKUP, _S.ORDER_PICKED_UP, _S.IN_TRANSIT}
)

OTP_RESEND_STATUSES: frozenset[BookingStatus] = frozenset(
    {_S.BOOKED, _S.REACHED_PICKUP, _S.WAITING_FOR_PICKUP_CONFIRMATION}
)

# Driver location pings are relayed to the customer only while these hold.
TRACKABLE_STATUSES: frozenset[BookingStatus] = BUSY_STATUSES | {
    _S.WAITING_FOR_PICKUP_CONFIRMATION
}


class VehicleType(str, enum.Enum):
    MOTORCYCLE = "Motorcycle"
    SCOOTER = "Scooter"
    ELECTRIC_BIKE = "Electric bike"
    BICYCLE = "Bicycle"
    AUTO_RICKSHAW = "Auto rickshaw"
    ELECTRIC_CARGO_RICKSHAW = "Electric cargo rickshaw"
    MARUTI_EECO = "Maruti Eeco"
    MAHINDRA_BOLERO = "Mahindra Bolero"
    TATA_ACE = "Tata Ace"
    MAHINDRA_JEETO = "Mahindra Jeeto"
    TEMPO = "Tempo"
    ASHOK_LEYLAND_DOST = "Ashok Leyland Dost"
    TATA_WINGER = "Tata Winger"
    BOX_TRUCK = "Box truck (closed body)"
    CONTAINER_TRUCK = "Container truck"
    HGV = "Heavy goods vehicle (HGV)"
    FLATBED_TRUCK = "Flatbed truck"
    OPEN_BODY_TRUCK = "Open body truck"
    TRAILER_TRUCK = "Trailer truck"
    SEMI_TRUCK = "Semi-truck"
    LORRY = "Lorry"
    DCM = "DCM"
    AUTO = "Auto"

"""
SQLAlchemy ORM models.

Tables
------
* ``users``     -- customers, drivers and admins
* ``vehicles``  -- dispatchable vehicles, optionally owned by a driver
* ``bookings``  -- one delivery request from creation to termination
* ``feedback``  -- at most one rating per booking

Locations are stored as JSON documents ``{lat, lng, address?}``; nothing
here needs spatial queries.  Statuses are stored as their display
values (``"Reached Pickup"``) in plain VARCHAR columns.

Indexes
-------
* **B-Tree** on ``bookings.status``, ``customer_id``, ``driver_id`` for the
  dashboard listings and the availability queries.
* **Unique** on ``vehicles.number`` and ``feedback.booking_id``.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from src.domain.clock import utcnow
from src.domain.enums import BookingStatus, UserRole, VehicleType


def _enum(enum_cls, name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=40,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(120), nullable=False)
    role = Column(_enum(UserRole, "user_role"), default=UserRole.CUSTOMER, nullable=False)
    is_super_admin = Column(Boolean, default=False, nullable=False)
    approved = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    vehicle_type = Column(_enum(VehicleType, "vehicle_type"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    __table_args__ = (Index("idx_users_role", "role"),)


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    driver_name = Column(String(120), nullable=True)
    vehicle_name = Column(String(120), nullable=False)
    number = Column(String(32), unique=True, nullable=False)
    type = Column(_enum(VehicleType, "vehicle_type"), nullable=False)
    capacity = Column(Float, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    location = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_vehicles_driver", "driver_id"),
        Index("idx_vehicles_active", "active"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    customer_name = Column(String(120), nullable=True)
    customer_address = Column(Text, nullable=True)

    # Nullable until an admin dispatches the booking
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    driver_name = Column(String(120), nullable=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=True)
    vehicle_name = Column(String(120), nullable=True)
    vehicle_type = Column(String(40), nullable=True)

    status = Column(
        _enum(BookingStatus, "booking_status"),
        default=BookingStatus.REQUESTED,
        nullable=False,
    )
    pickup_location = Column(JSON, nullable=False)
    destination_location = Column(JSON, nullable=False)
    distance = Column(Float, nullable=False, default=0.0)
    price = Column(Float, nullable=False, default=0.0)

    pickup_otp = Column(String(6), nullable=True)
    otp_generated_at = Column(DateTime(timezone=True), nullable=True)
    driver_location = Column(JSON, nullable=True)

    # Optimistic concurrency: every transition is conditioned on this
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_customer", "customer_id"),
        Index("idx_bookings_driver", "driver_id"),
        Index("idx_bookings_vehicle", "vehicle_id"),
    )


class FeedbackModel(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    customer_id = Column(Integer, nullable=False)
    customer_name = Column(String(120), nullable=True)
    driver_id = Column(Integer, nullable=False)
    driver_name = Column(String(120), nullable=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False, default="")
    is_edited = Column(Boolean, nullable=False, default=False)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_feedback_driver_created", "driver_id", "created_at"),
        Index("idx_feedback_customer", "customer_id"),
    )

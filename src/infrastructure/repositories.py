"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  ``BookingRepository`` hands out domain
``Booking`` entities rather than ORM rows so a transition can be planned
in memory and written back with a single conditional update.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BookingModel, FeedbackModel, UserModel, VehicleModel
from src.domain.clock import utcnow
from src.domain.entities import Booking, Location
from src.domain.enums import BUSY_STATUSES, BookingStatus, UserRole
from src.domain.errors import StateConflictError


def _loc_doc(location: Optional[Location]) -> Optional[dict[str, Any]]:
    return location.to_dict() if location else None


def booking_from_model(row: BookingModel) -> Booking:
    return Booking(
        id=row.id,
        customer_id=row.customer_id,
        customer_name=row.customer_name,
        customer_address=row.customer_address,
        driver_id=row.driver_id,
        driver_name=row.driver_name,
        vehicle_id=row.vehicle_id,
        vehicle_name=row.vehicle_name,
        vehicle_type=row.vehicle_type,
        status=BookingStatus(row.status),
        pickup_location=Location.from_dict(row.pickup_location),
        destination_location=Location.from_dict(row.destination_location),
        distance=row.distance,
        price=row.price,
        pickup_otp=row.pickup_otp,
        otp_generated_at=row.otp_generated_at,
        driver_location=Location.from_dict(row.driver_location),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# Columns a transition is allowed to rewrite.
_MUTABLE_FIELDS = (
    "driver_id",
    "driver_name",
    "vehicle_id",
    "vehicle_name",
    "vehicle_type",
    "status",
    "pickup_otp",
    "otp_generated_at",
)


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: Booking) -> Booking:
        row = BookingModel(
            customer_id=booking.customer_id,
            customer_name=booking.customer_name,
            customer_address=booking.customer_address,
            vehicle_id=booking.vehicle_id,
            vehicle_name=booking.vehicle_name,
            vehicle_type=booking.vehicle_type,
            status=booking.status,
            pickup_location=_loc_doc(booking.pickup_location),
            destination_location=_loc_doc(booking.destination_location),
            distance=booking.distance,
            price=booking.price,
            version=1,
        )
        self.session.add(row)
        await self.session.flush()
        return booking_from_model(row)

    async def get_row(self, booking_id: int) -> Optional[BookingModel]:
        return await self.session.get(
            BookingModel, booking_id, populate_existing=True
        )

    async def get(self, booking_id: int) -> Optional[Booking]:
        row = await self.get_row(booking_id)
        return booking_from_model(row) if row else None

    async def save_transition(self, booking: Booking, expected_version: int) -> Booking:
        """Write *booking* back iff nobody else has written since we read it.

        Raises ``StateConflictError`` on a version mismatch; the stored row
        is left untouched.
        """
        values: dict[str, Any] = {f: getattr(booking, f) for f in _MUTABLE_FIELDS}
        values["driver_location"] = _loc_doc(booking.driver_location)
        values["version"] = expected_version + 1
        values["updated_at"] = utcnow()

        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking.id,
                BookingModel.version == expected_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StateConflictError(
                f"Booking {booking.id} was modified concurrently; reload and retry",
                expectedVersion=expected_version,
            )
        booking.version = expected_version + 1
        booking.updated_at = values["updated_at"]
        return booking

    async def find_recent_duplicate(
        self, customer_id: int, vehicle_id: Optional[int], since: datetime
    ) -> Optional[Booking]:
        query = (
            select(BookingModel)
            .execution_options(populate_existing=True)
            .where(
                BookingModel.customer_id == customer_id,
                BookingModel.status == BookingStatus.REQUESTED,
                BookingModel.created_at >= since,
            )
            .order_by(BookingModel.created_at.desc())
            .limit(1)
        )
        if vehicle_id is None:
            query = query.where(BookingModel.vehicle_id.is_(None))
        else:
            query = query.where(BookingModel.vehicle_id == vehicle_id)
        row = (await self.session.execute(query)).scalar_one_or_none()
        return booking_from_model(row) if row else None

    async def list_all(self) -> list[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .execution_options(populate_existing=True)
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return [booking_from_model(r) for r in result.scalars().all()]

    async def for_customer(self, customer_id: int) -> list[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .execution_options(populate_existing=True)
            .where(BookingModel.customer_id == customer_id)
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return [booking_from_model(r) for r in result.scalars().all()]

    async def for_driver(self, driver_id: int) -> list[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .execution_options(populate_existing=True)
            .where(BookingModel.driver_id == driver_id)
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return [booking_from_model(r) for r in result.scalars().all()]

    async def get_busy(self) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .execution_options(populate_existing=True)
            .where(BookingModel.status.in_(list(BUSY_STATUSES)))
        )
        return list(result.scalars().all())

    async def get_busy_for_driver(self, driver_id: int) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .execution_options(populate_existing=True)
            .where(
                BookingModel.driver_id == driver_id,
                BookingModel.status.in_(list(BUSY_STATUSES)),
            )
        )
        return list(result.scalars().all())

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(BookingModel))
        return result.rowcount or 0


class VehicleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, vehicle: VehicleModel) -> VehicleModel:
        self.session.add(vehicle)
        await self.session.flush()
        return vehicle

    async def get_by_id(self, vehicle_id: int) -> Optional[VehicleModel]:
        return await self.session.get(VehicleModel, vehicle_id, populate_existing=True)

    async def get_by_number(self, number: str) -> Optional[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel).where(VehicleModel.number == number)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel)
            .execution_options(populate_existing=True)
            .order_by(VehicleModel.created_at.desc(), VehicleModel.id.desc())
        )
        return list(result.scalars().all())

    async def get_active(self) -> list[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel)
            .execution_options(populate_existing=True)
            .where(VehicleModel.active.is_(True))
            .order_by(VehicleModel.created_at.desc(), VehicleModel.id.desc())
        )
        return list(result.scalars().all())

    async def for_driver(self, driver_id: int) -> list[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel)
            .execution_options(populate_existing=True)
            .where(VehicleModel.driver_id == driver_id)
            .order_by(VehicleModel.created_at.desc(), VehicleModel.id.desc())
        )
        return list(result.scalars().all())

    async def set_active_for_driver(self, driver_id: int, active: bool) -> int:
        result = await self.session.execute(
            update(VehicleModel)
            .where(VehicleModel.driver_id == driver_id)
            .values(active=active, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(VehicleModel))
        return result.rowcount or 0


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id, populate_existing=True)

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[UserModel]:
        result = await self.session.execute(select(UserModel).order_by(UserModel.id))
        return list(result.scalars().all())

    async def list_by_role(self, role: UserRole) -> list[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(UserModel.role == role).order_by(UserModel.created_at, UserModel.id)
        )
        return list(result.scalars().all())

    async def count_super_admins(self) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(UserModel)
            .where(UserModel.is_super_admin.is_(True))
        )
        return result.scalar() or 0

    async def delete(self, user: UserModel) -> None:
        await self.session.delete(user)
        await self.session.flush()

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(UserModel))
        return result.rowcount or 0


class FeedbackRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, feedback: FeedbackModel) -> FeedbackModel:
        self.session.add(feedback)
        await self.session.flush()
        return feedback

    async def get_by_booking(self, booking_id: int) -> Optional[FeedbackModel]:
        result = await self.session.execute(
            select(FeedbackModel)
            .where(FeedbackModel.booking_id == booking_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def for_driver(self, driver_id: int) -> list[FeedbackModel]:
        result = await self.session.execute(
            select(FeedbackModel)
            .where(FeedbackModel.driver_id == driver_id)
            .order_by(FeedbackModel.created_at.desc(), FeedbackModel.id.desc())
        )
        return list(result.scalars().all())

    async def for_customer(self, customer_id: int) -> list[FeedbackModel]:
        result = await self.session.execute(
            select(FeedbackModel)
            .where(FeedbackModel.customer_id == customer_id)
            .order_by(FeedbackModel.created_at.desc(), FeedbackModel.id.desc())
        )
        return list(result.scalars().all())

    async def driver_aggregate(self, driver_id: int) -> tuple[Optional[float], int]:
        result = await self.session.execute(
            select(func.avg(FeedbackModel.rating), func.count(FeedbackModel.id)).where(
                FeedbackModel.driver_id == driver_id
            )
        )
        avg, count = result.one()
        return (float(avg) if avg is not None else None), int(count or 0)

    async def all_driver_aggregates(self) -> list[tuple[int, Optional[str], float, int, datetime]]:
        result = await self.session.execute(
            select(
                FeedbackModel.driver_id,
                func.max(FeedbackModel.driver_name),
                func.avg(FeedbackModel.rating),
                func.count(FeedbackModel.id),
                func.max(FeedbackModel.created_at),
            ).group_by(FeedbackModel.driver_id)
        )
        return [tuple(r) for r in result.all()]

    async def delete(self, feedback: FeedbackModel) -> None:
        await self.session.delete(feedback)
        await self.session.flush()

    async def delete_all(self) -> int:
        result = await self.session.execute(delete(FeedbackModel))
        return result.rowcount or 0

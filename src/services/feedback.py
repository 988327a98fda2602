"""Customer feedback: one rating per delivered booking, editable by its author."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain import notifications as routes
from src.domain.clock import utcnow
from src.domain.enums import BookingStatus
from src.domain.errors import (
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from src.infrastructure.event_bus import Notifier
from src.infrastructure.models import FeedbackModel
from src.infrastructure.repositories import BookingRepository, FeedbackRepository

logger = logging.getLogger(__name__)

RATEABLE_STATUSES = frozenset({BookingStatus.DELIVERED, BookingStatus.COMPLETED})


def round_rating(value: float) -> float:
    """Half-up rounding to one decimal (4.25 -> 4.3)."""
    return int(value * 10 + 0.5) / 10


def _validate_rating(rating: Any) -> int:
    if rating is None:
        raise ValidationError("rating is required")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("rating must be an integer between 1 and 5")
    return rating


def feedback_document(fb: FeedbackModel) -> dict[str, Any]:
    return {
        "id": str(fb.id),
        "bookingId": str(fb.booking_id),
        "customerId": fb.customer_id,
        "customerName": fb.customer_name,
        "driverId": fb.driver_id,
        "driverName": fb.driver_name,
        "rating": fb.rating,
        "comment": fb.comment,
        "isEdited": fb.is_edited,
        "editedAt": fb.edited_at.isoformat() if fb.edited_at else None,
        "createdAt": fb.created_at.isoformat() if fb.created_at else None,
    }


class FeedbackService:
    def __init__(
        self,
        session: AsyncSession,
        notifier: Notifier,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.notifier = notifier
        self.clock = clock
        self.feedback = FeedbackRepository(session)
        self.bookings = BookingRepository(session)

    async def _publish(self, notes) -> None:
        try:
            await self.notifier.publish(notes)
        except Exception:
            logger.warning("Notification publish failed", exc_info=True)

    async def driver_rating_stats(self, driver_id: int) -> dict[str, Any]:
        avg, total = await self.feedback.driver_aggregate(driver_id)
        if not total:
            return {"averageRating": 0, "totalRatings": 0}
        return {"averageRating": round_rating(avg), "totalRatings": total}

    async def all_driver_stats(self) -> list[dict[str, Any]]:
        rows = await self.feedback.all_driver_aggregates()
        stats = [
            {
                "driverId": driver_id,
                "driverName": driver_name,
                "averageRating": round_rating(float(avg)),
                "totalRatings": int(total),
                "latestFeedback": latest,
            }
            for driver_id, driver_name, avg, total, latest in rows
        ]
        stats.sort(key=lambda s: s["averageRating"], reverse=True)
        return stats

    async def submit_feedback(
        self,
        *,
        booking_id: int,
        customer_id: int,
        driver_id: Optional[int],
        rating: Any,
        comment: Optional[str] = None,
        customer_name: Optional[str] = None,
        driver_name: Optional[str] = None,
    ) -> tuple[FeedbackModel, dict[str, Any]]:
        rating = _validate_rating(rating)

        booking = await self.bookings.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        if booking.customer_id != customer_id:
            raise PermissionDeniedError("Only the booking's customer can leave feedback")
        if booking.status not in RATEABLE_STATUSES:
            raise StateConflictError(
                "Feedback can only be left after delivery", status=booking.status.value
            )
        driver_id = driver_id if driver_id is not None else booking.driver_id
        if driver_id is None:
            raise ValidationError("driverId is required")

        if await self.feedback.get_by_booking(booking_id) is not None:
            raise DuplicateError(
                "Feedback already exists for this booking. Use update endpoint to edit."
            )

        try:
            fb = await self.feedback.create(
                FeedbackModel(
                    booking_id=booking_id,
                    customer_id=customer_id,
                    customer_name=customer_name or booking.customer_name,
                    driver_id=driver_id,
                    driver_name=driver_name or booking.driver_name,
                    rating=rating,
                    comment=comment or "",
                    is_edited=False,
                )
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateError("Feedback already exists for this booking.")

        stats = await self.driver_rating_stats(driver_id)
        logger.info(
            "Feedback created for booking %s, driver rating: %s",
            booking_id,
            stats["averageRating"],
        )
        await self._publish(
            routes.feedback_event("new_feedback", driver_id, feedback_document(fb), stats)
        )
        return fb, stats

    async def update_feedback(
        self,
        booking_id: int,
        *,
        rating: Any = None,
        comment: Optional[str] = None,
        customer_id: Optional[int] = None,
    ) -> tuple[FeedbackModel, dict[str, Any]]:
        fb = await self.feedback.get_by_booking(booking_id)
        if fb is None:
            raise NotFoundError("Feedback not found for this booking")
        if customer_id is not None and fb.customer_id != customer_id:
            raise PermissionDeniedError("Only the original customer can edit this feedback")

        if rating is not None:
            fb.rating = _validate_rating(rating)
        if comment is not None:
            fb.comment = comment
        fb.is_edited = True
        fb.edited_at = self.clock()
        await self.session.flush()
        await self.session.commit()

        stats = await self.driver_rating_stats(fb.driver_id)
        logger.info(
            "Feedback updated for booking %s, new driver rating: %s",
            booking_id,
            stats["averageRating"],
        )
        await self._publish(
            routes.feedback_event(
                "feedback_updated", fb.driver_id, feedback_document(fb), stats
            )
        )
        return fb, stats

    async def delete_feedback(self, booking_id: int) -> dict[str, Any]:
        fb = await self.feedback.get_by_booking(booking_id)
        if fb is None:
            raise NotFoundError("Feedback not found")
        driver_id = fb.driver_id
        await self.feedback.delete(fb)
        await self.session.commit()
        return await self.driver_rating_stats(driver_id)

    async def for_booking(self, booking_id: int) -> Optional[FeedbackModel]:
        return await self.feedback.get_by_booking(booking_id)

    async def for_driver(self, driver_id: int) -> tuple[list[FeedbackModel], dict[str, Any]]:
        return (
            await self.feedback.for_driver(driver_id),
            await self.driver_rating_stats(driver_id),
        )

    async def for_customer(self, customer_id: int) -> list[FeedbackModel]:
        return await self.feedback.for_customer(customer_id)

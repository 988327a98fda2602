"""
Feedback endpoints
==================

POST   /api/v1/feedback                     -- rate a delivered booking
PUT    /api/v1/feedback/{booking_id}        -- edit your rating
GET    /api/v1/feedback/booking/{id}        -- feedback for one booking
GET    /api/v1/feedback/driver/{id}         -- a driver's feedback and average
GET    /api/v1/feedback/customer/{id}       -- feedback a customer has left
GET    /api/v1/feedback/stats/all           -- per-driver averages, best first
DELETE /api/v1/feedback/{booking_id}        -- remove feedback (admin)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import (
    get_current_user,
    get_feedback_service,
    require_admin,
    require_customer,
)
from src.api.middleware import limiter
from src.api.schemas import (
    DriverFeedbackResponse,
    DriverStats,
    DriverStatsRow,
    FeedbackCreateRequest,
    FeedbackResponse,
    FeedbackUpdateRequest,
    FeedbackWithStats,
)
from src.infrastructure.models import UserModel
from src.services.feedback import FeedbackService

router = APIRouter(prefix="/feedback", tags=["feedback"])


def _with_stats(fb, stats) -> FeedbackWithStats:
    return FeedbackWithStats(
        feedback=FeedbackResponse.model_validate(fb),
        driverStats=DriverStats(**stats),
    )


@router.post("", status_code=201, response_model=FeedbackWithStats, summary="Leave feedback")
@limiter.limit("100/minute")
async def submit_feedback(
    request: Request,
    body: FeedbackCreateRequest,
    customer: UserModel = Depends(require_customer),
    service: FeedbackService = Depends(get_feedback_service),
):
    fb, stats = await service.submit_feedback(
        booking_id=body.booking_id,
        customer_id=customer.id,
        driver_id=body.driver_id,
        rating=body.rating,
        comment=body.comment,
        customer_name=body.customer_name or customer.name,
        driver_name=body.driver_name,
    )
    return _with_stats(fb, stats)


@router.put("/{booking_id}", response_model=FeedbackWithStats, summary="Edit feedback")
@limiter.limit("100/minute")
async def update_feedback(
    request: Request,
    booking_id: int,
    body: FeedbackUpdateRequest,
    customer: UserModel = Depends(require_customer),
    service: FeedbackService = Depends(get_feedback_service),
):
    fb, stats = await service.update_feedback(
        booking_id, rating=body.rating, comment=body.comment, customer_id=customer.id
    )
    return _with_stats(fb, stats)


@router.get(
    "/booking/{booking_id}",
    response_model=Optional[FeedbackResponse],
    summary="Feedback for a booking (null if none)",
)
@limiter.limit("100/minute")
async def feedback_for_booking(
    request: Request,
    booking_id: int,
    _user: UserModel = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    return await service.for_booking(booking_id)


@router.get(
    "/driver/{driver_id}",
    response_model=DriverFeedbackResponse,
    summary="A driver's feedback with rating stats",
)
@limiter.limit("100/minute")
async def feedback_for_driver(
    request: Request,
    driver_id: int,
    _user: UserModel = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    feedbacks, stats = await service.for_driver(driver_id)
    return DriverFeedbackResponse(
        feedbacks=[FeedbackResponse.model_validate(fb) for fb in feedbacks],
        stats=DriverStats(**stats),
    )


@router.get(
    "/customer/{customer_id}",
    response_model=list[FeedbackResponse],
    summary="Feedback a customer has left",
)
@limiter.limit("100/minute")
async def feedback_for_customer(
    request: Request,
    customer_id: int,
    _user: UserModel = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    return await service.for_customer(customer_id)


@router.get(
    "/stats/all",
    response_model=list[DriverStatsRow],
    summary="Rating stats for every rated driver",
)
@limiter.limit("100/minute")
async def all_driver_stats(
    request: Request,
    _admin: UserModel = Depends(require_admin),
    service: FeedbackService = Depends(get_feedback_service),
):
    return await service.all_driver_stats()


@router.delete(
    "/{booking_id}",
    response_model=DriverStats,
    summary="Delete feedback; returns the driver's recalculated stats",
)
@limiter.limit("100/minute")
async def delete_feedback(
    request: Request,
    booking_id: int,
    _admin: UserModel = Depends(require_admin),
    service: FeedbackService = Depends(get_feedback_service),
):
    return await service.delete_feedback(booking_id)

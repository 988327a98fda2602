"""
FastAPI dependency injection helpers.

The notifier lives on ``app.state`` and reaches the services through
``get_notifier``; tests swap it with ``app.dependency_overrides``.

Callers identify themselves with an ``X-User-Id`` header.  Credential
checks are the job of whatever sits in front of this service; here the
id is only resolved to a user and its role checked.
"""

from typing import Optional

from fastapi import Depends, Header
from fastapi.requests import HTTPConnection
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.domain.enums import UserRole
from src.domain.errors import PermissionDeniedError, UnauthenticatedError
from src.infrastructure.database import async_session_factory
from src.infrastructure.event_bus import Notifier
from src.infrastructure.models import UserModel
from src.infrastructure.repositories import UserRepository
from src.services.dispatch import DispatchService
from src.services.feedback import FeedbackService
from src.services.fleet import FleetService


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker:
    """For long-lived WebSocket sessions, which open a short DB session per use."""
    return async_session_factory


def get_notifier(conn: HTTPConnection) -> Notifier:
    return conn.app.state.notifier


def get_dispatch_service(
    db: AsyncSession = Depends(get_db), notifier: Notifier = Depends(get_notifier)
) -> DispatchService:
    return DispatchService(db, notifier)


def get_feedback_service(
    db: AsyncSession = Depends(get_db), notifier: Notifier = Depends(get_notifier)
) -> FeedbackService:
    return FeedbackService(db, notifier)


def get_fleet_service(
    db: AsyncSession = Depends(get_db), notifier: Notifier = Depends(get_notifier)
) -> FleetService:
    return FleetService(db, notifier)


async def get_current_user(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    db: AsyncSession = Depends(get_db),
) -> UserModel:
    if x_user_id is None:
        raise UnauthenticatedError("Missing X-User-Id header.")
    user = await UserRepository(db).get_by_id(x_user_id)
    if user is None:
        raise UnauthenticatedError("Unknown user.")
    return user


def _require(role: UserRole):
    def dependency(current_user: UserModel = Depends(get_current_user)) -> UserModel:
        if UserRole(current_user.role) != role:
            raise PermissionDeniedError(f"{role.value.title()} role required.")
        return current_user

    return dependency


require_admin = _require(UserRole.ADMIN)
require_driver = _require(UserRole.DRIVER)
require_customer = _require(UserRole.CUSTOMER)

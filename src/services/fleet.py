"""
Users, vehicles and driver availability.

Role rules
----------
* Drivers start unapproved; only an admin can approve them.  An
  unapproved driver can neither own a vehicle nor be dispatched.
* Exactly one super admin exists (created by ``seed.py``).  The flag is
  never changed afterwards, and only the super admin creates or deletes
  other admins.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.domain import notifications as routes
from src.domain.availability import available_drivers, available_vehicles
from src.domain.clock import utcnow
from src.domain.entities import Location
from src.domain.enums import UserRole, VehicleType
from src.domain.errors import (
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from src.infrastructure.event_bus import Notifier
from src.infrastructure.models import UserModel, VehicleModel
from src.infrastructure.repositories import (
    BookingRepository,
    FeedbackRepository,
    UserRepository,
    VehicleRepository,
)

logger = logging.getLogger(__name__)


def vehicle_document(v: VehicleModel) -> dict[str, Any]:
    return {
        "id": str(v.id),
        "driverId": v.driver_id,
        "driverName": v.driver_name,
        "vehicleName": v.vehicle_name,
        "number": v.number,
        "type": v.type.value if v.type else None,
        "capacity": v.capacity,
        "active": v.active,
        "location": v.location,
    }


def _role(user: UserModel) -> UserRole:
    return UserRole(user.role)


def ensure_admin(user: Optional[UserModel]) -> UserModel:
    if user is None or _role(user) != UserRole.ADMIN:
        raise PermissionDeniedError("Admin role required")
    return user


def ensure_super_admin(user: Optional[UserModel]) -> UserModel:
    if user is None or _role(user) != UserRole.ADMIN or not user.is_super_admin:
        raise PermissionDeniedError("Only the Super Admin can manage admins")
    return user


class FleetService:
    def __init__(self, session: AsyncSession, notifier: Notifier):
        self.session = session
        self.notifier = notifier
        self.users = UserRepository(session)
        self.vehicles = VehicleRepository(session)
        self.bookings = BookingRepository(session)

    async def _publish(self, notes) -> None:
        try:
            await self.notifier.publish(notes)
        except Exception:
            logger.warning("Notification publish failed", exc_info=True)

    # ── Users ─────────────────────────────────────────────────────────

    async def get_user(self, user_id: int) -> UserModel:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def register(
        self,
        *,
        email: str,
        name: str,
        role: UserRole = UserRole.CUSTOMER,
        vehicle_type: Optional[VehicleType] = None,
    ) -> UserModel:
        """Self-service signup for customers and drivers."""
        if role == UserRole.ADMIN:
            raise PermissionDeniedError("Admins are created by the Super Admin")
        if role == UserRole.DRIVER and vehicle_type is None:
            raise ValidationError("vehicleType is required for drivers")
        return await self._create_user(
            email=email, name=name, role=role, vehicle_type=vehicle_type
        )

    async def _create_user(self, **fields: Any) -> UserModel:
        email = fields.pop("email").strip().lower()
        if not email or not fields.get("name"):
            raise ValidationError("email and name are required")
        if await self.users.get_by_email(email) is not None:
            raise DuplicateError("Email already registered")

        role = fields.get("role", UserRole.CUSTOMER)
        user = await self.users.create(
            UserModel(
                email=email,
                approved=role != UserRole.DRIVER,
                is_active=False,
                is_super_admin=False,
                **fields,
            )
        )
        await self.session.commit()
        logger.info("Created %s user %s", role.value, user.id)
        return user

    async def approve_driver(self, requester: UserModel, user_id: int) -> UserModel:
        ensure_admin(requester)
        user = await self.get_user(user_id)
        user.approved = True
        await self.session.commit()
        logger.info("User %s approved by admin %s", user.id, requester.id)
        return user

    async def list_users(self, requester: UserModel) -> list[UserModel]:
        ensure_admin(requester)
        return await self.users.list_all()

    async def list_admins(self, requester: UserModel) -> list[UserModel]:
        ensure_super_admin(requester)
        return await self.users.list_by_role(UserRole.ADMIN)

    async def create_admin(self, requester: UserModel, *, email: str, name: str) -> UserModel:
        ensure_super_admin(requester)
        admin = await self._create_user(email=email, name=name, role=UserRole.ADMIN)
        logger.info("Admin %s created by Super Admin %s", admin.id, requester.id)
        return admin

    async def delete_admin(self, requester: UserModel, admin_id: int) -> None:
        ensure_super_admin(requester)
        admin = await self.users.get_by_id(admin_id)
        if admin is None or _role(admin) != UserRole.ADMIN:
            raise NotFoundError("Admin not found")
        if admin.is_super_admin:
            raise PermissionDeniedError("Cannot delete Super Admin")
        if admin.id == requester.id:
            raise PermissionDeniedError("Cannot delete yourself")
        await self.users.delete(admin)
        await self.session.commit()
        logger.info("Admin %s deleted", admin_id)

    # ── Drivers ───────────────────────────────────────────────────────

    async def set_driver_active(
        self, requester: UserModel, driver_id: int, is_active: bool
    ) -> UserModel:
        if _role(requester) != UserRole.ADMIN and requester.id != driver_id:
            raise PermissionDeniedError("Drivers can only change their own status")
        driver = await self.get_user(driver_id)
        if _role(driver) != UserRole.DRIVER:
            raise ValidationError(f"User {driver_id} is not a driver")
        driver.is_active = is_active
        await self.session.commit()
        await self._publish(
            routes.driver_status_event(driver.id, is_active, utcnow().isoformat())
        )
        return driver

    async def available_drivers(self) -> list[UserModel]:
        drivers = await self.users.list_by_role(UserRole.DRIVER)
        vehicles = await self.vehicles.get_active()
        busy = await self.bookings.get_busy()
        return available_drivers(drivers, vehicles, busy)

    # ── Vehicles ──────────────────────────────────────────────────────

    async def _owner(self, driver_id: Optional[int]) -> Optional[UserModel]:
        if driver_id is None:
            return None
        driver = await self.get_user(driver_id)
        if _role(driver) != UserRole.DRIVER:
            raise ValidationError(f"User {driver_id} is not a driver")
        if not driver.approved:
            raise ValidationError(f"Driver {driver_id} is not approved")
        return driver

    async def create_vehicle(
        self,
        requester: UserModel,
        *,
        vehicle_name: str,
        number: str,
        type: VehicleType,
        capacity: float,
        driver_id: Optional[int] = None,
        active: bool = True,
        location: Optional[Location] = None,
    ) -> VehicleModel:
        ensure_admin(requester)
        if await self.vehicles.get_by_number(number) is not None:
            raise DuplicateError("Vehicle number already exists", field="number")
        owner = await self._owner(driver_id)
        vehicle = await self.vehicles.create(
            VehicleModel(
                vehicle_name=vehicle_name,
                number=number,
                type=type,
                capacity=capacity,
                driver_id=owner.id if owner else None,
                driver_name=owner.name if owner else None,
                active=active,
                location=location.to_dict() if location else None,
            )
        )
        await self.session.commit()
        await self._publish(routes.vehicle_event("vehicle_added", vehicle_document(vehicle)))
        return vehicle

    async def update_vehicle(
        self, requester: UserModel, vehicle_id: int, changes: dict[str, Any]
    ) -> VehicleModel:
        vehicle = await self.vehicles.get_by_id(vehicle_id)
        if vehicle is None:
            raise NotFoundError(f"Vehicle {vehicle_id} not found")

        is_admin = _role(requester) == UserRole.ADMIN
        if not is_admin:
            # owners may only toggle their own vehicle's active flag / location
            if vehicle.driver_id != requester.id or set(changes) - {"active", "location"}:
                raise PermissionDeniedError("Only admins can edit vehicle details")

        if "number" in changes and changes["number"] != vehicle.number:
            if await self.vehicles.get_by_number(changes["number"]) is not None:
                raise DuplicateError("Vehicle number already exists", field="number")
        if "driver_id" in changes:
            owner = await self._owner(changes["driver_id"])
            vehicle.driver_id = owner.id if owner else None
            vehicle.driver_name = owner.name if owner else None
        for field in ("vehicle_name", "number", "type", "capacity", "active"):
            if field in changes:
                setattr(vehicle, field, changes[field])
        if "location" in changes:
            loc = changes["location"]
            vehicle.location = loc.to_dict() if loc else None

        await self.session.commit()
        await self._publish(routes.vehicle_event("vehicle_updated", vehicle_document(vehicle)))
        return vehicle

    async def set_driver_vehicles_active(
        self, requester: UserModel, driver_id: int, active: bool
    ) -> list[VehicleModel]:
        if _role(requester) != UserRole.ADMIN and requester.id != driver_id:
            raise PermissionDeniedError("Drivers can only change their own vehicles")
        matched = await self.vehicles.set_active_for_driver(driver_id, active)
        if matched == 0:
            raise NotFoundError("No vehicles found for this driver")
        await self.session.commit()
        return await self.vehicles.for_driver(driver_id)

    async def list_vehicles(self) -> list[VehicleModel]:
        return await self.vehicles.list_all()

    async def vehicles_for_driver(self, driver_id: int) -> list[VehicleModel]:
        return await self.vehicles.for_driver(driver_id)

    async def available_vehicles(self) -> list[VehicleModel]:
        vehicles = await self.vehicles.get_active()
        busy = await self.bookings.get_busy()
        drivers = await self.users.list_by_role(UserRole.DRIVER)
        return available_vehicles(vehicles, busy, drivers)

    # ── Maintenance ───────────────────────────────────────────────────

    async def clear_all_data(self, requester: UserModel) -> dict[str, int]:
        """Administrative bulk clear.  The super admin account survives."""
        ensure_super_admin(requester)
        cleared = {
            "feedback": await FeedbackRepository(self.session).delete_all(),
            "bookings": await self.bookings.delete_all(),
            "vehicles": await self.vehicles.delete_all(),
        }
        users = [u for u in await self.users.list_all() if not u.is_super_admin]
        for user in users:
            await self.users.delete(user)
        cleared["users"] = len(users)
        await self.session.commit()
        logger.warning("All data cleared by Super Admin %s: %s", requester.id, cleared)
        return cleared

"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - the Super Admin (the only account that can manage other admins)
  - 4 approved drivers, each with one vehicle, plus 1 driver awaiting approval
  - 5 customers
  - 3 sample bookings (Requested, Pending, Delivered) and one rating
"""

import asyncio

from sqlalchemy import text

from src.domain.distance import route_km
from src.domain.entities import Location
from src.domain.enums import BookingStatus, UserRole, VehicleType
from src.domain.pricing import PricingEngine
from src.config import settings
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import (
    BookingModel,
    FeedbackModel,
    UserModel,
    VehicleModel,
)

SUPER_ADMIN = {"name": "Super Admin", "email": "admin@dispatch.local"}

DRIVERS = [
    {"name": "Ravi Kumar", "email": "ravi@example.com", "vehicle_type": VehicleType.TATA_ACE},
    {"name": "Suresh Yadav", "email": "suresh@example.com", "vehicle_type": VehicleType.MAHINDRA_BOLERO},
    {"name": "Imran Khan", "email": "imran@example.com", "vehicle_type": VehicleType.BOX_TRUCK},
    {"name": "Deepak Rao", "email": "deepak@example.com", "vehicle_type": VehicleType.SCOOTER},
]

PENDING_DRIVER = {"name": "Manoj Das", "email": "manoj@example.com", "vehicle_type": VehicleType.TATA_ACE}

VEHICLES = [
    {"vehicle_name": "Tata Ace Gold", "number": "MH01AB1234", "capacity": 750},
    {"vehicle_name": "Mahindra Bolero Pickup", "number": "MH02CD5678", "capacity": 1500},
    {"vehicle_name": "Eicher Pro 2049 Box", "number": "MH03EF9012", "capacity": 4000},
    {"vehicle_name": "Honda Activa", "number": "MH04GH3456", "capacity": 20},
]

CUSTOMERS = [
    {"name": "Aarav Sharma", "email": "aarav@example.com"},
    {"name": "Priya Patel", "email": "priya@example.com"},
    {"name": "Rohan Mehta", "email": "rohan@example.com"},
    {"name": "Sneha Gupta", "email": "sneha@example.com"},
    {"name": "Meera Nair", "email": "meera@example.com"},
]

# Around Mumbai
ANDHERI = Location(19.1197, 72.8468, "Andheri West, Mumbai")
POWAI = Location(19.1176, 72.9060, "Powai, Mumbai")
BANDRA = Location(19.0596, 72.8295, "Bandra West, Mumbai")
DADAR = Location(19.0178, 72.8478, "Dadar, Mumbai")


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        admin = UserModel(
            role=UserRole.ADMIN, is_super_admin=True, approved=True, **SUPER_ADMIN
        )
        drivers = [
            UserModel(role=UserRole.DRIVER, approved=True, is_active=True, **d)
            for d in DRIVERS
        ]
        pending = UserModel(role=UserRole.DRIVER, approved=False, **PENDING_DRIVER)
        customers = [UserModel(role=UserRole.CUSTOMER, **c) for c in CUSTOMERS]
        session.add_all([admin, *drivers, pending, *customers])
        await session.flush()
        print(f"  Created 1 admin, {len(drivers) + 1} drivers, {len(customers)} customers")

        # ── Vehicles ──────────────────────────────────────────────────
        vehicles = []
        for driver, v in zip(drivers, VEHICLES):
            m = VehicleModel(
                driver_id=driver.id,
                driver_name=driver.name,
                type=driver.vehicle_type,
                active=True,
                **v,
            )
            session.add(m)
            vehicles.append(m)
        await session.flush()
        print(f"  Created {len(vehicles)} vehicles")

        # ── Bookings ──────────────────────────────────────────────────
        pricing = PricingEngine(settings.rate_per_km)

        def booking(customer, pickup, destination, status, driver=None, vehicle=None):
            distance = route_km(pickup, destination)
            return BookingModel(
                customer_id=customer.id,
                customer_name=customer.name,
                driver_id=driver.id if driver else None,
                driver_name=driver.name if driver else None,
                vehicle_id=vehicle.id if vehicle else None,
                vehicle_name=vehicle.vehicle_name if vehicle else None,
                vehicle_type=vehicle.type.value if vehicle else None,
                status=status,
                pickup_location=pickup.to_dict(),
                destination_location=destination.to_dict(),
                distance=distance,
                price=pricing.quote(distance),
            )

        requested = booking(customers[0], ANDHERI, POWAI, BookingStatus.REQUESTED)
        assigned = booking(
            customers[1], BANDRA, DADAR, BookingStatus.PENDING, drivers[0], vehicles[0]
        )
        delivered = booking(
            customers[2], POWAI, BANDRA, BookingStatus.DELIVERED, drivers[1], vehicles[1]
        )
        session.add_all([requested, assigned, delivered])
        await session.flush()
        print("  Created 3 bookings")

        # ── Feedback ──────────────────────────────────────────────────
        session.add(
            FeedbackModel(
                booking_id=delivered.id,
                customer_id=customers[2].id,
                customer_name=customers[2].name,
                driver_id=drivers[1].id,
                driver_name=drivers[1].name,
                rating=5,
                comment="On time and careful with the boxes.",
            )
        )
        await session.flush()
        print("  Created 1 feedback")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())

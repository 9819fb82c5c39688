"""
Database seeding script for the route catalogue.

Creates the Lagos routes with their pickup points, the default company
settings and one demo user per role. Safe to re-run: existing rows are
left alone.
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from ridepool.app.core.config import settings
from ridepool.app.db.session import AsyncSessionLocal, engine, Base
from ridepool.app.models.company_setting import CompanySetting, SettingKey
from ridepool.app.models.enums import UserRole
from ridepool.app.models.route import Route, PickupPoint
from ridepool.app.models.user import User
import ridepool.app.main  # noqa: F401  registers every model with Base


ROUTES = [
    {
        "origin": "Lekki", "destination": "Victoria Island",
        "price": Decimal("2500.00"), "distance_km": Decimal("8"), "duration_mins": 25,
        "pickup_points": [
            ("Lekki Phase 1", "6.4449", "3.4774"),
            ("Lekki Phase 2", "6.4369", "3.4869"),
            ("Admiralty Way", "6.4504", "3.4727"),
        ],
    },
    {
        "origin": "Ikeja", "destination": "Yaba",
        "price": Decimal("3500.00"), "distance_km": Decimal("18"), "duration_mins": 40,
        "pickup_points": [
            ("Ikeja City Mall", "6.6018", "3.3515"),
            ("Computer Village", "6.5954", "3.3376"),
            ("Yaba Bus Stop", "6.5134", "3.3711"),
            ("Tejuosho", "6.5144", "3.3621"),
        ],
    },
    {
        "origin": "Ajah", "destination": "Obalende",
        "price": Decimal("4000.00"), "distance_km": Decimal("22"), "duration_mins": 55,
        "pickup_points": [
            ("Ajah Market", "6.4449", "3.5774"),
            ("Sangotedo", "6.4369", "3.5869"),
            ("TBS", "6.4504", "3.4727"),
            ("Obalende", "6.4434", "3.3811"),
        ],
    },
]

COMPANY_SETTINGS = [
    (SettingKey.COMMISSION_PERCENTAGE, f"{settings.default_commission_percentage:.2f}",
     "Default commission percentage taken from driver payments"),
    (SettingKey.MAIN_ACCOUNT_NUMBER, "0000000000", "SpotRoute main account number"),
    (SettingKey.MAIN_ACCOUNT_BANK, "SpotRoute Bank", "SpotRoute main account bank name"),
    (SettingKey.MAIN_ACCOUNT_NAME, "SpotRoute Limited", "SpotRoute main account name"),
]

DEMO_USERS = [
    {"email": "admin@ridepool.ng", "name": "Platform Admin", "role": UserRole.ADMIN},
    {"email": "driver@ridepool.ng", "name": "Tunde Driver", "role": UserRole.DRIVER,
     "car_model": "Toyota Corolla", "car_plate": "LND-123-AA"},
    {"email": "rider@ridepool.ng", "name": "Ada Rider", "role": UserRole.RIDER},
]


async def seed():
    """Create tables if needed, then seed routes, settings and demo users."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting catalogue seeding...")

        for entry in ROUTES:
            result = await db.execute(
                select(Route).where(Route.origin == entry["origin"], Route.destination == entry["destination"])
            )
            if result.scalar_one_or_none():
                print(f"ℹ️  Route {entry['origin']} -> {entry['destination']} exists, skipping")
                continue

            route = Route(
                origin=entry["origin"],
                destination=entry["destination"],
                price=entry["price"],
                distance_km=entry["distance_km"],
                duration_mins=entry["duration_mins"],
            )
            db.add(route)
            await db.flush()
            for name, lat, lng in entry["pickup_points"]:
                db.add(PickupPoint(route_id=route.id, name=name, lat=Decimal(lat), lng=Decimal(lng)))
            print(f"✅ Created route {route.origin} -> {route.destination} ({len(entry['pickup_points'])} pickup points)")

        for key, value, description in COMPANY_SETTINGS:
            result = await db.execute(select(CompanySetting).where(CompanySetting.setting_key == key))
            if result.scalar_one_or_none() is None:
                db.add(CompanySetting(setting_key=key, setting_value=value, description=description))
                print(f"✅ Created setting {key}={value}")

        for user_data in DEMO_USERS:
            result = await db.execute(select(User).where(User.email == user_data["email"]))
            if result.scalar_one_or_none() is None:
                db.add(User(is_active=True, **user_data))
                print(f"✅ Created {user_data['role'].value} user ({user_data['email']})")

        await db.commit()
        print("🎉 Seeding complete")


if __name__ == "__main__":
    asyncio.run(seed())

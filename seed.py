"""
Seed script -- populates the provider roster and a demo customer.

Run after migrations:
    python seed.py

Creates one or more providers per service type, all available.  Matching
always picks the first available provider of a type, so roster order
matters: the first entry of each type takes jobs first.
"""

import asyncio

from sqlalchemy import func, select

from roadside.domain.enums import ProviderStatus, ServiceType, UserRole
from roadside.infrastructure.database import async_session_factory, engine
from roadside.infrastructure.models import ProviderModel, UserModel
from roadside.services.accounts import hash_password

PROVIDERS = [
    {"name": "Sarah K.", "service_type": ServiceType.FLAT_TIRE, "plate": "XYZ-5432", "lat": 40.7100, "lng": -74.0000},
    {"name": "Mike J.", "service_type": ServiceType.FLAT_TIRE, "plate": "ABC-1234", "lat": 40.7200, "lng": -74.0100},
    {"name": "Lena P.", "service_type": ServiceType.LOCKSMITH, "plate": "LCK-2201", "lat": 40.7300, "lng": -73.9900},
    {"name": "Omar B.", "service_type": ServiceType.EMERGENCY, "plate": "JMP-7788", "lat": 40.7050, "lng": -74.0150},
    {"name": "Dana R.", "service_type": ServiceType.EMERGENCY, "plate": "JMP-3410", "lat": 40.7400, "lng": -73.9800},
    {"name": "Tom H.", "service_type": ServiceType.TOWING, "plate": "TOW-9001", "lat": 40.6900, "lng": -74.0300},
]

DEMO_CUSTOMER = {
    "name": "Demo Customer",
    "email": "demo@example.com",
    "password": "roadside-demo",
    "license_plate": "DEMO-001",
}


async def seed():
    async with async_session_factory() as session:
        existing = (
            await session.execute(select(func.count()).select_from(ProviderModel))
        ).scalar()
        if existing:
            print("Provider roster already seeded. Skipping.")
            return

        session.add(
            UserModel(
                name=DEMO_CUSTOMER["name"],
                email=DEMO_CUSTOMER["email"],
                password_hash=hash_password(DEMO_CUSTOMER["password"]),
                license_plate=DEMO_CUSTOMER["license_plate"],
                role=UserRole.CUSTOMER,
            )
        )
        for p in PROVIDERS:
            session.add(
                ProviderModel(
                    name=p["name"],
                    service_type=p["service_type"],
                    status=ProviderStatus.AVAILABLE,
                    plate=p["plate"],
                    latitude=p["lat"],
                    longitude=p["lng"],
                )
            )
        await session.commit()
        print(f"  Created {len(PROVIDERS)} providers")
        print(f"  Created customer {DEMO_CUSTOMER['email']}")
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())

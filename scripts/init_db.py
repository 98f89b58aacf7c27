"""Script to initialize the database.

Usage:
    python scripts/init_db.py           # create tables
    python scripts/init_db.py --seed    # create tables and add demo users
"""

import asyncio
import sys

from sqlalchemy import insert, text

from app.database import engine
from app.models import doctor_profiles, metadata, users

DEMO_USERS = [
    {
        "email": "admin@clinic.test",
        "first_name": "Ada",
        "last_name": "Admin",
        "role": "admin",
    },
    {
        "email": "dr.house@clinic.test",
        "first_name": "Gregory",
        "last_name": "House",
        "role": "doctor",
    },
    {
        "email": "patient@clinic.test",
        "first_name": "Pat",
        "last_name": "Ient",
        "role": "patient",
    },
]


async def init_db(seed: bool = False) -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "btree_gist"'))

        await conn.run_sync(metadata.create_all)
        print("✓ Database initialized successfully!")

        if seed:
            result = await conn.execute(insert(users).values(DEMO_USERS).returning(users))
            created = result.mappings().all()
            for row in created:
                if row["role"] == "doctor":
                    await conn.execute(
                        insert(doctor_profiles).values(
                            user_id=row["id"],
                            specialization="Diagnostic Medicine",
                            license_number="LIC-0001",
                        )
                    )
            for row in created:
                print(f"  {row['role']:<8} {row['email']:<24} {row['id']}")
            print("✓ Demo users created!")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db(seed="--seed" in sys.argv[1:]))

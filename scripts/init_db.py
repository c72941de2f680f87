"""Script to initialize the database.

Usage:
    python scripts/init_db.py            # alembic upgrade head
    python scripts/init_db.py --create-all
    python scripts/init_db.py --seed     # also insert demo reference data
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402
from sqlalchemy import insert, select, text  # noqa: E402

from app.database import AsyncSessionLocal, engine  # noqa: E402
from app.models import departments, locations, metadata, providers  # noqa: E402


def run_migrations() -> None:
    """Upgrade the schema to the latest revision."""
    alembic_cfg = Config(str(Path(__file__).parent.parent / "alembic.ini"))
    command.upgrade(alembic_cfg, "head")


async def create_all() -> None:
    """Create every table straight from the table metadata, bypassing alembic."""
    async with engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        await conn.run_sync(metadata.create_all)


async def seed() -> None:
    """Insert one department, location and provider unless already present."""
    async with AsyncSessionLocal() as session:
        existing = await session.execute(select(departments.c.id).where(departments.c.code == "GEN"))
        if existing.scalar_one_or_none():
            print("Seed data already present, skipping")
            return

        department_id = (
            await session.execute(
                insert(departments)
                .values(name="General Medicine", code="GEN")
                .returning(departments.c.id)
            )
        ).scalar_one()
        await session.execute(
            insert(locations).values(name="Main Clinic", building="A", floor="1", room="101")
        )
        await session.execute(
            insert(providers).values(
                department_id=department_id,
                first_name="Ada",
                last_name="Okafor",
                title="Dr.",
                specialty="Family Medicine",
            )
        )
        await session.commit()
        print("✓ Seed data inserted")


async def main(args: argparse.Namespace) -> None:
    if args.create_all:
        await create_all()
    else:
        # alembic's env.py drives its own event loop
        await asyncio.to_thread(run_migrations)
    print("✓ Database initialized successfully!")

    if args.seed:
        await seed()

    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Initialize the scheduling database")
    parser.add_argument("--create-all", action="store_true", help="Skip alembic, create tables directly")
    parser.add_argument("--seed", action="store_true", help="Insert demo reference data")
    asyncio.run(main(parser.parse_args()))

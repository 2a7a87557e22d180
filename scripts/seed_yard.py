"""Seed a demo container yard (random grounded stacks)."""
import argparse
import asyncio
import random

from app.config import settings
from app.database import async_session_factory, init_db
from app.services.yard_service import YardService


async def seed(seed_value: int | None, occupancy: float):
    """Create tables and fill the yard."""
    await init_db()
    async with async_session_factory() as db:
        try:
            print("Clearing yard and seeding slots...")
            summary = await YardService(db).seed_yard(
                yard=settings.SEED_YARD,
                blocks=settings.SEED_BLOCKS,
                max_bay=settings.SEED_MAX_BAY,
                max_row=settings.SEED_MAX_ROW,
                max_tier=settings.SEED_MAX_TIER,
                occupancy=occupancy,
                rng=random.Random(seed_value),
            )
            await db.commit()
            print(f"Created {summary['slots']} slots")
            print(f"Containers in yard: {summary['containers']}")
        except Exception as e:
            await db.rollback()
            print(f"Error seeding yard: {e}")
            raise


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the container yard with demo occupancy")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible yard")
    parser.add_argument("--occupancy", type=float, default=settings.SEED_OCCUPANCY,
                        help="Share of stacks holding at least one container")
    args = parser.parse_args()

    asyncio.run(seed(args.seed, args.occupancy))

"""
Rebuild the chargeline schema from the current models.

Drops every chargeline table (orders, reservations, sales and stations),
creates them again and optionally registers the starter stations so the
booking pages and the operator console have something to show.

Usage:
    python scripts/recreate_tables.py [--seed] [--yes]
"""

import argparse
import asyncio

from loguru import logger

import chargeline.models  # noqa: F401
from chargeline.database import AsyncSessionLocal, Base, close_db, engine
from chargeline.stations import DEFAULT_STATIONS, seed_default_stations


async def recreate_tables(seed: bool = False) -> bool:
    """Drop and create all tables, then seed stations if asked."""
    try:
        async with engine.begin() as conn:
            logger.info(f"Dropping tables: {', '.join(Base.metadata.tables)}")
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
            logger.info("Schema recreated")

        if seed:
            async with AsyncSessionLocal() as db:
                created = await seed_default_stations(db)
            for station in created:
                print(f"   🔌 {station.station_id}: {station.type}, {station.power}, {station.connector}")

        return True

    except Exception as e:
        logger.error(f"Failed to recreate tables: {e}")
        return False
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Drop and recreate the chargeline tables")
    parser.add_argument(
        "--seed",
        action="store_true",
        help=f"register the {len(DEFAULT_STATIONS)} default stations afterwards",
    )
    parser.add_argument("--yes", action="store_true", help="do not ask for confirmation")
    args = parser.parse_args()

    if not args.yes:
        print("⚠️  WARNING: This deletes every charging order, reservation, sale and station!")
        response = input("Are you sure you want to continue? (y/N): ")
        if response.lower() != "y":
            print("Operation cancelled.")
            return

    if asyncio.run(recreate_tables(seed=args.seed)):
        print("✅ Chargeline tables recreated")
    else:
        print("❌ Failed to recreate chargeline tables")


if __name__ == "__main__":
    main()

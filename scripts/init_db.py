"""
Database initialization script - CityBuilder collections and indexes

Run once (or after schema changes) to create indexes:
    python scripts/init_db.py
    python scripts/init_db.py --drop     # drop custom indexes first
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables before settings are read
load_dotenv()

from citybuilder.core.logging import setup_logging, get_logger
from citybuilder.db.indexes import create_indexes, drop_all_indexes
from citybuilder.db.mongo import (
    BUILD_PROJECTS_COLLECTION,
    BUILD_STEPS_COLLECTION,
    USERS_COLLECTION,
    close_mongo_connection,
    connect_to_mongo,
    get_database,
)

setup_logging()
logger = get_logger("scripts.init_db")

COLLECTIONS = [USERS_COLLECTION, BUILD_PROJECTS_COLLECTION, BUILD_STEPS_COLLECTION]


async def report():
    """Log the indexes and document counts of every collection."""
    db = get_database()

    logger.info("🔍 Verifying indexes...")
    for name in COLLECTIONS:
        indexes = await db[name].index_information()
        count = await db[name].count_documents({})
        logger.info(f"  {name}: {count} document(s)")
        for idx_name in indexes.keys():
            if idx_name != "_id_":
                logger.info(f"    ✅ {idx_name}")


async def main(drop: bool):
    logger.info("=" * 60)
    logger.info("  CityBuilder Database Setup")
    logger.info("=" * 60)

    await connect_to_mongo()
    try:
        if drop:
            await drop_all_indexes()
        await create_indexes()
        await report()
        logger.info("✅ Database initialization complete!")
    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create CityBuilder MongoDB indexes")
    parser.add_argument("--drop", action="store_true", help="drop custom indexes before creating them")
    args = parser.parse_args()

    asyncio.run(main(args.drop))

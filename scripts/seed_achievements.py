#!/usr/bin/env python3
"""
Achievement Catalog Seed Script

Loads the default achievement catalog into the achievements table.

Key Features:
- Idempotent: upserts by slug, so it can run multiple times safely
- Validates the whole catalog before writing anything

Usage:
    python scripts/seed_achievements.py

Requirements:
    - Database connection configured (DATABASE_URL env var)
    - migrations/001_gamification_engine.sql applied
"""
import asyncio
import logging
import sys

from achievement_engine.config import LOG_LEVEL, validate_config
from achievement_engine.db.connection import db
from achievement_engine.db.queries import PostgresStore
from achievement_engine.exceptions import GamificationError
from achievement_engine.gamification.catalog import default_catalog
from achievement_engine.monitoring import init_sentry

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def seed() -> int:
    """Upsert every default achievement; returns how many were written"""
    definitions = default_catalog()
    store = PostgresStore(db)

    await db.init_pool()
    try:
        for definition in definitions:
            await store.upsert_achievement(definition)
            logger.info(f"Seeded achievement: {definition.slug} ({definition.title})")
    finally:
        await db.close_pool()

    return len(definitions)


def main() -> int:
    try:
        validate_config()
        init_sentry()
        count = asyncio.run(seed())
    except GamificationError as e:
        logger.error(f"Seeding failed: {e.message}")
        return 1

    logger.info(f"✅ Seeded {count} achievements")
    return 0


if __name__ == "__main__":
    sys.exit(main())

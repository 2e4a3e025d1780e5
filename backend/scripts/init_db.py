#!/usr/bin/env python3
"""
Initialize database tables without alembic
Creates all tables registered on SQLModel.metadata using DB_URL
"""

import asyncio
import logging
import sys

from tabiplan.db.session import db_manager, init_db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def init_database():
    try:
        await init_db()
        health = await db_manager.health_check()
        logger.info(f"Database status after init: {health['status']}")
    finally:
        await db_manager.close()


if __name__ == "__main__":
    try:
        asyncio.run(init_database())
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)

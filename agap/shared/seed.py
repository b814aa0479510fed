import uuid
import logging

from .db import execute_query
from agap.shared import config
from agap.auth.utils import hash_password

logger = logging.getLogger(__name__)

async def is_table_empty(table_name):
    """Check if a table is empty."""
    result = await execute_query(
        f"SELECT COUNT(*) as count FROM {table_name}",
        (),
        fetch_one=True
    )
    return result is not None and result["count"] == 0

async def seed_data():
    """Create the first admin account when the profiles table is empty"""
    try:
        logger.info("Starting database seeding process.")

        if not await is_table_empty("profiles"):
            logger.info("Profiles table is not empty. Skipping seeding.")
            return

        if not config.ADMIN_PASSWORD:
            logger.warning("ADMIN_PASSWORD not set. Skipping admin account seeding.")
            return

        admin_id = str(uuid.uuid4())
        logger.info(f"Seeding admin account '{config.ADMIN_EMAIL}' with ID: {admin_id}")
        await execute_query(
            """
            INSERT INTO profiles (id, email, password_hash, full_name, role, created_at)
            VALUES ($1, $2, $3, $4, 'admin', NOW())
            ON CONFLICT (email) DO NOTHING
            """,
            (admin_id, config.ADMIN_EMAIL, hash_password(config.ADMIN_PASSWORD), "AGAP Administrator"),
            commit=True
        )
        logger.info("Database seeding completed.")
    except Exception as e:
        logger.exception(f"Error seeding data: {e}")
        raise

"""
citybuilder/db/indexes.py

Purpose: Database index management

- Creates unique and performance indexes
- Ensures fast lookups and data integrity
"""

from pymongo import ASCENDING, DESCENDING

from citybuilder.db.mongo import (
    get_users_collection,
    get_build_projects_collection,
    get_build_steps_collection
)
from citybuilder.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        users = get_users_collection()
        projects = get_build_projects_collection()
        steps = get_build_steps_collection()

        logger.info("Creating database indexes...")

        # ==============================================
        # USERS COLLECTION INDEXES
        # ==============================================

        await users.create_index("email", unique=True, name="email_unique")
        logger.debug("Created unique index on users.email")

        await users.create_index("user_nano_id", unique=True, name="user_nano_id_unique")
        logger.debug("Created unique index on users.user_nano_id")

        await users.create_index("updated_at", name="updated_at_idx")
        await users.create_index("deleted_at", name="deleted_at_idx")
        logger.debug("Created indexes on users.updated_at, users.deleted_at")

        # ==============================================
        # BUILD PROJECTS COLLECTION INDEXES
        # ==============================================

        await projects.create_index("owner_user_id", name="project_owner_idx")
        await projects.create_index("status", name="project_status_idx")
        await projects.create_index("current_step_type", name="project_step_type_idx")

        # Listing queries: owner + status, newest first
        await projects.create_index(
            [("owner_user_id", ASCENDING), ("status", ASCENDING), ("updated_at", DESCENDING)],
            name="project_listing_idx"
        )
        logger.debug("Created indexes on build_projects")

        # ==============================================
        # BUILD STEPS COLLECTION INDEXES
        # ==============================================

        await steps.create_index(
            [("project_id", ASCENDING), ("created_at", ASCENDING)],
            name="step_project_created_idx"
        )
        await steps.create_index(
            [("project_id", ASCENDING), ("step_type", ASCENDING)],
            name="step_project_type_idx"
        )
        await steps.create_index(
            [("owner_user_id", ASCENDING), ("status", ASCENDING)],
            name="step_owner_status_idx"
        )
        logger.debug("Created indexes on build_steps")

        logger.info("✅ All database indexes created successfully")

        user_indexes = await users.index_information()
        project_indexes = await projects.index_information()
        step_indexes = await steps.index_information()

        logger.info(
            f"Index summary: Users={len(user_indexes)}, "
            f"Projects={len(project_indexes)}, "
            f"Steps={len(step_indexes)}"
        )

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


async def drop_all_indexes():
    """
    Drops all custom indexes (keeps _id index).
    Use with caution! Only for maintenance/migration.
    """
    try:
        logger.warning("Dropping all database indexes...")

        await get_users_collection().drop_indexes()
        await get_build_projects_collection().drop_indexes()
        await get_build_steps_collection().drop_indexes()

        logger.info("✅ All indexes dropped successfully")

    except Exception as e:
        logger.error(f"Failed to drop indexes: {str(e)}", exc_info=True)
        raise

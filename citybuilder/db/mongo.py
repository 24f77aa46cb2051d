"""
citybuilder/db/mongo.py

Purpose: MongoDB connection setup

- Initializes Motor client with connection pooling
- Collections: users, build_projects, build_steps
- Health checks and retry logic
- Proper connection lifecycle management
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import Optional
import asyncio
from citybuilder.core.config import settings
from citybuilder.core.logging import get_logger

logger = get_logger(__name__)

USERS_COLLECTION = "users"
BUILD_PROJECTS_COLLECTION = "build_projects"
BUILD_STEPS_COLLECTION = "build_steps"

# Global MongoDB client
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo():
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    max_retries = 3
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(
                f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})"
            )

            _client = AsyncIOMotorClient(
                settings.MONGODB_URL,
                maxPoolSize=50,
                minPoolSize=10,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
            )

            _database = _client[settings.MONGODB_DB_NAME]

            # Verify connection
            await _client.admin.command("ping")

            logger.info(
                f"✅ Successfully connected to MongoDB: {settings.MONGODB_DB_NAME}"
            )
            return

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(
                f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}"
            )
            _client = None
            _database = None

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


async def check_database_health() -> bool:
    """
    Checks if the database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        if _client is None:
            logger.error("MongoDB client not initialized")
            return False

        await _client.admin.command("ping")
        return True

    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the MongoDB database instance.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database


def get_users_collection():
    """
    Returns the users collection.

    Fields:
    - user_nano_id: str (unique short id)
    - name, email (unique, lowercase), password (bcrypt hash)
    - is_email_verified: bool
    - account_verification_otp / account_verification_otp_expiry
    - reset_password_otp / reset_password_otp_expiry
    - reset_password_at, account_verified_at: datetime
    - expo_push_token: str
    - deleted_at, created_at, updated_at: datetime
    """
    return get_database()[USERS_COLLECTION]


def get_build_projects_collection():
    """
    Returns the build_projects collection.

    Fields:
    - owner_user_id: ObjectId
    - status: active | completed | archived
    - summary: {lot_address, lot_size_dimensions, lot_price}
    - current_step_type: str, current_step_index: int
    - intake_started_at, created_at, updated_at: datetime
    """
    return get_database()[BUILD_PROJECTS_COLLECTION]


def get_build_steps_collection():
    """
    Returns the build_steps collection.

    Fields:
    - project_id, owner_user_id: ObjectId
    - step_type, step_number, title, status
    - date_start, date_end: free-form strings
    - cost_amount: float, cost_currency: str
    - notes: str, photos: list[dict], data: dict
    - revision_number: int
    - created_at, updated_at: datetime
    """
    return get_database()[BUILD_STEPS_COLLECTION]

"""Database connection and initialization."""

import logging
from typing import Optional

from beanie import init_beanie
from fastapi_users.db import BeanieUserDatabase
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from jobportal.config import settings
from jobportal.schemas.payments import PaymentDocument
from jobportal.schemas.subscriptions import SubscriptionDocument
from jobportal.schemas.users import User

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None


async def get_user_db():
    yield BeanieUserDatabase(User)  # type: ignore


def get_client() -> AsyncIOMotorClient:
    """Get the MongoDB client, creating it on first use.

    Returns:
        AsyncIOMotorClient: The MongoDB client
    """
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(settings.database.uri, **settings.database.client_options)
    return _client


async def init_db() -> None:
    """Initialize the database connection and document models."""
    logger.info(f"Connecting to MongoDB: {settings.database.uri}")

    client = get_client()

    logger.info(f"Initializing Beanie with database: {settings.database.database_name}")

    document_models = [
        SubscriptionDocument,
        PaymentDocument,
        User,
    ]

    try:
        await init_beanie(
            database=client[settings.database.database_name],
            document_models=document_models,
        )
        logger.info("Database initialization successful")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


def close_db() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None


async def check_connection() -> bool:
    """Check if the database connection is healthy.

    Returns:
        bool: True if connection is healthy, False otherwise
    """
    try:
        await get_client().admin.command("ping")
        return True
    except PyMongoError as e:
        logger.error(f"Database connection check failed: {e}")
        return False

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from app.core.config import Settings
import logging

logger = logging.getLogger(__name__)


def create_mongo_client(settings: Settings) -> AsyncIOMotorClient:
    """
    Create a MongoDB client with bounded timeouts

    The client connects lazily; call ping() to test the connection.
    """
    return AsyncIOMotorClient(
        settings.mongodb_url,
        tz_aware=True,
        serverSelectionTimeoutMS=settings.store_timeout_ms,
        connectTimeoutMS=settings.store_timeout_ms,
        socketTimeoutMS=settings.store_timeout_ms,
    )


async def ping(client: AsyncIOMotorClient) -> None:
    """Test the connection, raising if MongoDB is unreachable"""
    await client.admin.command('ping')


async def connect_to_mongo(client: AsyncIOMotorClient, url: str) -> None:
    """Connect to MongoDB and test the connection"""
    try:
        await ping(client)
        logger.info(f"✓ Connected to MongoDB at {url}")
    except Exception as e:
        logger.error(f"✗ Failed to connect to MongoDB: {e}")
        raise


def close_mongo_connection(client: AsyncIOMotorClient) -> None:
    """Close MongoDB connection"""
    if client:
        client.close()
        logger.info("✓ Closed MongoDB connection")


def get_database(client: AsyncIOMotorClient, database_name: str) -> AsyncIOMotorDatabase:
    """Get the database instance"""
    return client[database_name]

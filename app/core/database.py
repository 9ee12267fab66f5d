"""
MongoDB database connection and management
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)


class Database:
    """
    MongoDB database manager
    """
    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None


database = Database()


async def connect_to_mongo():
    """
    Establish connection to MongoDB
    Called on application startup
    """
    try:
        logger.info("Connecting to MongoDB...")

        database.client = AsyncIOMotorClient(
            settings.MONGODB_URL,
            minPoolSize=settings.MONGODB_MIN_POOL_SIZE,
            maxPoolSize=settings.MONGODB_MAX_POOL_SIZE,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=10000,
            socketTimeoutMS=10000
        )

        database.db = database.client[settings.MONGODB_DB_NAME]

        # Test connection
        await database.client.admin.command('ping')

        logger.info(f"Successfully connected to MongoDB: {settings.MONGODB_DB_NAME}")

        await create_indexes(database.db)

    except ConnectionFailure as e:
        logger.error(f"Failed to connect to MongoDB: {str(e)}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error connecting to MongoDB: {str(e)}")
        raise


async def close_mongo_connection():
    """
    Close MongoDB connection
    Called on application shutdown
    """
    try:
        if database.client:
            database.client.close()
            logger.info("MongoDB connection closed")
    except Exception as e:
        logger.error(f"Error closing MongoDB connection: {str(e)}")


async def get_database() -> AsyncIOMotorDatabase:
    """
    Get database instance
    Used as dependency in API endpoints
    """
    return database.db


async def create_indexes(db: AsyncIOMotorDatabase):
    """
    Create database indexes for the reporting, import, integration and cluster collections
    """
    try:
        logger.info("Creating database indexes...")

        reporting = db[settings.REPORTING_COLLECTION]
        await reporting.create_index([("importId", 1)])
        await reporting.create_index([("source", 1), ("date", 1)])
        await reporting.create_index([("importId", 1), ("source", 1)])
        await reporting.create_index([("siteUrl", 1), ("date", 1)])
        await reporting.create_index([("siteUrl", 1), ("date", 1), ("query", 1)])
        await reporting.create_index([("source", 1), ("date", 1), ("query", 1)])
        await reporting.create_index([("metric_type", 1)])
        await reporting.create_index([("isTimeSeries", 1)])

        imports = db[settings.IMPORTS_COLLECTION]
        await imports.create_index([("importId", 1)], unique=True)
        await imports.create_index([("source", 1), ("siteUrl", 1), ("createdAt", -1)])

        integrations = db[settings.INTEGRATIONS_COLLECTION]
        await integrations.create_index([("session_id", 1), ("platform", 1)], unique=True)

        clusters = db[settings.CLUSTERS_COLLECTION]
        await clusters.create_index([("sessionId", 1), ("clusterId", 1)], unique=True)
        await clusters.create_index([("sessionId", 1), ("createdAt", 1)])

        logger.info("Database indexes created successfully")

    except Exception as e:
        logger.error(f"Error creating indexes: {str(e)}")
        # Don't raise - indexes are optimization, not critical


async def check_database_health() -> bool:
    """
    Check if database connection is healthy
    """
    try:
        await database.client.admin.command('ping')
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False

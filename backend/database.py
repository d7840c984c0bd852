import logging

import certifi
from motor.motor_asyncio import AsyncIOMotorClient
from config import get_settings

logger = logging.getLogger(__name__)

client: AsyncIOMotorClient = None
db = None


async def connect_to_mongo():
    global client, db
    settings = get_settings()
    logger.info(f"MongoDB URI: {settings.mongodb_uri[:50]}...")  # First 50 chars only
    client = AsyncIOMotorClient(
        settings.mongodb_uri,
        serverSelectionTimeoutMS=5000,  # 5 second timeout
        tlsCAFile=certifi.where(),
    )
    db = client[settings.mongodb_database]
    # Test connection; the app still starts and reports "degraded" on /health
    try:
        await client.admin.command('ping')
        logger.info(f"Connected to MongoDB: {settings.mongodb_database}")
    except Exception as e:
        logger.error(f"MongoDB connection failed: {e}")


async def close_mongo_connection():
    global client, db
    if client:
        client.close()
        client = None
        db = None
        logger.info("Closed MongoDB connection")


def get_database():
    return db

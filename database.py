# database.py
import logging
import os

from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import DESCENDING

load_dotenv()

logger = logging.getLogger(__name__)

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "nexgen_db")

client = AsyncIOMotorClient(MONGO_URI, tz_aware=True)
db = client[MONGO_DB_NAME]

#tables
contacts_collection = db["contact_messages"]


async def create_indexes():
    """
    Create database indexes for the contact inbox queries.
    This should be called once at application startup.
    """
    try:
        await contacts_collection.create_index("status")
        await contacts_collection.create_index("created_at")
        # Admin inbox: filter by status, newest first
        await contacts_collection.create_index([("status", 1), ("created_at", DESCENDING)])

        logger.info("Database indexes created successfully")
    except Exception as e:
        # Don't raise - allow app to continue if indexes already exist
        logger.warning(f"Error creating indexes: {e}")


async def ping() -> bool:
    """Return True when MongoDB answers the ping command."""
    try:
        await db.command("ping")
        return True
    except Exception as e:
        logger.warning(f"MongoDB ping failed: {e}")
        return False

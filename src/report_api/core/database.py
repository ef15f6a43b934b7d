"""
MongoDB access using Motor.

The lifespan in `report_api/main.py` opens the client once per process and
keeps it on `app.state`. Handlers get the database through the
`get_database` dependency. There is no reconnect logic: if the server cannot
be selected at startup the process stops.
"""
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError

from .config import Settings
from .errors import DatabaseUnavailableError

logger = logging.getLogger(__name__)

USERS = "users"
REPORTS = "reports"


def create_client(settings: Settings) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(
        settings.mongodb_uri,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
    )


async def connect(settings: Settings) -> tuple[AsyncIOMotorClient, AsyncIOMotorDatabase]:
    """Open a client and make sure a server answers before returning it."""
    client = None
    try:
        client = create_client(settings)
        await client.admin.command("ping")
    except ServerSelectionTimeoutError as e:
        logger.error(f"Error connecting to MongoDB: {e}")
        logger.error("MongoDB server selection error. Is MongoDB running?")
        if client is not None:
            client.close()
        raise DatabaseUnavailableError(f"MongoDB server selection timed out: {e}") from e
    except PyMongoError as e:
        logger.error(f"Error connecting to MongoDB: {e}")
        if client is not None:
            client.close()
        raise DatabaseUnavailableError(f"Could not connect to MongoDB: {e}") from e

    db = client.get_default_database(default=settings.database_name)
    logger.info(f"Connected to MongoDB database '{db.name}'")
    return client, db


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db[USERS].create_index([("public_id", ASCENDING)], unique=True)
    await db[USERS].create_index([("username", ASCENDING)], unique=True)
    await db[USERS].create_index([("email", ASCENDING)], unique=True)
    await db[REPORTS].create_index([("public_id", ASCENDING)], unique=True)
    await db[REPORTS].create_index([("owner_id", ASCENDING), ("created_at", ASCENDING)])

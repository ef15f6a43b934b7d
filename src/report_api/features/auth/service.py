"""User storage on the `users` collection."""
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from ...common.models import generate_ksuid, utcnow, with_timestamps
from ...core.database import USERS

# Never hand Mongo's ObjectId to callers
_PROJECTION = {"_id": 0}


async def get_user_by_username(db: AsyncIOMotorDatabase, username: str) -> Optional[dict]:
    return await db[USERS].find_one({"username": username}, _PROJECTION)


async def get_user_by_email(db: AsyncIOMotorDatabase, email: str) -> Optional[dict]:
    return await db[USERS].find_one({"email": email}, _PROJECTION)


async def create_user(
    db: AsyncIOMotorDatabase,
    username: str,
    email: str,
    hashed_password: str,
    role: str = "customer",
) -> dict:
    """Inserts a new user document and returns it.

    Args:
        db: Database holding the `users` collection.
        username: Unique login name.
        email: Unique email address.
        hashed_password: bcrypt hash of the password.
        role: "customer" (default) or "admin".

    Returns:
        The stored document, without Mongo's `_id`.
    """
    document = with_timestamps({
        "public_id": generate_ksuid(),
        "username": username,
        "email": email,
        "hashed_password": hashed_password,
        "role": role,
        "is_active": True,
    })
    await db[USERS].insert_one(document)
    document.pop("_id", None)
    return document


async def set_role(db: AsyncIOMotorDatabase, username: str, role: str) -> bool:
    result = await db[USERS].update_one(
        {"username": username},
        {"$set": {"role": role, "updated_at": utcnow()}},
    )
    return result.matched_count == 1

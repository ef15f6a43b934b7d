"""FastAPI dependencies handing out the resources opened by the lifespan."""
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from .config import Settings
from .media import MediaStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> AsyncIOMotorDatabase:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise RuntimeError("Database is not initialized. It is opened in the application lifespan.")
    return db


def get_media_store(request: Request) -> MediaStore:
    store = getattr(request.app.state, "media_store", None)
    if store is None:
        raise RuntimeError("Media store is not initialized. It is created in the application lifespan.")
    return store

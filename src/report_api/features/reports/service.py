"""
Reports Service Module

Storage of reports on the `reports` collection. Non-admin users only ever
see and delete their own reports; admins see all of them.
"""
import logging
from typing import List

from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from ...common.models import generate_ksuid, with_timestamps
from ...core.database import REPORTS
from ...core.media import MediaStore, StoredAsset
from ..auth.security import is_admin

logger = logging.getLogger(__name__)

_PROJECTION = {"_id": 0}


async def create_report(
    db: AsyncIOMotorDatabase,
    current_user: dict,
    title: str,
    description: str,
    images: List[StoredAsset],
) -> dict:
    document = with_timestamps({
        "public_id": generate_ksuid(),
        "title": title,
        "description": description,
        "owner_id": current_user["public_id"],
        "images": [image.model_dump() for image in images],
    })
    await db[REPORTS].insert_one(document)
    document.pop("_id", None)
    logger.info(f"Report {document['public_id']} created by {current_user['username']} with {len(images)} image(s)")
    return document


async def list_reports(db: AsyncIOMotorDatabase, current_user: dict, page: int, size: int) -> List[dict]:
    query = {} if is_admin(current_user) else {"owner_id": current_user["public_id"]}
    cursor = (
        db[REPORTS]
        .find(query, _PROJECTION)
        .sort("created_at", DESCENDING)
        .skip((page - 1) * size)
        .limit(size)
    )
    return await cursor.to_list(length=size)


async def get_report(db: AsyncIOMotorDatabase, report_public_id: str, current_user: dict) -> dict:
    report = await db[REPORTS].find_one({"public_id": report_public_id}, _PROJECTION)
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Report {report_public_id} not found.")

    # Admin can see any report, regular users only their own.
    if not is_admin(current_user) and report["owner_id"] != current_user["public_id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to access this report.")

    return report


async def delete_report(
    db: AsyncIOMotorDatabase,
    store: MediaStore,
    report_public_id: str,
    current_user: dict,
) -> None:
    report = await get_report(db, report_public_id, current_user)
    for image in report.get("images", []):
        await store.destroy(image["public_id"])
    await db[REPORTS].delete_one({"public_id": report_public_id})
    logger.info(f"Report {report_public_id} deleted by {current_user['username']}")

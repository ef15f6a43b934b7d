import logging
from typing import Annotated, List

from fastapi import APIRouter, Depends, Form, Query, Response, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...core.dependencies import get_database, get_media_store
from ...core.media import MediaStore, StoredAsset
from ...core.uploads import upload_report_images
from ..auth.security import get_current_active_user
from . import service as report_service
from .schemas import ReportListResponse, ReportResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
    responses={404: {"description": "Not found"}},
)


@router.post("", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report(
    current_user: Annotated[dict, Depends(get_current_active_user)],
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
    # Resolved after authentication; rejected files never reach this handler
    images: Annotated[List[StoredAsset], Depends(upload_report_images)],
    title: Annotated[str, Form(min_length=1, max_length=200)],
    description: Annotated[str, Form(max_length=10_000)] = "",
):
    return await report_service.create_report(
        db, current_user, title=title, description=description, images=images
    )


@router.get("", response_model=ReportListResponse)
async def list_reports(
    current_user: Annotated[dict, Depends(get_current_active_user)],
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Number of reports per page"),
):
    items = await report_service.list_reports(db, current_user, page=page, size=size)
    return ReportListResponse(items=items, page=page, size=size)


@router.get("/{report_public_id}", response_model=ReportResponse)
async def get_report(
    report_public_id: str,
    current_user: Annotated[dict, Depends(get_current_active_user)],
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
):
    return await report_service.get_report(db, report_public_id, current_user)


@router.delete("/{report_public_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(
    report_public_id: str,
    current_user: Annotated[dict, Depends(get_current_active_user)],
    db: Annotated[AsyncIOMotorDatabase, Depends(get_database)],
    store: Annotated[MediaStore, Depends(get_media_store)],
):
    await report_service.delete_report(db, store, report_public_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

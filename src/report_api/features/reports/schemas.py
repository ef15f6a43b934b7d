"""Report API Schemas

Pydantic models for the report endpoints. A report is a titled description
owned by one user, with the images that were uploaded alongside it. Image
entries are the `StoredAsset` references returned by the media store."""
import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from ...core.media import StoredAsset


class ReportResponse(BaseModel):
    public_id: str = Field(..., description="KSUID of the report")
    title: str
    description: str = ""
    owner_id: str = Field(..., description="Public id of the user who created the report")
    images: List[StoredAsset] = []
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = ConfigDict(extra="ignore")


class ReportListResponse(BaseModel):
    items: List[ReportResponse]
    page: int
    size: int

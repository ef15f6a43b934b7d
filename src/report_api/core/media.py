"""Client for the remote media store (Cloudinary) that keeps report images."""
import io
import logging
from typing import Optional

import cloudinary.uploader
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from .config import Settings, UploadPolicy

logger = logging.getLogger(__name__)


class StoredAsset(BaseModel):
    public_id: str = Field(..., description="Identifier of the asset on the media store")
    url: str = Field(..., description="HTTPS URL the asset can be fetched from")
    format: Optional[str] = None
    bytes: Optional[int] = None


class MediaStore:
    """
    Uploads and removes images on Cloudinary.

    Credentials are held by the instance and passed with every call, so
    several stores with different accounts can live in one process. The SDK
    is blocking and runs in Starlette's threadpool.
    """

    def __init__(self, cloud_name: Optional[str], api_key: Optional[str], api_secret: Optional[str], policy: UploadPolicy):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self._api_secret = api_secret
        self.policy = policy
        logger.info(
            f"Cloudinary config: cloud_name={cloud_name} api_key={api_key} api_secret=****"
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "MediaStore":
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            policy=settings.upload,
        )

    def _credentials(self) -> dict:
        return {
            "cloud_name": self.cloud_name,
            "api_key": self.api_key,
            "api_secret": self._api_secret,
        }

    async def upload(self, content: bytes, filename: str) -> StoredAsset:
        result = await run_in_threadpool(
            cloudinary.uploader.upload,
            io.BytesIO(content),
            folder=self.policy.folder,
            allowed_formats=list(self.policy.allowed_formats),
            resource_type="image",
            filename_override=filename,
            **self._credentials(),
        )
        logger.debug(f"Stored {filename} as {result['public_id']}")
        return StoredAsset(
            public_id=result["public_id"],
            url=result.get("secure_url") or result["url"],
            format=result.get("format"),
            bytes=result.get("bytes", len(content)),
        )

    async def destroy(self, public_id: str) -> None:
        result = await run_in_threadpool(
            cloudinary.uploader.destroy,
            public_id,
            resource_type="image",
            invalidate=True,
            **self._credentials(),
        )
        if result.get("result") not in ("ok", "not found"):
            logger.warning(f"Unexpected response removing {public_id}: {result}")

"""
Upload adapter: turns the multipart `images` field into stored assets.

Route handlers declare `Depends(upload_report_images)` and receive a list of
`StoredAsset` references. Files with an extension outside the upload policy
or above its size ceiling are rejected here, so the handler body never runs
for them.
"""
import logging
from pathlib import PurePath
from typing import Annotated, Optional

from fastapi import Depends, File, UploadFile

from .config import Settings, UploadPolicy
from .dependencies import get_media_store, get_settings
from .errors import PayloadTooLargeError, UnsupportedMediaTypeError
from .media import MediaStore, StoredAsset

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def file_extension(filename: Optional[str]) -> str:
    return PurePath(filename or "").suffix.lstrip(".").lower()


def check_extension(upload: UploadFile, policy: UploadPolicy) -> None:
    extension = file_extension(upload.filename)
    if extension not in policy.allowed_formats:
        raise UnsupportedMediaTypeError(
            f"{upload.filename!r} is not one of the allowed formats: {', '.join(policy.allowed_formats)}"
        )


async def read_limited(upload: UploadFile, policy: UploadPolicy) -> bytes:
    """Read an uploaded file, giving up as soon as it passes the size ceiling."""
    content = bytearray()
    while True:
        chunk = await upload.read(CHUNK_SIZE)
        if not chunk:
            break
        content.extend(chunk)
        if len(content) > policy.max_file_bytes:
            raise PayloadTooLargeError(
                f"{upload.filename!r} exceeds the limit of {policy.max_file_bytes} bytes",
                message="File too large",
            )
    return bytes(content)


async def upload_report_images(
    store: Annotated[MediaStore, Depends(get_media_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    images: Annotated[Optional[list[UploadFile]], File(description="Report images (jpeg, jpg, png)")] = None,
) -> list[StoredAsset]:
    if not images:
        return []

    policy = settings.upload
    # Validate every file before storing any, so a bad file does not leave the others behind
    contents = []
    for upload in images:
        check_extension(upload, policy)
        contents.append((upload.filename, await read_limited(upload, policy)))

    stored = []
    for filename, content in contents:
        asset = await store.upload(content, filename=filename)
        logger.info(f"Uploaded {filename} to {policy.folder} as {asset.public_id}")
        stored.append(asset)
    return stored

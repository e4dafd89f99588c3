import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..core.blob import BlobStore, BlobStoreError
from ..core.errors import UpstreamFailure, ValidationFailed
from ..dependencies import admin_required, get_blob_store
from ..models.user import User
from ..schemas.common import ok
from ..schemas.files import DeleteFileRequest, BulkDeleteRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])

DELETE_CONCURRENCY = 5


@router.get("")
async def list_files(
    prefix: Optional[str] = None,
    folder: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    cursor: Optional[str] = None,
    store: BlobStore = Depends(get_blob_store),
    _: User = Depends(admin_required),
):
    try:
        page = await store.list(prefix=prefix or folder, limit=limit, cursor=cursor)
    except BlobStoreError as e:
        raise UpstreamFailure("Failed to list files", str(e))
    return ok({
        "blobs": [
            {"url": b.url, "pathname": b.pathname, "size": b.size, "uploadedAt": b.uploaded_at}
            for b in page.blobs
        ],
        "cursor": page.cursor,
        "hasMore": page.has_more,
    })


@router.get("/info")
def file_info(url: Optional[str] = None, _: User = Depends(admin_required)):
    if not url:
        raise ValidationFailed("File URL is required")
    return ok({"url": url, "message": "File exists and is accessible"})


@router.delete("")
async def delete_file(
    payload: DeleteFileRequest,
    store: BlobStore = Depends(get_blob_store),
    _: User = Depends(admin_required),
):
    try:
        await store.delete([payload.url])
    except BlobStoreError as e:
        logger.error("Failed to delete %s: %s", payload.url, e)
        raise UpstreamFailure("Failed to delete file", str(e))
    return ok(message="File deleted successfully")


async def delete_many(store: BlobStore, urls: list[str], concurrency: int = DELETE_CONCURRENCY) -> tuple[int, int]:
    """Delete each url independently, at most ``concurrency`` at a time. Returns (successful, failed)."""
    semaphore = asyncio.Semaphore(concurrency)

    async def delete_one(url: str) -> bool:
        async with semaphore:
            try:
                await store.delete([url])
            except BlobStoreError as e:
                logger.error("Failed to delete %s: %s", url, e)
                return False
            return True

    results = await asyncio.gather(*(delete_one(url) for url in urls))
    successful = sum(results)
    return successful, len(results) - successful


@router.post("/bulk-delete")
async def bulk_delete(
    payload: BulkDeleteRequest,
    store: BlobStore = Depends(get_blob_store),
    _: User = Depends(admin_required),
):
    if not store.available:
        raise UpstreamFailure("File storage not configured")
    successful, failed = await delete_many(store, payload.urls)
    return ok(
        {"successful": successful, "failed": failed, "total": len(payload.urls)},
        f"Deleted {successful} files successfully",
    )

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from ..core.blob import BlobStore
from ..core.errors import ValidationFailed, UpstreamFailure
from ..dependencies import author_required, get_blob_store
from ..models.user import User
from ..schemas.common import ok
from ..services.uploads import IMAGE, DIRECT_IMAGE, VIDEO, store_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])

MAX_BATCH = 10


def _require_file(file: UploadFile | None) -> UploadFile:
    if file is None or not file.filename:
        raise ValidationFailed("No file uploaded")
    return file


@router.get("/health")
def upload_health(store: BlobStore = Depends(get_blob_store)):
    return ok(message="Upload service is running", configured=store.available)


@router.post("/direct")
async def direct_upload(
    file: UploadFile | None = File(None),
    _: User = Depends(author_required),
    store: BlobStore = Depends(get_blob_store),
):
    stored = await store_upload(store, _require_file(file), DIRECT_IMAGE)
    return ok(stored.to_dict(), "Image uploaded successfully")


@router.post("/image")
async def upload_image(
    image: UploadFile | None = File(None),
    _: User = Depends(author_required),
    store: BlobStore = Depends(get_blob_store),
):
    stored = await store_upload(store, _require_file(image), IMAGE)
    return ok(stored.to_dict(), "Image uploaded successfully")


@router.post("/video")
async def upload_video(
    video: UploadFile | None = File(None),
    _: User = Depends(author_required),
    store: BlobStore = Depends(get_blob_store),
):
    stored = await store_upload(store, _require_file(video), VIDEO)
    return ok(stored.to_dict(), "Video uploaded successfully")


@router.post("/images")
async def upload_images(
    images: Optional[list[UploadFile]] = File(None),
    _: User = Depends(author_required),
    store: BlobStore = Depends(get_blob_store),
):
    files = [f for f in images or [] if f.filename]
    if not files:
        raise ValidationFailed("No files uploaded")
    if len(files) > MAX_BATCH:
        raise ValidationFailed(f"At most {MAX_BATCH} images can be uploaded at once")

    uploaded, skipped, failed = [], 0, 0
    for file in files:
        try:
            stored = await store_upload(store, file, IMAGE)
        except ValidationFailed:
            skipped += 1
            continue
        except UpstreamFailure:
            failed += 1
            continue
        uploaded.append(stored.to_dict())
    if failed:
        logger.warning("%d of %d image uploads failed", failed, len(files))
    return ok(
        uploaded,
        f"{len(uploaded)} images uploaded successfully",
        skipped=skipped,
        failed=failed,
    )

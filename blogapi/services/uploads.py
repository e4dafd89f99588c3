"""Upload validation and storage for the blob store."""
import logging
from dataclasses import dataclass

from fastapi import UploadFile

from ..core.blob import BlobStore, BlobStoreError, StoredBlob, unique_pathname
from ..core.errors import ValidationFailed, UpstreamFailure

logger = logging.getLogger(__name__)

MB = 1024 * 1024

IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif")
VIDEO_TYPES = ("video/mp4", "video/webm", "video/ogg")
EBOOK_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
PDF_TYPES = ("application/pdf",)


@dataclass(frozen=True)
class UploadRule:
    allowed_types: tuple
    max_bytes: int
    folder: str
    type_message: str

    @property
    def size_message(self) -> str:
        return f"File size exceeds {self.max_bytes // MB}MB limit"


IMAGE = UploadRule(IMAGE_TYPES, 5 * MB, "blog-images", "Invalid file type. Only images are allowed.")
DIRECT_IMAGE = UploadRule(
    IMAGE_TYPES, 10 * MB, "blog-images", "Invalid file type. Only images (JPG, PNG, WebP, GIF) are allowed."
)
VIDEO = UploadRule(VIDEO_TYPES, 50 * MB, "blog-videos", "Invalid file type. Only videos are allowed.")
COVER = UploadRule(IMAGE_TYPES, 5 * MB, "blog-covers", "Invalid file type. Only images are allowed.")
EBOOK_IMAGE = UploadRule(
    EBOOK_IMAGE_TYPES, 5 * MB, "ebook-images", "Invalid file type. Only JPEG, PNG, and WebP images are allowed."
)
EBOOK_PDF = UploadRule(PDF_TYPES, 50 * MB, "ebook-pdfs", "Invalid file type. Only PDF files are allowed.")


def check_type(file: UploadFile, rule: UploadRule):
    if file.content_type not in rule.allowed_types:
        raise ValidationFailed(rule.type_message)


async def read_checked(file: UploadFile, rule: UploadRule) -> bytes:
    """Return the file contents after checking type and size against ``rule``."""
    check_type(file, rule)
    data = await file.read()
    if len(data) > rule.max_bytes:
        raise ValidationFailed(rule.size_message)
    return data


async def store_upload(store: BlobStore, file: UploadFile, rule: UploadRule) -> StoredBlob:
    data = await read_checked(file, rule)
    pathname = unique_pathname(rule.folder, file.filename)
    try:
        return await store.put(pathname, data, file.content_type)
    except BlobStoreError as e:
        logger.error("Upload of %s failed: %s", file.filename, e)
        raise UpstreamFailure("Failed to upload file", str(e))

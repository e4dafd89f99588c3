import asyncio
import logging
import os
import secrets
from dataclasses import dataclass, field
from typing import Optional

import aiohttp

from .config import settings

logger = logging.getLogger(__name__)

BLOB_API_VERSION = "7"


class BlobStoreError(Exception):
    pass


class BlobStoreUnavailable(BlobStoreError):
    def __init__(self):
        super().__init__("File storage not configured. Set BLOB_READ_WRITE_TOKEN to enable uploads.")


@dataclass
class StoredBlob:
    url: str
    pathname: str
    size: int
    content_type: Optional[str] = None
    uploaded_at: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "key": self.pathname,
            "size": self.size,
            "mimetype": self.content_type,
        }


@dataclass
class BlobPage:
    blobs: list = field(default_factory=list)
    cursor: Optional[str] = None
    has_more: bool = False


def unique_pathname(folder: str, filename: str) -> str:
    """``folder/<name>-<16 hex chars><ext>`` so uploads never overwrite each other."""
    base, ext = os.path.splitext(os.path.basename(filename or "file"))
    base = base.strip().replace(" ", "-") or "file"
    return f"{folder}/{base}-{secrets.token_hex(8)}{ext.lower()}"


class BlobStore:
    available: bool = False

    async def put(self, pathname: str, data: bytes, content_type: str) -> StoredBlob:
        raise NotImplementedError

    async def delete(self, urls: list[str]) -> None:
        raise NotImplementedError

    async def list(self, prefix: Optional[str] = None, limit: int = 100, cursor: Optional[str] = None) -> BlobPage:
        raise NotImplementedError


class UnavailableBlobStore(BlobStore):
    available = False

    async def put(self, pathname: str, data: bytes, content_type: str) -> StoredBlob:
        raise BlobStoreUnavailable()

    async def delete(self, urls: list[str]) -> None:
        raise BlobStoreUnavailable()

    async def list(self, prefix: Optional[str] = None, limit: int = 100, cursor: Optional[str] = None) -> BlobPage:
        raise BlobStoreUnavailable()


class VercelBlobStore(BlobStore):
    """Public-access blob storage over the Vercel Blob REST API."""

    available = True

    def __init__(self, token: str, api_url: str = "https://blob.vercel-storage.com", timeout: float = 120):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def _headers(self, extra: Optional[dict] = None) -> dict:
        headers = {
            "authorization": f"Bearer {self.token}",
            "x-api-version": BLOB_API_VERSION,
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, **kwargs) as response:
                    body = await response.json(content_type=None)
                    if response.status >= 400:
                        error = body.get("error") if isinstance(body, dict) else None
                        message = error.get("message") if isinstance(error, dict) else error
                        raise BlobStoreError(f"Blob API {method} failed with {response.status}: {message or body}")
                    return body or {}
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise BlobStoreError(f"Blob API {method} failed: {e}") from e

    async def put(self, pathname: str, data: bytes, content_type: str) -> StoredBlob:
        headers = self._headers({
            "x-content-type": content_type,
            "x-add-random-suffix": "0",
        })
        result = await self._request("PUT", f"{self.api_url}/{pathname}", data=data, headers=headers)
        logger.info("Uploaded blob %s (%d bytes)", result.get("pathname", pathname), len(data))
        return StoredBlob(
            url=result["url"],
            pathname=result.get("pathname", pathname),
            size=len(data),
            content_type=result.get("contentType", content_type),
        )

    async def delete(self, urls: list[str]) -> None:
        await self._request("POST", f"{self.api_url}/delete", json={"urls": list(urls)}, headers=self._headers())
        logger.info("Deleted %d blob(s)", len(urls))

    async def list(self, prefix: Optional[str] = None, limit: int = 100, cursor: Optional[str] = None) -> BlobPage:
        params = {"limit": str(limit)}
        if prefix:
            params["prefix"] = prefix
        if cursor:
            params["cursor"] = cursor
        result = await self._request("GET", self.api_url, params=params, headers=self._headers())
        blobs = [
            StoredBlob(
                url=b["url"],
                pathname=b["pathname"],
                size=b.get("size", 0),
                uploaded_at=b.get("uploadedAt"),
            )
            for b in result.get("blobs", [])
        ]
        return BlobPage(blobs=blobs, cursor=result.get("cursor"), has_more=bool(result.get("hasMore")))


def build_blob_store() -> BlobStore:
    if not settings.BLOB_READ_WRITE_TOKEN:
        logger.warning("BLOB_READ_WRITE_TOKEN not set; file uploads are disabled")
        return UnavailableBlobStore()
    return VercelBlobStore(settings.BLOB_READ_WRITE_TOKEN, settings.BLOB_API_URL)

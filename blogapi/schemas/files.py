from pydantic import Field

from .common import CamelModel


class DeleteFileRequest(CamelModel):
    url: str = Field(min_length=1)


class BulkDeleteRequest(CamelModel):
    urls: list[str] = Field(min_length=1)

"""File request/response schemas."""
from datetime import datetime
from typing import Literal

from filevault.models.file_record import FileStatus
from filevault.schemas.base import CamelModel

SortKey = Literal["name", "date", "size"]
SortOrder = Literal["asc", "desc"]


class FileResponse(CamelModel):
    """Client-facing projection of a FileRecord. Never carries the storage path."""
    id: str
    name: str
    size: int
    type: str
    upload_date: datetime
    status: FileStatus


class FileStatsResponse(CamelModel):
    total_files: int = 0
    completed: int = 0
    processing: int = 0
    failed: int = 0
    total_size: int = 0

"""Files API routes."""
from typing import Optional
from urllib.parse import quote
from fastapi import APIRouter, Depends, Query, UploadFile, File as FastAPIFile
from fastapi.responses import StreamingResponse

from filevault.deps import get_current_user_id, get_file_service
from filevault.models.file_record import FileRecord, FileStatus
from filevault.schemas.common import ErrorResponse, MessageResponse
from filevault.schemas.file import FileResponse, FileStatsResponse, SortKey, SortOrder
from filevault.services.errors import RejectReason, UploadValidationError
from filevault.services.file_service import FileService, filter_and_sort

router = APIRouter(
    prefix="/api/files",
    tags=["files"],
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)


@router.post(
    "/upload",
    response_model=FileResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
)
async def upload_file(
    file: Optional[UploadFile] = FastAPIFile(None),
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    """Upload a file and create a file record."""
    if file is None or not file.filename:
        raise UploadValidationError(RejectReason.MISSING_FILE)
    try:
        record = await service.upload(
            file,
            original_name=file.filename,
            mime_type=file.content_type,
            size=file.size,
            user_id=user_id,
        )
    finally:
        await file.close()
    return _to_response(record)


@router.get("", response_model=list[FileResponse])
async def list_files(
    search: Optional[str] = Query(None, description="Case-insensitive substring of the file name"),
    status: Optional[FileStatus] = Query(None),
    sort: SortKey = Query("date"),
    order: SortOrder = Query("desc"),
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    """List the caller's files, newest first unless another order is requested."""
    records = await service.list_files(user_id)
    records = filter_and_sort(records, search=search, status=status, sort=sort, order=order)
    return [_to_response(r) for r in records]


@router.get("/stats", response_model=FileStatsResponse)
async def file_stats(
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    """Counts per status and total bytes of the caller's files."""
    stats = await service.stats(user_id)
    return FileStatsResponse(
        total_files=stats.total_files,
        completed=stats.completed,
        processing=stats.processing,
        failed=stats.failed,
        total_size=stats.total_size,
    )


@router.get("/{file_id}", response_model=FileResponse, responses={404: {"model": ErrorResponse}})
async def get_file_metadata(
    file_id: str,
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    """Get file metadata by ID."""
    return _to_response(await service.get(file_id, user_id))


@router.get("/{file_id}/download", responses={404: {"model": ErrorResponse}})
async def download_file(
    file_id: str,
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    """Stream a file's bytes as an attachment."""
    download = await service.download(file_id, user_id)
    record = download.record
    return StreamingResponse(
        download.chunks,
        media_type=record.mime_type,
        headers={"Content-Disposition": _content_disposition(record.original_name)},
    )


@router.delete("/{file_id}", response_model=MessageResponse, responses={404: {"model": ErrorResponse}})
async def delete_file(
    file_id: str,
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    """Delete a file record, then its bytes."""
    await service.delete(file_id, user_id)
    return {"message": "File deleted successfully"}


def _content_disposition(filename: str) -> str:
    """Always send a quoted ASCII filename; add filename* for non-ASCII names."""
    fallback = "".join(c if 32 <= ord(c) < 127 else "_" for c in filename)
    fallback = fallback.replace("\\", "\\\\").replace('"', '\\"')
    value = f'attachment; filename="{fallback}"'
    if not filename.isascii():
        value += f"; filename*=utf-8''{quote(filename, safe='')}"
    return value


def _to_response(record: FileRecord) -> FileResponse:
    return FileResponse(
        id=str(record.id),
        name=record.original_name,
        size=record.size,
        type=record.mime_type,
        upload_date=record.upload_date,
        status=FileStatus(record.status),
    )

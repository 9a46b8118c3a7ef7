"""File service: upload, list, get, download and delete for one user.

The metadata store is authoritative. Blob writes happen before the row
is inserted; blob removal after a delete is advisory, and a failure there
leaves an orphaned blob rather than failing the request.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError

from filevault.models.file_record import FileRecord, FileStatus
from filevault.repositories.file_record_repo import FileRecordRepository
from filevault.services.errors import (
    FileMissingOnDiskError,
    FileNotFoundInStoreError,
    PersistenceError,
    RejectReason,
    StorageError,
    UploadValidationError,
)
from filevault.services.file_storage import (
    AsyncReadable,
    BlobNotFoundError,
    BlobSizeLimitError,
    FileStorageService,
)
from filevault.services.notifications import Notifier, NullNotifier, UploadEvent
from filevault.services.upload_validator import UploadValidator

logger = logging.getLogger(__name__)


@dataclass
class FileDownload:
    record: FileRecord
    chunks: AsyncIterator[bytes]


_SORT_KEYS = {
    "name": lambda r: r.original_name.casefold(),
    "date": lambda r: r.upload_date,
    "size": lambda r: r.size,
}


@dataclass
class FileStats:
    total_files: int = 0
    completed: int = 0
    processing: int = 0
    failed: int = 0
    total_size: int = 0


def filter_and_sort(
    records: list[FileRecord],
    search: str | None = None,
    status: FileStatus | None = None,
    sort: str = "date",
    order: str = "desc",
) -> list[FileRecord]:
    """Read-side filtering and ordering of a user's records."""
    if search:
        needle = search.casefold()
        records = [r for r in records if needle in r.original_name.casefold()]
    if status is not None:
        records = [r for r in records if r.status == status.value]

    if sort not in _SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort}")
    return sorted(records, key=_SORT_KEYS[sort], reverse=(order == "desc"))


def parse_file_id(file_id: str | uuid.UUID) -> uuid.UUID:
    """Malformed ids are reported as unknown files."""
    if isinstance(file_id, uuid.UUID):
        return file_id
    try:
        return uuid.UUID(file_id)
    except (ValueError, AttributeError, TypeError):
        raise FileNotFoundInStoreError()


class FileService:

    def __init__(
        self,
        repo: FileRecordRepository,
        storage: FileStorageService,
        validator: UploadValidator,
        notifier: Notifier | None = None,
    ):
        self.repo = repo
        self.storage = storage
        self.validator = validator
        self.notifier = notifier or NullNotifier()

    async def upload(
        self,
        source: AsyncReadable,
        original_name: str,
        mime_type: str | None,
        size: int | None,
        user_id: str,
    ) -> FileRecord:
        """Validate, store the bytes, insert the record, then notify."""
        try:
            self.validator.check(mime_type, size)
        except UploadValidationError as e:
            logger.info("Rejected upload of %r for user %s: %s", original_name, user_id, e.reason.value)
            raise

        try:
            blob = await self.storage.save(source, original_name, max_bytes=self.validator.max_size)
        except BlobSizeLimitError:
            logger.info("Rejected upload of %r for user %s: body exceeded limit", original_name, user_id)
            raise UploadValidationError(RejectReason.SIZE_EXCEEDED)
        except OSError as e:
            logger.exception("Failed to write blob for %r", original_name)
            raise StorageError() from e

        try:
            record = await self.repo.insert(
                user_id=user_id,
                stored_name=blob.stored_name,
                original_name=original_name,
                size=blob.size,
                mime_type=mime_type,
                storage_path=blob.storage_path,
                status=FileStatus.COMPLETED,
            )
        except SQLAlchemyError as e:
            logger.exception("Failed to insert record for blob %s", blob.stored_name)
            await self._discard_blob(blob.storage_path)
            raise PersistenceError() from e

        logger.info("Stored file %s (%s bytes) for user %s", record.id, record.size, user_id)
        self._notify(record)
        return record

    def _notify(self, record: FileRecord) -> None:
        try:
            self.notifier.notify(UploadEvent.from_record(record))
        except Exception:
            logger.exception("Could not dispatch notification for file %s", record.id)

    async def list_files(self, user_id: str) -> list[FileRecord]:
        try:
            return await self.repo.list_by_user(user_id)
        except SQLAlchemyError as e:
            logger.exception("Failed to list files for user %s", user_id)
            raise PersistenceError() from e

    async def stats(self, user_id: str) -> FileStats:
        stats = FileStats()
        for record in await self.list_files(user_id):
            stats.total_files += 1
            stats.total_size += record.size
            if record.status == FileStatus.COMPLETED.value:
                stats.completed += 1
            elif record.status == FileStatus.PROCESSING.value:
                stats.processing += 1
            elif record.status == FileStatus.FAILED.value:
                stats.failed += 1
        return stats

    async def get(self, file_id: str | uuid.UUID, user_id: str) -> FileRecord:
        file_uuid = parse_file_id(file_id)
        try:
            record = await self.repo.get(file_uuid, user_id)
        except SQLAlchemyError as e:
            logger.exception("Failed to load file %s", file_uuid)
            raise PersistenceError() from e
        if record is None:
            raise FileNotFoundInStoreError()
        return record

    async def download(self, file_id: str | uuid.UUID, user_id: str) -> FileDownload:
        record = await self.get(file_id, user_id)
        try:
            chunks = await self.storage.open_stream(record.storage_path)
        except BlobNotFoundError:
            logger.warning("File %s has a record but no blob at %s", record.id, record.storage_path)
            raise FileMissingOnDiskError()
        except OSError as e:
            logger.exception("Failed to open blob for file %s", record.id)
            raise StorageError() from e
        return FileDownload(record=record, chunks=chunks)

    async def delete(self, file_id: str | uuid.UUID, user_id: str) -> None:
        """Remove the record, then try to remove its blob."""
        record = await self.get(file_id, user_id)
        try:
            deleted = await self.repo.delete(record.id, user_id)
        except SQLAlchemyError as e:
            logger.exception("Failed to delete record %s", record.id)
            raise PersistenceError() from e
        if deleted == 0:
            raise FileNotFoundInStoreError()

        logger.info("Deleted file %s for user %s", record.id, user_id)
        await self._discard_blob(record.storage_path)

    async def _discard_blob(self, storage_path: str) -> None:
        try:
            removed = await self.storage.delete(storage_path)
        except OSError as e:
            logger.warning("Could not remove blob %s: %s", storage_path, e)
            return
        if not removed:
            logger.warning("Blob %s was already missing", storage_path)

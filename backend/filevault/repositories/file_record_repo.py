"""Metadata store for FileRecord rows.

Every lookup is scoped by user_id. A record owned by someone else is
reported exactly like a missing one.
"""
import uuid
from sqlalchemy import select, delete, desc
from sqlalchemy.ext.asyncio import AsyncSession

from filevault.models.file_record import FileRecord, FileStatus


class FileRecordRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(
        self,
        *,
        user_id: str,
        stored_name: str,
        original_name: str,
        size: int,
        mime_type: str,
        storage_path: str,
        status: FileStatus = FileStatus.COMPLETED,
    ) -> FileRecord:
        """Insert a record. The id and upload_date are assigned here, never by callers."""
        record = FileRecord(
            user_id=user_id,
            stored_name=stored_name,
            original_name=original_name,
            size=size,
            mime_type=mime_type,
            storage_path=storage_path,
            status=status.value,
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def list_by_user(self, user_id: str) -> list[FileRecord]:
        """All of a user's records, newest first."""
        result = await self.db.execute(
            select(FileRecord)
            .where(FileRecord.user_id == user_id)
            .order_by(desc(FileRecord.upload_date), desc(FileRecord.created_at))
        )
        return list(result.scalars().all())

    async def get(self, file_id: uuid.UUID, user_id: str) -> FileRecord | None:
        result = await self.db.execute(
            select(FileRecord).where(FileRecord.id == file_id, FileRecord.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def delete(self, file_id: uuid.UUID, user_id: str) -> int:
        """Delete one record. Returns the number of rows removed (0 or 1)."""
        result = await self.db.execute(
            delete(FileRecord).where(FileRecord.id == file_id, FileRecord.user_id == user_id)
        )
        await self.db.commit()
        return result.rowcount

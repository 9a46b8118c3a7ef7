"""FileRecord model - file metadata (actual bytes live in the blob store)."""
import enum
import uuid
from datetime import datetime
from sqlalchemy import String, BigInteger, DateTime, Index, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column
from filevault.models.base import Base, TimestampMixin, UserMixin, utcnow


class FileStatus(str, enum.Enum):
    """Only COMPLETED is ever written; the others are reserved for async processing."""
    COMPLETED = "completed"
    PROCESSING = "processing"
    FAILED = "failed"


class FileRecord(Base, TimestampMixin, UserMixin):
    __tablename__ = "files"
    __table_args__ = (
        Index("idx_files_user_id", "user_id"),
        Index("idx_files_upload_date", "upload_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    stored_name: Mapped[str] = mapped_column(String(255), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=FileStatus.COMPLETED.value)
    upload_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

"""File service error taxonomy.

Every error carries the HTTP status it maps to and a message that is safe
to show to clients. Handlers in ``filevault.main`` render them as
``{"error": message}``.
"""
import enum


class FileServiceError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class RejectReason(str, enum.Enum):
    SIZE_EXCEEDED = "size_exceeded"
    TYPE_NOT_ALLOWED = "type_not_allowed"
    MISSING_FILE = "missing_file"


_REJECT_MESSAGES = {
    RejectReason.SIZE_EXCEEDED: "File too large",
    RejectReason.TYPE_NOT_ALLOWED: "File type not allowed",
    RejectReason.MISSING_FILE: "No file uploaded",
}


class UploadValidationError(FileServiceError):
    """Upload refused before anything was persisted."""
    status_code = 400

    def __init__(self, reason: RejectReason):
        self.reason = reason
        super().__init__(_REJECT_MESSAGES[reason])


class UnauthenticatedError(FileServiceError):
    status_code = 401
    message = "Access token required"


class FileNotFoundInStoreError(FileServiceError):
    """No record with this id for this user (other users' records included)."""
    status_code = 404
    message = "File not found"


class FileMissingOnDiskError(FileServiceError):
    """The record exists but its blob is gone."""
    status_code = 404
    message = "File not found on disk"


class StorageError(FileServiceError):
    status_code = 500
    message = "Storage failure"


class PersistenceError(FileServiceError):
    status_code = 500
    message = "Database failure"

"""Admission check for uploads: size ceiling and MIME allow-list."""
from filevault.services.errors import RejectReason, UploadValidationError


class UploadValidator:
    """Decides admit/reject from the declared MIME type and size.

    The MIME type is trusted as declared; no content sniffing happens here.
    """

    def __init__(self, max_size: int, allowed_types: list[str]):
        self.max_size = max_size
        self.allowed_types = frozenset(allowed_types)

    def check(self, mime_type: str | None, size: int | None) -> None:
        """Raise UploadValidationError if the file must be rejected.

        ``size`` may be unknown (None) when the client did not declare it;
        the blob store then enforces ``max_size`` while writing.
        """
        if size is not None and size > self.max_size:
            raise UploadValidationError(RejectReason.SIZE_EXCEEDED)
        if not mime_type or mime_type not in self.allowed_types:
            raise UploadValidationError(RejectReason.TYPE_NOT_ALLOWED)

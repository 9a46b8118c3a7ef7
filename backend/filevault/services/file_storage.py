"""Blob store on the local filesystem.

Bytes are kept under a generated name that never reuses the client's
name verbatim: ``<millis>-<random>-<sanitized original>``.
"""
import logging
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Protocol

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
MAX_NAME_LENGTH = 120

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


class BlobNotFoundError(Exception):
    def __init__(self, storage_path: str):
        self.storage_path = storage_path
        super().__init__(f"Blob not found: {storage_path}")


class BlobSizeLimitError(Exception):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Blob exceeds {limit} bytes")


@dataclass
class StoredBlob:
    stored_name: str
    storage_path: str
    size: int


def sanitize_filename(original_name: str) -> str:
    """Reduce a client-supplied name to a safe basename."""
    name = original_name.replace("\\", "/").rsplit("/", 1)[-1]
    name = _UNSAFE_CHARS.sub("_", name).lstrip(".")
    if len(name) > MAX_NAME_LENGTH:
        stem, dot, ext = name.rpartition(".")
        if dot and len(ext) < 16:
            name = stem[: MAX_NAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            name = name[:MAX_NAME_LENGTH]
    return name or "file"


def generate_stored_name(original_name: str) -> str:
    millis = int(time.time() * 1000)
    return f"{millis}-{secrets.token_hex(6)}-{sanitize_filename(original_name)}"


class FileStorageService:
    """Handles blob write/read/delete in a single directory."""

    def __init__(self, base_path: str | Path, chunk_size: int = CHUNK_SIZE):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.chunk_size = chunk_size

    async def save(
        self,
        source: AsyncReadable,
        original_name: str,
        max_bytes: int | None = None,
    ) -> StoredBlob:
        """Stream ``source`` into a new blob. Returns its name, path and byte count.

        A partially written blob is removed if the limit is crossed or the
        write fails.
        """
        stored_name = generate_stored_name(original_name)
        file_path = self.base_path / stored_name
        total = 0
        created = False
        try:
            async with aiofiles.open(file_path, "xb") as f:
                created = True
                while chunk := await source.read(self.chunk_size):
                    total += len(chunk)
                    if max_bytes is not None and total > max_bytes:
                        raise BlobSizeLimitError(max_bytes)
                    await f.write(chunk)
        except BaseException:
            if created:
                await self.delete(str(file_path))
            raise
        return StoredBlob(stored_name=stored_name, storage_path=str(file_path), size=total)

    async def open_stream(self, storage_path: str) -> AsyncIterator[bytes]:
        """Open a blob and return an iterator over its chunks.

        The handle is opened before returning, so a concurrent delete either
        happens first (BlobNotFoundError) or the full content is still served.
        """
        try:
            handle = await aiofiles.open(storage_path, "rb")
        except FileNotFoundError as e:
            raise BlobNotFoundError(storage_path) from e
        return self._iter_chunks(handle)

    async def _iter_chunks(self, handle) -> AsyncIterator[bytes]:
        try:
            while chunk := await handle.read(self.chunk_size):
                yield chunk
        finally:
            await handle.close()

    async def delete(self, storage_path: str) -> bool:
        """Delete a blob. Returns False if it was already gone."""
        try:
            await aiofiles.os.remove(storage_path)
        except FileNotFoundError:
            return False
        return True

    async def check_writable(self) -> None:
        """Write and remove a probe file. Raises OSError when storage is unusable."""
        probe = self.base_path / f".probe-{secrets.token_hex(4)}"
        async with aiofiles.open(probe, "wb") as f:
            await f.write(b"ok")
        await aiofiles.os.remove(probe)

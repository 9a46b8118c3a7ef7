"""Best-effort upload notifications.

A notification is dispatched after the record is committed and runs in
its own task. Delivery failures are logged and never reach the caller.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import aiohttp

from filevault.models.file_record import FileRecord

logger = logging.getLogger(__name__)


@dataclass
class UploadEvent:
    file_id: str
    file_name: str
    file_size: int
    file_type: str
    user_id: str
    upload_date: datetime

    @classmethod
    def from_record(cls, record: FileRecord) -> "UploadEvent":
        return cls(
            file_id=str(record.id),
            file_name=record.original_name,
            file_size=record.size,
            file_type=record.mime_type,
            user_id=record.user_id,
            upload_date=record.upload_date,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "fileId": self.file_id,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "fileType": self.file_type,
            "userId": self.user_id,
            "uploadDate": self.upload_date.isoformat(),
        }


class Notifier(ABC):

    @abstractmethod
    def notify(self, event: UploadEvent) -> None:
        """Schedule delivery and return immediately."""

    async def aclose(self) -> None:
        pass


class NullNotifier(Notifier):
    """Used when no webhook is configured."""

    def notify(self, event: UploadEvent) -> None:
        return None


class WebhookNotifier(Notifier):
    """POSTs upload events as JSON to a webhook URL with aiohttp."""

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None
        self._pending: set[asyncio.Task] = set()

    def notify(self, event: UploadEvent) -> None:
        task = asyncio.create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: UploadEvent) -> None:
        try:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(timeout=self._timeout)
            async with self._session.post(self.url, json=event.to_payload()) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    logger.error(
                        "Webhook for file %s returned HTTP %d: %s",
                        event.file_id, resp.status, body[:200],
                    )
                    return
            logger.debug("Webhook delivered for file %s", event.file_id)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Webhook for file %s failed: %s", event.file_id, e)
        except Exception:
            logger.exception("Unexpected webhook error for file %s", event.file_id)

    async def drain(self) -> None:
        """Wait for in-flight deliveries."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._session is not None:
            await self._session.close()
            self._session = None


def build_notifier(url: str, timeout: float) -> Notifier:
    if not url:
        return NullNotifier()
    return WebhookNotifier(url, timeout=timeout)

import pytest
from fastapi.testclient import TestClient

from filevault.config import Settings
from filevault.main import create_app
from filevault.services.notifications import Notifier

USER_1 = {"Authorization": "Bearer token-u1"}
USER_2 = {"Authorization": "Bearer token-u2"}


class RecordingNotifier(Notifier):
    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)


class FailingNotifier(Notifier):
    def notify(self, event):
        raise RuntimeError("webhook down")


class BytesSource:
    """Async reader over in-memory bytes, shaped like an UploadFile."""

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data) - self._pos
        chunk = self._data[self._pos:self._pos + size]
        self._pos += len(chunk)
        return chunk


@pytest.fixture()
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'files.db'}",
        FILE_STORAGE_PATH=str(tmp_path / "uploads"),
        MAX_FILE_SIZE=1024,
        AUTH_MODE="static",
        AUTH_STATIC_TOKENS="token-u1:u1,token-u2:u2",
        NOTIFICATION_WEBHOOK_URL="",
    )


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def app(settings, notifier):
    return create_app(settings, notifier=notifier)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


def upload(client, name="a.txt", data=b"0123456789", mime="text/plain", headers=USER_1):
    return client.post(
        "/api/files/upload",
        files={"file": (name, data, mime)},
        headers=headers,
    )

from pathlib import Path

from conftest import USER_1, USER_2, FailingNotifier, upload
from fastapi.testclient import TestClient

from filevault.main import create_app
from filevault.routes.files import _content_disposition


def test_upload_then_list(client):
    resp = upload(client)
    assert resp.status_code == 201
    body = resp.json()
    assert body["name"] == "a.txt"
    assert body["size"] == 10
    assert body["type"] == "text/plain"
    assert body["status"] == "completed"
    assert "uploadDate" in body
    assert "storagePath" not in body and "storage_path" not in body

    resp = client.get("/api/files", headers=USER_1)
    assert resp.status_code == 200
    files = resp.json()
    assert len(files) == 1
    assert files[0]["id"] == body["id"]
    assert files[0]["size"] == 10
    assert files[0]["status"] == "completed"


def test_oversize_upload_is_rejected_and_nothing_is_stored(client, settings):
    upload(client)
    resp = upload(client, name="big.txt", data=b"x" * (settings.MAX_FILE_SIZE + 1))
    assert resp.status_code == 400
    assert resp.json() == {"error": "File too large"}

    assert len(client.get("/api/files", headers=USER_1).json()) == 1
    assert len(list(Path(settings.FILE_STORAGE_PATH).iterdir())) == 1


def test_disallowed_type_is_rejected(client, settings):
    resp = upload(client, name="setup.exe", data=b"MZ", mime="application/x-msdownload")
    assert resp.status_code == 400
    assert resp.json() == {"error": "File type not allowed"}
    assert client.get("/api/files", headers=USER_1).json() == []
    assert list(Path(settings.FILE_STORAGE_PATH).iterdir()) == []


def test_upload_without_file_field(client):
    resp = client.post("/api/files/upload", data={"other": "x"}, headers=USER_1)
    assert resp.status_code == 400
    assert resp.json() == {"error": "No file uploaded"}


def test_missing_and_invalid_token(client):
    resp = client.get("/api/files")
    assert resp.status_code == 401
    assert resp.json() == {"error": "Access token required"}

    resp = client.get("/api/files", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid access token"}

    resp = upload(client, headers={})
    assert resp.status_code == 401


def test_records_are_isolated_per_user(client):
    file_id = upload(client).json()["id"]

    assert client.get(f"/api/files/{file_id}", headers=USER_1).status_code == 200
    resp = client.get(f"/api/files/{file_id}", headers=USER_2)
    assert resp.status_code == 404
    assert resp.json() == {"error": "File not found"}
    assert client.get("/api/files", headers=USER_2).json() == []
    assert client.get(f"/api/files/{file_id}/download", headers=USER_2).status_code == 404
    assert client.delete(f"/api/files/{file_id}", headers=USER_2).status_code == 404
    assert client.get(f"/api/files/{file_id}", headers=USER_1).status_code == 200


def test_get_with_malformed_id(client):
    resp = client.get("/api/files/not-a-uuid", headers=USER_1)
    assert resp.status_code == 404
    assert resp.json() == {"error": "File not found"}


def test_download_is_repeatable(client):
    data = b"%PDF-1.4 some bytes"
    file_id = upload(client, name="report.pdf", data=data, mime="application/pdf").json()["id"]

    first = client.get(f"/api/files/{file_id}/download", headers=USER_1)
    second = client.get(f"/api/files/{file_id}/download", headers=USER_1)
    assert first.status_code == 200
    assert first.content == data
    assert second.content == first.content
    assert first.headers["content-type"] == "application/pdf"
    assert first.headers["content-disposition"] == 'attachment; filename="report.pdf"'


def test_download_non_ascii_name(client):
    file_id = upload(client, name="résumé.txt").json()["id"]
    resp = client.get(f"/api/files/{file_id}/download", headers=USER_1)
    assert resp.status_code == 200
    assert resp.headers["content-disposition"] == (
        "attachment; filename=\"r_sum_.txt\"; filename*=utf-8''r%C3%A9sum%C3%A9.txt"
    )


def test_download_name_with_space_keeps_plain_filename(client):
    file_id = upload(client, name="my report.txt").json()["id"]
    resp = client.get(f"/api/files/{file_id}/download", headers=USER_1)
    assert resp.status_code == 200
    assert resp.headers["content-disposition"] == 'attachment; filename="my report.txt"'


def test_content_disposition_escapes_quotes_and_backslashes():
    assert _content_disposition('say "hi"\\.txt') == 'attachment; filename="say \\"hi\\"\\\\.txt"'


def test_download_when_blob_is_missing(client, settings):
    file_id = upload(client).json()["id"]
    for blob in Path(settings.FILE_STORAGE_PATH).iterdir():
        blob.unlink()

    resp = client.get(f"/api/files/{file_id}/download", headers=USER_1)
    assert resp.status_code == 404
    assert resp.json() == {"error": "File not found on disk"}


def test_delete_flow(client, settings):
    file_id = upload(client).json()["id"]

    resp = client.delete(f"/api/files/{file_id}", headers=USER_1)
    assert resp.status_code == 200
    assert resp.json() == {"message": "File deleted successfully"}
    assert client.get("/api/files", headers=USER_1).json() == []
    assert list(Path(settings.FILE_STORAGE_PATH).iterdir()) == []

    assert client.get(f"/api/files/{file_id}", headers=USER_1).status_code == 404
    assert client.get(f"/api/files/{file_id}/download", headers=USER_1).status_code == 404
    resp = client.delete(f"/api/files/{file_id}", headers=USER_1)
    assert resp.status_code == 404
    assert resp.json() == {"error": "File not found"}


def test_delete_succeeds_when_blob_already_gone(client, settings):
    file_id = upload(client).json()["id"]
    for blob in Path(settings.FILE_STORAGE_PATH).iterdir():
        blob.unlink()

    assert client.delete(f"/api/files/{file_id}", headers=USER_1).status_code == 200
    assert client.get("/api/files", headers=USER_1).json() == []


def test_list_filters_and_sorting(client):
    upload(client, name="beta.txt", data=b"bb")
    upload(client, name="alpha.txt", data=b"aaaa")
    upload(client, name="photo.png", data=b"p", mime="image/png")

    newest_first = [f["name"] for f in client.get("/api/files", headers=USER_1).json()]
    assert newest_first == ["photo.png", "alpha.txt", "beta.txt"]

    resp = client.get("/api/files", params={"search": "ALP"}, headers=USER_1)
    assert [f["name"] for f in resp.json()] == ["alpha.txt"]

    resp = client.get("/api/files", params={"sort": "name", "order": "asc"}, headers=USER_1)
    assert [f["name"] for f in resp.json()] == ["alpha.txt", "beta.txt", "photo.png"]

    resp = client.get("/api/files", params={"sort": "size", "order": "desc"}, headers=USER_1)
    assert [f["size"] for f in resp.json()] == [4, 2, 1]

    resp = client.get("/api/files", params={"status": "processing"}, headers=USER_1)
    assert resp.json() == []


def test_list_rejects_unknown_sort_key(client):
    resp = client.get("/api/files", params={"sort": "owner"}, headers=USER_1)
    assert resp.status_code == 400
    assert "error" in resp.json()


def test_stats(client):
    upload(client, data=b"12345")
    upload(client, name="b.txt", data=b"123")
    upload(client, headers=USER_2)

    resp = client.get("/api/files/stats", headers=USER_1)
    assert resp.status_code == 200
    assert resp.json() == {
        "totalFiles": 2,
        "completed": 2,
        "processing": 0,
        "failed": 0,
        "totalSize": 8,
    }


def test_upload_notifies_after_commit(client, notifier):
    body = upload(client).json()
    assert len(notifier.events) == 1
    event = notifier.events[0]
    assert event.file_id == body["id"]
    assert event.file_name == "a.txt"
    assert event.user_id == "u1"
    assert event.file_size == 10


def test_notification_failure_does_not_fail_upload(settings):
    app = create_app(settings, notifier=FailingNotifier())
    with TestClient(app) as client:
        resp = upload(client)
        assert resp.status_code == 201
        assert len(client.get("/api/files", headers=USER_1).json()) == 1


def test_unknown_route(client):
    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Route not found"}


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["database"] == "connected"
    assert body["storage"] == "writable"

"""回收站接口集成测试。"""

import io

from fastapi.testclient import TestClient

API = "/api/v1"


def _upload(client: TestClient, headers, name, content=b"payload"):
    resp = client.post(
        f"{API}/files",
        params={"path": "/"},
        files={"file": (name, io.BytesIO(content), "application/octet-stream")},
        headers=headers,
    )
    assert resp.status_code == 200
    return resp.json()["data"]


def test_delete_restore_cycle(client: TestClient, auth_headers):
    uploaded = _upload(client, auth_headers, "report.pdf")

    deleted = client.delete(f"{API}/files/{uploaded['id']}", headers=auth_headers)
    assert deleted.status_code == 200
    record = deleted.json()["data"]
    assert record["originalPath"] == "/report.pdf"
    assert record["itemType"] == "file"
    assert record["expireAt"] is not None

    listing = client.get(f"{API}/recycle", headers=auth_headers).json()["data"]
    assert [item["id"] for item in listing] == [record["id"]]

    # 原位置被同名文件占用后恢复
    _upload(client, auth_headers, "report.pdf", b"newer")
    restored = client.post(f"{API}/recycle/{record['id']}/restore", headers=auth_headers)
    assert restored.status_code == 200
    data = restored.json()["data"]
    assert data["path"] == "/report_恢复1.pdf"
    assert data["renamed"] is True

    down = client.get(f"{API}/files/{data['id']}/download", headers=auth_headers)
    assert down.content == b"payload"
    assert client.get(f"{API}/recycle", headers=auth_headers).json()["data"] == []


def test_purge_and_empty(client: TestClient, auth_headers, other_headers):
    ids = []
    for name in ("a.txt", "b.txt", "c.txt"):
        uploaded = _upload(client, auth_headers, name)
        ids.append(client.delete(f"{API}/files/{uploaded['id']}", headers=auth_headers).json()["data"]["id"])

    assert client.delete(f"{API}/recycle/{ids[0]}", headers=other_headers).status_code == 403
    assert client.delete(f"{API}/recycle/{ids[0]}", headers=auth_headers).status_code == 200
    assert client.post(f"{API}/recycle/{ids[0]}/restore", headers=auth_headers).status_code == 404

    emptied = client.delete(f"{API}/recycle", headers=auth_headers)
    assert emptied.json()["data"] == {"removed": 2}
    assert client.get(f"{API}/recycle", headers=auth_headers).json()["data"] == []


def test_non_empty_directory_cannot_be_deleted(client: TestClient, auth_headers):
    folder = client.post(f"{API}/directories", json={"path": "/", "name": "full"}, headers=auth_headers).json()["data"]
    client.post(
        f"{API}/files",
        params={"path": "/full"},
        files={"file": ("a.txt", io.BytesIO(b"x"), "text/plain")},
        headers=auth_headers,
    )
    resp = client.delete(f"{API}/directories/{folder['id']}", headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json()["data"] == {"field": "directoryId"}

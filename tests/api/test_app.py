"""应用级接口：健康检查、请求 ID 与系统存储信息。"""

from fastapi.testclient import TestClient

from hcloud import main


def test_health_check(client: TestClient):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["data"] == {"status": "healthy"}


def test_request_id_is_echoed(client: TestClient):
    resp = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"
    assert client.get("/health").headers.get("X-Request-ID")


def test_system_storage(client: TestClient, auth_headers):
    resp = client.get("/api/v1/system/storage", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total"] > 0
    assert data["used"] == data["total"] - data["free"]

    assert client.get("/api/v1/system/storage").status_code == 401


def test_request_validation_envelope(client: TestClient, auth_headers):
    resp = client.post("/api/v1/directories", json={"path": "/"}, headers=auth_headers)
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == 422
    assert body["error"] == "VALIDATION_ERROR"
    assert isinstance(body["data"], list) and body["data"]


def test_lifespan_starts_and_stops_sweeper(session_factory, monkeypatch):
    settings = main.get_settings().model_copy(update={"recycle_sweep_enabled": True})
    monkeypatch.setattr(main, "get_settings", lambda: settings)

    with TestClient(main.app) as test_client:
        sweeper = main.app.state.sweeper
        assert sweeper is not None and sweeper.running
        assert test_client.get("/health").status_code == 200
    assert not sweeper.running
    assert main.app.state.sweeper is None


def test_system_version_is_public(client: TestClient):
    resp = client.get("/api/v1/system/version")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["version"] == main.get_settings().app_version
    assert data["pythonVersion"]


def test_system_info(client: TestClient, auth_headers):
    client.post(
        "/api/v1/files",
        params={"path": "/"},
        files={"file": ("a.txt", b"abc", "text/plain")},
        headers=auth_headers,
    )
    resp = client.get("/api/v1/system/info", headers=auth_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["filesCount"] == 1
    assert data["usersCount"] == 1
    assert data["storage"]["used"] == data["storage"]["total"] - data["storage"]["free"]

    assert client.get("/api/v1/system/info").status_code == 401

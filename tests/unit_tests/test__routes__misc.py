from fastapi.testclient import TestClient

from tests.fixtures.app import auth_headers


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["message"] == "Server is running"
    assert body["deployment_mode"] == "local-dev"
    assert body["components"] == {"api": "ready", "database": "ready", "storage": "ready"}
    assert body["ready"] is True


def test_health_degraded_when_bucket_missing(client: TestClient, backend):
    backend.s3_client.delete_bucket(Bucket=backend.bucket_name)

    body = client.get("/health").json()
    assert body["status"] == "DEGRADED"
    assert body["components"]["storage"].startswith("error")
    assert body["ready"] is False


def test_profile(client: TestClient, alice):
    uid, token = alice
    response = client.get("/api/profile", headers=auth_headers(token))
    assert response.status_code == 200
    assert response.json()["data"]["uid"] == uid
    assert client.get("/api/profile").status_code == 401


def test_unknown_route(client: TestClient):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Route not found", "path": "/api/nope"}

from fastapi import status
from fastapi.testclient import TestClient

from tests.consts import TEST_PNG_CONTENT_TYPE
from tests.fixtures.app import auth_headers, register_user


def test_register_returns_token_and_creates_user(client: TestClient):
    response = client.post(
        "/api/auth/register",
        json={"email": "Carol@Example.com", "password": "s3cret-pass", "masterPin": 1234},
    )
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["success"] is True
    assert body["data"]["email"] == "carol@example.com"

    profile = client.get("/api/profile", headers=auth_headers(body["data"]["token"])).json()["data"]
    assert profile["documents"] == []
    assert profile["totalSize"] == 0
    assert profile["masterPin"] == "1234"


def test_register_validation(client: TestClient):
    assert client.post("/api/auth/register", json={"email": "x@example.com"}).status_code == 400
    assert client.post(
        "/api/auth/register", json={"email": "not-an-email", "password": "s3cret-pass"}
    ).status_code == 400
    assert client.post(
        "/api/auth/register", json={"email": "y@example.com", "password": "123"}
    ).status_code == 400


def test_register_duplicate_email(client: TestClient, alice):
    response = client.post("/api/auth/register", json={"email": "ALICE@example.com", "password": "other-pass"})
    assert response.status_code == status.HTTP_409_CONFLICT


def test_login(client: TestClient, alice):
    uid, _ = alice
    response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "s3cret-pass"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["uid"] == uid
    assert data["token"]
    assert data["lastLoginAt"]


def test_login_rejects_bad_credentials(client: TestClient, alice):
    response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["success"] is False

    response = client.post("/api/auth/login", json={"email": "alice@example.com"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_verify_token(client: TestClient, alice):
    uid, token = alice
    response = client.post("/api/auth/verify-token", json={"idToken": token})
    assert response.status_code == 200
    assert response.json()["data"]["uid"] == uid

    assert client.post("/api/auth/verify-token", json={}).status_code == 400
    assert client.post("/api/auth/verify-token", json={"idToken": "a.b.c"}).status_code == 401


def test_me_requires_bearer_token(client: TestClient, alice):
    uid, token = alice
    assert client.get("/api/auth/me", headers=auth_headers(token)).json()["data"]["uid"] == uid

    missing = client.get("/api/auth/me")
    assert missing.status_code == 401
    assert missing.json()["message"] == "Authorization token required. Please provide a Bearer token."

    wrong_scheme = client.get("/api/auth/me", headers={"Authorization": f"Token {token}"})
    assert wrong_scheme.json()["message"] == "Invalid authorization format. Expected: Bearer <token>"

    not_jwt = client.get("/api/auth/me", headers=auth_headers("opaque"))
    assert not_jwt.json()["message"] == "Invalid token format. Token must be a valid JWT."


def test_logout_revokes_existing_tokens(client: TestClient, alice):
    uid, token = alice
    response = client.post("/api/auth/logout", json={"idToken": token})
    assert response.status_code == 200

    revoked = client.get("/api/auth/me", headers=auth_headers(token))
    assert revoked.status_code == 401
    assert revoked.json()["message"] == "Token has been revoked. Please login again."

    relogin = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "s3cret-pass"})
    fresh_token = relogin.json()["data"]["token"]
    assert client.get("/api/auth/me", headers=auth_headers(fresh_token)).status_code == 200

    profile = client.get("/api/profile", headers=auth_headers(fresh_token)).json()["data"]
    assert profile["lastLogoutAt"]


def test_logout_errors(client: TestClient):
    assert client.post("/api/auth/logout", json={}).status_code == 400
    assert client.post("/api/auth/logout", json={"uid": "nobody"}).status_code == 404
    assert client.post("/api/auth/logout", json={"idToken": "a.b.c"}).status_code == 401


def test_update_profile(client: TestClient, alice):
    _, token = alice
    response = client.put(
        "/api/auth/update-profile",
        json={"displayName": "Alice A.", "mobileNumber": 5551234},
        headers=auth_headers(token),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["displayName"] == "Alice A."
    assert data["mobileNumber"] == "5551234"
    assert data["totalSize"] == 0

    me = client.get("/api/auth/me", headers=auth_headers(token)).json()["data"]
    assert me["displayName"] == "Alice A."


def test_update_profile_ignores_quota_fields(client: TestClient, alice):
    _, token = alice
    response = client.put("/api/auth/update-profile", json={"totalSize": 1}, headers=auth_headers(token))
    assert response.status_code == 400
    assert "Allowed fields" in response.json()["message"]


def test_update_profile_picture(client: TestClient, alice):
    _, token = alice
    response = client.post(
        "/api/auth/update-profile-picture",
        files={"profilePicture": ("me.png", b"p" * 2048, TEST_PNG_CONTENT_TYPE)},
        headers=auth_headers(token),
    )
    assert response.status_code == 200
    assert response.json()["data"]["profilePicture"]

    profile = client.get("/api/profile", headers=auth_headers(token)).json()["data"]
    assert profile["totalSize"] == 2048


def test_update_profile_picture_requires_image(client: TestClient, alice):
    _, token = alice
    missing = client.post("/api/auth/update-profile-picture", headers=auth_headers(token))
    assert missing.status_code == 400
    assert missing.json()["message"] == "No image file uploaded"

    wrong_type = client.post(
        "/api/auth/update-profile-picture",
        files={"profilePicture": ("doc.pdf", b"%PDF", "application/pdf")},
        headers=auth_headers(token),
    )
    assert wrong_type.status_code == 400


def test_register_helper_users_are_isolated(client: TestClient):
    uid_a, _ = register_user(client, email="one@example.com")
    uid_b, _ = register_user(client, email="two@example.com")
    assert uid_a != uid_b

import time

import pytest
from jose import jwt

from tests.consts import TEST_JWT_SECRET
from wallet_api.errors import ConflictError, InvalidRequestError, UnauthenticatedError
from wallet_api.services.identity import IdentityProvider, hash_password, verify_password
from wallet_db.local import init_db


@pytest.fixture
def identity(tmp_path) -> IdentityProvider:
    return IdentityProvider(init_db(str(tmp_path / "identity.db")), secret=TEST_JWT_SECRET)


def test_password_hashing_uses_pbkdf2():
    hashed = hash_password("s3cret-pass")
    assert hashed.startswith("$pbkdf2-sha256$")
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("s3cret-pass", None)


def test_register_normalizes_email_and_defaults_display_name(identity: IdentityProvider):
    account = identity.register(" Alice@Example.com ", "s3cret-pass")

    assert account["email"] == "alice@example.com"
    assert account["displayName"] == "alice"
    assert account["emailVerified"] is False
    assert identity.get_account(account["uid"])["passwordHash"] != "s3cret-pass"


@pytest.mark.parametrize(
    "email, password, message",
    [
        ("not-an-email", "s3cret-pass", "Invalid email address"),
        ("a@example.com", "12345", "Password must be at least 6 characters long"),
    ],
)
def test_register_validation(identity: IdentityProvider, email, password, message):
    with pytest.raises(InvalidRequestError, match=message):
        identity.register(email, password)


def test_register_rejects_duplicate_email(identity: IdentityProvider):
    identity.register("alice@example.com", "s3cret-pass")
    with pytest.raises(ConflictError, match="already exists"):
        identity.register("ALICE@example.com", "other-pass")


def test_authenticate(identity: IdentityProvider):
    account = identity.register("alice@example.com", "s3cret-pass")

    assert identity.authenticate("alice@example.com", "s3cret-pass")["uid"] == account["uid"]
    for email, password in [("alice@example.com", "wrong"), ("nobody@example.com", "s3cret-pass")]:
        with pytest.raises(UnauthenticatedError) as exc_info:
            identity.authenticate(email, password)
        assert exc_info.value.reason == UnauthenticatedError.INVALID_CREDENTIALS
        assert exc_info.value.message == "Invalid email or password"


def test_issued_token_verifies_with_claims(identity: IdentityProvider):
    account = identity.register("alice@example.com", "s3cret-pass")

    token = identity.issue_session_token(account["uid"])
    credential = identity.verify_credential(token)

    assert credential.subject == account["uid"]
    assert credential.email == "alice@example.com"
    assert credential.claims["typ"] == "access"
    assert credential.claims["exp"] - credential.claims["iat"] == 3600
    assert "auth_time" in credential.claims


def test_expired_token(tmp_path):
    identity = IdentityProvider(init_db(str(tmp_path / "x.db")), secret=TEST_JWT_SECRET, token_ttl_seconds=-30)
    account = identity.register("alice@example.com", "s3cret-pass")

    with pytest.raises(UnauthenticatedError) as exc_info:
        identity.verify_credential(identity.issue_session_token(account["uid"]))
    assert exc_info.value.reason == UnauthenticatedError.EXPIRED


@pytest.mark.parametrize(
    "token_factory",
    [
        lambda uid: "not.a.jwt",
        lambda uid: jwt.encode({"sub": uid, "typ": "access"}, "other-secret", algorithm="HS256"),
        lambda uid: jwt.encode({"sub": uid, "typ": "refresh"}, TEST_JWT_SECRET, algorithm="HS256"),
        lambda uid: jwt.encode({"typ": "access"}, TEST_JWT_SECRET, algorithm="HS256"),
    ],
)
def test_malformed_tokens(identity: IdentityProvider, token_factory):
    account = identity.register("alice@example.com", "s3cret-pass")

    with pytest.raises(UnauthenticatedError) as exc_info:
        identity.verify_credential(token_factory(account["uid"]))
    assert exc_info.value.reason == UnauthenticatedError.MALFORMED


def test_revoke_all_sessions(identity: IdentityProvider):
    account = identity.register("alice@example.com", "s3cret-pass")
    old_token = identity.issue_session_token(account["uid"])

    assert identity.revoke_all_sessions(account["uid"])
    with pytest.raises(UnauthenticatedError) as exc_info:
        identity.verify_credential(old_token)
    assert exc_info.value.reason == UnauthenticatedError.REVOKED

    time.sleep(0.01)
    fresh_token = identity.issue_session_token(account["uid"])
    assert identity.verify_credential(fresh_token).subject == account["uid"]


def test_revoke_unknown_account(identity: IdentityProvider):
    assert identity.revoke_all_sessions("nobody") is False


def test_token_for_deleted_account_is_revoked(identity: IdentityProvider):
    account = identity.register("alice@example.com", "s3cret-pass")
    token = identity.issue_session_token(account["uid"])
    identity.db.delete_document("accounts", account["uid"])

    with pytest.raises(UnauthenticatedError) as exc_info:
        identity.verify_credential(token)
    assert exc_info.value.reason == UnauthenticatedError.REVOKED

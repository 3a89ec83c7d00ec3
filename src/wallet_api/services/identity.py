"""
Identity provider backed by the ``accounts`` collection.

Passwords are hashed with passlib; session tokens are HS256 JWTs signed
with python-jose. Revocation is per account: ``revoke_all_sessions`` moves
``tokensValidAfter`` forward and every token authenticated before that
instant is rejected.
"""

import logging
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
from passlib.context import CryptContext

from wallet_api.errors import ConflictError, InvalidRequestError, UnauthenticatedError
from wallet_db.nosql_adapter import NoSQLAdapter

logger = logging.getLogger(__name__)

PASSWORD_CONTEXT = CryptContext(
    schemes=["pbkdf2_sha256", "bcrypt"],
    default="pbkdf2_sha256",
    deprecated="auto",
)

MIN_PASSWORD_LENGTH = 6
TOKEN_TYPE = "access"
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

EXPIRED_MESSAGE = "Token has expired. Please login again."
REVOKED_MESSAGE = "Token has been revoked. Please login again."
INVALID_MESSAGE = "Invalid or expired token"


@dataclass(frozen=True)
class VerifiedCredential:
    subject: str
    claims: Dict[str, Any]

    @property
    def email(self) -> Optional[str]:
        return self.claims.get("email")


def hash_password(password: str) -> str:
    return PASSWORD_CONTEXT.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return PASSWORD_CONTEXT.verify(password, password_hash)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class IdentityProvider:
    """Register accounts, check passwords and issue/verify/revoke session tokens."""

    collection = "accounts"

    def __init__(
        self,
        db: NoSQLAdapter,
        secret: str,
        algorithm: str = "HS256",
        token_ttl_seconds: int = 3600,
    ):
        self.db = db
        self.secret = secret
        self.algorithm = algorithm
        self.token_ttl_seconds = token_ttl_seconds

    # accounts

    def get_account(self, uid: str) -> Optional[Dict[str, Any]]:
        return self.db.get_document(self.collection, uid)

    def get_account_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        found = self.db.query_documents(self.collection, {"email": email.strip().lower()}, limit=1)
        return found[0] if found else None

    def register(self, email: str, password: str, display_name: Optional[str] = None) -> Dict[str, Any]:
        email = (email or "").strip().lower()
        if not _EMAIL_RE.match(email):
            raise InvalidRequestError("Invalid email address")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise InvalidRequestError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        if self.get_account_by_email(email):
            raise ConflictError("User with this email already exists")

        uid = uuid.uuid4().hex
        account = {
            "uid": uid,
            "email": email,
            "displayName": display_name or email.split("@")[0],
            "passwordHash": hash_password(password),
            "emailVerified": False,
            "tokensValidAfter": None,
            "createdAt": _now().isoformat(),
        }
        self.db.create_document(self.collection, account, doc_id=uid)
        logger.info(f"Registered account {uid}")
        return account

    def authenticate(self, email: str, password: str) -> Dict[str, Any]:
        account = self.get_account_by_email(email or "")
        if not account or not verify_password(password, account.get("passwordHash")):
            raise UnauthenticatedError(
                "Invalid email or password", reason=UnauthenticatedError.INVALID_CREDENTIALS
            )
        return account

    def update_display_name(self, uid: str, display_name: str) -> None:
        self.db.update_fields(self.collection, uid, {"displayName": display_name})

    # sessions

    def issue_session_token(self, uid: str) -> str:
        account = self.get_account(uid)
        if not account:
            raise UnauthenticatedError("User not found", reason=UnauthenticatedError.INVALID_CREDENTIALS)
        issued_at = _now()
        payload = {
            "sub": uid,
            "email": account["email"],
            # sub-second precision so a logout and an immediate re-login order correctly
            "auth_time": time.time(),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + timedelta(seconds=self.token_ttl_seconds)).timestamp()),
            "typ": TOKEN_TYPE,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify_credential(self, token: str) -> VerifiedCredential:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise UnauthenticatedError(EXPIRED_MESSAGE, reason=UnauthenticatedError.EXPIRED) from exc
        except JWTError as exc:
            raise UnauthenticatedError(INVALID_MESSAGE, reason=UnauthenticatedError.MALFORMED) from exc

        subject = claims.get("sub")
        if claims.get("typ") != TOKEN_TYPE or not subject:
            raise UnauthenticatedError(INVALID_MESSAGE, reason=UnauthenticatedError.MALFORMED)

        account = self.get_account(subject)
        if not account:
            raise UnauthenticatedError(REVOKED_MESSAGE, reason=UnauthenticatedError.REVOKED)
        valid_after = account.get("tokensValidAfter")
        if valid_after is not None and float(claims.get("auth_time", 0)) < valid_after:
            raise UnauthenticatedError(REVOKED_MESSAGE, reason=UnauthenticatedError.REVOKED)

        return VerifiedCredential(subject=subject, claims=claims)

    def revoke_all_sessions(self, uid: str) -> bool:
        """Invalidate every token issued so far. Returns False for unknown accounts."""
        revoked = self.db.update_fields(self.collection, uid, {"tokensValidAfter": time.time()})
        if revoked:
            logger.info(f"Revoked all sessions for {uid}")
        return revoked

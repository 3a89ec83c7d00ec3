"""
User record operations for the ``users`` collection.

The user record carries the denormalized document index and the running
``totalSize``; those two fields are only ever written by the document
sagas, never through profile updates.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from wallet_api.errors import InvalidRequestError, NotFoundError
from wallet_db.nosql_adapter import NoSQLAdapter

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("displayName", "mobileNumber", "masterPin", "QR")

# never settable from registration extras or profile updates
PROTECTED_FIELDS = frozenset({
    "uid",
    "email",
    "emailVerified",
    "documents",
    "totalSize",
    "profilePicture",
    "profilePicturePath",
    "createdAt",
    "updatedAt",
    "lastLoginAt",
    "lastLogoutAt",
    "password",
    "passwordHash",
})


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserService:
    """Service for managing user records"""

    collection = "users"

    def __init__(self, db: NoSQLAdapter):
        self.db = db

    def get_user(self, uid: str) -> Optional[Dict[str, Any]]:
        return self.db.get_document(self.collection, uid)

    def require_user(self, uid: str) -> Dict[str, Any]:
        user = self.get_user(uid)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def create_user(
        self,
        account: Dict[str, Any],
        mobile_number: Optional[str] = None,
        master_pin: Optional[str] = None,
        qr: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Create the user record for a freshly registered account, with an empty index."""
        now = utc_now_iso()
        user = {
            k: v for k, v in (extra or {}).items() if k not in PROTECTED_FIELDS
        }
        user.update({
            "uid": account["uid"],
            "email": account["email"],
            "displayName": account.get("displayName"),
            "emailVerified": account.get("emailVerified", False),
            "mobileNumber": mobile_number or "",
            "masterPin": master_pin or "",
            "QR": qr or "",
            "documents": [],
            "totalSize": 0,
            "createdAt": now,
            "updatedAt": now,
        })
        self.db.set_document(self.collection, account["uid"], user)
        return user

    def update_profile(self, uid: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Apply the allowed profile fields that are present and not null."""
        fields = {
            field: changes[field]
            for field in PROFILE_FIELDS
            if changes.get(field) is not None
        }
        if not fields:
            raise InvalidRequestError(
                f"No valid fields to update. Allowed fields: {', '.join(PROFILE_FIELDS)}"
            )
        fields["updatedAt"] = utc_now_iso()
        if not self.db.update_fields(self.collection, uid, fields):
            raise NotFoundError("User not found")
        return self.require_user(uid)

    def record_login(self, uid: str) -> None:
        now = utc_now_iso()
        self.db.update_fields(self.collection, uid, {"lastLoginAt": now, "updatedAt": now})

    def record_logout(self, uid: str) -> bool:
        now = utc_now_iso()
        return self.db.update_fields(self.collection, uid, {"lastLogoutAt": now, "updatedAt": now})

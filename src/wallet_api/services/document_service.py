"""
Document lifecycle: upload, delete, profile-picture replacement, visibility
toggling and the read paths.

Each mutating flow is a short saga across the object store and the document
store. There is no distributed transaction; the step order leaves an
orphaned object (logged, cleaned up manually) rather than a record that
points at a missing one.

``totalSize`` and ``documents`` on the user record are only changed through
the store's single-document atomic updates: ``Increment``/``ArrayUnion`` on
upload and ``transform_document`` on delete and visibility changes. Only the
profile-picture commit, which must re-stat the old object between read and
write, uses an optimistic compare-and-set retried on version conflict.
"""

import logging
import secrets
import time
import uuid
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple, TypeVar
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from wallet_api.document_index import DocumentDescriptor, DocumentIndex
from wallet_api.errors import (
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    UnauthenticatedError,
    UpstreamFailureError,
)
from wallet_api.quota import QuotaDecision, QuotaLedger, check_file_cap
from wallet_api.s3.delete_objects import delete_s3_object
from wallet_api.s3.read_objects import get_s3_object_size
from wallet_api.s3.write_objects import upload_s3_object
from wallet_api.services.user_service import UserService, utc_now_iso
from wallet_api.settings import ALLOWED_DOCUMENT_TYPES, ALLOWED_PROFILE_PICTURE_TYPES, Settings
from wallet_api.signed_access import SignedAccessIssuer
from wallet_api.utils.decorators import log_execution_time, retry
from wallet_db.nosql_adapter import ArrayUnion, CeilingExceededError, Increment, NoSQLAdapter

if TYPE_CHECKING:
    from wallet_api.backend import Backend

logger = logging.getLogger(__name__)

T = TypeVar("T")

USERS = "users"
DOCUMENTS = "documents"

STORAGE_ERRORS = (BotoCoreError, ClientError)

# S3 limits: object keys and the total size of user metadata
MAX_OBJECT_KEY_BYTES = 1024
MAX_METADATA_NAME_LENGTH = 1024


class VersionConflictError(Exception):
    """The user record changed between read and compare-and-set."""


class DocumentService:
    """Service for the document and profile-picture sagas"""

    def __init__(
        self,
        db: NoSQLAdapter,
        s3_client: Any,
        settings: Settings,
        signed_access: SignedAccessIssuer,
    ):
        self.db = db
        self.s3_client = s3_client
        self.settings = settings
        self.bucket_name = settings.s3_bucket_name
        self.signed_access = signed_access
        self.ledger = QuotaLedger(settings.max_storage_bytes)
        self.users = UserService(db)

    # helpers

    def _with_cas_retry(self, operation: Callable[[], T]) -> T:
        attempt = retry(
            max_attempts=self.settings.cas_max_attempts,
            exceptions=(VersionConflictError,),
            logger_name=__name__,
        )(operation)
        try:
            return attempt()
        except VersionConflictError as exc:
            raise ConflictError("The user record is being modified concurrently. Please retry.") from exc

    def _cas_user(self, uid: str, version: int, fields: Dict[str, Any]) -> None:
        if not self.db.compare_and_set(USERS, uid, version, fields):
            raise VersionConflictError(f"users/{uid} moved past version {version}")

    def _load_user(self, uid: str) -> Tuple[Dict[str, Any], int]:
        found = self.db.get_document_with_version(USERS, uid)
        if found is None:
            raise NotFoundError("User not found")
        return found

    def _put_object(self, key: str, content: bytes, content_type: str, metadata: Dict[str, str]) -> None:
        try:
            upload_s3_object(
                bucket_name=self.bucket_name,
                object_key=key,
                file_content=content,
                content_type=content_type,
                metadata=metadata,
                s3_client=self.s3_client,
            )
        except STORAGE_ERRORS as e:
            raise UpstreamFailureError(f"Failed to store object: {e}") from e

    def _discard_object(self, key: str, reason: str) -> None:
        """Best-effort object deletion; failures leave an orphan that is only logged."""
        try:
            delete_s3_object(self.bucket_name, key, s3_client=self.s3_client)
        except STORAGE_ERRORS as e:
            logger.warning(f"Could not delete object {key} ({reason}); left orphaned: {e}")

    def _object_size(self, key: str) -> Optional[int]:
        try:
            return get_s3_object_size(self.bucket_name, key, s3_client=self.s3_client)
        except STORAGE_ERRORS as e:
            raise UpstreamFailureError(f"Failed to stat object {key}: {e}") from e

    def _signed_url(self, key: str) -> str:
        try:
            return self.signed_access.issue(key).url
        except STORAGE_ERRORS as e:
            raise UpstreamFailureError(f"Failed to sign URL for {key}: {e}") from e

    @staticmethod
    def _timestamped_key(prefix: str, name: str) -> str:
        # unique per upload even for identical names within the same millisecond
        key = f"{prefix}/{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{name}"
        if len(key.encode("utf-8")) > MAX_OBJECT_KEY_BYTES:
            raise InvalidRequestError("File name too long. Please rename the file and try again.")
        return key

    # upload

    @log_execution_time
    def upload_document(
        self,
        user_id: str,
        file_name: str,
        content: bytes,
        mime_type: str,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Upload saga:

        1. quota check against the current total (reject before touching storage)
        2. write the object
        3. create the DocumentRecord
        4. append the descriptor and increment ``totalSize`` in one atomic update,
           capped at the quota so concurrent uploads cannot overshoot it

        A failure after (2) leaves an orphaned object. A cap violation at (4)
        is compensated by removing the record and the object.
        """
        if mime_type not in ALLOWED_DOCUMENT_TYPES:
            raise InvalidRequestError(
                "Invalid file type. Only PDF, images, Word, and Excel files are allowed."
            )
        size = len(content)
        check_file_cap(size, self.settings.max_document_bytes)

        user = self.users.require_user(user_id)
        self.ledger.enforce(user.get("totalSize", 0), size)

        storage_path = self._timestamped_key(user_id, file_name)
        uploaded_at = utc_now_iso()
        metadata = {"uploadedBy": user_id}
        original_name = quote(file_name)
        if len(original_name) <= MAX_METADATA_NAME_LENGTH:
            metadata["originalName"] = original_name
        self._put_object(storage_path, content, mime_type, metadata=metadata)

        try:
            download_url = self._signed_url(storage_path)
            record = {
                "userId": user_id,
                "fileName": file_name,
                "storagePath": storage_path,
                "downloadURL": download_url,
                "fileSize": size,
                "mimeType": mime_type,
                "documentType": mime_type,
                "description": description or "",
                "uploadedAt": uploaded_at,
                "updatedAt": uploaded_at,
            }
            doc_id = self.db.create_document(DOCUMENTS, record)
        except Exception:
            logger.error(f"Upload of {storage_path} failed after the object was written; object orphaned")
            raise

        descriptor = DocumentDescriptor.for_upload(
            doc_id=doc_id,
            doc_name=file_name,
            doc_type=mime_type,
            doc_size=size,
            uploaded_time=uploaded_at,
        )
        try:
            updated = self.db.update_fields(USERS, user_id, {
                "documents": ArrayUnion(descriptor.to_stored()),
                "totalSize": Increment(size, floor=0, ceiling=self.ledger.quota_max),
                "updatedAt": utc_now_iso(),
            })
        except CeilingExceededError as exc:
            logger.info(f"Quota filled concurrently while uploading {storage_path}; rolling back")
            self.db.delete_document(DOCUMENTS, doc_id)
            self._discard_object(storage_path, "upload rolled back")
            self.ledger.enforce(exc.current, size)
            raise
        except Exception:
            logger.error(
                f"Upload of {storage_path} stored record {doc_id} but the user index was not updated"
            )
            raise
        if not updated:
            logger.error(f"User {user_id} vanished during upload; record {doc_id} and {storage_path} orphaned")
            raise NotFoundError("User not found")

        logger.info(f"Uploaded {storage_path} ({size} bytes) as document {doc_id}")
        return {
            "documentId": doc_id,
            "fileName": file_name,
            "fileSize": size,
            "downloadURL": download_url,
            "documentType": mime_type,
            "uploadedAt": uploaded_at,
        }

    # delete

    @log_execution_time
    def delete_document(self, user_id: str, doc_id: str) -> None:
        """
        Delete saga: verify ownership, delete the object (best effort), delete
        the record, then drop the descriptor and decrement ``totalSize`` by the
        record's recorded size in one atomic update that cannot conflict.
        """
        record = self.db.get_document(DOCUMENTS, doc_id)
        if record is None:
            raise NotFoundError("Document not found")
        if record.get("userId") != user_id:
            raise ForbiddenError("You do not have permission to delete this document")

        if record.get("storagePath"):
            self._discard_object(record["storagePath"], f"deleting document {doc_id}")
        self.db.delete_document(DOCUMENTS, doc_id)

        size = record.get("fileSize") or 0

        def remove_from_user(user: Dict[str, Any]) -> Dict[str, Any]:
            return {
                **user,
                "documents": DocumentIndex.load(user.get("documents")).remove(doc_id).to_stored(),
                "totalSize": self.ledger.after_remove(user.get("totalSize"), size),
                "updatedAt": utc_now_iso(),
            }

        if self.db.transform_document(USERS, user_id, remove_from_user) is None:
            logger.warning(f"User {user_id} missing while deleting document {doc_id}")
        logger.info(f"Deleted document {doc_id} ({size} bytes) for {user_id}")

    # visibility

    def set_visibility(self, user_id: str, doc_id: str, visible: bool) -> Dict[str, Any]:
        def toggle(user: Dict[str, Any]) -> Dict[str, Any]:
            index = DocumentIndex.load(user.get("documents")).set_visibility(doc_id, visible)
            return {**user, "documents": index.to_stored(), "updatedAt": utc_now_iso()}

        if self.db.transform_document(USERS, user_id, toggle) is None:
            raise NotFoundError("User not found")
        return {"documentId": doc_id, "isDocShow": visible}

    # profile picture

    def _profile_picture_decision(self, user: Dict[str, Any], new_size: int) -> Tuple[Optional[int], QuotaDecision]:
        """Probe the current picture's size in the store and check the quota for the swap."""
        old_path = user.get("profilePicturePath")
        old_size = self._object_size(old_path) if old_path else None
        decision = self.ledger.enforce(
            user.get("totalSize", 0),
            new_size - (old_size or 0),
            attempted_bytes=new_size,
            subject="profile picture",
        )
        return old_size, decision

    @log_execution_time
    def replace_profile_picture(
        self,
        user_id: str,
        file_name: str,
        content: bytes,
        mime_type: str,
    ) -> Dict[str, Any]:
        """
        Replace saga:

        1. stat the previous picture in the object store
        2. quota check with delta = new size - old size
        3. upload the new object
        4. update path, URL and ``totalSize`` with compare-and-set, re-probing on conflict
        5. delete the previous object, only after (4) succeeded
        """
        if mime_type not in ALLOWED_PROFILE_PICTURE_TYPES:
            raise InvalidRequestError("Invalid file type. Only JPEG, PNG, and WebP images are allowed.")
        new_size = len(content)
        check_file_cap(new_size, self.settings.max_profile_picture_bytes, subject="Profile picture")

        user, _ = self._load_user(user_id)
        self._profile_picture_decision(user, new_size)

        extension = file_name.rsplit(".", 1)[-1] if "." in file_name else "jpg"
        new_path = self._timestamped_key(f"profile-pictures/{user_id}", f"picture.{extension}")
        self._put_object(new_path, content, mime_type, metadata={"uploadedBy": user_id})

        def commit() -> Tuple[Optional[str], Optional[int], str]:
            current, version = self._load_user(user_id)
            old_size, decision = self._profile_picture_decision(current, new_size)
            download_url = self._signed_url(new_path)
            self._cas_user(user_id, version, {
                "profilePicture": download_url,
                "profilePicturePath": new_path,
                "totalSize": decision.new_total,
                "updatedAt": utc_now_iso(),
            })
            return current.get("profilePicturePath"), old_size, download_url

        try:
            old_path, old_size, download_url = self._with_cas_retry(commit)
        except Exception:
            self._discard_object(new_path, "profile picture update not committed")
            raise

        if old_path and old_size is not None and old_path != new_path:
            self._discard_object(old_path, "replaced profile picture")

        logger.info(f"Profile picture for {user_id} replaced ({old_size or 0} -> {new_size} bytes)")
        return {"uid": user_id, "profilePicture": download_url}

    # reads

    def _with_fresh_url(self, doc_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": doc_id,
            **record,
            "downloadURL": self.signed_access.issue_or_fallback(
                record.get("storagePath"), record.get("downloadURL")
            ),
        }

    def list_user_documents(self, user_id: str) -> List[Dict[str, Any]]:
        """All records owned by the user, newest first, each with a freshly signed URL."""
        records = self.db.query_documents(
            DOCUMENTS,
            {"userId": user_id},
            order_by="uploadedAt",
            descending=True,
            limit=-1,  # no limit
            include_ids=True,
        )
        return [self._with_fresh_url(record.pop("_id"), record) for record in records]

    def get_document(self, doc_id: str) -> Dict[str, Any]:
        record = self.db.get_document(DOCUMENTS, doc_id)
        if record is None:
            raise NotFoundError("Document not found")
        return self._with_fresh_url(doc_id, record)

    def get_download_url(self, user_id: str, doc_id: str) -> Dict[str, Any]:
        record = self.db.get_document(DOCUMENTS, doc_id)
        if record is None:
            raise NotFoundError("Document not found")
        if record.get("userId") != user_id:
            raise ForbiddenError("You do not have permission to access this document")
        if not record.get("storagePath"):
            raise InvalidRequestError("Document storage path not found")
        try:
            access = self.signed_access.issue(record["storagePath"])
        except STORAGE_ERRORS as e:
            raise UpstreamFailureError(f"Failed to generate download URL: {e}") from e
        return {"downloadURL": access.url, "expiresAt": access.expires_at_iso}

    def get_documents_by_pin(self, user_id: str, pin: str) -> List[Dict[str, Any]]:
        """PIN-gated read of the visible descriptors; refused when no PIN is set."""
        user = self.users.require_user(user_id)
        master_pin = user.get("masterPin")
        if not master_pin:
            raise UnauthenticatedError("Master pin not set for this user")
        if not secrets.compare_digest(str(master_pin).encode(), str(pin).encode()):
            raise UnauthenticatedError("Invalid pin")

        visible = []
        for descriptor in DocumentIndex.load(user.get("documents")).visible_only():
            record = self.db.get_document(DOCUMENTS, descriptor.doc_id)
            download_url = None
            if record is not None:
                download_url = self.signed_access.issue_or_fallback(
                    record.get("storagePath"), record.get("downloadURL")
                )
            visible.append({**descriptor.to_stored(), "downloadURL": download_url})
        return visible


def get_document_service(backend: "Backend") -> DocumentService:
    return DocumentService(
        db=backend.db,
        s3_client=backend.s3_client,
        settings=backend.settings,
        signed_access=backend.signed_access,
    )

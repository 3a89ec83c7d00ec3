"""
Recompute each user's ``totalSize`` from authoritative sources.

Documents count with their recorded ``DocumentRecord.fileSize``; the profile
picture counts with the size the object store reports for it. Drift is
reported and, with ``apply=True``, corrected. Objects are never deleted.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from wallet_api.s3.read_objects import get_s3_object_size
from wallet_api.utils.decorators import log_execution_time
from wallet_db.nosql_adapter import NoSQLAdapter

logger = logging.getLogger(__name__)


@dataclass
class UserDrift:
    uid: str
    recorded_total: int
    computed_total: int
    document_bytes: int
    profile_picture_bytes: int
    # descriptors in the user index with no DocumentRecord behind them
    dangling_descriptors: List[str] = field(default_factory=list)
    # DocumentRecords owned by the user but missing from the index
    unindexed_records: List[str] = field(default_factory=list)
    applied: bool = False

    @property
    def drift(self) -> int:
        return self.recorded_total - self.computed_total

    @property
    def consistent(self) -> bool:
        return self.drift == 0 and not self.dangling_descriptors and not self.unindexed_records

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "recordedTotal": self.recorded_total,
            "computedTotal": self.computed_total,
            "drift": self.drift,
            "documentBytes": self.document_bytes,
            "profilePictureBytes": self.profile_picture_bytes,
            "danglingDescriptors": self.dangling_descriptors,
            "unindexedRecords": self.unindexed_records,
            "applied": self.applied,
        }


class Reconciler:
    def __init__(self, db: NoSQLAdapter, bucket_name: str, s3_client: Any = None):
        self.db = db
        self.bucket_name = bucket_name
        self.s3_client = s3_client

    def check_user(self, uid: str, apply: bool = False) -> Optional[UserDrift]:
        found = self.db.get_document_with_version("users", uid)
        if found is None:
            return None
        user, version = found

        records = self.db.query_documents("documents", {"userId": uid}, limit=-1, include_ids=True)
        document_bytes = sum(record.get("fileSize") or 0 for record in records)
        record_ids = {record["_id"] for record in records}

        picture_bytes = 0
        if user.get("profilePicturePath"):
            picture_bytes = get_s3_object_size(
                self.bucket_name, user["profilePicturePath"], s3_client=self.s3_client
            ) or 0

        indexed = []
        for entry in user.get("documents") or []:
            indexed.append(entry if isinstance(entry, str) else entry.get("docId"))

        report = UserDrift(
            uid=uid,
            recorded_total=user.get("totalSize") or 0,
            computed_total=document_bytes + picture_bytes,
            document_bytes=document_bytes,
            profile_picture_bytes=picture_bytes,
            dangling_descriptors=[doc_id for doc_id in indexed if doc_id not in record_ids],
            unindexed_records=sorted(record_ids - set(indexed)),
        )

        if report.drift:
            logger.warning(
                f"totalSize drift for {uid}: recorded={report.recorded_total} "
                f"computed={report.computed_total}"
            )
            if apply:
                report.applied = self.db.compare_and_set(
                    "users", uid, version, {"totalSize": report.computed_total}
                )
                if not report.applied:
                    logger.warning(f"User {uid} changed during reconciliation; not corrected")
        return report

    @log_execution_time
    def run(self, user_id: Optional[str] = None, apply: bool = False) -> List[UserDrift]:
        if user_id:
            uids = [user_id]
        else:
            uids = [user["_id"] for user in self.db.query_documents("users", {}, limit=-1, include_ids=True)]

        reports = []
        for uid in uids:
            report = self.check_user(uid, apply=apply)
            if report is not None:
                reports.append(report)
        drifted = sum(1 for report in reports if not report.consistent)
        logger.info(f"Reconciled {len(reports)} users; {drifted} inconsistent")
        return reports

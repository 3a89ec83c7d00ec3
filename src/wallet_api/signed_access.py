"""Time-bounded read URLs for stored objects."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from wallet_api.s3.read_objects import generate_presigned_get_url

try:
    from mypy_boto3_s3 import S3Client
except ImportError:
    ...

logger = logging.getLogger(__name__)

ONE_YEAR_SECONDS = 365 * 24 * 60 * 60


@dataclass(frozen=True)
class SignedAccess:
    url: str
    expires_at: datetime

    @property
    def expires_at_iso(self) -> str:
        return self.expires_at.isoformat()


class SignedAccessIssuer:
    """
    Issue read URLs for objects in one bucket.

    There is no revocation: deleting the object is the only way to
    invalidate a URL already handed out. Callers re-issue on every read
    rather than trusting a cached ``downloadURL``.
    """

    def __init__(
        self,
        bucket_name: str,
        ttl_seconds: int = ONE_YEAR_SECONDS,
        s3_client: Optional["S3Client"] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.bucket_name = bucket_name
        self.ttl_seconds = ttl_seconds
        self.s3_client = s3_client
        self._clock = clock

    def issue(self, storage_ref: str) -> SignedAccess:
        issued_at = self._clock()
        url = generate_presigned_get_url(
            bucket_name=self.bucket_name,
            object_key=storage_ref,
            expires_in=self.ttl_seconds,
            s3_client=self.s3_client,
        )
        return SignedAccess(url=url, expires_at=issued_at + timedelta(seconds=self.ttl_seconds))

    def issue_or_fallback(self, storage_ref: Optional[str], cached_url: Optional[str]) -> Optional[str]:
        """Fresh URL for read paths, falling back to the cached one if signing fails."""
        if not storage_ref:
            return cached_url
        try:
            return self.issue(storage_ref).url
        except Exception as e:  # pylint: disable=broad-except
            logger.warning(f"Error generating signed URL for {storage_ref}: {e}")
            return cached_url

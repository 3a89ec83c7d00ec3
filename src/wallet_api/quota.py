"""
Per-user storage quota accounting.

Two independent ceilings apply to every write: a hard per-file cap checked
on the incoming file alone, and the cumulative per-user quota checked
against the user's running ``totalSize``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from wallet_api.errors import FileTooLargeError, QuotaExceededError
from wallet_api.settings import MIB

logger = logging.getLogger(__name__)


def bytes_to_mb(size: int, places: int = 2) -> float:
    """Megabytes for display, rounded to `places` decimals."""
    return round(size / MIB, places)


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a quota check. ``new_total`` is unchanged on rejection."""

    accepted: bool
    current_total: int
    delta_bytes: int
    new_total: int
    quota_max: int
    attempted_bytes: int

    @property
    def shortfall(self) -> int:
        """Bytes still available before this write."""
        return self.quota_max - self.current_total

    def to_payload(self) -> Dict[str, Any]:
        used_mb = bytes_to_mb(self.current_total)
        max_mb = bytes_to_mb(self.quota_max, 0)
        file_mb = bytes_to_mb(self.attempted_bytes)
        available_mb = bytes_to_mb(self.shortfall)
        return {
            "currentSize": self.current_total,
            "maxSize": self.quota_max,
            "fileSize": self.attempted_bytes,
            "availableSpace": self.shortfall,
            "usedMB": used_mb,
            "maxMB": max_mb,
            "fileMB": file_mb,
            "availableMB": available_mb,
            "message": (
                f"Please delete some old documents to free up space. "
                f"You have {available_mb:.2f}MB available."
            ),
        }

    def rejection_message(self, subject: str = "file") -> str:
        return (
            f"Storage quota exceeded. You have used {bytes_to_mb(self.current_total):.2f}MB "
            f"of {bytes_to_mb(self.quota_max, 0):.0f}MB. This {subject} "
            f"({bytes_to_mb(self.attempted_bytes):.2f}MB) would exceed your limit."
        )


class QuotaLedger:
    """Computes whether a write fits and what the running total becomes."""

    def __init__(self, quota_max: int):
        if quota_max <= 0:
            raise ValueError("quota_max must be positive")
        self.quota_max = quota_max

    def check_and_reserve(
        self,
        current_total: int,
        delta_bytes: int,
        attempted_bytes: Optional[int] = None,
    ) -> QuotaDecision:
        """
        Accept iff ``current_total + delta_bytes <= quota_max``.

        ``delta_bytes`` is signed: a replacement passes ``new - old`` so a
        shrinking file never trips the quota. ``attempted_bytes`` is the size
        of the incoming file, reported back on rejection; it defaults to the
        delta.
        """
        current_total = max(0, current_total or 0)
        attempted = delta_bytes if attempted_bytes is None else attempted_bytes
        candidate = current_total + delta_bytes
        accepted = candidate <= self.quota_max
        return QuotaDecision(
            accepted=accepted,
            current_total=current_total,
            delta_bytes=delta_bytes,
            new_total=max(0, candidate) if accepted else current_total,
            quota_max=self.quota_max,
            attempted_bytes=attempted,
        )

    def enforce(
        self,
        current_total: int,
        delta_bytes: int,
        attempted_bytes: Optional[int] = None,
        subject: str = "file",
    ) -> QuotaDecision:
        """Like check_and_reserve, but raises QuotaExceededError on rejection."""
        decision = self.check_and_reserve(current_total, delta_bytes, attempted_bytes)
        if not decision.accepted:
            logger.info(
                f"Quota rejection: total={decision.current_total} delta={delta_bytes} "
                f"max={self.quota_max}"
            )
            raise QuotaExceededError(
                decision.rejection_message(subject),
                decision=decision,
                data=decision.to_payload(),
            )
        return decision

    @staticmethod
    def after_remove(current_total: int, size: int) -> int:
        """Deletion floors at zero even if bookkeeping had already drifted."""
        return max(0, (current_total or 0) - size)


def check_file_cap(size: int, cap: int, subject: str = "File") -> None:
    """Enforce the hard per-file cap, independent of remaining quota."""
    if size > cap:
        raise FileTooLargeError(
            f"{subject} too large. Maximum size is {bytes_to_mb(cap, 0):.0f}MB.",
            data={"fileSize": size, "maxFileSize": cap, "fileMB": bytes_to_mb(size)},
        )

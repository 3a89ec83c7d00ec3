import pytest

from tests.consts import MIB, QUOTA_BYTES
from wallet_api.errors import FileTooLargeError, QuotaExceededError
from wallet_api.quota import QuotaLedger, bytes_to_mb, check_file_cap


@pytest.fixture
def ledger() -> QuotaLedger:
    return QuotaLedger(QUOTA_BYTES)


def test_upload_into_empty_account_is_accepted(ledger: QuotaLedger):
    decision = ledger.check_and_reserve(0, 2 * MIB)

    assert decision.accepted
    assert decision.new_total == 2_097_152


def test_upload_over_quota_reports_available_space(ledger: QuotaLedger):
    decision = ledger.check_and_reserve(49_000_000, 4 * MIB)

    assert not decision.accepted
    assert decision.new_total == 49_000_000
    assert decision.shortfall == QUOTA_BYTES - 49_000_000

    payload = decision.to_payload()
    assert payload["availableMB"] == pytest.approx(3.27)
    assert payload["usedMB"] == pytest.approx(46.73)
    assert payload["maxMB"] == 50
    assert payload["fileMB"] == pytest.approx(4.0)
    assert payload["currentSize"] == 49_000_000
    assert payload["maxSize"] == QUOTA_BYTES
    assert payload["fileSize"] == 4 * MIB
    assert payload["availableSpace"] == 3_428_800
    assert "3.27MB available" in payload["message"]


def test_exact_fit_is_accepted(ledger: QuotaLedger):
    decision = ledger.check_and_reserve(QUOTA_BYTES - 10, 10)
    assert decision.accepted
    assert decision.new_total == QUOTA_BYTES


@pytest.mark.parametrize("current_total", [0, 10 * MIB, 49_000_000, QUOTA_BYTES])
def test_rejection_is_monotonic_in_delta(ledger: QuotaLedger, current_total: int):
    deltas = [1, MIB, 4 * MIB, 20 * MIB, 60 * MIB]
    outcomes = [ledger.check_and_reserve(current_total, d).accepted for d in deltas]
    # once a delta is rejected, every larger delta is rejected too
    first_rejection = next((i for i, accepted in enumerate(outcomes) if not accepted), len(outcomes))
    assert all(not accepted for accepted in outcomes[first_rejection:])


def test_shrinking_replacement_never_trips_quota(ledger: QuotaLedger):
    # already above quota (drifted), but the replacement shrinks usage
    decision = ledger.check_and_reserve(QUOTA_BYTES + MIB, -2 * MIB, attempted_bytes=MIB)
    assert decision.accepted
    assert decision.new_total == QUOTA_BYTES - MIB
    assert decision.attempted_bytes == MIB


def test_enforce_raises_with_structured_payload(ledger: QuotaLedger):
    with pytest.raises(QuotaExceededError) as exc_info:
        ledger.enforce(49_000_000, 4 * MIB, subject="profile picture")

    err = exc_info.value
    assert err.status_code == 413
    assert err.error_code == "STORAGE_QUOTA_EXCEEDED"
    assert "This profile picture (4.00MB)" in err.message
    assert err.decision.accepted is False
    assert err.to_payload()["data"]["availableMB"] == pytest.approx(3.27)


def test_enforce_returns_decision_when_accepted(ledger: QuotaLedger):
    assert ledger.enforce(MIB, MIB).new_total == 2 * MIB


def test_total_after_remove():
    assert QuotaLedger.after_remove(100, 40) == 60


def test_remove_floors_at_zero():
    assert QuotaLedger.after_remove(100, 500) == 0
    assert QuotaLedger.after_remove(None, 5) == 0


def test_ledger_requires_positive_quota():
    with pytest.raises(ValueError):
        QuotaLedger(0)


def test_file_cap_is_independent_of_quota():
    check_file_cap(10 * MIB, 10 * MIB)
    with pytest.raises(FileTooLargeError) as exc_info:
        check_file_cap(5 * MIB + 1, 5 * MIB, subject="Profile picture")
    assert exc_info.value.status_code == 413
    assert exc_info.value.message == "Profile picture too large. Maximum size is 5MB."


def test_bytes_to_mb_rounds_for_display():
    assert bytes_to_mb(3_428_800) == 3.27
    assert bytes_to_mb(QUOTA_BYTES, 0) == 50

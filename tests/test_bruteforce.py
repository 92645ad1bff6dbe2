import json

import pytest

from vehiscan.core.bruteforce import LockoutTracker, normalize_identity, storage_key

from conftest import BrokenStore

LOCKOUT_MS = 600_000


@pytest.fixture
def tracker(store, clock):
    return LockoutTracker(store, max_attempts=3, lockout_ms=LOCKOUT_MS, clock=clock)


def test_normalize_identity():
    assert normalize_identity("  Driver@Example.COM ") == "driver@example.com"
    assert storage_key(" Driver@Example.com") == "lockout_driver@example.com"


def test_two_failures_do_not_lock(tracker):
    tracker.record_failure("a@b.com")
    status = tracker.record_failure("a@b.com")

    assert not status.locked
    assert "You have 1 attempt(s) remaining" in status.notice.message
    assert not tracker.is_locked("a@b.com").locked


def test_third_failure_locks(tracker, clock):
    for _ in range(2):
        tracker.record_failure("a@b.com")
        clock.advance(1000)
    status = tracker.record_failure("a@b.com")

    assert status.locked
    assert status.notice.title == "Account Locked"

    locked = tracker.is_locked("a@b.com")
    assert locked.locked
    assert locked.remaining_ms == LOCKOUT_MS


def test_identity_is_normalized_before_lookup(tracker):
    for _ in range(3):
        tracker.record_failure("A@B.com ")
    assert tracker.is_locked("a@b.com").locked


def test_lockout_anchor_moves_to_third_failure(tracker, store, clock):
    first = clock.now
    tracker.record_failure("a@b.com")
    clock.advance(60_000)
    tracker.record_failure("a@b.com")
    assert json.loads(store.get(storage_key("a@b.com")))["lockoutTime"] == first

    clock.advance(60_000)
    tracker.record_failure("a@b.com")
    record = json.loads(store.get(storage_key("a@b.com")))
    assert record == {"attempts": 3, "lockoutTime": clock.now}


def test_lockout_expires_and_clears_record(tracker, store, clock):
    for _ in range(3):
        tracker.record_failure("a@b.com")

    clock.advance(LOCKOUT_MS - 1)
    status = tracker.is_locked("a@b.com")
    assert status.locked
    assert status.remaining_ms == 1

    clock.advance(2)
    assert not tracker.is_locked("a@b.com").locked
    assert store.get(storage_key("a@b.com")) is None


def test_streak_does_not_carry_over_expired_lockout(tracker, clock):
    for _ in range(3):
        tracker.record_failure("a@b.com")
    clock.advance(LOCKOUT_MS + 1)

    status = tracker.record_failure("a@b.com")
    assert not status.locked
    assert status.attempts == 1


def test_old_streak_expires_before_threshold(tracker, clock):
    tracker.record_failure("a@b.com")
    tracker.record_failure("a@b.com")
    clock.advance(LOCKOUT_MS)

    assert tracker.failed_attempts("a@b.com") == 0
    assert tracker.record_failure("a@b.com").attempts == 1


def test_success_resets_streak(tracker, store):
    tracker.record_failure("a@b.com")
    tracker.record_failure("a@b.com")

    tracker.record_success("a@b.com")
    assert store.get(storage_key("a@b.com")) is None

    status = tracker.record_failure("a@b.com")
    assert status.attempts == 1
    assert not status.locked


def test_identities_are_isolated(tracker):
    for _ in range(3):
        tracker.record_failure("a@b.com")

    assert tracker.is_locked("a@b.com").locked
    assert not tracker.is_locked("c@d.com").locked


def test_storage_errors_never_lock(clock):
    tracker = LockoutTracker(BrokenStore(), clock=clock)
    assert not tracker.is_locked("a@b.com").locked
    assert tracker.failed_attempts("a@b.com") == 0
    tracker.record_success("a@b.com")


@pytest.mark.parametrize("raw", ["not json", "null", "{}", "5", '{"attempts": "3", "lockoutTime": 1}'])
def test_corrupt_record_never_locks_and_is_replaced(tracker, store, raw):
    store.set(storage_key("a@b.com"), raw)

    assert not tracker.is_locked("a@b.com").locked
    assert tracker.failed_attempts("a@b.com") == 0

    status = tracker.record_failure("a@b.com")
    assert status.attempts == 1
    assert json.loads(store.get(storage_key("a@b.com")))["attempts"] == 1

import json
import math
from dataclasses import dataclass

from vehiscan.core.clock import Clock, now_ms
from vehiscan.core.exceptions import StorageUnavailable
from vehiscan.core.logging import get_security_logger
from vehiscan.core.notices import Notice
from vehiscan.services.storage import KeyValueStore

KEY_PREFIX = "lockout_"

sec_logger = get_security_logger()


@dataclass(frozen=True)
class LockoutStatus:
    locked: bool
    remaining_ms: int = 0
    attempts: int = 0
    notice: Notice | None = None


def normalize_identity(identity: str) -> str:
    return identity.strip().lower()


def storage_key(identity: str) -> str:
    return f"{KEY_PREFIX}{normalize_identity(identity)}"


class LockoutTracker:
    """
    Consecutive login failures per identity.

    The record anchors at the first failure of a streak. When the streak
    reaches ``max_attempts`` the anchor moves to that failure and the identity
    stays locked for ``lockout_ms``. Expired records are deleted when read.
    """

    def __init__(
        self,
        store: KeyValueStore,
        max_attempts: int = 3,
        lockout_ms: int = 10 * 60 * 1000,
        clock: Clock = now_ms,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.lockout_ms = lockout_ms
        self.clock = clock

    def _load(self, key: str) -> dict | None:
        raw = self.store.get(key)
        if not raw:
            return None

        record = json.loads(raw)
        if not (
            isinstance(record, dict)
            and isinstance(record.get("attempts"), int)
            and isinstance(record.get("lockoutTime"), int)
        ):
            raise ValueError(f"Malformed lockout record at {key}")
        return record

    def is_locked(self, identity: str) -> LockoutStatus:
        key = storage_key(identity)
        try:
            record = self._load(key)
            if not record:
                return LockoutStatus(locked=False)

            elapsed = self.clock() - record["lockoutTime"]
            attempts = record["attempts"]

            if elapsed < self.lockout_ms and attempts >= self.max_attempts:
                remaining = self.lockout_ms - elapsed
                minutes = math.ceil(remaining / 60000)
                return LockoutStatus(
                    locked=True,
                    remaining_ms=remaining,
                    attempts=attempts,
                    notice=Notice(
                        "Account Locked",
                        f"Your account is locked. Please try again in {minutes} minute(s).",
                    ),
                )
            if elapsed >= self.lockout_ms:
                self.store.remove(key)
                return LockoutStatus(locked=False)
            return LockoutStatus(locked=False, attempts=attempts)
        except (StorageUnavailable, ValueError, KeyError) as e:
            sec_logger.error(f"Error checking lockout status: {e}")
            return LockoutStatus(locked=False)

    def failed_attempts(self, identity: str) -> int:
        key = storage_key(identity)
        try:
            record = self._load(key)
            if not record:
                return 0
            if self.clock() - record["lockoutTime"] >= self.lockout_ms:
                self.store.remove(key)
                return 0
            return record["attempts"]
        except (StorageUnavailable, ValueError, KeyError) as e:
            sec_logger.error(f"Error getting failed attempts: {e}")
            return 0

    def record_failure(self, identity: str) -> LockoutStatus:
        key = storage_key(identity)
        # clears an expired streak before counting this failure
        attempts = self.failed_attempts(identity) + 1
        now = self.clock()

        try:
            anchor = now
            try:
                existing = self._load(key)
            except ValueError as e:
                # malformed records are overwritten by this failure
                sec_logger.error(f"Discarding lockout record: {e}")
                existing = None
            if existing:
                anchor = existing["lockoutTime"] or now

            if attempts >= self.max_attempts:
                anchor = now

            self.store.set(key, json.dumps({"attempts": attempts, "lockoutTime": anchor}))
        except (StorageUnavailable, ValueError) as e:
            sec_logger.error(f"Error incrementing failed attempts: {e}")

        if attempts >= self.max_attempts:
            sec_logger.warning(f"Account locked identity={normalize_identity(identity)}")
            return LockoutStatus(
                locked=True,
                remaining_ms=self.lockout_ms,
                attempts=attempts,
                notice=Notice(
                    "Account Locked",
                    "Too many failed login attempts. Your account has been locked "
                    f"for {math.ceil(self.lockout_ms / 60000)} minutes.",
                ),
            )

        remaining_attempts = self.max_attempts - attempts
        return LockoutStatus(
            locked=False,
            attempts=attempts,
            notice=Notice(
                "Login Failed",
                f"Invalid email or password. You have {remaining_attempts} attempt(s) "
                "remaining before your account is locked.",
            ),
        )

    def record_success(self, identity: str) -> None:
        try:
            self.store.remove(storage_key(identity))
        except StorageUnavailable as e:
            sec_logger.error(f"Error clearing failed attempts: {e}")

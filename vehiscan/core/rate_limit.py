import enum
import json
import math
from dataclasses import dataclass
from datetime import datetime

from vehiscan.core.clock import Clock, now_ms, to_local_datetime
from vehiscan.core.exceptions import StorageUnavailable
from vehiscan.core.logging import get_security_logger, short_id
from vehiscan.core.notices import Notice, format_clock_time, format_window
from vehiscan.services.storage import KeyValueStore

KEY_PREFIX = "rateLimit_"

WARNING_THRESHOLD = 60
CRITICAL_THRESHOLD = 80

sec_logger = get_security_logger()


class WarningLevel(str, enum.Enum):
    safe = "safe"
    warning = "warning"
    critical = "critical"


@dataclass(frozen=True)
class RateLimitDecision:
    admitted: bool
    attempts: int
    max_attempts: int
    retry_after_ms: int | None = None
    notice: Notice | None = None

    def __bool__(self) -> bool:
        return self.admitted


@dataclass(frozen=True)
class RateLimitStatus:
    attempts: int
    next_reset_ms: int | None

    @property
    def next_reset(self) -> datetime | None:
        if self.next_reset_ms is None:
            return None
        return to_local_datetime(self.next_reset_ms)


@dataclass(frozen=True)
class DetailedRateLimitStatus(RateLimitStatus):
    max_attempts: int = 0
    minutes_until_reset: int = 0
    is_at_limit: bool = False
    warning_level: WarningLevel = WarningLevel.safe


@dataclass(frozen=True)
class UsageStatus:
    status: str
    message: str
    color: str


def storage_key(subject_id: str, action: str) -> str:
    return f"{KEY_PREFIX}{subject_id}_{action}"


def classify_load(attempts: int, max_attempts: int) -> WarningLevel:
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    percentage = attempts / max_attempts * 100
    if percentage >= CRITICAL_THRESHOLD:
        return WarningLevel.critical
    if percentage >= WARNING_THRESHOLD:
        return WarningLevel.warning
    return WarningLevel.safe


def usage_status(attempts: int, max_attempts: int) -> UsageStatus:
    level = classify_load(attempts, max_attempts)
    if level is WarningLevel.critical:
        return UsageStatus("critical", "Approaching rate limit. Please slow down.", "#EF4444")
    if level is WarningLevel.warning:
        return UsageStatus("warning", "High activity detected. Monitor usage.", "#F59E0B")
    return UsageStatus("normal", "Normal usage patterns.", "#10B981")


class RateLimiter:
    """
    Sliding-window limiter over durable key-value storage.

    Each (subject, action) pair owns one record: a JSON list of attempt
    timestamps in milliseconds. Stale timestamps are dropped lazily whenever
    the record is read; nothing sweeps records in the background.
    """

    def __init__(self, store: KeyValueStore, clock: Clock = now_ms, fail_closed: bool = False):
        self.store = store
        self.clock = clock
        self.fail_closed = fail_closed

    def _load_window(self, key: str, window_start: int) -> list[int]:
        raw = self.store.get(key)
        attempts = json.loads(raw) if raw else []
        if not isinstance(attempts, list) or not all(isinstance(t, int) for t in attempts):
            raise ValueError(f"Malformed rate limit record at {key}")
        return [t for t in attempts if t > window_start]

    def check_and_record(
        self, subject_id: str, action: str, max_attempts: int, window_ms: int
    ) -> RateLimitDecision:
        if not subject_id:
            raise ValueError("subject_id must not be empty")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")

        key = storage_key(subject_id, action)
        now = self.clock()

        try:
            attempts = self._load_window(key, now - window_ms)

            if len(attempts) >= max_attempts:
                retry_at = min(attempts) + window_ms
                minutes = math.ceil((retry_at - now) / 60000)
                notice = Notice(
                    "Rate Limit Exceeded",
                    f"You've reached the maximum of {max_attempts} {action} attempts "
                    f"per {format_window(window_ms)}.\n\n"
                    f"Please wait {minutes} minutes before trying again.\n\n"
                    f"Next allowed: {format_clock_time(to_local_datetime(retry_at))}",
                )
                sec_logger.info(
                    f"[RATE_LIMIT] User {short_id(subject_id)} exceeded limit: "
                    f"{len(attempts)}/{max_attempts} attempts"
                )
                return RateLimitDecision(
                    admitted=False,
                    attempts=len(attempts),
                    max_attempts=max_attempts,
                    retry_after_ms=retry_at,
                    notice=notice,
                )

            attempts.append(now)
            self.store.set(key, json.dumps(attempts))
        except (StorageUnavailable, ValueError) as e:
            sec_logger.error(f"Rate limit check failed for {key}: {e}")
            if self.fail_closed:
                return RateLimitDecision(
                    admitted=False,
                    attempts=0,
                    max_attempts=max_attempts,
                    notice=Notice(
                        "Temporarily Unavailable",
                        "This action is unavailable right now. Please try again later.",
                    ),
                )
            return RateLimitDecision(admitted=True, attempts=0, max_attempts=max_attempts)

        sec_logger.info(
            f"[RATE_LIMIT] User {short_id(subject_id)} allowed: "
            f"{len(attempts)}/{max_attempts} attempts"
        )
        return RateLimitDecision(admitted=True, attempts=len(attempts), max_attempts=max_attempts)

    def reset(self, subject_id: str, action: str) -> None:
        try:
            self.store.remove(storage_key(subject_id, action))
            sec_logger.info(f"[RATE_LIMIT] Reset for user {short_id(subject_id)} action: {action}")
        except StorageUnavailable as e:
            sec_logger.error(f"Rate limit reset failed: {e}")

    def status(self, subject_id: str, action: str, window_ms: int) -> RateLimitStatus:
        now = self.clock()
        try:
            attempts = self._load_window(storage_key(subject_id, action), now - window_ms)
        except (StorageUnavailable, ValueError) as e:
            sec_logger.error(f"Rate limit status check failed: {e}")
            return RateLimitStatus(attempts=0, next_reset_ms=None)

        next_reset = min(attempts) + window_ms if attempts else None
        return RateLimitStatus(attempts=len(attempts), next_reset_ms=next_reset)

    def detailed_status(
        self, subject_id: str, action: str, max_attempts: int, window_ms: int
    ) -> DetailedRateLimitStatus:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        now = self.clock()
        basic = self.status(subject_id, action, window_ms)

        minutes = 0
        if basic.next_reset_ms is not None:
            minutes = math.ceil((basic.next_reset_ms - now) / 60000)

        return DetailedRateLimitStatus(
            attempts=basic.attempts,
            next_reset_ms=basic.next_reset_ms,
            max_attempts=max_attempts,
            minutes_until_reset=minutes,
            is_at_limit=basic.attempts >= max_attempts,
            warning_level=classify_load(basic.attempts, max_attempts),
        )

    def approach_warning(
        self, subject_id: str, action: str, max_attempts: int, window_ms: int
    ) -> Notice | None:
        status = self.detailed_status(subject_id, action, max_attempts, window_ms)
        if status.warning_level is not WarningLevel.critical or status.is_at_limit:
            return None

        remaining = status.max_attempts - status.attempts
        return Notice(
            "Warning: Approaching Rate Limit",
            f"You have {remaining} {action} attempts remaining in this "
            f"{format_window(window_ms)}.\n\n"
            "Please pace your activity to avoid being temporarily blocked.",
        )

    def clear_all(self) -> int:
        try:
            keys = self.store.keys(KEY_PREFIX)
            removed = self.store.remove_many(keys) if keys else 0
        except StorageUnavailable as e:
            sec_logger.error(f"Failed to clear rate limits: {e}")
            return 0

        if removed:
            sec_logger.info(f"[RATE_LIMIT] Cleared {removed} rate limit entries")
        return removed

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Notice:
    """User-facing feedback produced by a guard or a service."""
    title: str
    message: str

    def as_dict(self) -> dict:
        return {"title": self.title, "message": self.message}


def format_clock_time(moment: datetime) -> str:
    """12-hour clock time, e.g. ``2:30 PM``."""
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment.minute:02d} {suffix}"


def format_window(window_ms: int) -> str:
    if window_ms % 3_600_000 == 0:
        hours = window_ms // 3_600_000
        return "hour" if hours == 1 else f"{hours} hours"
    if window_ms % 60_000 == 0:
        minutes = window_ms // 60_000
        return "minute" if minutes == 1 else f"{minutes} minutes"
    seconds = max(1, window_ms // 1000)
    return "second" if seconds == 1 else f"{seconds} seconds"


def format_countdown(remaining_ms: int) -> str:
    """``m:ss`` countdown used next to the login form."""
    minutes = remaining_ms // 60_000
    seconds = (remaining_ms % 60_000) // 1000
    return f"{minutes}:{seconds:02d}"

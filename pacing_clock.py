"""
Pacing clock: elapsed time and unit arithmetic for a Power Hour run.

Everything here is a pure function of a start timestamp and "now"; nothing
is remembered between calls. Timestamps are aware datetimes, so elapsed time
is real time even when the local clock shifts for daylight saving.
"""
from __future__ import annotations
import datetime

TOTAL_UNITS = 60
SECONDS_PER_UNIT = 60


def local_now() -> datetime.datetime:
    """Current time as an aware datetime in the local zone."""
    return datetime.datetime.now().astimezone()


def as_aware(ts: datetime.datetime) -> datetime.datetime:
    """Attach the local zone to a naive timestamp; aware ones pass through."""
    return ts if ts.tzinfo is not None else ts.astimezone()


def left_pad(text: str, length: int, pad: str = "0") -> str:
    """Pad text on the left to length; keep the rightmost characters if longer."""
    if len(text) < length:
        return pad * (length - len(text)) + text
    return text[len(text) - length:]


def format_total_time(minutes: int, seconds: int) -> str:
    return f"{minutes}:{left_pad(str(seconds), 2)}"


class PacingClock:
    """Turns a start time and the current time into minutes, seconds and units."""

    def __init__(self, total_units: int = TOTAL_UNITS):
        self.total_units = total_units

    @staticmethod
    def elapsed(now: datetime.datetime, start_time: datetime.datetime) -> tuple[int, int]:
        """Whole (minutes, seconds) since start_time, clamped to zero if the clock went backwards."""
        total = int((as_aware(now) - as_aware(start_time)).total_seconds())
        if total < 0:
            total = 0
        seconds = total % SECONDS_PER_UNIT
        minutes = (total - seconds) // SECONDS_PER_UNIT
        return minutes, seconds

    def units_remaining(self, minutes: int) -> int:
        return max(0, self.total_units - minutes)

    def is_ended(self, minutes: int) -> bool:
        return minutes >= self.total_units

    @staticmethod
    def seconds_to_next_unit(seconds: int) -> int:
        return SECONDS_PER_UNIT - seconds

"""
Time Window Validator

Validates a unit's check-in / check-out times and derives the cleaning
buffer from them.

Both times are on the same calendar day: check-out is the morning end of
the previous stay, check-in the afternoon start of the next one. The gap
between them is the turnover window.

    cleaning_buffer_hours = ceil((check_in - check_out) / 60 minutes)

The buffer is always a function of the two times and never an independent
input.
"""

import math
from dataclasses import dataclass
from datetime import time
from typing import Union

from .exceptions import InvalidWindow, InsufficientBuffer

MIN_TURNOVER_MINUTES = 60

TimeLike = Union[time, str]


@dataclass(frozen=True)
class TimeWindow:
    """Validated turnover window for a unit"""
    check_in_time: time
    check_out_time: time
    cleaning_buffer_hours: int

    @property
    def gap_minutes(self) -> int:
        return _minutes(self.check_in_time) - _minutes(self.check_out_time)

    def as_strings(self) -> tuple:
        return (format_time_of_day(self.check_in_time), format_time_of_day(self.check_out_time))


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def parse_time_of_day(value: TimeLike) -> time:
    """
    Parse "HH:MM" (24h) into a time.

    Seconds are not part of the model; a time carrying seconds or
    microseconds is rejected rather than silently truncated.
    """
    if isinstance(value, time):
        parsed = value
    elif isinstance(value, str):
        parts = value.strip().split(":")
        if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
            raise InvalidWindow(value, value, message=f"Invalid time of day '{value}', expected HH:MM")
        hour, minute = int(parts[0]), int(parts[1])
        if hour > 23 or minute > 59:
            raise InvalidWindow(value, value, message=f"Invalid time of day '{value}', expected HH:MM")
        parsed = time(hour, minute)
    else:
        raise InvalidWindow(value, value, message=f"Invalid time of day {value!r}")

    if parsed.second or parsed.microsecond:
        raise InvalidWindow(value, value, message="Times have minute precision, seconds are not allowed")
    return parsed.replace(tzinfo=None)


def format_time_of_day(t: time) -> str:
    return t.strftime("%H:%M")


def validate_time_window(check_in_time: TimeLike, check_out_time: TimeLike) -> TimeWindow:
    """
    Validate a check-in / check-out pair and derive the cleaning buffer.

    Raises:
        InvalidWindow: check-in is not strictly later in the day than check-out
        InsufficientBuffer: less than 60 minutes between them
    """
    check_in = parse_time_of_day(check_in_time)
    check_out = parse_time_of_day(check_out_time)

    if check_in <= check_out:
        raise InvalidWindow(check_in, check_out)

    gap = _minutes(check_in) - _minutes(check_out)
    if gap < MIN_TURNOVER_MINUTES:
        raise InsufficientBuffer(gap)

    return TimeWindow(
        check_in_time=check_in,
        check_out_time=check_out,
        cleaning_buffer_hours=math.ceil(gap / 60),
    )

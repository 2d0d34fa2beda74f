from __future__ import annotations

import re
from datetime import time

TIME_PATTERN: re.Pattern[str] = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def parse_clock(value: str) -> time:
    minutes = parse_time_to_minutes(value)
    return time(minutes // 60, minutes % 60)


def format_clock(value: time) -> str:
    return value.strftime("%H:%M")


def validate_clock_string(value: str) -> str:
    value = value.strip()
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    return value


def clock_from_orm(value: object) -> object:
    """Render ORM time values as HH:MM before pydantic validation."""
    if isinstance(value, time):
        return format_clock(value)
    return value

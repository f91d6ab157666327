"""Date and number normalization helpers shared by lifecycle, analytics and reminders.

Grow documents carry timestamps in several shapes (ISO strings, date-only
strings, epoch-seconds mappings from the document store, native values).
Everything funnels through ``to_datetime`` into a timezone-aware UTC
``datetime``; values that cannot be parsed are ``None``, never an error.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

SECONDS_PER_DAY = 86400.0


def to_datetime(value: Any) -> datetime | None:
	if value is None or isinstance(value, bool):
		return None
	if isinstance(value, datetime):
		return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
	if isinstance(value, date):
		return datetime.combine(value, time.min, tzinfo=UTC)
	if isinstance(value, (int, float)):
		if not math.isfinite(value):
			return None
		try:
			return datetime.fromtimestamp(value / 1000.0, tz=UTC)
		except (OverflowError, OSError, ValueError):
			return None
	if isinstance(value, str):
		token = value.strip()
		if not token:
			return None
		try:
			parsed = datetime.fromisoformat(token)
		except ValueError:
			return None
		return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
	if isinstance(value, Mapping):
		seconds = value.get("seconds", value.get("_seconds"))
		if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
			return None
		nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
		try:
			return datetime.fromtimestamp(float(seconds) + float(nanos) / 1e9, tz=UTC)
		except (OverflowError, OSError, ValueError, TypeError):
			return None
	return None


def to_stamp(value: date | datetime) -> str:
	"""Serialize a stage timestamp: date-only values stay ``YYYY-MM-DD``."""
	if isinstance(value, datetime):
		normalized = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
		return normalized.astimezone(UTC).isoformat()
	return value.isoformat()


def format_date(value: Any) -> str:
	parsed = to_datetime(value)
	if parsed is None:
		return ""
	return parsed.strftime("%Y-%m-%d")


def month_key(value: datetime) -> str:
	return value.astimezone(UTC).strftime("%Y-%m")


def end_of_day(day: date) -> datetime:
	return datetime.combine(day, time.max, tzinfo=UTC)


def start_of_day(day: date) -> datetime:
	return datetime.combine(day, time.min, tzinfo=UTC)


def days_between(start: datetime, end: datetime) -> int:
	"""Whole days from ``start`` to ``end``, clamped at zero."""
	return max(0, round_half_up((end - start).total_seconds() / SECONDS_PER_DAY))


def round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


def to_number(value: Any, default: float = 0.0) -> float:
	if value is None:
		return default
	if isinstance(value, bool):
		return 1.0 if value else 0.0
	if isinstance(value, (int, float, Decimal)):
		number = float(value)
	elif isinstance(value, str):
		try:
			number = float(value.strip())
		except ValueError:
			return default
	else:
		return default
	return number if math.isfinite(number) else default


def round_money(value: Any) -> float:
	return round(to_number(value), 2)


def format_money(value: Any) -> str:
	return f"{to_number(value):.2f}"


def parse_hhmm(value: str) -> tuple[int, int]:
	"""Parse ``"HH:MM"``; malformed parts fall back to 0."""
	hours_raw, _, minutes_raw = str(value or "").partition(":")
	hours = int(to_number(hours_raw))
	minutes = int(to_number(minutes_raw))
	return min(max(hours, 0), 23), min(max(minutes, 0), 59)


def at_time_of_day(value: datetime, hhmm: str) -> datetime:
	hours, minutes = parse_hhmm(hhmm)
	return value.replace(hour=hours, minute=minutes, second=0, microsecond=0)


def add_days(value: datetime, days: float) -> datetime:
	return value + timedelta(days=days)


def utcnow() -> datetime:
	return datetime.now(UTC)

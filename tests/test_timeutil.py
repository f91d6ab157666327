from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from app.services import timeutil


@pytest.mark.parametrize(
	("value", "expected"),
	[
		("2026-03-01", datetime(2026, 3, 1, tzinfo=UTC)),
		("2026-03-01T10:00:00+02:00", datetime(2026, 3, 1, 8, tzinfo=UTC)),
		({"seconds": 86400, "nanoseconds": 0}, datetime(1970, 1, 2, tzinfo=UTC)),
		({"_seconds": 0}, datetime(1970, 1, 1, tzinfo=UTC)),
		(86_400_000, datetime(1970, 1, 2, tzinfo=UTC)),
		(date(2026, 3, 1), datetime(2026, 3, 1, tzinfo=UTC)),
		(datetime(2026, 3, 1, 5), datetime(2026, 3, 1, 5, tzinfo=UTC)),
	],
)
def test_to_datetime_accepts_stored_shapes(value: object, expected: datetime) -> None:
	assert timeutil.to_datetime(value) == expected


@pytest.mark.parametrize("value", [None, "", "  ", "yesterday", True, {"seconds": "x"}, float("nan"), [1]])
def test_to_datetime_rejects_garbage(value: object) -> None:
	assert timeutil.to_datetime(value) is None


def test_to_stamp_keeps_date_only_values() -> None:
	assert timeutil.to_stamp(date(2026, 4, 2)) == "2026-04-02"
	offset = datetime(2026, 4, 2, 3, 0, tzinfo=timezone(timedelta(hours=2)))
	assert timeutil.to_stamp(offset) == "2026-04-02T01:00:00+00:00"


def test_days_between_rounds_and_clamps() -> None:
	start = datetime(2026, 1, 1, tzinfo=UTC)
	assert timeutil.days_between(start, start + timedelta(days=2, hours=12)) == 3
	assert timeutil.days_between(start, start + timedelta(days=2, hours=11)) == 2
	assert timeutil.days_between(start, start - timedelta(days=5)) == 0


def test_to_number_and_money() -> None:
	assert timeutil.to_number("12.5") == 12.5
	assert timeutil.to_number("abc") == 0
	assert timeutil.to_number(float("inf")) == 0
	assert timeutil.to_number(None, default=-1) == -1
	assert timeutil.format_money("7") == "7.00"
	assert timeutil.format_date({"seconds": 0}) == "1970-01-01"
	assert timeutil.format_date("garbage") == ""


def test_at_time_of_day_parses_hhmm() -> None:
	base = datetime(2026, 6, 1, 17, 45, 12, tzinfo=UTC)
	assert timeutil.at_time_of_day(base, "09:30") == datetime(2026, 6, 1, 9, 30, tzinfo=UTC)
	assert timeutil.at_time_of_day(base, "nonsense") == datetime(2026, 6, 1, 0, 0, tzinfo=UTC)
	assert timeutil.parse_hhmm("27:99") == (23, 59)

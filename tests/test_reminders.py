from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient

from app.config import Settings
from app.routes import reminders as reminders_routes
from app.services import reminders
from app.services.reminders import (
	FIRED_TTL_SECONDS,
	InMemoryFiredReminderStore,
	RedisFiredReminderStore,
	Reminder,
	ReminderKind,
	ReminderService,
)
from tests.conftest import TEST_USER_ID, FakeAsyncSession, FakeRedis, make_grow_row

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=UTC)
STAGE_MAX_DAYS = {"Inoculated": 14, "Fruiting": 7}


def _enabled_settings() -> Settings:
	return Settings(reminders_enabled=True, reminder_stage_max_days=STAGE_MAX_DAYS, reminder_digest_time="09:00")


def test_due_reminders_for_inoculation_and_harvest_windows() -> None:
	grows = [
		{"id": "g1", "abbreviation": "GT1", "stage": "Inoculated", "stageDates": {"Inoculated": "2026-06-01"}},
		{"id": "g2", "strain": "Penis Envy", "stage": "Fruiting", "stageDates": {"Fruiting": "2026-06-08T20:00:00+00:00"}},
		{"id": "g3", "stage": "Fruiting", "archived": True, "stageDates": {"Inoculated": "2026-06-01"}},
		{"id": "g4", "stage": "Colonizing", "stageDates": {"Inoculated": "2026-05-20"}},
		{"id": "g5", "stage": "Colonizing", "stageDates": {"Inoculated": "2026-06-10"}},
	]

	due = reminders.due_reminders(grows, stage_max_days=STAGE_MAX_DAYS, now=NOW)

	assert [reminder.id for reminder in due] == ["inoc:g1:2026-06-15T09:00", "harvest:g2:2026-06-15T09:00"]
	assert due[0].title == "Inoculation check due"
	assert due[0].body.startswith("GT1: inoculation window hit")
	assert due[1].kind == ReminderKind.harvest
	assert due[1].label == "Penis Envy"


def test_inoculation_date_falls_back_to_legacy_keys() -> None:
	grows = [
		{"id": "g6", "stage": "Colonizing", "inoc": "2026-06-01"},
		{"id": "g7", "stage": "Colonizing", "inoculationDate": {"seconds": 1_780_272_000}},
		{"id": "g8", "stage": "Colonizing", "createdAt": datetime(2026, 6, 1, 23, 0, tzinfo=UTC)},
	]

	targets = reminders.reminder_targets(grows, {"Inoculated": 14})

	assert [target.due_at for target in targets] == [
		datetime(2026, 6, 15, 9, 0, tzinfo=UTC),
		datetime(2026, 6, 15, 9, 0, tzinfo=UTC),
		datetime(2026, 6, 15, 9, 0, tzinfo=UTC),
	]


def test_fired_reminders_and_disabled_stages_are_skipped() -> None:
	grows = [{"id": "g1", "stage": "Inoculated", "stageDates": {"Inoculated": "2026-06-01"}}]

	assert reminders.due_reminders(grows, stage_max_days=STAGE_MAX_DAYS, now=NOW, fired={"inoc:g1:2026-06-15T09:00"}) == []
	assert reminders.due_reminders(grows, stage_max_days={"Inoculated": 0}, now=NOW) == []
	assert reminders.due_reminders(grows, stage_max_days=STAGE_MAX_DAYS, now=NOW, window=timedelta(hours=1)) == []


def test_moving_a_stage_date_yields_a_new_reminder_id() -> None:
	before = reminders.reminder_targets([{"id": "g1", "stageDates": {"Fruiting": "2026-06-01"}}], STAGE_MAX_DAYS)
	after = reminders.reminder_targets([{"id": "g1", "stageDates": {"Fruiting": "2026-06-02"}}], STAGE_MAX_DAYS)

	assert before[0].id != after[0].id


def test_reminder_label_fallbacks() -> None:
	assert reminders.reminder_label({"id": "abcdef123"}) == "abcdef"
	assert reminders.reminder_label({}) == "Grow"


@pytest.mark.asyncio
async def test_in_memory_store_tracks_per_user() -> None:
	store = InMemoryFiredReminderStore()
	other = uuid.uuid4()

	await store.mark_fired(TEST_USER_ID, ["a", "b"])

	assert await store.fired_ids(TEST_USER_ID) == {"a", "b"}
	assert await store.fired_ids(other) == set()


@pytest.mark.asyncio
async def test_redis_store_sets_ttl(fake_redis: FakeRedis) -> None:
	store = RedisFiredReminderStore(fake_redis)  # type: ignore[arg-type]

	await store.mark_fired(TEST_USER_ID, [])
	assert fake_redis.sadd.await_count == 0

	await store.mark_fired(TEST_USER_ID, ["inoc:g1:2026-06-15T09:00"])

	key = f"user:{TEST_USER_ID}:reminders:fired"
	assert await store.fired_ids(TEST_USER_ID) == {"inoc:g1:2026-06-15T09:00"}
	fake_redis.expire.assert_awaited_once_with(key, FIRED_TTL_SECONDS)


@pytest.mark.asyncio
async def test_service_fires_each_reminder_once(fake_db_session: FakeAsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
	monkeypatch.setattr(reminders, "get_settings", _enabled_settings)
	row = make_grow_row(stage="Inoculated", stage_dates={"Inoculated": "2026-06-01"})
	fake_db_session.returning([row], [row])
	service = ReminderService(fake_db_session, store=InMemoryFiredReminderStore())  # type: ignore[arg-type]

	first = await service.collect_due(TEST_USER_ID, now=NOW)
	second = await service.collect_due(TEST_USER_ID, now=NOW + timedelta(hours=1))

	assert [reminder.id for reminder in first] == [f"inoc:{row.id}:2026-06-15T09:00"]
	assert first[0].label == "GT"
	assert second == []


@pytest.mark.asyncio
async def test_services_without_redis_share_fired_set(fake_db_session: FakeAsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
	monkeypatch.setattr(reminders, "get_settings", _enabled_settings)
	monkeypatch.setattr(reminders, "LOCAL_FIRED_STORE", InMemoryFiredReminderStore())
	row = make_grow_row(stage="Inoculated", stage_dates={"Inoculated": "2026-06-01"})
	fake_db_session.returning([row], [row])

	first = await ReminderService(fake_db_session).collect_due(TEST_USER_ID, now=NOW)  # type: ignore[arg-type]
	second = await ReminderService(fake_db_session).collect_due(TEST_USER_ID, now=NOW)  # type: ignore[arg-type]

	assert len(first) == 1
	assert second == []

@pytest.mark.asyncio
async def test_service_disabled_returns_nothing(fake_db_session: FakeAsyncSession, monkeypatch: pytest.MonkeyPatch) -> None:
	monkeypatch.setattr(reminders, "get_settings", lambda: Settings(reminders_enabled=False))
	service = ReminderService(fake_db_session)  # type: ignore[arg-type]

	assert await service.collect_due(TEST_USER_ID, now=NOW) == []
	assert fake_db_session.execute.await_count == 0


@pytest.mark.asyncio
async def test_due_reminders_endpoint(client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
	reminder = Reminder(
		id="harvest:g2:2026-06-15T09:00",
		kind=ReminderKind.harvest,
		grow_id="g2",
		label="PE",
		due_at=datetime(2026, 6, 15, 9, 0, tzinfo=UTC),
	)

	async def fake_collect(self: ReminderService, _user_id: uuid.UUID, now: datetime | None = None) -> list[Reminder]:
		return [reminder]

	monkeypatch.setattr(ReminderService, "collect_due", fake_collect)
	monkeypatch.setattr(reminders_routes, "get_settings", _enabled_settings)

	response = await client.get("/api/v1/reminders/due")

	assert response.status_code == 200
	body = response.json()
	assert body["enabled"] is True
	assert body["items"][0]["kind"] == "harvest"
	assert body["items"][0]["title"] == "Harvest window reached"

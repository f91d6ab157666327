"""Stage reminders: inoculation checks and harvest windows.

A grow produces up to two reminder targets, each scheduled at the daily digest
time:

* ``inoc``: inoculation date + ``stage_max_days["Inoculated"]`` days
* ``harvest``: ``stageDates.Fruiting`` + ``stage_max_days["Fruiting"]`` days

A target is due once its time has passed, for ``window`` afterwards, unless
its id is already in the caller's fired set.  Reminder ids carry the
scheduled minute, so moving a stage date produces a fresh reminder.
"""

from __future__ import annotations

import uuid
from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any, Protocol

import structlog
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.services.grow_analytics import is_active_grow, stage_dates_of
from app.services.grow_service import GrowService
from app.services.timeutil import add_days, at_time_of_day, to_datetime, to_number, utcnow

_logger = structlog.get_logger("mycotrack.reminders")

FIRED_TTL_SECONDS = 90 * 24 * 3600


class ReminderKind(StrEnum):
	inoc = "inoc"
	harvest = "harvest"


@dataclass(slots=True, frozen=True)
class Reminder:
	id: str
	kind: ReminderKind
	grow_id: str
	label: str
	due_at: datetime

	@property
	def title(self) -> str:
		if self.kind == ReminderKind.inoc:
			return "Inoculation check due"
		return "Harvest window reached"

	@property
	def body(self) -> str:
		if self.kind == ReminderKind.inoc:
			return f"{self.label}: inoculation window hit. Review and update stage if needed."
		return f"{self.label}: harvest window hit. Consider harvesting and updating status."


def reminder_label(grow: Mapping[str, Any]) -> str:
	for key in ("abbreviation", "strain"):
		if grow.get(key):
			return str(grow[key])
	grow_id = grow.get("id")
	return str(grow_id)[:6] if grow_id else "Grow"


def _max_days(stage_max_days: Mapping[str, Any], stage: str) -> float | None:
	days = to_number(stage_max_days.get(stage), default=0.0)
	return days if days > 0 else None


def _make(kind: ReminderKind, grow: Mapping[str, Any], due_at: datetime) -> Reminder:
	grow_id = str(grow.get("id") or "")
	return Reminder(
		id=f"{kind.value}:{grow_id}:{due_at.strftime('%Y-%m-%dT%H:%M')}",
		kind=kind,
		grow_id=grow_id,
		label=reminder_label(grow),
		due_at=due_at,
	)


def reminder_targets(
	grows: Iterable[Mapping[str, Any]],
	stage_max_days: Mapping[str, Any],
	digest_time: str = "09:00",
) -> list[Reminder]:
	targets: list[Reminder] = []
	inoc_days = _max_days(stage_max_days, "Inoculated")
	fruit_days = _max_days(stage_max_days, "Fruiting")
	for grow in grows:
		stage_dates = stage_dates_of(grow)
		if inoc_days is not None:
			inoculated = (
				to_datetime(stage_dates.get("Inoculated"))
				or to_datetime(grow.get("inoc"))
				or to_datetime(grow.get("inoculationDate"))
				or to_datetime(grow.get("createdAt"))
			)
			if inoculated is not None:
				targets.append(_make(ReminderKind.inoc, grow, at_time_of_day(add_days(inoculated, inoc_days), digest_time)))
		if fruit_days is not None:
			fruiting = to_datetime(stage_dates.get("Fruiting")) or to_datetime(stage_dates.get("fruiting"))
			if fruiting is not None:
				targets.append(_make(ReminderKind.harvest, grow, at_time_of_day(add_days(fruiting, fruit_days), digest_time)))
	return targets


def due_reminders(
	grows: Iterable[Mapping[str, Any]],
	*,
	stage_max_days: Mapping[str, Any],
	now: datetime,
	digest_time: str = "09:00",
	window: timedelta = timedelta(hours=24),
	fired: Collection[str] = (),
) -> list[Reminder]:
	"""Reminders for active grows whose time has come and that have not fired."""
	active = [grow for grow in grows if is_active_grow(grow)]
	return [
		reminder
		for reminder in reminder_targets(active, stage_max_days, digest_time)
		if reminder.due_at <= now and now - reminder.due_at <= window and reminder.id not in fired
	]


# ── Fired-set storage ───────────────────────────────────────────────────────


class FiredReminderStore(Protocol):
	async def fired_ids(self, user_id: uuid.UUID) -> set[str]: ...

	async def mark_fired(self, user_id: uuid.UUID, reminder_ids: Sequence[str]) -> None: ...


class InMemoryFiredReminderStore:
	def __init__(self) -> None:
		self._fired: dict[uuid.UUID, set[str]] = {}

	async def fired_ids(self, user_id: uuid.UUID) -> set[str]:
		return set(self._fired.get(user_id, set()))

	async def mark_fired(self, user_id: uuid.UUID, reminder_ids: Sequence[str]) -> None:
		self._fired.setdefault(user_id, set()).update(reminder_ids)


# Process-wide fired set used when Redis is not connected.
LOCAL_FIRED_STORE = InMemoryFiredReminderStore()


class RedisFiredReminderStore:
	"""One Redis set per user; the TTL is refreshed on every write."""

	def __init__(self, redis_client: Redis, ttl_seconds: int = FIRED_TTL_SECONDS):
		self.redis_client = redis_client
		self.ttl_seconds = ttl_seconds

	@staticmethod
	def key(user_id: uuid.UUID) -> str:
		return f"user:{user_id}:reminders:fired"

	async def fired_ids(self, user_id: uuid.UUID) -> set[str]:
		members = await self.redis_client.smembers(self.key(user_id))
		return {member.decode() if isinstance(member, bytes) else str(member) for member in members}

	async def mark_fired(self, user_id: uuid.UUID, reminder_ids: Sequence[str]) -> None:
		if not reminder_ids:
			return
		key = self.key(user_id)
		await self.redis_client.sadd(key, *reminder_ids)
		await self.redis_client.expire(key, self.ttl_seconds)


class ReminderService:
	def __init__(
		self,
		db: AsyncSession,
		redis_client: Redis | None = None,
		store: FiredReminderStore | None = None,
	):
		self.db = db
		if store is None:
			store = RedisFiredReminderStore(redis_client) if redis_client is not None else LOCAL_FIRED_STORE
		self.store = store

	async def collect_due(self, user_id: uuid.UUID, now: datetime | None = None) -> list[Reminder]:
		settings = get_settings()
		if not settings.reminders_enabled:
			return []

		current = now or utcnow()
		documents = await GrowService(self.db).list_documents(user_id)
		fired = await self.store.fired_ids(user_id)
		due = due_reminders(
			documents,
			stage_max_days=settings.reminder_stage_max_days,
			now=current,
			digest_time=settings.reminder_digest_time,
			window=timedelta(hours=settings.reminder_window_hours),
			fired=fired,
		)
		if due:
			await self.store.mark_fired(user_id, [reminder.id for reminder in due])
		for reminder in due:
			_logger.info(
				"reminder_due",
				reminder_id=reminder.id,
				kind=reminder.kind.value,
				grow_id=reminder.grow_id,
				due_at=reminder.due_at.isoformat(),
			)
		return due

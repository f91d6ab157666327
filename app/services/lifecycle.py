"""Grow stage/status lifecycle: pure transition rules and write payloads.

Nothing here touches storage.  Each operation takes a grow document snapshot
(a mapping with the store's field names) and returns either a ``GrowPatch``
for the persistence layer to merge into the record, or ``None`` when there is
nothing to do.  Precondition failures raise a ``PreconditionViolation``
subclass before any payload is built.

Stage progression::

    Inoculated -> Colonizing -> Colonized -> Fruiting -> Harvested -> Consumed

``Contaminated`` is reachable from anywhere via a manual edit and is absorbing
for ``advance_stage``; ``Other`` is the catch-all for unrecognized text.

Write payload keys follow the document store's merge-patch convention:
``stageDates.<Stage>`` addresses a single entry of the ``stageDates`` map so
that other entries are never rewritten.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from app.models.enums import GrowStageEnum, GrowStatusEnum, GrowTypeEnum
from app.services.grow_analytics import is_archived_like
from app.services.timeutil import to_stamp, utcnow

STAGE_ORDER: tuple[GrowStageEnum, ...] = (
	GrowStageEnum.inoculated,
	GrowStageEnum.colonizing,
	GrowStageEnum.colonized,
	GrowStageEnum.fruiting,
	GrowStageEnum.harvested,
	GrowStageEnum.consumed,
)

STORABLE_TYPES: frozenset[GrowTypeEnum] = frozenset({GrowTypeEnum.agar, GrowTypeEnum.lc})

GENERAL_STAGE_LABEL = "General"

_LEGACY_ARCHIVE_KEYS = ("archived_on", "archivedOn")


# ── Errors ──────────────────────────────────────────────────────────────────


class PreconditionViolation(ValueError):
	"""An operation was invoked on a grow it does not apply to."""

	code = "precondition_violation"


class MissingGrowIdError(PreconditionViolation):
	code = "grow_id_missing"

	def __init__(self) -> None:
		super().__init__("grow id is required")


class StoreNotAllowedError(PreconditionViolation):
	code = "store_not_allowed"

	def __init__(self, grow_type: GrowTypeEnum) -> None:
		super().__init__(f"cannot store a {grow_type.value}-type grow; only Agar and LC cultures can be stored")
		self.grow_type = grow_type


class StoredTypeChangeError(PreconditionViolation):
	code = "stored_type_change"

	def __init__(self, grow_type: GrowTypeEnum) -> None:
		super().__init__(f"unstore the grow before changing its type to {grow_type.value}")
		self.grow_type = grow_type


class InvalidFlushIndexError(PreconditionViolation):
	code = "flush_index_invalid"

	def __init__(self, index: int) -> None:
		super().__init__(f"flush index must be >= 0, got {index}")
		self.index = index


# ── Result types ────────────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class GrowPatch:
	grow_id: str
	changes: dict[str, Any]


@dataclass(slots=True, frozen=True)
class GrowActions:
	next_stage: GrowStageEnum | None
	store_label: str | None
	archive_label: str

	@property
	def can_advance(self) -> bool:
		return self.next_stage is not None

	@property
	def can_store(self) -> bool:
		return self.store_label is not None


# ── Normalization ───────────────────────────────────────────────────────────


def normalize_stage(value: Any) -> GrowStageEnum:
	token = str(value or "").strip().lower()
	if token.startswith("inoc"):
		return GrowStageEnum.inoculated
	if "colonizing" in token:
		return GrowStageEnum.colonizing
	if "colonized" in token:
		return GrowStageEnum.colonized
	if "fruit" in token:
		return GrowStageEnum.fruiting
	if "harvest" in token:
		return GrowStageEnum.harvested
	if "consum" in token:
		return GrowStageEnum.consumed
	if "contam" in token:
		return GrowStageEnum.contaminated
	return GrowStageEnum.other


_STATUS_TOKENS = {member.value.lower(): member for member in GrowStatusEnum}


def normalize_status(value: Any) -> GrowStatusEnum:
	"""Unknown status text is treated as ``Active``."""
	return _STATUS_TOKENS.get(str(value or "").strip().lower(), GrowStatusEnum.active)


def normalize_type(value: Any) -> GrowTypeEnum:
	token = str(value or "").strip().lower()
	if token.startswith("agar") or token.startswith("plate"):
		return GrowTypeEnum.agar
	if token.startswith("lc") or "liquid" in token:
		return GrowTypeEnum.lc
	if "grain" in token or "jar" in token:
		return GrowTypeEnum.grain_jar
	if "bulk" in token or "tub" in token or "bag" in token:
		return GrowTypeEnum.bulk
	return GrowTypeEnum.other


def grow_type_of(grow: Mapping[str, Any]) -> GrowTypeEnum:
	return normalize_type(grow.get("type") or grow.get("growType"))


def stage_label(value: Any) -> str:
	"""Label a note or photo is filed under: a normalized stage or ``General``."""
	token = str(value or "").strip()
	if not token or token.lower() == GENERAL_STAGE_LABEL.lower():
		return GENERAL_STAGE_LABEL
	return normalize_stage(token).value


# ── Stage transitions ───────────────────────────────────────────────────────


def next_stage(current: Any) -> GrowStageEnum | None:
	stage = normalize_stage(current)
	if stage not in STAGE_ORDER:
		return None
	position = STAGE_ORDER.index(stage)
	if position >= len(STAGE_ORDER) - 1:
		return None
	return STAGE_ORDER[position + 1]


def advance_stage(
	grow: Mapping[str, Any],
	*,
	at: date | datetime | None = None,
	now: datetime | None = None,
) -> GrowPatch | None:
	"""Propose the single next stage in sequence, stamping its entry date.

	Returns ``None`` when the grow is already at ``Consumed`` or sits outside
	the linear order (``Contaminated`` / ``Other``).
	"""
	grow_id = _require_id(grow)
	target = next_stage(grow.get("stage"))
	if target is None:
		return None
	return GrowPatch(
		grow_id=grow_id,
		changes={
			"stage": target.value,
			f"stageDates.{target.value}": _stamp(at, now),
		},
	)


def set_stage(
	grow: Mapping[str, Any],
	stage: Any,
	*,
	at: date | datetime | None = None,
	now: datetime | None = None,
	stamp: bool = True,
) -> GrowPatch:
	"""Manual stage edit: any stage in the closed set, no ordering check."""
	grow_id = _require_id(grow)
	target = normalize_stage(stage)
	if target == GrowStageEnum.other:
		raise ValueError(f"unknown stage: {stage}")
	changes: dict[str, Any] = {"stage": target.value}
	if stamp:
		changes[f"stageDates.{target.value}"] = _stamp(at, now)
	return GrowPatch(grow_id=grow_id, changes=changes)


def change_type(grow: Mapping[str, Any], grow_type: Any) -> GrowPatch:
	"""Type edit; a Stored culture must keep a storable type."""
	grow_id = _require_id(grow)
	target = normalize_type(grow_type)
	if normalize_status(grow.get("status")) == GrowStatusEnum.stored and target not in STORABLE_TYPES:
		raise StoredTypeChangeError(target)
	return GrowPatch(grow_id=grow_id, changes={"type": target.value})


def set_stage_date(grow: Mapping[str, Any], stage: Any, value: date | datetime) -> GrowPatch:
	grow_id = _require_id(grow)
	target = normalize_stage(stage)
	if target == GrowStageEnum.other:
		raise ValueError(f"unknown stage: {stage}")
	return GrowPatch(grow_id=grow_id, changes={f"stageDates.{target.value}": to_stamp(value)})


# ── Status toggles ──────────────────────────────────────────────────────────


def toggle_archive(status: Any) -> GrowStatusEnum:
	if normalize_status(status) == GrowStatusEnum.archived:
		return GrowStatusEnum.active
	return GrowStatusEnum.archived


def toggle_store(status: Any, grow_type: Any) -> GrowStatusEnum:
	resolved_type = normalize_type(grow_type)
	if resolved_type not in STORABLE_TYPES:
		raise StoreNotAllowedError(resolved_type)
	if normalize_status(status) == GrowStatusEnum.stored:
		return GrowStatusEnum.active
	return GrowStatusEnum.stored


def archive_patch(grow: Mapping[str, Any], *, now: datetime | None = None) -> GrowPatch:
	"""Toggle archiving; legacy archive markers count as archived and are cleared on unarchive."""
	grow_id = _require_id(grow)
	target = GrowStatusEnum.active if is_archived_like(grow) else toggle_archive(grow.get("status"))
	return GrowPatch(grow_id=grow_id, changes=_status_changes(grow, target, now))


def store_patch(
	grow: Mapping[str, Any],
	*,
	location: str | None = None,
	now: datetime | None = None,
) -> GrowPatch:
	grow_id = _require_id(grow)
	target = toggle_store(grow.get("status"), grow.get("type") or grow.get("growType"))
	changes = _status_changes(grow, target, now)
	if target == GrowStatusEnum.stored and location and location.strip():
		changes["storageLocation"] = location.strip()
	return GrowPatch(grow_id=grow_id, changes=changes)


def finish_harvest(grow: Mapping[str, Any]) -> GrowPatch:
	"""Archive a grow once harvesting is done; stage and flushes are kept."""
	grow_id = _require_id(grow)
	return GrowPatch(
		grow_id=grow_id,
		changes={"status": GrowStatusEnum.archived.value, "archived": True},
	)


def available_actions(grow: Mapping[str, Any]) -> GrowActions:
	status = normalize_status(grow.get("status"))
	store_label: str | None = None
	if grow_type_of(grow) in STORABLE_TYPES:
		store_label = "Unstore" if status == GrowStatusEnum.stored else "Store"
	return GrowActions(
		next_stage=next_stage(grow.get("stage")),
		store_label=store_label,
		archive_label="Unarchive" if is_archived_like(grow) else "Archive",
	)


# ── Flushes ─────────────────────────────────────────────────────────────────


def current_flushes(grow: Mapping[str, Any]) -> list[Any]:
	"""Flush list of a grow, reading the legacy ``harvest.flushes`` location too."""
	flushes = grow.get("flushes")
	if not isinstance(flushes, list):
		harvest = grow.get("harvest")
		flushes = harvest.get("flushes") if isinstance(harvest, Mapping) else None
	if not isinstance(flushes, list):
		return []
	return [dict(item) if isinstance(item, Mapping) else item for item in flushes]


def add_flush(flushes: Sequence[Any], *, now: datetime | None = None) -> list[Any]:
	updated = list(flushes)
	updated.append({"wet": 0, "dry": 0, "createdAt": to_stamp(now or utcnow())})
	return updated


def update_flush(flushes: Sequence[Any], index: int, patch: Mapping[str, Any]) -> list[Any]:
	"""Merge ``patch`` into ``flushes[index]``, padding with empty flushes if needed."""
	if index < 0:
		raise InvalidFlushIndexError(index)
	updated = list(flushes)
	while len(updated) <= index:
		updated.append(_empty_flush())
	base = updated[index] if isinstance(updated[index], Mapping) and updated[index] else _empty_flush()
	updated[index] = {**base, **patch}
	return updated


def add_flush_patch(grow: Mapping[str, Any], *, now: datetime | None = None) -> GrowPatch:
	grow_id = _require_id(grow)
	return GrowPatch(grow_id=grow_id, changes={"flushes": add_flush(current_flushes(grow), now=now)})


def update_flush_patch(grow: Mapping[str, Any], index: int, patch: Mapping[str, Any]) -> GrowPatch:
	grow_id = _require_id(grow)
	return GrowPatch(
		grow_id=grow_id,
		changes={"flushes": update_flush(current_flushes(grow), index, patch)},
	)


# ── Creation ────────────────────────────────────────────────────────────────


def new_grow_document(
	strain: str,
	grow_type: Any,
	*,
	inoculated_at: date | datetime | None = None,
	now: datetime | None = None,
) -> dict[str, Any]:
	created = now or utcnow()
	stage_dates: dict[str, str] = {}
	if inoculated_at is not None:
		stage_dates[GrowStageEnum.inoculated.value] = to_stamp(inoculated_at)
	return {
		"strain": strain.strip(),
		"type": normalize_type(grow_type).value,
		"stage": GrowStageEnum.inoculated.value,
		"status": GrowStatusEnum.active.value,
		"stageDates": stage_dates,
		"flushes": [],
		"createdAt": created,
	}


# ── Internals ───────────────────────────────────────────────────────────────


def _require_id(grow: Mapping[str, Any]) -> str:
	grow_id = grow.get("id")
	if grow_id is None or not str(grow_id).strip():
		raise MissingGrowIdError()
	return str(grow_id)


def _stamp(at: date | datetime | None, now: datetime | None) -> str:
	if at is not None:
		return to_stamp(at)
	return to_stamp(now or utcnow())


def _status_changes(grow: Mapping[str, Any], target: GrowStatusEnum, now: datetime | None) -> dict[str, Any]:
	if target == GrowStatusEnum.archived:
		return {"status": target.value, "archived": True, "archivedAt": to_stamp(now or utcnow())}
	changes: dict[str, Any] = {"status": target.value, "archived": False, "archivedAt": None}
	for key in _LEGACY_ARCHIVE_KEYS:
		if grow.get(key) is not None:
			changes[key] = None
	if grow.get("isArchived") is not None:
		changes["isArchived"] = False
	return changes


def _empty_flush() -> dict[str, Any]:
	return {"wet": 0, "dry": 0}

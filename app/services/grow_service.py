"""Grow persistence service: CRUD, locked lifecycle transitions, journal entries.

The service is the persistence collaborator for ``app.services.lifecycle``:
it loads a grow row, converts it to a grow document, asks the pure lifecycle
function for a ``GrowPatch`` and merges that patch back into the row.  Every
read-modify-write runs on a row locked with ``SELECT ... FOR UPDATE`` inside
the request transaction.

Creating a grow from a recipe draws the scaled batch from supply stock
(``SupplyService``); editing the recipe or amount later refunds the old draw
and consumes the new one in the same transaction.

Every write bumps a per-user version counter in Redis which keys the
analytics cache (see ``AnalyticsService``).  The bump is queued with
``on_commit`` and runs once the request transaction has committed.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any

import structlog
from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.grow import Grow, GrowNote, GrowPhoto
from app.schemas.grow import GrowCreate, GrowDataset, GrowUpdate, NoteCreate, PhotoCreate
from app.schemas.supply import ConsumeRequest
from app.services import grow_analytics, lifecycle
from app.services.lifecycle import GrowPatch
from app.services.supply_service import SupplyService
from app.services.timeutil import to_number
from app.services.versioning import schedule_version_bump

_logger = structlog.get_logger("mycotrack.grows")

STAGE_DATES_PREFIX = "stageDates."

# Document key -> Grow column.
_COLUMN_KEYS: dict[str, str] = {
	"strain": "strain",
	"abbreviation": "abbreviation",
	"type": "grow_type",
	"stage": "stage",
	"status": "status",
	"flushes": "flushes",
	"cost": "cost",
	"recipeItems": "recipe_items",
}
_READ_ONLY_KEYS = frozenset({"id", "createdAt", "updatedAt", "userId"})
# Written only through recipe_id / amount_total / amount_unit.
_RECIPE_KEYS = frozenset({"recipeId", "amountTotal", "amountUnit"})
_RECIPE_FIELDS = frozenset({"recipe_id", "amount_total", "amount_unit"})


class GrowService:
	"""Service for grow CRUD, lifecycle transitions and notes/photos."""

	def __init__(self, db: AsyncSession, redis_client: Redis | None = None):
		self.db = db
		self.redis_client = redis_client

	# ── CRUD ────────────────────────────────────────────────────────────

	async def create_grow(self, user_id: uuid.UUID, payload: GrowCreate) -> Grow:
		document = lifecycle.new_grow_document(
			payload.strain,
			payload.type,
			inoculated_at=payload.inoculated_at,
		)
		extra = self._validate_extra(payload.extra)
		cost = payload.cost
		supply_service = SupplyService(self.db, self.redis_client)
		recipe = None
		if payload.recipe_id is not None:
			recipe = await supply_service.get_recipe(user_id, payload.recipe_id)
			if cost is None:
				cost = await supply_service.per_grow_cost(user_id, recipe, payload.amount_total, payload.amount_unit)
			fields = {
				"recipeId": str(recipe.id),
				"recipe": recipe.name,
				"amountTotal": payload.amount_total,
				"amountUnit": payload.amount_unit,
			}
			extra.update({key: value for key, value in fields.items() if value is not None})
		grow = Grow(
			user_id=user_id,
			strain=document["strain"],
			abbreviation=payload.abbreviation,
			grow_type=document["type"],
			stage=document["stage"],
			status=document["status"],
			stage_dates=document["stageDates"],
			flushes=document["flushes"],
			cost=cost,
			recipe_items=payload.recipe_items,
			extra=extra,
			created_at=document["createdAt"],
		)
		self.db.add(grow)
		await self.db.flush()
		await self.db.refresh(grow)
		if recipe is not None:
			await supply_service.consume_batch(
				user_id,
				recipe,
				ConsumeRequest(
					per_child_qty=payload.amount_total,
					per_child_unit=payload.amount_unit,
					grow_id=grow.id,
					note=f"grow {grow.abbreviation or grow.strain}",
				),
			)
		schedule_version_bump(self.db, self.redis_client, user_id)
		_logger.info("grow_created", grow_id=str(grow.id), strain=grow.strain, grow_type=grow.grow_type)
		return grow

	async def list_grows(self, user_id: uuid.UUID, dataset: GrowDataset = GrowDataset.all) -> list[Grow]:
		stmt = select(Grow).where(Grow.user_id == user_id).order_by(Grow.created_at.desc())
		rows = await self.db.execute(stmt)
		grows = list(rows.scalars().all())
		if dataset == GrowDataset.all:
			return grows

		by_id = {str(grow.id): grow for grow in grows}
		partition = grow_analytics.partition_grows(self.to_document(grow) for grow in grows)
		return [by_id[document["id"]] for document in getattr(partition, dataset.value)]

	async def list_documents(self, user_id: uuid.UUID) -> list[dict[str, Any]]:
		grows = await self.list_grows(user_id)
		return [self.to_document(grow) for grow in grows]

	async def get_grow(self, user_id: uuid.UUID, grow_id: uuid.UUID) -> Grow:
		stmt = select(Grow).where(Grow.id == grow_id, Grow.user_id == user_id)
		row = await self.db.execute(stmt)
		grow = row.scalar_one_or_none()
		if grow is None:
			raise LookupError(f"Grow {grow_id} not found")
		return grow

	async def update_grow(self, user_id: uuid.UUID, grow_id: uuid.UUID, payload: GrowUpdate) -> tuple[Grow, dict[str, Any]]:
		fields = payload.model_dump(exclude_unset=True)
		stage = fields.pop("stage", None)
		stage_at = fields.pop("stage_at", None)
		if stage_at is not None and stage is None:
			raise ValueError("stage_at requires stage")
		recipe_changes: dict[str, Any] = {}
		if fields.keys() & _RECIPE_FIELDS:
			current = await self._get_for_update(user_id, grow_id)
			recipe_changes = await self._reconcile_recipe(user_id, self.to_document(current), fields)

		def compute(document: dict[str, Any]) -> GrowPatch | None:
			changes: dict[str, Any] = dict(recipe_changes)
			for key in ("strain", "abbreviation", "cost"):
				if key in fields:
					changes[key] = fields[key]
			if "type" in fields:
				changes.update(lifecycle.change_type(document, fields["type"]).changes)
			if "recipe_items" in fields:
				changes["recipeItems"] = fields["recipe_items"]
			changes.update(self._validate_extra(fields.get("extra")))
			if stage is not None:
				stamp = get_settings().auto_stamp_stage_dates or stage_at is not None
				changes.update(lifecycle.set_stage(document, stage, at=stage_at, stamp=stamp).changes)
			if not changes:
				return None
			return GrowPatch(grow_id=document["id"], changes=changes)

		return await self._transition(user_id, grow_id, compute, "grow_updated")

	async def delete_grow(self, user_id: uuid.UUID, grow_id: uuid.UUID) -> None:
		grow = await self.get_grow(user_id, grow_id)
		await self.db.delete(grow)
		await self.db.flush()
		schedule_version_bump(self.db, self.redis_client, user_id)
		_logger.info("grow_deleted", grow_id=str(grow_id))

	async def _reconcile_recipe(
		self,
		user_id: uuid.UUID,
		document: Mapping[str, Any],
		fields: Mapping[str, Any],
	) -> dict[str, Any]:
		"""Move stock from the grow's previous recipe draw to the new one and return the grow changes."""
		prev_id = document.get("recipeId") or None
		prev_qty = document.get("amountTotal")
		prev_unit = document.get("amountUnit")
		next_id = str(fields["recipe_id"]) if fields.get("recipe_id") else None
		if "recipe_id" not in fields:
			next_id = prev_id
		next_qty = fields.get("amount_total", prev_qty)
		next_unit = fields.get("amount_unit", prev_unit)
		if (prev_id, prev_qty, prev_unit) == (next_id, next_qty, next_unit):
			return {}

		service = SupplyService(self.db, self.redis_client)
		grow_id = uuid.UUID(str(document["id"]))
		note = f"recipe change {document.get('abbreviation') or document.get('strain') or ''}".strip()
		new_recipe = await service.get_recipe(user_id, uuid.UUID(next_id)) if next_id else None

		if prev_id:
			try:
				old_recipe = await service.get_recipe(user_id, uuid.UUID(str(prev_id)))
			except (LookupError, ValueError):
				_logger.warning("grow_previous_recipe_missing", grow_id=str(grow_id), recipe_id=str(prev_id))
			else:
				await service.refund_batch(user_id, old_recipe, _batch(grow_id, prev_qty, prev_unit, note))

		changes: dict[str, Any] = {
			"recipeId": next_id,
			"recipe": new_recipe.name if new_recipe is not None else None,
			"amountTotal": next_qty,
			"amountUnit": next_unit,
		}
		if new_recipe is not None:
			await service.consume_batch(user_id, new_recipe, _batch(grow_id, next_qty, next_unit, note))
			if "cost" not in fields:
				changes["cost"] = await service.per_grow_cost(
					user_id,
					new_recipe,
					to_number(next_qty) if next_qty is not None else None,
					next_unit,
				)
		return changes

	# ── Lifecycle transitions ───────────────────────────────────────────

	async def advance_stage(
		self,
		user_id: uuid.UUID,
		grow_id: uuid.UUID,
		at: date | datetime | None = None,
	) -> tuple[Grow, dict[str, Any]]:
		return await self._transition(
			user_id,
			grow_id,
			lambda document: lifecycle.advance_stage(document, at=at),
			"grow_stage_advanced",
		)

	async def set_stage_date(
		self,
		user_id: uuid.UUID,
		grow_id: uuid.UUID,
		stage: str,
		value: date | datetime,
	) -> tuple[Grow, dict[str, Any]]:
		return await self._transition(
			user_id,
			grow_id,
			lambda document: lifecycle.set_stage_date(document, stage, value),
			"grow_stage_date_set",
		)

	async def toggle_archive(self, user_id: uuid.UUID, grow_id: uuid.UUID) -> tuple[Grow, dict[str, Any]]:
		return await self._transition(user_id, grow_id, lifecycle.archive_patch, "grow_status_changed")

	async def toggle_store(
		self,
		user_id: uuid.UUID,
		grow_id: uuid.UUID,
		location: str | None = None,
	) -> tuple[Grow, dict[str, Any]]:
		return await self._transition(
			user_id,
			grow_id,
			lambda document: lifecycle.store_patch(document, location=location),
			"grow_status_changed",
		)

	async def finish_harvest(self, user_id: uuid.UUID, grow_id: uuid.UUID) -> tuple[Grow, dict[str, Any]]:
		return await self._transition(user_id, grow_id, lifecycle.finish_harvest, "grow_status_changed")

	async def add_flush(self, user_id: uuid.UUID, grow_id: uuid.UUID) -> tuple[Grow, dict[str, Any]]:
		return await self._transition(user_id, grow_id, lifecycle.add_flush_patch, "grow_flushes_updated")

	async def update_flush(
		self,
		user_id: uuid.UUID,
		grow_id: uuid.UUID,
		index: int,
		patch: Mapping[str, Any],
	) -> tuple[Grow, dict[str, Any]]:
		return await self._transition(
			user_id,
			grow_id,
			lambda document: lifecycle.update_flush_patch(document, index, patch),
			"grow_flushes_updated",
		)

	# ── Notes & photos ──────────────────────────────────────────────────

	async def add_note(self, user_id: uuid.UUID, grow_id: uuid.UUID, payload: NoteCreate) -> GrowNote:
		grow = await self.get_grow(user_id, grow_id)
		text = payload.text.strip()
		if not text:
			raise ValueError("note text must not be blank")
		note = GrowNote(grow_id=grow.id, stage=lifecycle.stage_label(payload.stage), text=text)
		self.db.add(note)
		await self.db.flush()
		await self.db.refresh(note)
		return note

	async def list_notes(self, user_id: uuid.UUID, grow_id: uuid.UUID) -> list[GrowNote]:
		await self.get_grow(user_id, grow_id)
		stmt = select(GrowNote).where(GrowNote.grow_id == grow_id).order_by(GrowNote.created_at.asc())
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	async def add_photo(self, user_id: uuid.UUID, grow_id: uuid.UUID, payload: PhotoCreate) -> GrowPhoto:
		grow = await self.get_grow(user_id, grow_id)
		photo = GrowPhoto(
			grow_id=grow.id,
			stage=lifecycle.stage_label(payload.stage),
			url=payload.url,
			caption=payload.caption,
			storage_path=payload.storage_path,
		)
		self.db.add(photo)
		await self.db.flush()
		await self.db.refresh(photo)
		return photo

	async def list_photos(self, user_id: uuid.UUID, grow_id: uuid.UUID) -> list[GrowPhoto]:
		await self.get_grow(user_id, grow_id)
		stmt = select(GrowPhoto).where(GrowPhoto.grow_id == grow_id).order_by(GrowPhoto.created_at.asc())
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	# ── Document mapping ────────────────────────────────────────────────

	@staticmethod
	def to_document(grow: Grow) -> dict[str, Any]:
		"""Overlay the typed columns on ``extra`` to rebuild the grow document."""
		document: dict[str, Any] = dict(grow.extra or {})
		document.update(
			{
				"id": str(grow.id),
				"strain": grow.strain,
				"abbreviation": grow.abbreviation,
				"type": grow.grow_type,
				"stage": grow.stage,
				"status": grow.status,
				"stageDates": dict(grow.stage_dates or {}),
				"cost": float(grow.cost) if grow.cost is not None else None,
				"recipeItems": grow.recipe_items,
				"createdAt": grow.created_at,
				"updatedAt": grow.updated_at,
			}
		)
		flushes = list(grow.flushes or [])
		harvest = document.get("harvest")
		legacy_flushes = isinstance(harvest, Mapping) and isinstance(harvest.get("flushes"), list)
		if flushes or not legacy_flushes:
			document["flushes"] = flushes
		return document

	@staticmethod
	def apply_changes(grow: Grow, changes: Mapping[str, Any]) -> None:
		"""Merge a write payload into the row.

		``stageDates.<Stage>`` keys touch a single ``stage_dates`` entry, known
		document keys go to their column, everything else lands in ``extra``
		(``None`` removes the key).
		"""
		stage_dates = dict(grow.stage_dates or {})
		extra = dict(grow.extra or {})
		for key, value in changes.items():
			if key.startswith(STAGE_DATES_PREFIX):
				stage_dates[key[len(STAGE_DATES_PREFIX):]] = value
			elif key in _READ_ONLY_KEYS:
				raise ValueError(f"{key} is read-only")
			elif key == "stageDates":
				raise ValueError("stageDates must be written one entry at a time")
			elif key in _COLUMN_KEYS:
				setattr(grow, _COLUMN_KEYS[key], value)
			elif value is None:
				extra.pop(key, None)
			else:
				extra[key] = value
		grow.stage_dates = stage_dates
		grow.extra = extra

	# ── Internals ───────────────────────────────────────────────────────

	async def _get_for_update(self, user_id: uuid.UUID, grow_id: uuid.UUID) -> Grow:
		stmt = (
			select(Grow)
			.where(Grow.id == grow_id, Grow.user_id == user_id)
			.with_for_update()
		)
		row = await self.db.execute(stmt)
		grow = row.scalar_one_or_none()
		if grow is None:
			raise LookupError(f"Grow {grow_id} not found")
		return grow

	async def _transition(
		self,
		user_id: uuid.UUID,
		grow_id: uuid.UUID,
		compute: Callable[[dict[str, Any]], GrowPatch | None],
		event: str,
	) -> tuple[Grow, dict[str, Any]]:
		grow = await self._get_for_update(user_id, grow_id)
		document = self.to_document(grow)
		patch = compute(document)
		if patch is None:
			return grow, {}

		self.apply_changes(grow, patch.changes)
		await self.db.flush()
		await self.db.refresh(grow)
		schedule_version_bump(self.db, self.redis_client, user_id)
		_logger.info(
			event,
			grow_id=patch.grow_id,
			stage=grow.stage,
			status=grow.status,
			fields=sorted(patch.changes),
		)
		return grow, patch.changes

	@staticmethod
	def _validate_extra(extra: Mapping[str, Any] | None) -> dict[str, Any]:
		if not extra:
			return {}
		reserved = sorted(
			key
			for key in extra
			if key in _COLUMN_KEYS
			or key in _READ_ONLY_KEYS
			or key in _RECIPE_KEYS
			or key == "stageDates"
			or key.startswith(STAGE_DATES_PREFIX)
		)
		if reserved:
			raise ValueError(f"extra may not set reserved field(s): {', '.join(reserved)}")
		return dict(extra)


def _batch(grow_id: uuid.UUID, qty: Any, unit: Any, note: str) -> ConsumeRequest:
	return ConsumeRequest(
		per_child_qty=max(0.0, to_number(qty)) if qty is not None else None,
		per_child_unit=str(unit) if unit else None,
		grow_id=grow_id,
		note=note,
	)

"""Supply inventory, batch recipes and the consumption ledger.

Stock moves only through this service: restocks add to ``quantity``,
recipe consumption draws it down (never below zero) and a refund puts a
previous draw back.  Each movement appends a ``SupplyAudit`` row that
freezes the supply's unit cost at that moment, so cost-of-goods history
does not drift when prices change later.

Supply rows touched by a movement are locked with ``SELECT ... FOR UPDATE``
inside the request transaction.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.supply import Recipe, Supply, SupplyAudit
from app.schemas.supply import (
	AuditAction,
	ConsumeRequest,
	RecipeCreate,
	RecipeItemIn,
	RecipeUpdate,
	RestockRequest,
	SupplyCreate,
	SupplyUpdate,
)
from app.services import supplies
from app.services.timeutil import round_money
from app.services.versioning import schedule_version_bump

_logger = structlog.get_logger("mycotrack.supplies")

# SupplyCreate/SupplyUpdate field -> Supply column.
_SUPPLY_COLUMNS: dict[str, str] = {
	"name": "name",
	"type": "supply_type",
	"unit": "unit",
	"cost": "cost",
	"quantity": "quantity",
	"reorder_link": "reorder_link",
	"low_stock_threshold": "low_stock_threshold",
}
_NON_NULL_SUPPLY_FIELDS = frozenset({"name", "type", "unit", "cost", "quantity", "low_stock_threshold"})
_NON_NULL_RECIPE_FIELDS = frozenset({"name", "tags", "items", "instructions", "yield_qty"})


class SupplyService:
	"""Service for supplies, recipes, stock movements and their audit trail."""

	def __init__(self, db: AsyncSession, redis_client: Redis | None = None):
		self.db = db
		self.redis_client = redis_client

	# ── Supplies ────────────────────────────────────────────────────────

	async def list_supplies(self, user_id: uuid.UUID) -> list[Supply]:
		stmt = select(Supply).where(Supply.user_id == user_id).order_by(Supply.name.asc())
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	async def get_supply(self, user_id: uuid.UUID, supply_id: uuid.UUID) -> Supply:
		stmt = select(Supply).where(Supply.id == supply_id, Supply.user_id == user_id)
		row = await self.db.execute(stmt)
		supply = row.scalar_one_or_none()
		if supply is None:
			raise LookupError(f"Supply {supply_id} not found")
		return supply

	async def create_supply(self, user_id: uuid.UUID, payload: SupplyCreate) -> Supply:
		supply = Supply(
			user_id=user_id,
			name=payload.name.strip(),
			supply_type=payload.type.strip().lower(),
			unit=supplies.canonical_unit(payload.unit),
			cost=payload.cost,
			quantity=payload.quantity,
			reorder_link=payload.reorder_link,
			low_stock_threshold=payload.low_stock_threshold,
		)
		self.db.add(supply)
		await self.db.flush()
		await self.db.refresh(supply)
		self._audit(user_id, AuditAction.add, supply, amount=supply.quantity)
		self._touched(user_id)
		_logger.info("supply_created", supply_id=str(supply.id), unit=supply.unit)
		return supply

	async def update_supply(self, user_id: uuid.UUID, supply_id: uuid.UUID, payload: SupplyUpdate) -> Supply:
		fields = payload.model_dump(exclude_unset=True)
		nulled = sorted(key for key in fields if fields[key] is None and key in _NON_NULL_SUPPLY_FIELDS)
		if nulled:
			raise ValueError(f"field(s) must not be null: {', '.join(nulled)}")
		if "name" in fields:
			fields["name"] = fields["name"].strip()
		if "type" in fields:
			fields["type"] = fields["type"].strip().lower()
		if "unit" in fields:
			fields["unit"] = supplies.canonical_unit(fields["unit"])

		supply = await self._lock_supply(user_id, supply_id)
		before = float(supply.quantity or 0)
		for key, value in fields.items():
			setattr(supply, _SUPPLY_COLUMNS[key], value)
		await self.db.flush()
		await self.db.refresh(supply)
		self._audit(
			user_id,
			AuditAction.edit,
			supply,
			amount=float(supply.quantity or 0) - before,
			note=", ".join(sorted(fields)),
		)
		self._touched(user_id)
		_logger.info("supply_updated", supply_id=str(supply_id), fields=sorted(fields))
		return supply

	async def delete_supply(self, user_id: uuid.UUID, supply_id: uuid.UUID) -> None:
		supply = await self.get_supply(user_id, supply_id)
		self._audit(user_id, AuditAction.delete, supply, amount=float(supply.quantity or 0), note=supply.name)
		await self.db.delete(supply)
		await self.db.flush()
		self._touched(user_id)
		_logger.info("supply_deleted", supply_id=str(supply_id))

	async def restock(self, user_id: uuid.UUID, supply_id: uuid.UUID, payload: RestockRequest) -> Supply:
		supply = await self._lock_supply(user_id, supply_id)
		supply.quantity = float(supply.quantity or 0) + payload.amount
		await self.db.flush()
		await self.db.refresh(supply)
		self._audit(user_id, AuditAction.restock, supply, amount=payload.amount, note=payload.note or "Manual restock")
		_logger.info("supply_restocked", supply_id=str(supply_id), amount=payload.amount)
		return supply

	async def stock_alerts(self, user_id: uuid.UUID) -> dict[supplies.StockStatus, list[Supply]]:
		rows = await self.list_supplies(user_id)
		by_id = {str(supply.id): supply for supply in rows}
		alerts = supplies.stock_alerts(self.supply_document(supply) for supply in rows)
		return {status: [by_id[document["id"]] for document in bucket] for status, bucket in alerts.items()}

	async def list_audits(
		self,
		user_id: uuid.UUID,
		action: AuditAction | None = None,
		limit: int | None = None,
	) -> list[SupplyAudit]:
		stmt = select(SupplyAudit).where(SupplyAudit.user_id == user_id)
		if action is not None:
			stmt = stmt.where(SupplyAudit.action == action.value)
		stmt = stmt.order_by(SupplyAudit.created_at.desc())
		if limit is not None:
			stmt = stmt.limit(limit)
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	# ── Recipes ─────────────────────────────────────────────────────────

	async def list_recipes(self, user_id: uuid.UUID) -> list[Recipe]:
		stmt = select(Recipe).where(Recipe.user_id == user_id).order_by(Recipe.name.asc())
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	async def get_recipe(self, user_id: uuid.UUID, recipe_id: uuid.UUID) -> Recipe:
		stmt = select(Recipe).where(Recipe.id == recipe_id, Recipe.user_id == user_id)
		row = await self.db.execute(stmt)
		recipe = row.scalar_one_or_none()
		if recipe is None:
			raise LookupError(f"Recipe {recipe_id} not found")
		return recipe

	async def create_recipe(self, user_id: uuid.UUID, payload: RecipeCreate) -> Recipe:
		items = await self._stock_items(user_id, payload.items)
		recipe = Recipe(
			user_id=user_id,
			name=payload.name.strip(),
			tags=payload.tags,
			items=items,
			instructions=payload.instructions,
			yield_qty=payload.yield_qty,
			yield_unit=supplies.canonical_unit(payload.yield_unit) or None,
			serving_label=payload.serving_label,
		)
		self.db.add(recipe)
		await self.db.flush()
		await self.db.refresh(recipe)
		self._touched(user_id)
		_logger.info("recipe_created", recipe_id=str(recipe.id), items=len(items))
		return recipe

	async def update_recipe(self, user_id: uuid.UUID, recipe_id: uuid.UUID, payload: RecipeUpdate) -> Recipe:
		fields = payload.model_dump(exclude_unset=True)
		nulled = sorted(key for key in fields if fields[key] is None and key in _NON_NULL_RECIPE_FIELDS)
		if nulled:
			raise ValueError(f"field(s) must not be null: {', '.join(nulled)}")

		recipe = await self.get_recipe(user_id, recipe_id)
		if "items" in fields:
			fields["items"] = await self._stock_items(user_id, payload.items or [])
		if "name" in fields:
			fields["name"] = fields["name"].strip()
		if "yield_unit" in fields:
			fields["yield_unit"] = supplies.canonical_unit(fields["yield_unit"]) or None
		for key, value in fields.items():
			setattr(recipe, key, value)
		await self.db.flush()
		await self.db.refresh(recipe)
		self._touched(user_id)
		_logger.info("recipe_updated", recipe_id=str(recipe_id), fields=sorted(fields))
		return recipe

	async def delete_recipe(self, user_id: uuid.UUID, recipe_id: uuid.UUID) -> None:
		recipe = await self.get_recipe(user_id, recipe_id)
		await self.db.delete(recipe)
		await self.db.flush()
		self._touched(user_id)
		_logger.info("recipe_deleted", recipe_id=str(recipe_id))

	async def supplies_by_id(self, user_id: uuid.UUID) -> dict[str, dict[str, Any]]:
		return {str(supply.id): self.supply_document(supply) for supply in await self.list_supplies(user_id)}

	async def recipe_documents(self, user_id: uuid.UUID) -> list[dict[str, Any]]:
		"""Recipe documents with supply names on their items, as the analytics report reads them."""
		recipes = await self.list_recipes(user_id)
		if not recipes:
			return []
		by_id = await self.supplies_by_id(user_id)
		return [self.recipe_document(recipe, by_id) for recipe in recipes]

	async def recipe_costs(self, user_id: uuid.UUID, recipe: Recipe) -> tuple[float, float]:
		"""(batch cost, cost per yield unit) at current supply prices."""
		by_id = await self.supplies_by_id(user_id)
		document = self.recipe_document(recipe, by_id)
		return supplies.recipe_cost(document, by_id), supplies.cost_per_serving(document, by_id)

	async def per_grow_cost(
		self,
		user_id: uuid.UUID,
		recipe: Recipe,
		per_child_qty: float | None = None,
		per_child_unit: str | None = None,
	) -> float:
		by_id = await self.supplies_by_id(user_id)
		return supplies.per_grow_cost(self.recipe_document(recipe, by_id), by_id, per_child_qty, per_child_unit)

	# ── Stock movements ─────────────────────────────────────────────────

	async def consume_recipe(
		self,
		user_id: uuid.UUID,
		recipe_id: uuid.UUID,
		payload: ConsumeRequest,
	) -> list[SupplyAudit]:
		"""Draw one scaled batch of ``recipe_id`` out of stock."""
		recipe = await self.get_recipe(user_id, recipe_id)
		return await self.consume_batch(user_id, recipe, payload)

	async def refund_recipe(
		self,
		user_id: uuid.UUID,
		recipe_id: uuid.UUID,
		payload: ConsumeRequest,
	) -> list[SupplyAudit]:
		"""Return a previous draw of ``recipe_id`` to stock."""
		recipe = await self.get_recipe(user_id, recipe_id)
		return await self.refund_batch(user_id, recipe, payload)

	async def consume_batch(self, user_id: uuid.UUID, recipe: Recipe, payload: ConsumeRequest) -> list[SupplyAudit]:
		return await self._move_stock(user_id, recipe, payload, AuditAction.consume)

	async def refund_batch(self, user_id: uuid.UUID, recipe: Recipe, payload: ConsumeRequest) -> list[SupplyAudit]:
		return await self._move_stock(user_id, recipe, payload, AuditAction.refund)

	async def _move_stock(
		self,
		user_id: uuid.UUID,
		recipe: Recipe,
		payload: ConsumeRequest,
		action: AuditAction,
	) -> list[SupplyAudit]:
		needs = supplies.consumption_needs(
			self.recipe_document(recipe),
			batch_count=payload.batch_count,
			per_child_qty=payload.per_child_qty,
			per_child_unit=payload.per_child_unit,
		)
		if not needs:
			return []

		locked = await self._lock_supplies(user_id, {need.supply_id for need in needs})
		entries: list[SupplyAudit] = []
		for need in needs:
			supply = locked.get(need.supply_id)
			if supply is None:
				_logger.warning(
					"recipe_supply_missing",
					recipe_id=str(recipe.id),
					supply_id=need.supply_id,
					action=action.value,
				)
				continue
			on_hand = float(supply.quantity or 0)
			if action == AuditAction.consume:
				supply.quantity = max(0.0, on_hand - need.amount)
			else:
				supply.quantity = on_hand + need.amount
			entries.append(
				self._audit(
					user_id,
					action,
					supply,
					amount=need.amount,
					unit=supply.unit or need.unit or None,
					recipe=recipe,
					grow_id=payload.grow_id,
					note=payload.note,
					with_cost=True,
				)
			)
		await self.db.flush()
		for entry in entries:
			await self.db.refresh(entry)
		_logger.info(
			"recipe_stock_moved",
			recipe_id=str(recipe.id),
			action=action.value,
			grow_id=str(payload.grow_id) if payload.grow_id else None,
			lines=len(entries),
		)
		return entries

	# ── Document mapping ────────────────────────────────────────────────

	@staticmethod
	def supply_document(supply: Supply) -> dict[str, Any]:
		return {
			"id": str(supply.id),
			"name": supply.name,
			"type": supply.supply_type,
			"unit": supply.unit,
			"cost": float(supply.cost or 0),
			"quantity": float(supply.quantity or 0),
			"lowStockThreshold": float(supply.low_stock_threshold or 0),
		}

	@staticmethod
	def recipe_document(recipe: Recipe, supplies_by_id: Mapping[str, Mapping[str, Any]] | None = None) -> dict[str, Any]:
		items: list[dict[str, Any]] = []
		for item in recipe.items or []:
			line = dict(item)
			supply = (supplies_by_id or {}).get(str(line.get("supplyId") or ""))
			if supply is not None:
				line["name"] = supply.get("name")
			items.append(line)
		return {
			"id": str(recipe.id),
			"name": recipe.name,
			"tags": list(recipe.tags or []),
			"items": items,
			"yieldQty": recipe.yield_qty,
			"yieldUnit": recipe.yield_unit or "",
		}

	# ── Internals ───────────────────────────────────────────────────────

	async def _lock_supply(self, user_id: uuid.UUID, supply_id: uuid.UUID) -> Supply:
		stmt = (
			select(Supply)
			.where(Supply.id == supply_id, Supply.user_id == user_id)
			.with_for_update()
		)
		row = await self.db.execute(stmt)
		supply = row.scalar_one_or_none()
		if supply is None:
			raise LookupError(f"Supply {supply_id} not found")
		return supply

	async def _lock_supplies(self, user_id: uuid.UUID, supply_ids: Iterable[str]) -> dict[str, Supply]:
		ids = []
		for value in supply_ids:
			try:
				ids.append(uuid.UUID(value))
			except ValueError:
				_logger.warning("recipe_supply_id_invalid", supply_id=value)
		if not ids:
			return {}
		stmt = (
			select(Supply)
			.where(Supply.user_id == user_id, Supply.id.in_(ids))
			.order_by(Supply.id)
			.with_for_update()
		)
		rows = await self.db.execute(stmt)
		return {str(supply.id): supply for supply in rows.scalars().all()}

	async def _stock_items(self, user_id: uuid.UUID, items: Iterable[RecipeItemIn]) -> list[dict[str, Any]]:
		"""Resolve recipe lines against the user's supplies, in each supply's stock unit."""
		lines = list(items)
		stmt = select(Supply).where(Supply.user_id == user_id, Supply.id.in_([line.supply_id for line in lines]))
		rows = await self.db.execute(stmt)
		by_id = {supply.id: supply for supply in rows.scalars().all()}

		resolved: list[dict[str, Any]] = []
		for line in lines:
			supply = by_id.get(line.supply_id)
			if supply is None:
				raise ValueError(f"unknown supply {line.supply_id}")
			stock_unit = supply.unit or ""
			entered = supplies.canonical_unit(line.unit) or stock_unit
			if stock_unit and not supplies.are_compatible(entered, stock_unit):
				raise ValueError(f"unit {entered!r} does not convert to {supply.name}'s stock unit {stock_unit!r}")
			resolved.append(
				{
					"supplyId": str(supply.id),
					"amount": supplies.convert(line.amount, entered, stock_unit),
					"unit": stock_unit,
					"amountDisplay": line.amount,
					"displayUnit": entered,
				}
			)
		return resolved

	def _audit(
		self,
		user_id: uuid.UUID,
		action: AuditAction,
		supply: Supply,
		*,
		amount: float,
		unit: str | None = None,
		recipe: Recipe | None = None,
		grow_id: uuid.UUID | None = None,
		note: str = "",
		with_cost: bool = False,
	) -> SupplyAudit:
		unit_cost = float(supply.cost or 0) if with_cost else None
		entry = SupplyAudit(
			user_id=user_id,
			supply_id=supply.id,
			action=action.value,
			amount=amount,
			unit=unit or supply.unit or None,
			unit_cost_applied=unit_cost,
			total_cost_applied=round_money(unit_cost * amount) if unit_cost is not None else None,
			recipe_id=recipe.id if recipe is not None else None,
			recipe_name=recipe.name if recipe is not None else None,
			grow_id=grow_id,
			note=note,
		)
		self.db.add(entry)
		return entry

	def _touched(self, user_id: uuid.UUID) -> None:
		schedule_version_bump(self.db, self.redis_client, user_id)

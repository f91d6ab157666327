"""Supply arithmetic: units, recipe scaling, consumption needs and cost of goods.

Pure functions over plain mappings so the same rules serve the service layer,
the analytics report and tests.  A supply mapping carries ``cost`` (per stock
unit), ``unit``, ``type`` and ``quantity``; a recipe mapping carries ``items``
and a yield (``yield`` / ``yieldQty`` and friends, see ``recipe_yield``).

Scaling a recipe to one grow::

    scale = per_child_qty * batch_count / yield_qty   # when the units match
    scale = batch_count / yield_qty                   # otherwise
    scale = batch_count                               # recipe without a yield

Count-like units are rounded up to whole items after scaling.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from app.services.timeutil import round_money, to_number

MASS_UNITS = ("mg", "g", "kg", "oz", "lbs")
VOLUME_UNITS = ("ml", "liter")

# Grams / millilitres per unit.
_BASE_FACTORS: dict[str, float] = {
	"mg": 0.001,
	"g": 1.0,
	"kg": 1000.0,
	"oz": 28.349523125,
	"lbs": 453.59237,
	"ml": 1.0,
	"liter": 1000.0,
}

_UNIT_SYNONYMS: dict[str, str] = {
	"lb": "lbs",
	"pound": "lbs",
	"pounds": "lbs",
	"ounce": "oz",
	"ounces": "oz",
	"gram": "g",
	"grams": "g",
	"kilogram": "kg",
	"kilograms": "kg",
	"l": "liter",
	"litre": "liter",
	"litres": "liter",
	"liters": "liter",
	"milliliter": "ml",
	"milliliters": "ml",
	"ea": "count",
	"unit": "count",
	"units": "count",
	"qty": "count",
}

_COUNT_UNITS = frozenset({"count", "plate", "jar", "dish", "item"})
_REUSABLE_TYPES = frozenset({"container", "tool"})

_YIELD_QTY_KEYS = (
	"yieldQty",
	"yield",
	"yieldAmount",
	"yieldVolume",
	"totalVolume",
	"batchVolume",
	"outputQty",
	"batchQty",
	"portions",
	"servings",
)
_YIELD_UNIT_KEYS = ("yieldUnit", "unit", "volumeUnit", "outputUnit", "batchUnit")


class StockStatus(StrEnum):
	ok = "ok"
	low = "low"
	empty = "empty"


@dataclass(slots=True, frozen=True)
class SupplyNeed:
	supply_id: str
	amount: float
	unit: str


# ── Units ───────────────────────────────────────────────────────────────────


def canonical_unit(unit: Any) -> str:
	token = str(unit or "").strip().lower()
	return _UNIT_SYNONYMS.get(token, token)


def unit_group(unit: Any) -> str:
	canonical = canonical_unit(unit)
	if canonical in MASS_UNITS:
		return "mass"
	if canonical in VOLUME_UNITS:
		return "volume"
	if canonical == "hour":
		return "time"
	if canonical == "count":
		return "count"
	return "other"


def are_compatible(first: Any, second: Any) -> bool:
	return unit_group(first) == unit_group(second)


def convert(amount: Any, from_unit: Any, to_unit: Any) -> float:
	"""Convert between units of one group; anything else passes the number through."""
	value = to_number(amount)
	source, target = canonical_unit(from_unit), canonical_unit(to_unit)
	if not source or not target or source == target or not are_compatible(source, target):
		return value
	if source not in _BASE_FACTORS or target not in _BASE_FACTORS:
		return value
	return value * _BASE_FACTORS[source] / _BASE_FACTORS[target]


def is_count_unit(unit: Any) -> bool:
	return canonical_unit(unit) in _COUNT_UNITS


def round_for_unit(value: Any, unit: Any) -> float:
	amount = max(0.0, to_number(value))
	return float(math.ceil(amount)) if is_count_unit(unit) else amount


# ── Recipes ─────────────────────────────────────────────────────────────────


def recipe_yield(recipe: Mapping[str, Any]) -> tuple[float, str]:
	qty = 0.0
	for key in _YIELD_QTY_KEYS:
		if recipe.get(key) is not None:
			qty = to_number(recipe.get(key))
			break
	unit = next((str(recipe[key]) for key in _YIELD_UNIT_KEYS if recipe.get(key)), "")
	return qty, unit


def consumption_scale(
	recipe: Mapping[str, Any],
	*,
	batch_count: int = 1,
	per_child_qty: float | None = None,
	per_child_unit: str | None = None,
) -> float:
	count = batch_count or 1
	yield_qty, yield_unit = recipe_yield(recipe)
	if yield_qty <= 0:
		return float(count)
	if per_child_qty is not None and _same_unit(per_child_unit, yield_unit):
		return per_child_qty * count / yield_qty
	return count / yield_qty


def consumption_needs(
	recipe: Mapping[str, Any],
	*,
	batch_count: int = 1,
	per_child_qty: float | None = None,
	per_child_unit: str | None = None,
) -> list[SupplyNeed]:
	"""Supply amounts one batch draws from stock; zero and unlinked lines are skipped."""
	scale = consumption_scale(
		recipe,
		batch_count=batch_count,
		per_child_qty=per_child_qty,
		per_child_unit=per_child_unit,
	)
	needs: list[SupplyNeed] = []
	for item in _items(recipe):
		supply_id = item.get("supplyId") or item.get("id")
		base = to_number(item.get("amount"))
		if not supply_id or base <= 0:
			continue
		unit = str(item.get("unit") or item.get("amountUnit") or "")
		amount = round_for_unit(base * scale, unit)
		if amount > 0:
			needs.append(SupplyNeed(supply_id=str(supply_id), amount=amount, unit=unit))
	return needs


# ── Cost of goods ───────────────────────────────────────────────────────────


def is_reusable(supply: Mapping[str, Any] | None) -> bool:
	if not supply:
		return False
	kind = str(supply.get("type") or "").strip().lower()
	return kind in _REUSABLE_TYPES and canonical_unit(supply.get("unit")) == "count"


def recipe_cost(recipe: Mapping[str, Any], supplies_by_id: Mapping[str, Mapping[str, Any]]) -> float:
	total = 0.0
	for item in _items(recipe):
		supply = supplies_by_id.get(str(item.get("supplyId") or item.get("id") or ""))
		if supply is None:
			continue
		total += to_number(supply.get("cost")) * to_number(item.get("amount"))
	return round_money(total)


def cost_per_serving(recipe: Mapping[str, Any], supplies_by_id: Mapping[str, Mapping[str, Any]]) -> float:
	"""Consumable cost of one yield unit; reusable containers and tools are left out."""
	yield_qty, _ = recipe_yield(recipe)
	base = yield_qty if yield_qty > 0 else 1.0
	total = 0.0
	for item in _items(recipe):
		supply = supplies_by_id.get(str(item.get("supplyId") or item.get("id") or ""))
		if supply is None or is_reusable(supply):
			continue
		total += to_number(supply.get("cost")) * to_number(item.get("amount"))
	return round_money(total / base)


def per_grow_cost(
	recipe: Mapping[str, Any],
	supplies_by_id: Mapping[str, Mapping[str, Any]],
	per_child_qty: float | None = None,
	per_child_unit: str | None = None,
) -> float:
	total = recipe_cost(recipe, supplies_by_id)
	yield_qty, yield_unit = recipe_yield(recipe)
	if yield_qty > 0:
		if per_child_qty and per_child_qty > 0 and _same_unit(per_child_unit, yield_unit):
			total = total * (per_child_qty / yield_qty)
		else:
			total = total / yield_qty
	return max(0.0, round_money(total))


# ── Stock ───────────────────────────────────────────────────────────────────


def stock_status(supply: Mapping[str, Any]) -> StockStatus:
	quantity = to_number(supply.get("quantity"))
	threshold = to_number(supply.get("lowStockThreshold"))
	if quantity <= 0:
		return StockStatus.empty
	if threshold > 0 and quantity <= threshold:
		return StockStatus.low
	return StockStatus.ok


def stock_alerts(supplies: Iterable[Mapping[str, Any]]) -> dict[StockStatus, list[Mapping[str, Any]]]:
	alerts: dict[StockStatus, list[Mapping[str, Any]]] = {StockStatus.empty: [], StockStatus.low: []}
	for supply in supplies:
		status = stock_status(supply)
		if status in alerts:
			alerts[status].append(supply)
	return alerts


# ── Internals ───────────────────────────────────────────────────────────────


def _items(recipe: Mapping[str, Any]) -> list[Mapping[str, Any]]:
	items = recipe.get("items")
	if not isinstance(items, list):
		return []
	return [item for item in items if isinstance(item, Mapping)]


def _same_unit(first: Any, second: Any) -> bool:
	left, right = canonical_unit(first), canonical_unit(second)
	return bool(left) and left == right

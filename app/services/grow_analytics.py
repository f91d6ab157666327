"""Grow classification and dashboard aggregations over grow documents.

Pure functions of a list of grow documents (plus optional archived list,
filter and recipe lookup).  Every aggregation tolerates missing and legacy
field shapes: timestamps go through ``timeutil.to_datetime`` and anything that
does not parse is treated as absent.

All dates are compared and bucketed in UTC.
"""

from __future__ import annotations

import statistics
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from app.schemas.analytics import (
	AnalyticsQuery,
	AnalyticsReport,
	ContaminationRate,
	GrowCost,
	GrowYield,
	MonthCount,
	OverviewSummary,
	StageCount,
	StrainYield,
	SupplyUsage,
	TimeToStage,
)
from app.services.timeutil import (
	SECONDS_PER_DAY,
	days_between,
	end_of_day,
	month_key,
	round_half_up,
	round_money,
	start_of_day,
	to_datetime,
	to_number,
	utcnow,
)

ACTIVE_STAGES = frozenset({"inoculated", "colonizing", "colonized", "fruiting"})

SUPPLY_USAGE_LIMIT = 10

_REFERENCE_DATE_KEYS = ("inoculatedAt", "inoculationDate", "createdAt", "created_on", "startDate")
_ARCHIVED_STAMP_KEYS = ("archivedAt", "archived_on", "archivedOn")


# ── Classification ──────────────────────────────────────────────────────────


def _token(value: Any) -> str:
	return str(value or "").strip().lower()


def is_archived_like(grow: Mapping[str, Any]) -> bool:
	stage, status = _token(grow.get("stage")), _token(grow.get("status"))
	return (
		grow.get("archived") is True
		or grow.get("isArchived") is True
		or any(bool(grow.get(key)) for key in _ARCHIVED_STAMP_KEYS)
		or stage == "archived"
		or status == "archived"
	)


def is_consumed_like(grow: Mapping[str, Any]) -> bool:
	return (
		grow.get("consumed") is True
		or grow.get("isConsumed") is True
		or _token(grow.get("stage")) == "consumed"
		or _token(grow.get("status")) == "consumed"
	)


def is_contaminated(grow: Mapping[str, Any]) -> bool:
	return (
		grow.get("contaminated") is True
		or grow.get("isContaminated") is True
		or _token(grow.get("stage")) == "contaminated"
		or _token(grow.get("status")) == "contaminated"
	)


def is_finished_like(grow: Mapping[str, Any]) -> bool:
	return grow.get("finished") is True or _token(grow.get("stage")) in {"harvested", "finished"}


def has_inactive_marker(grow: Mapping[str, Any]) -> bool:
	return (
		is_archived_like(grow)
		or is_consumed_like(grow)
		or is_contaminated(grow)
		or is_finished_like(grow)
		or grow.get("active") is False
	)


def is_active_grow(grow: Mapping[str, Any]) -> bool:
	"""Classify a grow as active.

	Precedence is fixed: any negative marker makes the grow inactive, then an
	explicit ``active: True`` wins, and otherwise the stage decides.
	"""
	if has_inactive_marker(grow):
		return False
	if grow.get("active") is True:
		return True
	return _token(grow.get("stage")) in ACTIVE_STAGES


def is_emptied(grow: Mapping[str, Any]) -> bool:
	amount = grow.get("amountAvailable")
	if amount is None:
		return False
	return to_number(amount, default=float("inf")) <= 0


@dataclass(slots=True)
class GrowPartition:
	active: list[dict[str, Any]] = field(default_factory=list)
	stored: list[dict[str, Any]] = field(default_factory=list)
	archived: list[dict[str, Any]] = field(default_factory=list)


def partition_grows(grows: Iterable[Mapping[str, Any]]) -> GrowPartition:
	partition = GrowPartition()
	for grow in grows:
		doc = dict(grow)
		if has_inactive_marker(doc) or is_emptied(doc):
			partition.archived.append(doc)
		elif _token(doc.get("status")) == "stored":
			partition.stored.append(doc)
		elif is_active_grow(doc):
			partition.active.append(doc)
		else:
			partition.archived.append(doc)
	return partition


def merge_grows(
	active: Sequence[Mapping[str, Any]],
	archived: Sequence[Mapping[str, Any]] | None = None,
) -> list[Mapping[str, Any]]:
	"""Union by ``id``; an archived copy replaces a non-archived one."""
	if not archived:
		return list(active)
	by_id: dict[Any, Mapping[str, Any]] = {}
	for grow in [*active, *archived]:
		key = grow.get("id")
		previous = by_id.get(key)
		if previous is None or (grow.get("archived") and not previous.get("archived")):
			by_id[key] = grow
	return list(by_id.values())


# ── Field resolution ────────────────────────────────────────────────────────


def stage_dates_of(grow: Mapping[str, Any]) -> Mapping[str, Any]:
	stage_dates = grow.get("stageDates")
	return stage_dates if isinstance(stage_dates, Mapping) else {}


def resolve_reference_date(grow: Mapping[str, Any]) -> datetime | None:
	resolved = to_datetime(stage_dates_of(grow).get("Inoculated"))
	if resolved is not None:
		return resolved
	for key in _REFERENCE_DATE_KEYS:
		resolved = to_datetime(grow.get(key))
		if resolved is not None:
			return resolved
	return None


def flushes_of(grow: Mapping[str, Any]) -> list[Any]:
	flushes = grow.get("flushes")
	if isinstance(flushes, list):
		return flushes
	harvest = grow.get("harvest")
	if isinstance(harvest, Mapping) and isinstance(harvest.get("flushes"), list):
		return harvest["flushes"]
	return []


def yield_totals(grow: Mapping[str, Any]) -> tuple[float, float]:
	"""Wet/dry totals from flushes; legacy scalars only fill a zero total."""
	wet = dry = 0.0
	for flush in flushes_of(grow):
		if isinstance(flush, Mapping):
			wet += to_number(flush.get("wet"))
			dry += to_number(flush.get("dry"))
	if not wet and grow.get("wetYield"):
		wet = to_number(grow.get("wetYield"))
	if not dry and grow.get("dryYield"):
		dry = to_number(grow.get("dryYield"))
	return wet, dry


def grow_label(grow: Mapping[str, Any], *keys: str) -> str:
	for key in keys:
		value = grow.get(key)
		if value:
			return str(value)
	grow_id = grow.get("id")
	return str(grow_id)[:6] if grow_id else ""


def _harvest_date(grow: Mapping[str, Any]) -> datetime | None:
	harvested = to_datetime(stage_dates_of(grow).get("Harvested"))
	if harvested is not None:
		return harvested
	harvest = grow.get("harvest")
	legacy = harvest.get("flushes") if isinstance(harvest, Mapping) else None
	if isinstance(legacy, list) and legacy and isinstance(legacy[-1], Mapping):
		return to_datetime(legacy[-1].get("date"))
	return None


# ── Filtering ───────────────────────────────────────────────────────────────


@dataclass(slots=True, frozen=True)
class GrowFilter:
	strain: str | None = None
	date_from: date | None = None
	date_to: date | None = None

	@classmethod
	def from_query(cls, query: AnalyticsQuery) -> "GrowFilter":
		strain = query.strain.strip() if query.strain and query.strain.strip() else None
		return cls(strain=strain, date_from=query.date_from, date_to=query.date_to)

	def matches(self, grow: Mapping[str, Any]) -> bool:
		if self.strain is not None and str(grow.get("strain") or "").strip() != self.strain:
			return False
		if self.date_from is None and self.date_to is None:
			return True
		reference = resolve_reference_date(grow)
		if reference is None:
			return False
		if self.date_from is not None and reference < start_of_day(self.date_from):
			return False
		if self.date_to is not None and reference > end_of_day(self.date_to):
			return False
		return True


# ── Aggregations ────────────────────────────────────────────────────────────


def stage_distribution(grows: Iterable[Mapping[str, Any]]) -> list[StageCount]:
	counts: Counter[str] = Counter(str(grow.get("stage") or "Active") for grow in grows)
	return [StageCount(name=name, value=value) for name, value in counts.items()]


def yield_by_grow(grows: Iterable[Mapping[str, Any]]) -> list[GrowYield]:
	rows: list[GrowYield] = []
	for grow in grows:
		if grow.get("stage") != "Harvested" and not grow.get("archived"):
			continue
		wet, dry = yield_totals(grow)
		if wet or dry:
			rows.append(GrowYield(name=grow_label(grow, "strain", "abbreviation"), wet=wet, dry=dry))
	return rows


def average_yield_per_strain(grows: Iterable[Mapping[str, Any]]) -> list[StrainYield]:
	"""Average wet/dry per strain; zero-yield grows neither count nor dilute."""
	stats: dict[str, list[float]] = {}
	for grow in grows:
		if not grow.get("strain"):
			continue
		bucket = stats.setdefault(str(grow["strain"]).strip(), [0.0, 0.0, 0])
		wet, dry = yield_totals(grow)
		if wet or dry:
			bucket[0] += wet
			bucket[1] += dry
			bucket[2] += 1
	return [
		StrainYield(
			name=name,
			wet=wet / count if count else 0,
			dry=dry / count if count else 0,
			count=int(count),
		)
		for name, (wet, dry, count) in stats.items()
	]


def cost_per_grow(grows: Iterable[Mapping[str, Any]]) -> list[GrowCost]:
	return [
		GrowCost(name=grow_label(grow, "abbreviation", "strain"), cost=round_money(grow.get("cost")))
		for grow in grows
	]


def _recipe_items(grow: Mapping[str, Any], recipes_by_id: Mapping[Any, Mapping[str, Any]]) -> list[Any] | None:
	items = grow.get("recipeItems")
	if isinstance(items, list) and items:
		return items
	recipe = grow.get("recipe")
	recipe_id = grow.get("recipeId") or grow.get("recipe_id") or (recipe.get("id") if isinstance(recipe, Mapping) else None)
	referenced = recipes_by_id.get(recipe_id) if recipe_id else None
	if referenced is not None and isinstance(referenced.get("items"), list):
		return referenced["items"]
	return None


def supply_usage(
	grows: Iterable[Mapping[str, Any]],
	recipes: Sequence[Mapping[str, Any]] | None = None,
	limit: int = SUPPLY_USAGE_LIMIT,
) -> list[SupplyUsage]:
	recipes_by_id = {recipe.get("id"): recipe for recipe in recipes or [] if isinstance(recipe, Mapping)}
	counts: Counter[str] = Counter()
	for grow in grows:
		items = _recipe_items(grow, recipes_by_id)
		for item in items or []:
			name = item.get("name") if isinstance(item, Mapping) else None
			counts[str(name) if name else "Unknown"] += 1
	ranked = sorted(counts.items(), key=lambda pair: pair[1], reverse=True)
	return [SupplyUsage(name=name, count=count) for name, count in ranked[:limit]]


def stage_transitions_by_month(grows: Iterable[Mapping[str, Any]]) -> list[MonthCount]:
	counts: Counter[str] = Counter()
	for grow in grows:
		for value in stage_dates_of(grow).values():
			stamp = to_datetime(value)
			if stamp is not None:
				counts[month_key(stamp)] += 1
	return [MonthCount(month=month, count=counts[month]) for month in sorted(counts)]


def contamination_rate(grows: Iterable[Mapping[str, Any]]) -> list[ContaminationRate]:
	totals: dict[str, list[int]] = {}
	for grow in grows:
		bucket = totals.setdefault(str(grow.get("strain") or "Unknown"), [0, 0])
		bucket[0] += 1
		if is_contaminated(grow):
			bucket[1] += 1
	rows = [
		ContaminationRate(name=name, rate=(bad / total) * 100 if total else 0, bad=bad, total=total)
		for name, (total, bad) in totals.items()
	]
	return sorted(rows, key=lambda row: row.rate, reverse=True)


def _median(values: list[int]) -> float:
	return float(statistics.median(values)) if values else 0


def time_to_stage(grows: Iterable[Mapping[str, Any]]) -> list[TimeToStage]:
	buckets: dict[str, tuple[list[int], list[int], list[int]]] = {}
	for grow in grows:
		stage_dates = stage_dates_of(grow)
		inoculated = to_datetime(stage_dates.get("Inoculated")) or resolve_reference_date(grow)
		colonized = to_datetime(stage_dates.get("Colonized"))
		fruiting = to_datetime(stage_dates.get("Fruiting"))
		harvested = _harvest_date(grow)
		to_colonized, to_fruiting, to_harvested = buckets.setdefault(
			str(grow.get("strain") or "Unknown"), ([], [], [])
		)
		if inoculated and colonized:
			to_colonized.append(days_between(inoculated, colonized))
		if colonized and fruiting:
			to_fruiting.append(days_between(colonized, fruiting))
		if fruiting and harvested:
			to_harvested.append(days_between(fruiting, harvested))
	return [
		TimeToStage(
			name=name,
			inoc_to_colonized=_median(ic),
			colonized_to_fruiting=_median(cf),
			fruiting_to_harvested=_median(fh),
		)
		for name, (ic, cf, fh) in buckets.items()
	]


def overview(grows: Sequence[Mapping[str, Any]], now: datetime | None = None) -> OverviewSummary:
	current = now or utcnow()
	ages = [
		(current - reference).total_seconds() / SECONDS_PER_DAY
		for reference in (resolve_reference_date(grow) for grow in grows)
		if reference is not None
	]
	return OverviewSummary(
		total_active=len(grows),
		unique_strains=len({str(grow.get("strain") or "Unknown") for grow in grows}),
		running_cost=round_money(sum(to_number(grow.get("cost")) for grow in grows)),
		avg_age_days=round_half_up(sum(ages) / len(ages)) if ages else 0,
	)


def build_report(
	grows: Sequence[Mapping[str, Any]],
	archived: Sequence[Mapping[str, Any]] | None = None,
	grow_filter: GrowFilter | None = None,
	show_all: bool = False,
	recipes: Sequence[Mapping[str, Any]] | None = None,
	now: datetime | None = None,
) -> AnalyticsReport:
	"""Compute every dashboard series in one pass over the inputs.

	Stage distribution and the overview cover active grows that pass the
	filter.  The remaining series cover the filtered active set, or the merged
	active + archived set when ``show_all`` is set.
	"""
	current = now or utcnow()
	active_filter = grow_filter or GrowFilter()
	active_source = [grow for grow in grows if is_active_grow(grow)]
	active_filtered = [grow for grow in active_source if active_filter.matches(grow)]
	dataset = merge_grows(grows, archived) if show_all else active_source
	filtered_all = [grow for grow in dataset if active_filter.matches(grow)]

	return AnalyticsReport(
		generated_at=current,
		filters=AnalyticsQuery(
			strain=active_filter.strain,
			date_from=active_filter.date_from,
			date_to=active_filter.date_to,
			show_all=show_all,
		),
		overview=overview(active_filtered, now=current),
		stage_counts=stage_distribution(active_filtered),
		yield_by_grow=yield_by_grow(filtered_all),
		avg_yield_per_strain=average_yield_per_strain(filtered_all),
		grow_costs=cost_per_grow(filtered_all),
		supply_usage=supply_usage(filtered_all, recipes),
		stage_transitions=stage_transitions_by_month(filtered_all),
		contamination_rate=contamination_rate(filtered_all),
		time_to_stage=time_to_stage(filtered_all),
	)

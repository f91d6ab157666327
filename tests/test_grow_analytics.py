from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from app.services import grow_analytics
from app.services.grow_analytics import GrowFilter

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=UTC)


def test_negative_markers_beat_explicit_active_override() -> None:
	assert grow_analytics.is_active_grow({"archived": True, "stage": "Fruiting", "active": True}) is False


def test_stage_decides_when_no_markers() -> None:
	assert grow_analytics.is_active_grow({"stage": "Fruiting"}) is True
	assert grow_analytics.is_active_grow({"stage": "Other"}) is False


@pytest.mark.parametrize(
	"grow",
	[
		{"stage": "Fruiting", "isArchived": True},
		{"stage": "Fruiting", "archivedAt": "2026-05-01"},
		{"stage": "Fruiting", "archived_on": {"seconds": 1_700_000_000}},
		{"stage": "Fruiting", "status": "Archived"},
		{"stage": "Fruiting", "consumed": True},
		{"stage": "Fruiting", "status": "contaminated"},
		{"stage": "Fruiting", "finished": True},
		{"stage": "Harvested"},
		{"stage": "Fruiting", "active": False},
	],
)
def test_inactive_markers(grow: dict[str, object]) -> None:
	assert grow_analytics.is_active_grow(grow) is False


def test_explicit_active_overrides_stage() -> None:
	assert grow_analytics.is_active_grow({"stage": "Other", "active": True}) is True


def test_partition_grows() -> None:
	grows = [
		{"id": "a", "stage": "Colonizing", "status": "Active"},
		{"id": "s", "stage": "Colonized", "status": "Stored", "type": "Agar"},
		{"id": "x", "stage": "Fruiting", "status": "Archived"},
		{"id": "e", "stage": "Colonized", "status": "Active", "amountAvailable": 0},
		{"id": "o", "stage": "Other", "status": "Active"},
	]

	partition = grow_analytics.partition_grows(grows)

	assert [grow["id"] for grow in partition.active] == ["a"]
	assert [grow["id"] for grow in partition.stored] == ["s"]
	assert [grow["id"] for grow in partition.archived] == ["x", "e", "o"]


def test_merge_grows_prefers_archived_copy() -> None:
	active = [{"id": "g1", "stage": "Fruiting"}, {"id": "g2", "stage": "Colonizing"}]
	archived = [{"id": "g1", "stage": "Fruiting", "archived": True}]

	merged = grow_analytics.merge_grows(active, archived)

	assert len(merged) == 2
	assert merged[0]["archived"] is True


def test_reference_date_priority() -> None:
	grow = {
		"stageDates": {"Inoculated": "not a date"},
		"inoculationDate": "2026-02-01",
		"createdAt": "2026-03-01T00:00:00Z",
	}
	assert grow_analytics.resolve_reference_date(grow) == datetime(2026, 2, 1, tzinfo=UTC)
	assert grow_analytics.resolve_reference_date({"startDate": {"seconds": 0}}) == datetime(1970, 1, 1, tzinfo=UTC)
	assert grow_analytics.resolve_reference_date({}) is None


def test_yield_totals_prefers_flushes_over_legacy_scalars() -> None:
	assert grow_analytics.yield_totals({"flushes": [{"wet": 100, "dry": 10}, {"wet": "50"}], "wetYield": 999}) == (150, 10)
	assert grow_analytics.yield_totals({"harvest": {"flushes": [{"wet": 20, "dry": 2}]}}) == (20, 2)
	assert grow_analytics.yield_totals({"flushes": [], "wetYield": "300", "dryYield": 30}) == (300, 30)


def test_average_yield_excludes_zero_yield_grows() -> None:
	grows = [
		{"strain": "GT", "flushes": [{"wet": 100, "dry": 10}]},
		{"strain": "GT ", "flushes": [{"wet": 0, "dry": 0}]},
	]

	rows = grow_analytics.average_yield_per_strain(grows)

	assert len(rows) == 1
	assert rows[0].name == "GT"
	assert (rows[0].wet, rows[0].dry, rows[0].count) == (100, 10, 1)


def test_stage_distribution_over_active_grows() -> None:
	grows = [
		{"id": "1", "stage": "Inoculated", "status": "Active"},
		{"id": "2", "stage": "Fruiting", "status": "Active"},
		{"id": "3", "stage": "Harvested", "status": "Archived"},
	]

	report = grow_analytics.build_report(grows, now=NOW)

	assert {row.name: row.value for row in report.stage_counts} == {"Inoculated": 1, "Fruiting": 1}


def test_stage_distribution_defaults_empty_stage_label() -> None:
	rows = grow_analytics.stage_distribution([{"stage": ""}, {"stage": None}])
	assert [(row.name, row.value) for row in rows] == [("Active", 2)]


def test_cost_per_grow_label_fallbacks() -> None:
	rows = grow_analytics.cost_per_grow(
		[
			{"id": "abcdef123", "abbreviation": "GT1", "cost": "12.5"},
			{"id": "abcdef123", "strain": "Penis Envy"},
			{"id": "abcdef123"},
		]
	)
	assert [(row.name, row.cost) for row in rows] == [("GT1", 12.5), ("Penis Envy", 0), ("abcdef", 0)]


def test_supply_usage_with_recipe_fallback_and_limit() -> None:
	grows = [
		{"recipeItems": [{"name": "Rye"}, {"name": "Gypsum"}]},
		{"recipeItems": [{"name": "Rye"}, {}]},
		{"recipeId": "r1"},
		{"recipe": {"id": "missing"}},
	]
	recipes = [{"id": "r1", "items": [{"name": "Coir"}, {"name": "Rye"}]}]

	rows = grow_analytics.supply_usage(grows, recipes)

	assert [(row.name, row.count) for row in rows] == [("Rye", 3), ("Gypsum", 1), ("Unknown", 1), ("Coir", 1)]
	assert len(grow_analytics.supply_usage([{"recipeItems": [{"name": str(i)} for i in range(15)]}])) == 10


def test_stage_transitions_bucket_by_utc_month() -> None:
	grows = [
		{"stageDates": {"Inoculated": "2026-01-31T23:30:00-02:00", "Colonizing": "2026-01-15"}},
		{"stageDates": {"Fruiting": {"seconds": 1_767_225_600}, "Harvested": "garbage"}},
	]

	rows = grow_analytics.stage_transitions_by_month(grows)

	assert [(row.month, row.count) for row in rows] == [("2026-01", 2), ("2026-02", 1)]


def test_overview_summary() -> None:
	grows = [
		{"strain": "GT", "cost": 10.111, "stageDates": {"Inoculated": "2026-06-05T12:00:00Z"}},
		{"strain": "GT", "cost": "5", "createdAt": datetime(2026, 6, 11, 12, tzinfo=UTC)},
		{"cost": None},
	]

	summary = grow_analytics.overview(grows, now=NOW)

	assert summary.total_active == 3
	assert summary.unique_strains == 2
	assert summary.running_cost == 15.11
	assert summary.avg_age_days == 7


def test_filter_by_strain_and_inclusive_date_range() -> None:
	grows = [
		{"id": "a", "strain": "GT", "stage": "Colonizing", "createdAt": "2026-05-31T23:59:59Z"},
		{"id": "b", "strain": "GT", "stage": "Colonizing", "createdAt": "2026-05-01T00:00:00Z"},
		{"id": "c", "strain": "PE", "stage": "Colonizing", "createdAt": "2026-05-10T00:00:00Z"},
		{"id": "d", "strain": "GT", "stage": "Colonizing"},
	]
	grow_filter = GrowFilter(strain="GT", date_from=date(2026, 5, 1), date_to=date(2026, 5, 31))

	assert [grow["id"] for grow in grows if grow_filter.matches(grow)] == ["a", "b"]
	assert GrowFilter(strain="GT").matches(grows[3]) is True


def test_contamination_rate_sorted_descending() -> None:
	grows = [
		{"strain": "GT", "stage": "Contaminated"},
		{"strain": "GT", "stage": "Fruiting"},
		{"strain": "PE", "contaminated": True},
		{"stage": "Colonizing"},
	]

	rows = grow_analytics.contamination_rate(grows)

	assert [(row.name, row.rate, row.bad, row.total) for row in rows] == [
		("PE", 100, 1, 1),
		("GT", 50, 1, 2),
		("Unknown", 0, 0, 1),
	]


def test_time_to_stage_medians() -> None:
	grows = [
		{
			"strain": "GT",
			"stageDates": {"Inoculated": "2026-01-01", "Colonized": "2026-01-15", "Fruiting": "2026-01-20", "Harvested": "2026-01-27"},
		},
		{"strain": "GT", "stageDates": {"Inoculated": "2026-02-01", "Colonized": "2026-02-21"}},
		{"strain": "PE", "stageDates": {}},
	]

	rows = {row.name: row for row in grow_analytics.time_to_stage(grows)}

	assert rows["GT"].inoc_to_colonized == 17
	assert rows["GT"].colonized_to_fruiting == 5
	assert rows["GT"].fruiting_to_harvested == 7
	assert rows["PE"].inoc_to_colonized == 0


def test_yield_by_grow_only_harvested_or_archived() -> None:
	grows = [
		{"id": "1", "strain": "GT", "stage": "Harvested", "flushes": [{"wet": 10, "dry": 1}]},
		{"id": "2", "strain": "PE", "archived": True, "flushes": [{"wet": 5}]},
		{"id": "3", "strain": "GT", "stage": "Fruiting", "flushes": [{"wet": 99}]},
		{"id": "4", "strain": "GT", "stage": "Harvested"},
	]

	rows = grow_analytics.yield_by_grow(grows)

	assert [(row.name, row.wet, row.dry) for row in rows] == [("GT", 10, 1), ("PE", 5, 0)]


def test_build_report_show_all_includes_archived() -> None:
	active = [
		{"id": "1", "strain": "GT", "stage": "Fruiting", "cost": 5},
		{"id": "2", "strain": "GT", "stage": "Harvested", "status": "Archived", "cost": 7},
	]
	archived = [{"id": "3", "strain": "PE", "stage": "Consumed", "archived": True, "cost": 3}]

	default = grow_analytics.build_report(active, archived, now=NOW)
	everything = grow_analytics.build_report(active, archived, show_all=True, now=NOW)

	assert [row.cost for row in default.grow_costs] == [5]
	assert sorted(row.cost for row in everything.grow_costs) == [3, 5, 7]
	assert everything.overview.total_active == 1
	assert everything.filters.show_all is True

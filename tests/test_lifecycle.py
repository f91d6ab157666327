from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from app.models.enums import GrowStageEnum, GrowStatusEnum, GrowTypeEnum
from app.services import lifecycle
from app.services.lifecycle import (
	InvalidFlushIndexError,
	MissingGrowIdError,
	PreconditionViolation,
	StoredTypeChangeError,
	StoreNotAllowedError,
)
from app.services.grow_analytics import is_active_grow, is_archived_like

NOW = datetime(2026, 3, 9, 18, 22, 10, tzinfo=UTC)


@pytest.mark.parametrize(
	("raw", "expected"),
	[
		("Inoculated", GrowStageEnum.inoculated),
		("inoculation", GrowStageEnum.inoculated),
		("  COLONIZING ", GrowStageEnum.colonizing),
		("fully colonized", GrowStageEnum.colonized),
		("Fruiting", GrowStageEnum.fruiting),
		("harvest done", GrowStageEnum.harvested),
		("Consumed", GrowStageEnum.consumed),
		("contam!", GrowStageEnum.contaminated),
		("pinning", GrowStageEnum.other),
		("", GrowStageEnum.other),
		(None, GrowStageEnum.other),
	],
)
def test_normalize_stage(raw: object, expected: GrowStageEnum) -> None:
	assert lifecycle.normalize_stage(raw) == expected


def test_normalize_status_defaults_to_active() -> None:
	assert lifecycle.normalize_status("stored") == GrowStatusEnum.stored
	assert lifecycle.normalize_status(" ARCHIVED ") == GrowStatusEnum.archived
	assert lifecycle.normalize_status("mystery") == GrowStatusEnum.active
	assert lifecycle.normalize_status(None) == GrowStatusEnum.active


@pytest.mark.parametrize(
	("raw", "expected"),
	[
		("Agar plate", GrowTypeEnum.agar),
		("plates", GrowTypeEnum.agar),
		("LC", GrowTypeEnum.lc),
		("Liquid Culture", GrowTypeEnum.lc),
		("grain jar", GrowTypeEnum.grain_jar),
		("Jar", GrowTypeEnum.grain_jar),
		("Monotub", GrowTypeEnum.bulk),
		("spawn bag", GrowTypeEnum.bulk),
		("Bulk", GrowTypeEnum.bulk),
		("outdoor bed", GrowTypeEnum.other),
	],
)
def test_normalize_type(raw: str, expected: GrowTypeEnum) -> None:
	assert lifecycle.normalize_type(raw) == expected


@pytest.mark.parametrize(
	("current", "expected"),
	[
		("Inoculated", "Colonizing"),
		("Colonizing", "Colonized"),
		("Colonized", "Fruiting"),
		("Fruiting", "Harvested"),
		("Harvested", "Consumed"),
		("inoc", "Colonizing"),
	],
)
def test_advance_stage_proposes_next_stage(current: str, expected: str) -> None:
	patch = lifecycle.advance_stage({"id": "g1", "stage": current}, now=NOW)

	assert patch is not None
	assert patch.grow_id == "g1"
	assert patch.changes == {"stage": expected, f"stageDates.{expected}": NOW.isoformat()}


@pytest.mark.parametrize("current", ["Consumed", "Contaminated", "Other", "something else", None])
def test_advance_stage_is_noop_at_terminal_stages(current: object) -> None:
	assert lifecycle.advance_stage({"id": "g1", "stage": current}, now=NOW) is None


def test_advance_stage_uses_explicit_date_only_value() -> None:
	patch = lifecycle.advance_stage({"id": "g1", "stage": "Colonized"}, at=date(2026, 4, 2), now=NOW)

	assert patch is not None
	assert patch.changes["stageDates.Fruiting"] == "2026-04-02"


def test_advance_stage_never_touches_other_stage_dates() -> None:
	grow = {"id": "g1", "stage": "Colonizing", "stageDates": {"Inoculated": "2026-03-01"}}

	patch = lifecycle.advance_stage(grow, now=NOW)

	assert patch is not None
	assert set(patch.changes) == {"stage", "stageDates.Colonized"}


@pytest.mark.parametrize("grow", [{}, {"id": None}, {"id": "  "}])
def test_missing_grow_id_is_rejected(grow: dict[str, object]) -> None:
	with pytest.raises(MissingGrowIdError) as excinfo:
		lifecycle.advance_stage({**grow, "stage": "Inoculated"})
	assert excinfo.value.code == "grow_id_missing"


def test_missing_grow_id_is_rejected_even_for_noop() -> None:
	with pytest.raises(MissingGrowIdError):
		lifecycle.advance_stage({"stage": "Consumed"})


def test_toggle_archive() -> None:
	assert lifecycle.toggle_archive("Archived") == GrowStatusEnum.active
	assert lifecycle.toggle_archive("Active") == GrowStatusEnum.archived
	assert lifecycle.toggle_archive("Stored") == GrowStatusEnum.archived
	assert lifecycle.toggle_archive(None) == GrowStatusEnum.archived

	once = lifecycle.toggle_archive("Stored")
	assert lifecycle.toggle_archive(lifecycle.toggle_archive(once)) == once


@pytest.mark.parametrize("status", ["Active", "Stored", "Archived", None])
def test_toggle_store_rejects_bulk_regardless_of_status(status: object) -> None:
	with pytest.raises(StoreNotAllowedError) as excinfo:
		lifecycle.toggle_store(status, "Bulk")

	assert isinstance(excinfo.value, PreconditionViolation)
	assert "cannot store a Bulk-type grow" in str(excinfo.value)


def test_toggle_store_cycles_for_cultures() -> None:
	assert lifecycle.toggle_store("Active", "Agar") == GrowStatusEnum.stored
	assert lifecycle.toggle_store("Stored", "liquid culture") == GrowStatusEnum.active
	assert lifecycle.toggle_store("whatever", "LC") == GrowStatusEnum.stored


def test_archive_patch_writes_archive_markers() -> None:
	archived = lifecycle.archive_patch({"id": "g1", "status": "Active"}, now=NOW)
	assert archived.changes == {"status": "Archived", "archived": True, "archivedAt": NOW.isoformat()}

	restored = lifecycle.archive_patch({"id": "g1", "status": "Archived"}, now=NOW)
	assert restored.changes == {"status": "Active", "archived": False, "archivedAt": None}


def test_unarchive_clears_legacy_archive_markers() -> None:
	grow = {"id": "g1", "status": "Archived", "stage": "Fruiting", "isArchived": True, "archivedOn": "2025-12-01"}

	patch = lifecycle.archive_patch(grow, now=NOW)

	assert patch.changes == {
		"status": "Active",
		"archived": False,
		"archivedAt": None,
		"archivedOn": None,
		"isArchived": False,
	}
	assert is_active_grow({**grow, **patch.changes}) is True


def test_archive_toggle_reads_legacy_flags_over_status() -> None:
	grow = {"id": "g1", "status": "Active", "stage": "Fruiting", "archived": True}

	assert lifecycle.available_actions(grow).archive_label == "Unarchive"
	patch = lifecycle.archive_patch(grow, now=NOW)
	assert patch.changes["status"] == "Active"
	assert is_archived_like({**grow, **patch.changes}) is False


def test_store_patch_records_location_only_when_storing() -> None:
	stored = lifecycle.store_patch({"id": "g1", "type": "Agar", "status": "Active"}, location=" Fridge A ")
	assert stored.changes["status"] == "Stored"
	assert stored.changes["storageLocation"] == "Fridge A"

	unstored = lifecycle.store_patch({"id": "g1", "type": "Agar", "status": "Stored"}, location="Fridge A")
	assert unstored.changes["status"] == "Active"
	assert "storageLocation" not in unstored.changes


def test_finish_harvest_archives_without_touching_stage_or_flushes() -> None:
	patch = lifecycle.finish_harvest({"id": "g1", "stage": "Fruiting", "flushes": [{"wet": 10, "dry": 1}]})

	assert patch.changes == {"status": "Archived", "archived": True}


def test_set_stage_allows_unconstrained_moves() -> None:
	backwards = lifecycle.set_stage({"id": "g1", "stage": "Fruiting"}, "colonizing", now=NOW)
	assert backwards.changes == {"stage": "Colonizing", "stageDates.Colonizing": NOW.isoformat()}

	contaminated = lifecycle.set_stage({"id": "g1", "stage": "Inoculated"}, "Contaminated", stamp=False)
	assert contaminated.changes == {"stage": "Contaminated"}


@pytest.mark.parametrize("stage", ["pinning", "Other", ""])
def test_set_stage_rejects_unknown_stage(stage: str) -> None:
	with pytest.raises(ValueError, match="unknown stage"):
		lifecycle.set_stage({"id": "g1", "stage": "Fruiting"}, stage, now=NOW)


def test_change_type_keeps_stored_cultures_storable() -> None:
	stored = {"id": "g1", "type": "Agar", "status": "Stored"}

	assert lifecycle.change_type(stored, "liquid culture").changes == {"type": "LC"}
	with pytest.raises(StoredTypeChangeError) as excinfo:
		lifecycle.change_type(stored, "monotub")
	assert excinfo.value.code == "stored_type_change"
	assert isinstance(excinfo.value, PreconditionViolation)

	active = {"id": "g1", "type": "Agar", "status": "Active"}
	assert lifecycle.change_type(active, "Bulk").changes == {"type": "Bulk"}


def test_set_stage_date_rejects_unknown_stage() -> None:
	patch = lifecycle.set_stage_date({"id": "g1"}, "fruiting", date(2026, 4, 1))
	assert patch.changes == {"stageDates.Fruiting": "2026-04-01"}

	with pytest.raises(ValueError):
		lifecycle.set_stage_date({"id": "g1"}, "pinning", date(2026, 4, 1))


def test_add_then_update_flush_preserves_other_entries() -> None:
	first = {"wet": 120, "dry": 12, "createdAt": "2026-04-01T00:00:00+00:00"}
	grow = {"id": "g1", "flushes": [first]}

	appended = lifecycle.add_flush_patch(grow, now=NOW).changes["flushes"]
	assert appended[0] == first
	assert appended[1] == {"wet": 0, "dry": 0, "createdAt": NOW.isoformat()}

	updated = lifecycle.update_flush_patch({**grow, "flushes": appended}, 1, {"wet": 80}).changes["flushes"]
	assert updated[0] == first
	assert updated[1] == {"wet": 80, "dry": 0, "createdAt": NOW.isoformat()}
	assert grow["flushes"] == [first]


def test_update_flush_out_of_bounds_creates_target_entry() -> None:
	updated = lifecycle.update_flush([], 2, {"dry": 5})

	assert len(updated) == 3
	assert updated[2] == {"wet": 0, "dry": 5}


def test_update_flush_rejects_negative_index() -> None:
	with pytest.raises(InvalidFlushIndexError):
		lifecycle.update_flush([], -1, {"wet": 1})


def test_flushes_read_from_legacy_harvest_location() -> None:
	grow = {"id": "g1", "harvest": {"flushes": [{"wet": 50, "dry": 5}]}}

	patch = lifecycle.update_flush_patch(grow, 0, {"dry": 6})

	assert patch.changes["flushes"] == [{"wet": 50, "dry": 6}]


def test_available_actions() -> None:
	agar = lifecycle.available_actions({"stage": "Colonizing", "type": "Agar", "status": "Stored"})
	assert agar.next_stage == GrowStageEnum.colonized
	assert agar.store_label == "Unstore"
	assert agar.archive_label == "Archive"

	bulk = lifecycle.available_actions({"stage": "Consumed", "type": "Monotub", "status": "Archived"})
	assert bulk.can_advance is False
	assert bulk.can_store is False
	assert bulk.archive_label == "Unarchive"


def test_new_grow_document_defaults() -> None:
	document = lifecycle.new_grow_document(" Golden Teacher ", "grain jar", now=NOW)

	assert document["strain"] == "Golden Teacher"
	assert document["type"] == "Grain Jar"
	assert document["stage"] == "Inoculated"
	assert document["status"] == "Active"
	assert document["stageDates"] == {}
	assert document["createdAt"] == NOW

	dated = lifecycle.new_grow_document("GT", "Agar", inoculated_at=date(2026, 3, 1), now=NOW)
	assert dated["stageDates"] == {"Inoculated": "2026-03-01"}


def test_stage_label() -> None:
	assert lifecycle.stage_label(None) == "General"
	assert lifecycle.stage_label("general") == "General"
	assert lifecycle.stage_label("fruit") == "Fruiting"


def test_scenario_agar_culture_advance_and_store_cycle() -> None:
	grow = {"id": "g1", "stage": "Inoculated", "type": "Agar", "status": "Active"}

	advanced = lifecycle.advance_stage(grow, now=NOW)
	assert advanced is not None
	grow = {**grow, "stage": advanced.changes["stage"], "stageDates": {"Colonizing": advanced.changes["stageDates.Colonizing"]}}
	assert grow["stage"] == "Colonizing"
	assert "Colonizing" in grow["stageDates"]
	assert "Inoculated" not in grow["stageDates"]

	stored = lifecycle.store_patch(grow)
	grow = {**grow, "status": stored.changes["status"]}
	assert grow["status"] == "Stored"

	unstored = lifecycle.store_patch(grow)
	assert unstored.changes["status"] == "Active"

"""Closed enum types for grows, strains and users.

Grow ``stage`` / ``status`` / ``type`` columns are stored as free text (legacy
documents may hold anything); these enums are what the lifecycle
normalization functions map that text onto.  ``UserRoleEnum`` backs a native
PostgreSQL enum.
"""

from enum import StrEnum

# ── Grow enums ──────────────────────────────────────────────────────────────


class GrowStageEnum(StrEnum):
    """Cultivation phase of a grow."""

    inoculated = "Inoculated"
    colonizing = "Colonizing"
    colonized = "Colonized"
    fruiting = "Fruiting"
    harvested = "Harvested"
    consumed = "Consumed"
    contaminated = "Contaminated"
    other = "Other"


class GrowStatusEnum(StrEnum):
    """Administrative state of a grow."""

    active = "Active"
    archived = "Archived"
    stored = "Stored"
    contaminated = "Contaminated"


class GrowTypeEnum(StrEnum):
    """Substrate / container family."""

    agar = "Agar"
    lc = "LC"
    grain_jar = "Grain Jar"
    bulk = "Bulk"
    other = "Other"


# ── Auth enums ──────────────────────────────────────────────────────────────


class UserRoleEnum(StrEnum):
    """User authorization roles."""

    admin = "admin"
    grower = "grower"
    viewer = "viewer"

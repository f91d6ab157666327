"""ORM model registry: importing this module registers every table on Base.metadata.

Alembic ``env.py`` imports ``Base`` from here (not from ``base.py``) and
registers ``app.auth.models.User`` alongside it.  Application code can also do::

    from app.models import Grow, GrowNote, Strain, ...
"""

# ── Base & Mixins ───────────────────────────────────────────────────────────
from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# ── Enums ───────────────────────────────────────────────────────────────────
from app.models.enums import (
    GrowStageEnum,
    GrowStatusEnum,
    GrowTypeEnum,
    UserRoleEnum,
)

# ── Grow models ─────────────────────────────────────────────────────────────
from app.models.grow import Grow, GrowNote, GrowPhoto

# ── Strain reference ────────────────────────────────────────────────────────
from app.models.strain import Strain

# ── Supplies, recipes & ledger ──────────────────────────────────────────────
from app.models.supply import Recipe, Supply, SupplyAudit

__all__ = [
    # Base & mixins
    "Base",
    # Grows
    "Grow",
    "GrowNote",
    "GrowPhoto",
    # Enums
    "GrowStageEnum",
    "GrowStatusEnum",
    "GrowTypeEnum",
    # Supplies & recipes
    "Recipe",
    # Strains
    "Strain",
    "Supply",
    "SupplyAudit",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "UserRoleEnum",
]

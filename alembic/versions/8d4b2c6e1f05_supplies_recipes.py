"""supplies_recipes

Revision ID: 8d4b2c6e1f05
Revises: 3c1f0e7a2b91
Create Date: 2026-10-19 00:00:00.000000

Adds the supplies, recipes and supply_audits tables.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "8d4b2c6e1f05"
down_revision: str | None = "3c1f0e7a2b91"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("uuid_generate_v4()"),
        nullable=False,
    )


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # supplies
    op.create_table(
        "supplies",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("supply_type", sa.String(64), server_default=sa.text("''"), nullable=False),
        sa.Column("unit", sa.String(32), server_default=sa.text("''"), nullable=False),
        sa.Column("cost", sa.Numeric(12, 4), server_default=sa.text("0"), nullable=False),
        sa.Column("quantity", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("reorder_link", sa.String(2048), nullable=True),
        sa.Column("low_stock_threshold", sa.Float(), server_default=sa.text("0"), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_supplies_user_id", "supplies", ["user_id"])

    # recipes
    op.create_table(
        "recipes",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("tags", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("items", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("instructions", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("yield_qty", sa.Float(), server_default=sa.text("1"), nullable=False),
        sa.Column("yield_unit", sa.String(32), nullable=True),
        sa.Column("serving_label", sa.String(64), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_recipes_user_id", "recipes", ["user_id"])

    # supply_audits
    op.create_table(
        "supply_audits",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("supply_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("amount", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("unit", sa.String(32), nullable=True),
        sa.Column("unit_cost_applied", sa.Numeric(12, 4), nullable=True),
        sa.Column("total_cost_applied", sa.Numeric(12, 4), nullable=True),
        sa.Column("recipe_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("recipe_name", sa.String(255), nullable=True),
        sa.Column("grow_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("note", sa.Text(), server_default=sa.text("''"), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_supply_audits_user_created", "supply_audits", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_supply_audits_user_created", table_name="supply_audits")
    op.drop_table("supply_audits")
    op.drop_index("ix_recipes_user_id", table_name="recipes")
    op.drop_table("recipes")
    op.drop_index("ix_supplies_user_id", table_name="supplies")
    op.drop_table("supplies")

"""initial_schema

Revision ID: 3c1f0e7a2b91
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the users, strains, grows, grow_notes and grow_photos tables plus the
user_role enum type.  Enables the uuid-ossp extension for server-side UUID
defaults.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c1f0e7a2b91"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUM_USER_ROLE = postgresql.ENUM(
    "admin", "grower", "viewer", name="user_role", create_type=False
)


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
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')
    ENUM_USER_ROLE.create(op.get_bind(), checkfirst=True)

    # users
    op.create_table(
        "users",
        _id_column(),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("hashed_password", sa.String(128), nullable=False),
        sa.Column(
            "role",
            ENUM_USER_ROLE,
            server_default="grower",
            nullable=False,
        ),
        sa.Column(
            "is_active",
            sa.Boolean(),
            server_default=sa.text("true"),
            nullable=False,
        ),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # strains
    op.create_table(
        "strains",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("scientific_name", sa.String(255), nullable=True),
        sa.Column("photo_url", sa.String(2048), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "name", name="uq_strains_user_name"),
    )
    op.create_index("ix_strains_user_id", "strains", ["user_id"])

    # grows
    op.create_table(
        "grows",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("strain", sa.String(255), server_default=sa.text("''"), nullable=False),
        sa.Column("abbreviation", sa.String(32), nullable=True),
        sa.Column("grow_type", sa.String(64), server_default=sa.text("'Other'"), nullable=False),
        sa.Column("stage", sa.String(64), server_default=sa.text("'Inoculated'"), nullable=False),
        sa.Column("status", sa.String(64), server_default=sa.text("'Active'"), nullable=False),
        sa.Column(
            "stage_dates",
            postgresql.JSONB(),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column(
            "flushes",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("recipe_items", postgresql.JSONB(), nullable=True),
        sa.Column(
            "extra",
            postgresql.JSONB(),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_grows_user_status", "grows", ["user_id", "status"])

    # grow_notes
    op.create_table(
        "grow_notes",
        _id_column(),
        sa.Column("grow_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("stage", sa.String(64), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["grow_id"], ["grows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_grow_notes_grow_id", "grow_notes", ["grow_id"])

    # grow_photos
    op.create_table(
        "grow_photos",
        _id_column(),
        sa.Column("grow_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("stage", sa.String(64), nullable=False),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("caption", sa.String(500), server_default=sa.text("''"), nullable=False),
        sa.Column("storage_path", sa.String(1024), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["grow_id"], ["grows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_grow_photos_grow_id", "grow_photos", ["grow_id"])


def downgrade() -> None:
    # ── Drop tables in reverse dependency order ─────────────────────────
    op.drop_table("grow_photos")
    op.drop_table("grow_notes")
    op.drop_table("grows")
    op.drop_table("strains")
    op.drop_table("users")

    ENUM_USER_ROLE.drop(op.get_bind(), checkfirst=True)

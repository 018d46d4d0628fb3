"""Initial schema: licenses, activations and the plugin catalog mirror.

Revision ID: 0001
Revises: None
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "licenses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("license_key", sa.String(64), nullable=False, unique=True, index=True),
        sa.Column("plugin_id", sa.String(255), nullable=False, index=True),
        sa.Column("customer_id", sa.String(32), nullable=False, index=True),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("license_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active", index=True),
        sa.Column("issued_at", sa.DateTime, nullable=False),
        sa.Column("expires_at", sa.DateTime, nullable=False, index=True),
        sa.Column("activated_at", sa.DateTime, nullable=True),
        sa.Column("activated_by", sa.String(255), nullable=True),
        sa.Column("activation_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_activations", sa.Integer, nullable=False, server_default="1"),
        sa.Column("metadata", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )

    op.create_table(
        "license_activations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "license_id", sa.String(36), sa.ForeignKey("licenses.id"),
            nullable=False, index=True,
        ),
        sa.Column("machine_id", sa.String(255), nullable=False),
        sa.Column("ip_address", sa.String(45), server_default=""),
        sa.Column("user_agent", sa.Text, server_default=""),
        sa.Column("activated_at", sa.DateTime, nullable=False),
        sa.Column("last_seen_at", sa.DateTime, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active", index=True),
    )
    op.create_index(
        "ix_license_activations_license_machine",
        "license_activations",
        ["license_id", "machine_id"],
    )

    op.create_table(
        "plugins",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("name", sa.String(255), server_default=""),
        sa.Column("category", sa.String(100), server_default=""),
        sa.Column("health", sa.String(50), server_default=""),
        sa.Column("enabled", sa.Boolean, server_default=sa.false()),
        sa.Column("running", sa.Boolean, server_default=sa.false()),
        sa.Column("synced_at", sa.DateTime),
    )


def downgrade() -> None:
    op.drop_table("plugins")
    op.drop_index("ix_license_activations_license_machine", table_name="license_activations")
    op.drop_table("license_activations")
    op.drop_table("licenses")

"""Tenant store

Revision ID: 0001_tenants
Revises: 
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "0001_tenants"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    deployment_flavor = sa.Enum("template", "custom-html", name="deployment_flavor")

    bind = op.get_bind()
    deployment_flavor.create(bind, checkfirst=True)

    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("subdomain", sa.String(length=63), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("links", sa.JSON(), nullable=False),
        sa.Column("customization", sa.JSON(), nullable=False),
        sa.Column("logo_url", sa.String(length=512), nullable=True),
        sa.Column("deployment_flavor", deployment_flavor, nullable=False),
        sa.Column("raw_html", sa.Text(), nullable=True),
        sa.Column("is_deployed", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_tenants_created", "tenants", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_tenants_created", table_name="tenants")
    op.drop_table("tenants")
    sa.Enum(name="deployment_flavor").drop(op.get_bind(), checkfirst=True)

"""Initial schema - all tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

Creates:
- influencers: Tenant-owned profiles with their HeyGen template
- api_keys: Per-tenant HeyGen credential
- webhooks: Inbound trigger and automation subscriber registrations
- contents: Generation job records
- plans / users: Billing plans and account entitlements
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=True).with_variant(sa.String(36), "sqlite")


def upgrade() -> None:
    op.create_table(
        "influencers",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("template_id", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_influencers_user_id", "influencers", ["user_id"])

    op.create_table(
        "api_keys",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False, unique=True),
        sa.Column("heygen_key", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )

    # -------------------------------------------------------------------------
    # webhooks - kind: inbound-trigger | automation-subscriber
    # -------------------------------------------------------------------------
    op.create_table(
        "webhooks",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("event", sa.String(128), nullable=False),
        sa.Column("influencer_id", UUID, sa.ForeignKey("influencers.id"), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False, server_default="inbound-trigger"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_webhooks_user_id", "webhooks", ["user_id"])
    op.create_index("ix_webhooks_influencer_id", "webhooks", ["influencer_id"])
    op.create_index("idx_webhooks_kind_active", "webhooks", ["kind", "active"])

    op.create_table(
        "contents",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("influencer_id", UUID, sa.ForeignKey("influencers.id"), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("script", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="generating"),
        sa.Column("video_url", sa.String(2048), nullable=True),
        sa.Column("video_id", sa.String(128), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_contents_influencer_id", "contents", ["influencer_id"])
    op.create_index("ix_contents_video_id", "contents", ["video_id"])

    op.create_table(
        "plans",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("plan_name", sa.String(64), nullable=False),
        sa.Column("price_id", sa.String(128), nullable=False, unique=True),
        sa.Column("price", sa.Integer(), nullable=True),
    )

    op.create_table(
        "users",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("current_plan", UUID, sa.ForeignKey("plans.id"), nullable=True),
        sa.Column("price_id", sa.String(128), nullable=True),
        sa.Column("subscription_id", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_table("plans")
    op.drop_index("ix_contents_video_id", table_name="contents")
    op.drop_index("ix_contents_influencer_id", table_name="contents")
    op.drop_table("contents")
    op.drop_index("idx_webhooks_kind_active", table_name="webhooks")
    op.drop_index("ix_webhooks_influencer_id", table_name="webhooks")
    op.drop_index("ix_webhooks_user_id", table_name="webhooks")
    op.drop_table("webhooks")
    op.drop_table("api_keys")
    op.drop_index("ix_influencers_user_id", table_name="influencers")
    op.drop_table("influencers")

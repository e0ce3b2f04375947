"""Catalog schema: categories, products, plans, plan restrictions, default plans.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # ── Standalone tables (no FKs) ─────────────────────────────────────

    op.create_table(
        "categories",
        sa.Column("description", sa.String(200), nullable=False),
        sa.Column("logo", sa.String(500)),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "financing_plans",
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("installments", sa.Integer(), nullable=False),
        sa.Column("surcharge_pct", sa.Numeric(6, 2)),
        sa.Column("min_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("max_amount", sa.Numeric(12, 2)),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Tables with FK to categories / plans ───────────────────────────

    op.create_table(
        "products",
        sa.Column("code", sa.String(50), index=True),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "category_id", sa.Integer(), sa.ForeignKey("categories.id", ondelete="SET NULL"), index=True
        ),
        sa.Column("applies_to_all_plans", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("applies_to_category_only", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column(
            "applies_to_special_plan_only",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
            comment="Curated manually, never gets default plans on its own",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "plan_categories",
        sa.Column(
            "plan_id", sa.Integer(), sa.ForeignKey("financing_plans.id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column(
            "category_id", sa.Integer(), sa.ForeignKey("categories.id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plan_id", "category_id", name="uq_plan_categories_plan_category"),
    )

    # ── Derived rows (maintained by the eligibility engine) ────────────

    op.create_table(
        "product_plan_defaults",
        sa.Column(
            "product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column(
            "plan_id", sa.Integer(), sa.ForeignKey("financing_plans.id", ondelete="CASCADE"),
            nullable=False, index=True,
        ),
        sa.Column(
            "active", sa.Boolean(), server_default=sa.text("true"), nullable=False,
            comment="Mirrors financing_plans.active",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "plan_id", name="uq_product_plan_defaults_product_plan"),
    )


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table("product_plan_defaults")
    op.drop_table("plan_categories")
    op.drop_table("products")
    op.drop_table("financing_plans")
    op.drop_table("categories")

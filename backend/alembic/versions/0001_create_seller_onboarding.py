"""Create seller_onboarding table.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

One row per seller going through the onboarding wizard. Step columns
are nullable except the step 1 shop info, which is written on insert.
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

import sqlalchemy as sa
from alembic import op


def upgrade() -> None:
    op.create_table(
        "seller_onboarding",
        sa.Column("id", sa.String(36), primary_key=True),
        # Step 1: shop info
        sa.Column("shop_name", sa.String(255), nullable=False),
        sa.Column("country", sa.String(100), nullable=False),
        sa.Column("state", sa.String(100), nullable=False),
        sa.Column("postal_code", sa.String(20), nullable=False),
        sa.Column("address1", sa.String(255), nullable=False),
        sa.Column("address2", sa.String(255)),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(30), nullable=False),
        sa.Column("logo_path", sa.String(500)),
        sa.Column("aspect_ratio", sa.String(10)),
        # Step 2: inventory
        sa.Column("has_inventory", sa.Boolean()),
        sa.Column("inventory_file", sa.String(500)),
        sa.Column("include_drafts", sa.Boolean()),
        sa.Column("made_to_order", sa.Boolean()),
        sa.Column("integration_access", sa.Boolean()),
        # Step 3: shipping
        sa.Column("shipping_method", sa.String(20)),
        sa.Column("fixed_cost", sa.Numeric(10, 2)),
        sa.Column("free_threshold", sa.Numeric(10, 2)),
        sa.Column("package_size", sa.String(10)),
        sa.Column("offer_pickup", sa.Boolean()),
        sa.Column("return_days", sa.Integer()),
        sa.Column("cancel_days", sa.Integer()),
        sa.Column("call_scheduled", sa.Boolean()),
        # Step 4: shop details
        sa.Column("description", sa.Text()),
        sa.Column("badges", sa.JSON()),
        sa.Column("facebook", sa.String(500)),
        sa.Column("instagram", sa.String(500)),
        sa.Column("pinterest", sa.String(500)),
        sa.Column("skipped_optional", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("completed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("submitted_at", sa.DateTime()),
        sa.Column("progress", sa.Integer(), server_default="25", nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("progress IN (25, 50, 75, 100)", name="ck_seller_onboarding_progress"),
    )
    op.create_index("ix_seller_onboarding_progress", "seller_onboarding", ["progress"])


def downgrade() -> None:
    op.drop_index("ix_seller_onboarding_progress", table_name="seller_onboarding")
    op.drop_table("seller_onboarding")

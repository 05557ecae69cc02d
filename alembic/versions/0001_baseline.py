"""Baseline: curated_listings table.

Revision ID: 0001
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "curated_listings",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("vin", sa.String(17), nullable=False),
        sa.Column("make", sa.String(50), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("body_type", sa.String(50)),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("mileage", sa.Integer(), nullable=False),
        sa.Column("title_status", sa.String(20)),
        sa.Column("accident_count", sa.Integer()),
        sa.Column("owner_count", sa.Integer()),
        sa.Column("is_rental", sa.Boolean()),
        sa.Column("is_fleet", sa.Boolean()),
        sa.Column("has_lien", sa.Boolean()),
        sa.Column("flood_damage", sa.Boolean()),
        sa.Column("state_of_origin", sa.String(2)),
        sa.Column("current_location", sa.String(200)),
        sa.Column("distance_miles", sa.Float()),
        sa.Column("dealer_name", sa.String(200)),
        sa.Column("flag_rust_concern", sa.Boolean()),
        sa.Column("priority_score", sa.Integer()),
        sa.Column("source_platform", sa.String(50)),
        sa.Column("source_url", sa.Text()),
        sa.Column("source_listing_id", sa.String(100)),
        sa.Column("images_url", sa.JSON()),
        sa.Column("reviewed_by_user", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("user_rating", sa.Integer()),
        sa.Column("user_notes", sa.Text()),
        sa.Column("first_seen_at", sa.DateTime()),
        sa.Column("last_updated_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_index("ix_curated_listings_vin", "curated_listings", ["vin"], unique=True)
    op.create_index("ix_curated_make_model", "curated_listings", ["make", "model"])


def downgrade() -> None:
    op.drop_index("ix_curated_make_model", table_name="curated_listings")
    op.drop_index("ix_curated_listings_vin", table_name="curated_listings")
    op.drop_table("curated_listings")

"""Create hotel_details metadata table

Revision ID: 001_hotel_details
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision = "001_hotel_details"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "hotel_details",
        sa.Column("hotel_id", sa.String(20), primary_key=True),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("rating", sa.Numeric(3, 1), nullable=True),
        sa.Column("amenities", JSONB, nullable=True),
        sa.Column(
            "last_updated",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    # Backfill job scans for hotels still waiting on enrichment
    op.create_index(
        "ix_hotel_details_unenriched",
        "hotel_details",
        ["hotel_id"],
        postgresql_where=sa.text("rating IS NULL OR amenities IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("ix_hotel_details_unenriched")
    op.drop_table("hotel_details")

"""create locations tables

Revision ID: 7b2e91c4d0a1
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from __future__ import annotations

from typing import Sequence

from alembic import op
import sqlalchemy as sa

revision: str = "7b2e91c4d0a1"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "locations",
        sa.Column("location_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("country_code", sa.String(length=8), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "name",
            "country_code",
            name="uq_locations_name_country",
        ),
    )

    op.create_table(
        "user_favorite_locations",
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column(
            "display_order",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(
            ["location_id"],
            ["locations.location_id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("user_id", "location_id"),
        sa.UniqueConstraint(
            "user_id",
            "display_order",
            name="uq_user_favorite_locations_user_order",
        ),
    )

    op.create_index(
        "ix_user_favorite_locations_location_id",
        "user_favorite_locations",
        ["location_id"],
    )
    op.create_index(
        "ix_user_favorite_locations_user_order_created",
        "user_favorite_locations",
        ["user_id", "display_order", "created_at"],
    )

    op.create_table(
        "weather_forecasts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("forecast_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "payload",
            sa.JSON(),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column(
            "fetched_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(
            ["location_id"],
            ["locations.location_id"],
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_weather_forecasts_location_id",
        "weather_forecasts",
        ["location_id"],
    )

    op.create_table(
        "weather_cache",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("cache_key", sa.String(length=255), nullable=False),
        sa.Column(
            "payload",
            sa.JSON(),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["location_id"],
            ["locations.location_id"],
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_weather_cache_location_id",
        "weather_cache",
        ["location_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_weather_cache_location_id", table_name="weather_cache")
    op.drop_table("weather_cache")
    op.drop_index("ix_weather_forecasts_location_id", table_name="weather_forecasts")
    op.drop_table("weather_forecasts")
    op.drop_index(
        "ix_user_favorite_locations_user_order_created",
        table_name="user_favorite_locations",
    )
    op.drop_index(
        "ix_user_favorite_locations_location_id",
        table_name="user_favorite_locations",
    )
    op.drop_table("user_favorite_locations")
    op.drop_table("locations")

"""initial_schema

Revision ID: 3b7e1c9a4f02
Revises: 
Create Date: 2026-10-19 09:12:31.518204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b7e1c9a4f02'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create initial tables: user, ride, booking."""
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("company", sa.String(), nullable=True),
        sa.Column("gender", sa.String(), nullable=True),
        sa.Column("rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_rides_as_driver", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_company", "user", ["company"])
    op.create_table(
        "ride",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("driver_id", sa.Integer(), nullable=False),
        sa.Column("origin_lat", sa.Float(), nullable=False),
        sa.Column("origin_lng", sa.Float(), nullable=False),
        sa.Column("origin_address", sa.String(), nullable=True),
        sa.Column("dest_lat", sa.Float(), nullable=False),
        sa.Column("dest_lng", sa.Float(), nullable=False),
        sa.Column("dest_address", sa.String(), nullable=True),
        sa.Column("polyline", sa.String(), nullable=False, server_default=""),
        sa.Column("geohashes", sa.JSON(), nullable=True),
        sa.Column("departure_time", sa.DateTime(), nullable=False),
        sa.Column("total_seats", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("price_per_seat", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(), nullable=False, server_default="SCHEDULED"),
        sa.Column("same_company_only", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("gender_preference", sa.String(), nullable=False, server_default="ANY"),
        sa.Column("smoking_allowed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pets_allowed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("music_allowed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["driver_id"], ["user.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ride_driver_id", "ride", ["driver_id"])
    op.create_index("ix_ride_departure_time", "ride", ["departure_time"])
    op.create_index("ix_ride_status", "ride", ["status"])
    op.create_table(
        "booking",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ride_id", sa.Integer(), nullable=False),
        sa.Column("passenger_id", sa.Integer(), nullable=False),
        sa.Column("seats_booked", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(), nullable=False, server_default="PENDING"),
        sa.Column("pickup_lat", sa.Float(), nullable=False),
        sa.Column("pickup_lng", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["ride_id"], ["ride.id"]),
        sa.ForeignKeyConstraint(["passenger_id"], ["user.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_booking_ride_id", "booking", ["ride_id"])
    op.create_index("ix_booking_passenger_id", "booking", ["passenger_id"])
    op.create_index("ix_booking_status", "booking", ["status"])
    op.create_index("ix_booking_created_at", "booking", ["created_at"])


def downgrade() -> None:
    """Drop all initial tables."""
    op.drop_index("ix_booking_created_at", table_name="booking")
    op.drop_index("ix_booking_status", table_name="booking")
    op.drop_index("ix_booking_passenger_id", table_name="booking")
    op.drop_index("ix_booking_ride_id", table_name="booking")
    op.drop_table("booking")
    op.drop_index("ix_ride_status", table_name="ride")
    op.drop_index("ix_ride_departure_time", table_name="ride")
    op.drop_index("ix_ride_driver_id", table_name="ride")
    op.drop_table("ride")
    op.drop_index("ix_user_company", table_name="user")
    op.drop_table("user")

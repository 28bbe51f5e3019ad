"""Initial schema: trips and bookings.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── trips ─────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("driver_id", sa.String(64), nullable=False),
        sa.Column("origin_name", sa.String(255), nullable=False),
        sa.Column("origin_desc", sa.Text, nullable=False, server_default=""),
        sa.Column("dest_name", sa.String(255), nullable=False),
        sa.Column("dest_desc", sa.Text, nullable=False, server_default=""),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("arrival_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("price", sa.Float, nullable=False, server_default="0"),
        sa.Column("seats", sa.Integer, nullable=False),
        sa.Column("available_seats", sa.Integer, nullable=False),
        sa.Column("vehicle_info", sa.String(255), nullable=False, server_default=""),
        sa.Column(
            "status",
            sa.Enum(
                "PREPARING",
                "URGENT",
                "ON_TRIP",
                "FULL",
                "COMPLETED",
                "CANCELLED",
                name="tripstatus",
            ),
            server_default="PREPARING",
            nullable=False,
        ),
        sa.Column(
            "kind",
            sa.Enum("OFFER", "REQUEST", name="tripkind"),
            server_default="OFFER",
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("seats > 0", name="ck_trips_seats_positive"),
        sa.CheckConstraint(
            "available_seats >= 0", name="ck_trips_available_non_negative"
        ),
        sa.CheckConstraint(
            "available_seats <= seats", name="ck_trips_available_within_seats"
        ),
    )
    op.create_index("idx_trips_status", "trips", ["status"])
    op.create_index("idx_trips_driver", "trips", ["driver_id"])
    op.create_index("idx_trips_departure", "trips", ["departure_time"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("trip_id", sa.String(36), nullable=False),
        sa.Column("passenger_id", sa.String(64), nullable=False),
        sa.Column("passenger_phone", sa.String(32), nullable=False, server_default=""),
        sa.Column("note", sa.Text, nullable=False, server_default=""),
        sa.Column("seats_booked", sa.Integer, nullable=False),
        sa.Column("total_price", sa.Float, nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "CONFIRMED",
                "PICKED_UP",
                "ON_BOARD",
                "CANCELLED",
                "REJECTED",
                "EXPIRED",
                name="bookingstatus",
            ),
            server_default="PENDING",
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("seats_booked > 0", name="ck_bookings_seats_positive"),
    )
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_trip", "bookings", ["trip_id"])
    op.create_index("idx_bookings_passenger", "bookings", ["passenger_id"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("trips")
    op.execute("DROP TYPE IF EXISTS bookingstatus")
    op.execute("DROP TYPE IF EXISTS tripkind")
    op.execute("DROP TYPE IF EXISTS tripstatus")

"""Initial schema: users, vehicles, bookings and feedback.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("role", sa.String(40), nullable=False, server_default="CUSTOMER"),
        sa.Column("is_super_admin", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("approved", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("vehicle_type", sa.String(40), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_users_role", "users", ["role"])

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("driver_name", sa.String(120), nullable=True),
        sa.Column("vehicle_name", sa.String(120), nullable=False),
        sa.Column("number", sa.String(32), unique=True, nullable=False),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("capacity", sa.Float, nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("location", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_vehicles_driver", "vehicles", ["driver_id"])
    op.create_index("idx_vehicles_active", "vehicles", ["active"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("customer_name", sa.String(120), nullable=True),
        sa.Column("customer_address", sa.Text, nullable=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("driver_name", sa.String(120), nullable=True),
        sa.Column("vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=True),
        sa.Column("vehicle_name", sa.String(120), nullable=True),
        sa.Column("vehicle_type", sa.String(40), nullable=True),
        sa.Column("status", sa.String(40), nullable=False, server_default="Requested"),
        sa.Column("pickup_location", sa.JSON, nullable=False),
        sa.Column("destination_location", sa.JSON, nullable=False),
        sa.Column("distance", sa.Float, nullable=False, server_default="0"),
        sa.Column("price", sa.Float, nullable=False, server_default="0"),
        sa.Column("pickup_otp", sa.String(6), nullable=True),
        sa.Column("otp_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("driver_location", sa.JSON, nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_customer", "bookings", ["customer_id"])
    op.create_index("idx_bookings_driver", "bookings", ["driver_id"])
    op.create_index("idx_bookings_vehicle", "bookings", ["vehicle_id"])

    # ── feedback ──────────────────────────────────────────────────────
    op.create_table(
        "feedback",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id",
            sa.Integer,
            sa.ForeignKey("bookings.id"),
            unique=True,
            nullable=False,
        ),
        sa.Column("customer_id", sa.Integer, nullable=False),
        sa.Column("customer_name", sa.String(120), nullable=True),
        sa.Column("driver_id", sa.Integer, nullable=False),
        sa.Column("driver_name", sa.String(120), nullable=True),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("comment", sa.Text, nullable=False, server_default=""),
        sa.Column("is_edited", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_feedback_driver_created", "feedback", ["driver_id", "created_at"])
    op.create_index("idx_feedback_customer", "feedback", ["customer_id"])


def downgrade() -> None:
    op.drop_table("feedback")
    op.drop_table("bookings")
    op.drop_table("vehicles")
    op.drop_table("users")

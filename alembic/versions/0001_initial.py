"""users, cars, bookings, audit logs

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

# Canonical values plus the legacy ones old rows may still carry.
BOOKING_STATUSES = ("PENDING_PAYMENT", "CONFIRMED", "ACTIVE", "COMPLETED", "CANCELLED", "EXPIRED",
                    "PENDING", "ADMIN_NOTIFIED", "REJECTED")
PAYMENT_STATUSES = ("UNPAID", "PAID", "FAILED", "REFUNDED", "SIMULATED_PAID")


def _in(column: str, values) -> str:
    return "%s IN (%s)" % (column, ", ".join(f"'{v}'" for v in values))


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("phone_number", sa.String(length=30), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=30), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "cars",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("make", sa.String(length=60), nullable=False),
        sa.Column("model", sa.String(length=60), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("registration_number", sa.String(length=20), nullable=False),
        sa.Column("daily_price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="AVAILABLE"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint(_in("status", ("AVAILABLE", "RENTED", "MAINTENANCE")), name="cars_status_check"),
    )
    op.create_index("ix_cars_make", "cars", ["make"])
    op.create_index("ix_cars_registration_number", "cars", ["registration_number"], unique=True)
    op.create_index("ix_cars_status", "cars", ["status"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("car_id", sa.String(length=36), sa.ForeignKey("cars.id"), nullable=False),
        sa.Column("pickup_date", sa.Date(), nullable=False),
        sa.Column("return_date", sa.Date(), nullable=False),
        sa.Column("pickup_location", sa.String(length=100), nullable=False),
        sa.Column("return_location", sa.String(length=100), nullable=True),
        sa.Column("special_requests", sa.String(length=500), nullable=True),
        sa.Column("daily_price", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Integer(), nullable=False),
        sa.Column("booking_status", sa.String(length=30), nullable=False, server_default="PENDING_PAYMENT"),
        sa.Column("payment_status", sa.String(length=30), nullable=False, server_default="UNPAID"),
        sa.Column("payment_method", sa.String(length=40), nullable=True),
        sa.Column("payment_reference", sa.String(length=64), nullable=True),
        sa.Column("payment_simulated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notified_at", sa.DateTime(timezone=True), nullable=True),
        # Made NOT NULL by 0002 once legacy NULLs are backfilled.
        sa.Column("admin_notification_read", sa.Boolean(), nullable=True),
        sa.Column("admin_notification_read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("return_date > pickup_date", name="ck_bookings_return_after_pickup"),
        sa.CheckConstraint(_in("booking_status", BOOKING_STATUSES), name="bookings_booking_status_check"),
        sa.CheckConstraint(_in("payment_status", PAYMENT_STATUSES), name="bookings_payment_status_check"),
    )
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_car_id", "bookings", ["car_id"])
    op.create_index("ix_bookings_booking_status", "bookings", ["booking_status"])
    op.create_index("ix_bookings_payment_expires_at", "bookings", ["payment_expires_at"])
    op.create_index("ix_bookings_car_dates", "bookings", ["car_id", "pickup_date", "return_date"])
    op.create_index("ix_bookings_status_payment_expiry", "bookings",
                    ["booking_status", "payment_status", "payment_expires_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor_user_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=40), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("details_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_actor_user_id", "audit_logs", ["actor_user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("bookings")
    op.drop_table("cars")
    op.drop_table("users")

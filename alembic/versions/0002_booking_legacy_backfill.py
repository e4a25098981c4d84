"""backfill legacy booking values

Revision ID: 0002_booking_legacy_backfill
Revises: 0001_initial
Create Date: 2026-10-18

- admin_notification_read NULL -> false, then NOT NULL with default false
- booking_status PENDING -> PENDING_PAYMENT
- payment_status SIMULATED_PAID -> PAID
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_booking_legacy_backfill"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("UPDATE bookings SET admin_notification_read = false WHERE admin_notification_read IS NULL")
    with op.batch_alter_table("bookings") as batch:
        batch.alter_column(
            "admin_notification_read",
            existing_type=sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        )

    op.execute("UPDATE bookings SET booking_status = 'PENDING_PAYMENT' WHERE booking_status = 'PENDING'")
    op.execute("UPDATE bookings SET payment_status = 'PAID' WHERE payment_status = 'SIMULATED_PAID'")


def downgrade() -> None:
    # Status backfills are not reversible; only relax the column.
    with op.batch_alter_table("bookings") as batch:
        batch.alter_column(
            "admin_notification_read",
            existing_type=sa.Boolean(),
            nullable=True,
            server_default=None,
        )

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3b1f0c2a9d47"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "studios",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("currency", sa.String(), nullable=False, server_default="LKR"),
    )
    op.create_index("ix_studios_id", "studios", ["id"])
    op.create_index("ix_studios_owner_id", "studios", ["owner_id"])

    op.create_table(
        "availability_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("studio_id", sa.Integer(), sa.ForeignKey("studios.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("weekdays", sa.String(), nullable=True),
        sa.Column("rule_date", sa.Date(), nullable=True),
        sa.Column("start_minute", sa.Integer(), nullable=False),
        sa.Column("end_minute", sa.Integer(), nullable=False),
        sa.CheckConstraint("start_minute < end_minute", name="ck_rule_start_before_end"),
    )
    op.create_index("ix_availability_rules_id", "availability_rules", ["id"])
    op.create_index("ix_availability_rules_studio_id", "availability_rules", ["studio_id"])

    op.create_table(
        "studio_services",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("studio_id", sa.Integer(), sa.ForeignKey("studios.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("duration_mins", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("description", sa.String(), nullable=True),
        sa.UniqueConstraint("studio_id", "name", name="uq_studio_service_name"),
    )
    op.create_index("ix_studio_services_id", "studio_services", ["id"])

    op.create_table(
        "equipment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("studio_id", sa.Integer(), sa.ForeignKey("studios.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("day_rate", sa.Float(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="available"),
    )
    op.create_index("ix_equipment_id", "equipment", ["id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("reference", sa.String(), nullable=False, unique=True),
        sa.Column("order_id", sa.String(), nullable=True, unique=True),
        sa.Column("studio_id", sa.Integer(), sa.ForeignKey("studios.id"), nullable=False),
        sa.Column("customer_id", sa.String(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("end_at", sa.DateTime(), nullable=False),
        sa.Column("selected_slots", sa.JSON(), nullable=False),
        sa.Column("services", sa.JSON(), nullable=False),
        sa.Column("equipment", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="reservation_pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("service_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("equipment_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(), nullable=False, server_default="LKR"),
        sa.Column("payment_id", sa.String(), nullable=True),
        sa.Column("cancellation_reason", sa.String(), nullable=True),
        sa.Column("refund_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("end_at > start_at", name="ck_booking_end_after_start"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_studio_id", "bookings", ["studio_id"])
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_studio_window", "bookings", ["studio_id", "start_at", "end_at", "status"])

    op.create_table(
        "booking_slots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("studio_id", sa.Integer(), sa.ForeignKey("studios.id"), nullable=False),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("slot_start", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("studio_id", "slot_start", name="uq_studio_slot_start"),
    )
    op.create_index("ix_booking_slots_id", "booking_slots", ["id"])
    op.create_index("ix_booking_slots_booking_id", "booking_slots", ["booking_id"])

    op.create_table(
        "payment_reconciliations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("order_id", sa.String(), nullable=True),
        sa.Column("external_payment_id", sa.String(), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="open"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_payment_reconciliations_id", "payment_reconciliations", ["id"])
    op.create_index("ix_payment_reconciliations_booking_id", "payment_reconciliations", ["booking_id"])


def downgrade():
    op.drop_table("payment_reconciliations")
    op.drop_table("booking_slots")
    op.drop_table("bookings")
    op.drop_table("equipment")
    op.drop_table("studio_services")
    op.drop_table("availability_rules")
    op.drop_table("studios")

"""Appointments, commandas, payment instruments and catalog

Revision ID: 20261019_salondesk_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_salondesk_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "payment_instruments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("instrument_type", sa.String(length=16), nullable=False),
        sa.Column("card_brand", sa.String(length=32), nullable=True),
        sa.Column("percentage_fee", sa.Integer(), nullable=False),
        sa.Column("fixed_fee", sa.Integer(), nullable=False),
        sa.Column("settlement_days", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("percentage_fee >= 0 AND percentage_fee <= 10000", name="ck_instrument_pct_fee"),
        sa.CheckConstraint("fixed_fee >= 0", name="ck_instrument_fixed_fee"),
        sa.CheckConstraint("settlement_days >= 0", name="ck_instrument_settlement_days"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("payment_instruments", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_payment_instruments_instrument_type"), ["instrument_type"], unique=False)
        batch_op.create_index(batch_op.f("ix_payment_instruments_is_active"), ["is_active"], unique=False)

    op.create_table(
        "catalog_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("ref", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("unit_price", sa.Integer(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("unit_price >= 0", name="ck_catalog_unit_price"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("kind", "ref", name="uq_catalog_kind_ref"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("catalog_entries", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_catalog_entries_kind"), ["kind"], unique=False)

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_ref", sa.String(length=64), nullable=False),
        sa.Column("professional_ref", sa.String(length=64), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancel_reason", sa.String(length=255), nullable=True),
        sa.Column("commanda_id", sa.Integer(), nullable=True),
        sa.Column("rescheduled_from_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("service_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("service_finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("no_show_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "status IN ('CREATED','CONFIRMED','CHECKED_IN','IN_SERVICE',"
            "'AWAITING_PAYMENT','DONE','NO_SHOW','CANCELED')",
            name="ck_appointments_status",
        ),
        sa.ForeignKeyConstraint(["rescheduled_from_id"], ["appointments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("appointments", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_appointments_customer_ref"), ["customer_ref"], unique=False)
        batch_op.create_index(batch_op.f("ix_appointments_professional_ref"), ["professional_ref"], unique=False)
        batch_op.create_index(batch_op.f("ix_appointments_status"), ["status"], unique=False)
        batch_op.create_index(batch_op.f("ix_appointments_commanda_id"), ["commanda_id"], unique=False)
        batch_op.create_index("ix_appointments_professional_start", ["professional_ref", "start_at"], unique=False)

    op.create_table(
        "appointment_services",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("appointment_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("service_ref", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("price_at_booking", sa.Integer(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("appointment_services", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_appointment_services_appointment_id"), ["appointment_id"], unique=False)

    op.create_table(
        "commandas",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("appointment_id", sa.Integer(), nullable=True),
        sa.Column("customer_ref", sa.String(length=64), nullable=True),
        sa.Column("professional_ref", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("discount_amount", sa.Integer(), nullable=False),
        sa.Column("leave_change_as_tip", sa.Boolean(), nullable=False),
        sa.Column("allow_debt", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("close_mode", sa.String(length=24), nullable=True),
        sa.Column("change_amount", sa.Integer(), nullable=True),
        sa.Column("tip_amount", sa.Integer(), nullable=True),
        sa.Column("debt_amount", sa.Integer(), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by", sa.String(length=64), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.CheckConstraint("discount_amount >= 0", name="ck_commandas_discount"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("commandas", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_commandas_appointment_id"), ["appointment_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_commandas_customer_ref"), ["customer_ref"], unique=False)
        batch_op.create_index(batch_op.f("ix_commandas_status"), ["status"], unique=False)
        batch_op.create_index("ix_commandas_status_created", ["status", "created_at"], unique=False)

    # appointments <-> commandas reference each other; add this side once both exist
    with op.batch_alter_table("appointments", schema=None) as batch_op:
        batch_op.create_foreign_key("fk_appointments_commanda_id", "commandas", ["commanda_id"], ["id"])

    op.create_table(
        "commanda_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("commanda_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("catalog_ref", sa.String(length=64), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("unit_price", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("discount_basis", sa.String(length=16), nullable=False),
        sa.Column("discount_value", sa.Integer(), nullable=False),
        sa.Column("discount_percentage", sa.Integer(), nullable=False),
        sa.Column("final_price", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_commanda_items_quantity"),
        sa.CheckConstraint("final_price >= 0", name="ck_commanda_items_final_price"),
        sa.ForeignKeyConstraint(["commanda_id"], ["commandas.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("commanda_items", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_commanda_items_commanda_id"), ["commanda_id"], unique=False)

    op.create_table(
        "commanda_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("commanda_id", sa.Integer(), nullable=False),
        sa.Column("instrument_id", sa.Integer(), nullable=False),
        sa.Column("instrument_type", sa.String(length=16), nullable=False),
        sa.Column("instrument_name", sa.String(length=100), nullable=False),
        sa.Column("percentage_fee", sa.Integer(), nullable=False),
        sa.Column("fixed_fee", sa.Integer(), nullable=False),
        sa.Column("settlement_days", sa.Integer(), nullable=False),
        sa.Column("gross_amount", sa.Integer(), nullable=False),
        sa.Column("fee_amount", sa.Integer(), nullable=False),
        sa.Column("net_amount", sa.Integer(), nullable=False),
        sa.Column("expected_settlement_on", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.CheckConstraint("gross_amount > 0", name="ck_commanda_payments_gross"),
        sa.CheckConstraint("net_amount >= 0", name="ck_commanda_payments_net"),
        sa.ForeignKeyConstraint(["commanda_id"], ["commandas.id"]),
        sa.ForeignKeyConstraint(["instrument_id"], ["payment_instruments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("commanda_payments", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_commanda_payments_commanda_id"), ["commanda_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_commanda_payments_instrument_id"), ["instrument_id"], unique=False)

    op.create_table(
        "workflow_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("appointment_id", sa.Integer(), nullable=True),
        sa.Column("commanda_id", sa.Integer(), nullable=True),
        sa.Column("actor", sa.String(length=64), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("workflow_events", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_workflow_events_event_type"), ["event_type"], unique=False)
        batch_op.create_index(batch_op.f("ix_workflow_events_appointment_id"), ["appointment_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_workflow_events_commanda_id"), ["commanda_id"], unique=False)
        batch_op.create_index("ix_workflow_events_entity", ["entity_type", "entity_id"], unique=False)
        batch_op.create_index("ix_workflow_events_occurred", ["occurred_at"], unique=False)


def downgrade():
    op.drop_table("workflow_events")
    op.drop_table("commanda_payments")
    op.drop_table("commanda_items")
    with op.batch_alter_table("appointments", schema=None) as batch_op:
        batch_op.drop_constraint("fk_appointments_commanda_id", type_="foreignkey")
    op.drop_table("commandas")
    op.drop_table("appointment_services")
    op.drop_table("appointments")
    op.drop_table("catalog_entries")
    op.drop_table("payment_instruments")

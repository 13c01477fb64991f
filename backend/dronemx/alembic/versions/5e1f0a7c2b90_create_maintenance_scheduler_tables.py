"""create fleet, work order and maintenance scheduler tables

Revision ID: 5e1f0a7c2b90
Revises:
Create Date: 2025-06-01 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "5e1f0a7c2b90"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "aircraft",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("registration", sa.String(length=20), nullable=False),
        sa.Column("serial_number", sa.String(length=50), nullable=True),
        sa.Column("model", sa.String(length=100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("commissioned_on", sa.Date(), nullable=True),
        sa.Column("commissioning_flight_hours", sa.Float(), nullable=False),
        sa.Column("commissioning_flight_cycles", sa.Float(), nullable=False),
        sa.Column("commissioning_battery_cycles", sa.Float(), nullable=False),
        sa.Column("total_flight_hours", sa.Float(), nullable=False),
        sa.Column("total_flight_cycles", sa.Float(), nullable=False),
        sa.Column("total_battery_cycles", sa.Float(), nullable=False),
        *_timestamps(),
        sa.Column("retired_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("total_flight_hours >= 0", name="ck_aircraft_total_flight_hours_nonneg"),
        sa.CheckConstraint("total_flight_cycles >= 0", name="ck_aircraft_total_flight_cycles_nonneg"),
        sa.CheckConstraint("total_battery_cycles >= 0", name="ck_aircraft_total_battery_cycles_nonneg"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("registration"),
    )
    op.create_index("ix_aircraft_serial_number", "aircraft", ["serial_number"])
    op.create_index("ix_aircraft_model_active", "aircraft", ["model", "is_active"])

    op.create_table(
        "work_orders",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("wo_number", sa.String(length=64), nullable=False),
        sa.Column("aircraft_id", sa.String(length=36), nullable=False),
        sa.Column("schedule_id", sa.String(length=36), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("task_code", sa.String(length=64), nullable=True),
        sa.Column(
            "wo_type",
            sa.Enum("SCHEDULED", "UNSCHEDULED", name="work_order_type_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "DRAFT",
                "RELEASED",
                "IN_PROGRESS",
                "CLOSED",
                "CANCELLED",
                name="work_order_status_enum",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column(
            "priority",
            sa.Enum("LOW", "MEDIUM", "HIGH", "CRITICAL", name="work_order_priority_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("assigned_role", sa.String(length=32), nullable=True),
        sa.Column("is_rii", sa.Boolean(), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at_flight_hours", sa.Float(), nullable=True),
        sa.Column("closed_at_flight_cycles", sa.Float(), nullable=True),
        sa.Column("closed_at_battery_cycles", sa.Float(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["aircraft_id"], ["aircraft.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("wo_number"),
    )
    op.create_index("ix_work_orders_aircraft_status", "work_orders", ["aircraft_id", "status"])
    op.create_index("ix_work_orders_schedule", "work_orders", ["schedule_id"])

    op.create_table(
        "maintenance_programs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("aircraft_model", sa.String(length=100), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_index(
        "ix_maintenance_programs_model_active", "maintenance_programs", ["aircraft_model", "is_active"]
    )

    op.create_table(
        "maintenance_triggers",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("program_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "trigger_type",
            sa.Enum(
                "CALENDAR_DAYS",
                "FLIGHT_HOURS",
                "FLIGHT_CYCLES",
                "BATTERY_CYCLES",
                name="maintenance_trigger_type_enum",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("interval_value", sa.Float(), nullable=False),
        sa.Column("warning_threshold", sa.Float(), nullable=False),
        sa.Column("recurring", sa.Boolean(), nullable=False),
        sa.Column(
            "priority",
            sa.Enum(
                "LOW", "MEDIUM", "HIGH", "CRITICAL", name="maintenance_trigger_priority_enum", native_enum=False
            ),
            nullable=False,
        ),
        sa.Column("required_role", sa.String(length=32), nullable=False),
        sa.Column("is_rii", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("interval_value > 0", name="ck_maintenance_triggers_interval_pos"),
        sa.CheckConstraint("warning_threshold > 0", name="ck_maintenance_triggers_warning_pos"),
        sa.CheckConstraint(
            "warning_threshold < interval_value", name="ck_maintenance_triggers_warning_below_interval"
        ),
        sa.ForeignKeyConstraint(["program_id"], ["maintenance_programs.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_index("ix_maintenance_triggers_program_id", "maintenance_triggers", ["program_id"])
    op.create_index(
        "ix_maintenance_triggers_program_active", "maintenance_triggers", ["program_id", "is_active"]
    )

    op.create_table(
        "maintenance_schedules",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("aircraft_id", sa.String(length=36), nullable=False),
        sa.Column("trigger_id", sa.String(length=36), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "DUE",
                "OVERDUE",
                "COMPLETED",
                name="maintenance_schedule_status_enum",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("last_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_completed_at_value", sa.Float(), nullable=True),
        sa.Column("due_at_date", sa.Date(), nullable=True),
        sa.Column("due_at_value", sa.Float(), nullable=True),
        sa.Column("linked_work_order_id", sa.String(length=36), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "(due_at_date IS NULL) <> (due_at_value IS NULL)",
            name="ck_maintenance_schedules_single_due_point",
        ),
        sa.ForeignKeyConstraint(["aircraft_id"], ["aircraft.id"]),
        sa.ForeignKeyConstraint(["trigger_id"], ["maintenance_triggers.id"]),
        sa.ForeignKeyConstraint(["linked_work_order_id"], ["work_orders.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("aircraft_id", "trigger_id", name="uq_maintenance_schedules_aircraft_trigger"),
    )
    op.create_index("ix_maintenance_schedules_aircraft_id", "maintenance_schedules", ["aircraft_id"])
    op.create_index("ix_maintenance_schedules_trigger_id", "maintenance_schedules", ["trigger_id"])
    op.create_index(
        "ix_maintenance_schedules_active_status", "maintenance_schedules", ["is_active", "status"]
    )
    op.create_index(
        "ix_maintenance_schedules_linked_work_order", "maintenance_schedules", ["linked_work_order_id"]
    )

    op.create_table(
        "maintenance_compliance_records",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("schedule_id", sa.String(length=36), nullable=False),
        sa.Column("aircraft_id", sa.String(length=36), nullable=False),
        sa.Column("trigger_id", sa.String(length=36), nullable=False),
        sa.Column("work_order_id", sa.String(length=36), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at_value", sa.Float(), nullable=True),
        sa.Column("previous_due_at_date", sa.Date(), nullable=True),
        sa.Column("previous_due_at_value", sa.Float(), nullable=True),
        sa.Column("next_due_at_date", sa.Date(), nullable=True),
        sa.Column("next_due_at_value", sa.Float(), nullable=True),
        sa.Column("status_before", sa.String(length=16), nullable=False),
        sa.Column("status_after", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["schedule_id"], ["maintenance_schedules.id"]),
        sa.ForeignKeyConstraint(["aircraft_id"], ["aircraft.id"]),
        sa.ForeignKeyConstraint(["trigger_id"], ["maintenance_triggers.id"]),
        sa.ForeignKeyConstraint(["work_order_id"], ["work_orders.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_maintenance_compliance_records_aircraft_id", "maintenance_compliance_records", ["aircraft_id"]
    )
    op.create_index(
        "ix_maintenance_compliance_schedule_completed",
        "maintenance_compliance_records",
        ["schedule_id", "completed_at"],
    )


def downgrade() -> None:
    op.drop_table("maintenance_compliance_records")
    op.drop_table("maintenance_schedules")
    op.drop_table("maintenance_triggers")
    op.drop_table("maintenance_programs")
    op.drop_table("work_orders")
    op.drop_table("aircraft")

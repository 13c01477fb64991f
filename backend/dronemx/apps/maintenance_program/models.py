# backend/dronemx/apps/maintenance_program/models.py
#
# ORM models for the maintenance scheduling core:
# - MaintenanceProgram          : named set of requirements for an aircraft model.
# - MaintenanceTrigger          : one recurring (or one-time) requirement, defined
#                                 by a unit (hours / cycles / battery cycles / days)
#                                 and an interval in that unit.
# - MaintenanceSchedule         : live per-aircraft instance of a trigger holding
#                                 the due point and persisted status.
# - MaintenanceComplianceRecord : append-only history of completions.
#
# Notes:
# - Non-native enums avoid Postgres enum lifecycle headaches in migrations.
# - MaintenanceSchedule carries an optimistic version column; every writer goes
#   through store.update_schedule_atomically().
# - Exactly one of due_at_date / due_at_value is set (check constraint).

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from ...database import Base
from ...utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TriggerTypeEnum(str, Enum):
    """Unit in which a trigger's interval and warning threshold are expressed."""
    CALENDAR_DAYS = "CALENDAR_DAYS"    # every N days
    FLIGHT_HOURS = "FLIGHT_HOURS"      # every N flight hours
    FLIGHT_CYCLES = "FLIGHT_CYCLES"    # every N take-off/landing cycles
    BATTERY_CYCLES = "BATTERY_CYCLES"  # every N battery charge cycles

    @property
    def is_calendar(self) -> bool:
        return self is TriggerTypeEnum.CALENDAR_DAYS


class ScheduleStatusEnum(str, Enum):
    """Persisted schedule status. WARNING is an alert tier only, never stored."""
    PENDING = "PENDING"
    DUE = "DUE"
    OVERDUE = "OVERDUE"
    COMPLETED = "COMPLETED"


class TriggerPriorityEnum(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


WILDCARD_MODEL = "*"


# ---------------------------------------------------------------------------
# MaintenanceProgram
# ---------------------------------------------------------------------------


class MaintenanceProgram(Base):
    """
    Maintenance program for an aircraft model (or every model via "*").

    Programs are deactivated, never deleted, so schedules and compliance
    records keep their references.
    """

    __tablename__ = "maintenance_programs"

    __table_args__ = (
        Index("ix_maintenance_programs_model_active", "aircraft_model", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    name = Column(String(255), nullable=False)
    code = Column(String(64), nullable=False, unique=True)
    description = Column(Text, nullable=True)

    aircraft_model = Column(String(100), nullable=False, default=WILDCARD_MODEL)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    triggers = relationship(
        "MaintenanceTrigger",
        back_populates="program",
        order_by="MaintenanceTrigger.code",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<MaintenanceProgram id={self.id} code={self.code} model={self.aircraft_model}>"


# ---------------------------------------------------------------------------
# MaintenanceTrigger
# ---------------------------------------------------------------------------


class MaintenanceTrigger(Base):
    """
    A single maintenance requirement inside a program.

    `interval_value` and `warning_threshold` share the unit given by
    `trigger_type` (days for CALENDAR_DAYS). Triggers are not edited in place;
    a revised requirement is a new trigger and the old one is deactivated.
    """

    __tablename__ = "maintenance_triggers"

    __table_args__ = (
        Index("ix_maintenance_triggers_program_active", "program_id", "is_active"),
        CheckConstraint("interval_value > 0", name="ck_maintenance_triggers_interval_pos"),
        CheckConstraint("warning_threshold > 0", name="ck_maintenance_triggers_warning_pos"),
        CheckConstraint(
            "warning_threshold < interval_value",
            name="ck_maintenance_triggers_warning_below_interval",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    program_id = Column(
        String(36),
        ForeignKey("maintenance_programs.id"),
        nullable=False,
        index=True,
    )

    name = Column(String(255), nullable=False)       # e.g. "50-Hour Inspection"
    code = Column(String(64), nullable=False, unique=True)
    description = Column(Text, nullable=True)

    trigger_type = Column(
        SQLEnum(TriggerTypeEnum, name="maintenance_trigger_type_enum", native_enum=False),
        nullable=False,
    )
    interval_value = Column(Float, nullable=False)
    warning_threshold = Column(Float, nullable=False)
    recurring = Column(Boolean, nullable=False, default=True)

    # Work order template data
    priority = Column(
        SQLEnum(TriggerPriorityEnum, name="maintenance_trigger_priority_enum", native_enum=False),
        nullable=False,
        default=TriggerPriorityEnum.MEDIUM,
    )
    required_role = Column(String(32), nullable=False, default="INSPECTOR")
    is_rii = Column(Boolean, nullable=False, default=False)  # required inspection item

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    program = relationship("MaintenanceProgram", back_populates="triggers", lazy="joined")

    def __repr__(self) -> str:
        return (
            f"<MaintenanceTrigger id={self.id} code={self.code} type={self.trigger_type} "
            f"interval={self.interval_value}>"
        )


# ---------------------------------------------------------------------------
# MaintenanceSchedule
# ---------------------------------------------------------------------------


class MaintenanceSchedule(Base):
    """
    Per-aircraft instance of a trigger.

    lifecycle: PENDING -> DUE -> OVERDUE, then back to PENDING (recurring) or
    to terminal COMPLETED (one-time) through completion only.
    """

    __tablename__ = "maintenance_schedules"

    __table_args__ = (
        UniqueConstraint("aircraft_id", "trigger_id", name="uq_maintenance_schedules_aircraft_trigger"),
        Index("ix_maintenance_schedules_active_status", "is_active", "status"),
        Index("ix_maintenance_schedules_linked_work_order", "linked_work_order_id"),
        CheckConstraint(
            "(due_at_date IS NULL) <> (due_at_value IS NULL)",
            name="ck_maintenance_schedules_single_due_point",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    aircraft_id = Column(String(36), ForeignKey("aircraft.id"), nullable=False, index=True)
    trigger_id = Column(String(36), ForeignKey("maintenance_triggers.id"), nullable=False, index=True)

    status = Column(
        SQLEnum(ScheduleStatusEnum, name="maintenance_schedule_status_enum", native_enum=False),
        nullable=False,
        default=ScheduleStatusEnum.PENDING,
    )

    # Baseline of the current cycle; NULL means the commissioning/initial baseline
    last_completed_at = Column(DateTime(timezone=True), nullable=True)
    last_completed_at_value = Column(Float, nullable=True)

    # Due point: date for CALENDAR_DAYS, metric value otherwise
    due_at_date = Column(Date, nullable=True)
    due_at_value = Column(Float, nullable=True)

    linked_work_order_id = Column(String(36), ForeignKey("work_orders.id"), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": version}

    trigger = relationship("MaintenanceTrigger", lazy="joined")
    aircraft = relationship("Aircraft", lazy="joined")

    def __repr__(self) -> str:
        return (
            f"<MaintenanceSchedule id={self.id} aircraft={self.aircraft_id} "
            f"trigger={self.trigger_id} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# MaintenanceComplianceRecord
# ---------------------------------------------------------------------------


class MaintenanceComplianceRecord(Base):
    """Permanent record of one completion of a schedule's requirement."""

    __tablename__ = "maintenance_compliance_records"

    __table_args__ = (
        Index("ix_maintenance_compliance_schedule_completed", "schedule_id", "completed_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    schedule_id = Column(String(36), ForeignKey("maintenance_schedules.id"), nullable=False)
    aircraft_id = Column(String(36), ForeignKey("aircraft.id"), nullable=False, index=True)
    trigger_id = Column(String(36), ForeignKey("maintenance_triggers.id"), nullable=False)
    work_order_id = Column(String(36), ForeignKey("work_orders.id"), nullable=True)

    completed_at = Column(DateTime(timezone=True), nullable=False)
    completed_at_value = Column(Float, nullable=True)

    previous_due_at_date = Column(Date, nullable=True)
    previous_due_at_value = Column(Float, nullable=True)
    next_due_at_date = Column(Date, nullable=True)
    next_due_at_value = Column(Float, nullable=True)

    status_before = Column(String(16), nullable=False)
    status_after = Column(String(16), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

# backend/dronemx/apps/work/models.py

"""
Work module ORM models.

- WorkOrder: maintenance order for one aircraft. Scheduled work orders are
  raised by the maintenance scheduler and carry the schedule they were
  raised for; closing one completes that schedule.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from ...database import Base
from ...utils.identifiers import generate_uuid7


# ---------------------------------------------------------------------------
# Enumerations – kept as strings to match API and DB values
# ---------------------------------------------------------------------------


class WorkOrderTypeEnum(str, Enum):
    SCHEDULED = "SCHEDULED"      # raised from a maintenance schedule
    UNSCHEDULED = "UNSCHEDULED"  # ad-hoc / defect work


class WorkOrderStatusEnum(str, Enum):
    """Lifecycle state of the work order."""

    DRAFT = "DRAFT"
    RELEASED = "RELEASED"
    IN_PROGRESS = "IN_PROGRESS"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class WorkOrderPriorityEnum(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# ---------------------------------------------------------------------------
# WorkOrder
# ---------------------------------------------------------------------------


class WorkOrder(Base):
    __tablename__ = "work_orders"

    __table_args__ = (
        Index("ix_work_orders_aircraft_status", "aircraft_id", "status"),
        Index("ix_work_orders_schedule", "schedule_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    wo_number = Column(String(64), nullable=False, unique=True)

    aircraft_id = Column(String(36), ForeignKey("aircraft.id"), nullable=False)
    # No FK: maintenance_schedules already references work_orders.
    schedule_id = Column(String(36), nullable=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    task_code = Column(String(64), nullable=True)

    wo_type = Column(
        SQLEnum(WorkOrderTypeEnum, name="work_order_type_enum", native_enum=False),
        nullable=False,
        default=WorkOrderTypeEnum.UNSCHEDULED,
    )
    status = Column(
        SQLEnum(WorkOrderStatusEnum, name="work_order_status_enum", native_enum=False),
        nullable=False,
        default=WorkOrderStatusEnum.DRAFT,
    )
    priority = Column(
        SQLEnum(WorkOrderPriorityEnum, name="work_order_priority_enum", native_enum=False),
        nullable=False,
        default=WorkOrderPriorityEnum.MEDIUM,
    )

    assigned_role = Column(String(32), nullable=True)
    is_rii = Column(Boolean, nullable=False, default=False)

    # Aircraft utilisation captured when the order was closed
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closed_at_flight_hours = Column(Float, nullable=True)
    closed_at_flight_cycles = Column(Float, nullable=True)
    closed_at_battery_cycles = Column(Float, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    aircraft = relationship("Aircraft", lazy="joined")

    def __repr__(self) -> str:
        return f"<WorkOrder id={self.id} wo_number={self.wo_number} status={self.status}>"

# backend/dronemx/apps/fleet/models.py

"""
Fleet module ORM models.

- Aircraft: master record per drone airframe with its commissioning
  baseline and running utilisation totals (flight hours, flight cycles,
  battery charge cycles). The maintenance scheduler reads these through
  the metric provider in services.py; it never writes them.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    Index,
    String,
)

from ...database import Base
from ...utils.identifiers import generate_uuid7


class Aircraft(Base):
    __tablename__ = "aircraft"

    __table_args__ = (
        Index("ix_aircraft_model_active", "model", "is_active"),
        # Prevent negative totals creeping in
        CheckConstraint("total_flight_hours >= 0", name="ck_aircraft_total_flight_hours_nonneg"),
        CheckConstraint("total_flight_cycles >= 0", name="ck_aircraft_total_flight_cycles_nonneg"),
        CheckConstraint("total_battery_cycles >= 0", name="ck_aircraft_total_battery_cycles_nonneg"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    registration = Column(String(20), unique=True, nullable=False)
    serial_number = Column(String(50), nullable=True, index=True)

    # Matched against MaintenanceProgram.aircraft_model (e.g. "DJI Matrice 300 RTK")
    model = Column(String(100), nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)

    # Commissioning baseline (schedules never complied with count from here)
    commissioned_on = Column(Date, nullable=True)
    commissioning_flight_hours = Column(Float, nullable=False, default=0.0)
    commissioning_flight_cycles = Column(Float, nullable=False, default=0.0)
    commissioning_battery_cycles = Column(Float, nullable=False, default=0.0)

    # Running totals
    total_flight_hours = Column(Float, nullable=False, default=0.0)
    total_flight_cycles = Column(Float, nullable=False, default=0.0)
    total_battery_cycles = Column(Float, nullable=False, default=0.0)

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
    retired_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Aircraft id={self.id} registration={self.registration} model={self.model}>"

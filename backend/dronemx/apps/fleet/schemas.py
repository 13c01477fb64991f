from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class AircraftBase(BaseModel):
    registration: str = Field(..., min_length=1, max_length=20)
    serial_number: Optional[str] = None
    model: str = Field(..., min_length=1, max_length=100)
    commissioned_on: Optional[date] = None

    commissioning_flight_hours: float = Field(0.0, ge=0)
    commissioning_flight_cycles: float = Field(0.0, ge=0)
    commissioning_battery_cycles: float = Field(0.0, ge=0)


class AircraftCreate(AircraftBase):
    # Current totals; default to the commissioning values for a new airframe.
    total_flight_hours: Optional[float] = Field(None, ge=0)
    total_flight_cycles: Optional[float] = Field(None, ge=0)
    total_battery_cycles: Optional[float] = Field(None, ge=0)


class UtilisationRecord(BaseModel):
    flight_hours: float = Field(0.0, ge=0)
    flight_cycles: float = Field(0.0, ge=0)
    battery_cycles: float = Field(0.0, ge=0)


class AircraftRead(AircraftBase):
    id: str
    is_active: bool
    total_flight_hours: float
    total_flight_cycles: float
    total_battery_cycles: float
    created_at: datetime
    updated_at: datetime
    retired_at: Optional[datetime] = None

    class Config:
        from_attributes = True

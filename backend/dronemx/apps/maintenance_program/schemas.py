# backend/dronemx/apps/maintenance_program/schemas.py
#
# Schemas for the maintenance scheduling module:
# - Program* / Trigger*   : catalog definitions.
# - Schedule* / Compliance*: per-aircraft schedule state and its history.
# - RunSummary, Alert, WorkOrderBatchResult, InitializeResult, ScheduleCounts:
#   results of the exposed scheduler operations.

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .evaluator import AlertTypeEnum
from .models import (
    WILDCARD_MODEL,
    ScheduleStatusEnum,
    TriggerPriorityEnum,
    TriggerTypeEnum,
)


# ---------------------------------------------------------------------------
# Programs
# ---------------------------------------------------------------------------


class ProgramBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=64)
    description: Optional[str] = None
    aircraft_model: str = WILDCARD_MODEL
    is_default: bool = False


class ProgramCreate(ProgramBase):
    pass


class ProgramRead(ProgramBase):
    id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------


class TriggerBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=64)
    description: Optional[str] = None

    trigger_type: TriggerTypeEnum
    interval_value: float = Field(..., gt=0)
    warning_threshold: float = Field(..., gt=0)
    recurring: bool = True

    priority: TriggerPriorityEnum = TriggerPriorityEnum.MEDIUM
    required_role: str = "INSPECTOR"
    is_rii: bool = False


class TriggerCreate(TriggerBase):
    program_id: str

    @model_validator(mode="after")
    def _threshold_below_interval(self) -> "TriggerCreate":
        if self.warning_threshold >= self.interval_value:
            raise ValueError("warning_threshold must be smaller than interval_value")
        if self.trigger_type == TriggerTypeEnum.CALENDAR_DAYS and not float(self.interval_value).is_integer():
            raise ValueError("CALENDAR_DAYS intervals are whole days")
        return self


class TriggerRead(TriggerBase):
    id: str
    program_id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


class ScheduleRead(BaseModel):
    id: str
    aircraft_id: str
    trigger_id: str
    status: ScheduleStatusEnum
    last_completed_at: Optional[datetime] = None
    last_completed_at_value: Optional[float] = None
    due_at_date: Optional[date] = None
    due_at_value: Optional[float] = None
    linked_work_order_id: Optional[str] = None
    is_active: bool
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ComplianceRecordRead(BaseModel):
    id: str
    schedule_id: str
    aircraft_id: str
    trigger_id: str
    work_order_id: Optional[str] = None
    completed_at: datetime
    completed_at_value: Optional[float] = None
    previous_due_at_date: Optional[date] = None
    previous_due_at_value: Optional[float] = None
    next_due_at_date: Optional[date] = None
    next_due_at_value: Optional[float] = None
    status_before: str
    status_after: str

    class Config:
        from_attributes = True


class CompleteScheduleRequest(BaseModel):
    completed_at_value: Optional[float] = Field(None, ge=0)
    completed_at: Optional[datetime] = None


class BaselineModeEnum(str, Enum):
    CURRENT = "CURRENT"              # aircraft's metrics right now
    COMMISSIONING = "COMMISSIONING"  # aircraft's commissioning date / values


class InitializeResult(BaseModel):
    created: int
    schedules: List[ScheduleRead]


class ScheduleCounts(BaseModel):
    PENDING: int = 0
    DUE: int = 0
    OVERDUE: int = 0
    COMPLETED: int = 0


# ---------------------------------------------------------------------------
# Scheduler results
# ---------------------------------------------------------------------------


class ItemError(BaseModel):
    schedule_id: str
    code: str
    detail: str


class RunSummary(BaseModel):
    processed: int = 0
    updated: int = 0
    warnings: int = 0
    due: int = 0
    overdue: int = 0
    skipped: int = 0
    cancelled: bool = False
    errors: List[ItemError] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class Alert(BaseModel):
    schedule_id: str
    trigger_id: str
    trigger_name: str
    trigger_type: TriggerTypeEnum
    aircraft_id: str
    aircraft_registration: Optional[str] = None
    alert_type: AlertTypeEnum
    message: str
    remaining_value: Optional[float] = None
    remaining_days: Optional[int] = None
    current_value: float
    due_at_value: Optional[float] = None
    due_at_date: Optional[date] = None


class WorkOrderBatchResult(BaseModel):
    created: int = 0
    work_orders: List[str] = Field(default_factory=list)
    skipped: int = 0
    cancelled: bool = False
    failures: List[ItemError] = Field(default_factory=list)


class CreateWorkOrdersRequest(BaseModel):
    auto_assign: bool = False


class CalculationPreviewRequest(BaseModel):
    trigger_id: str
    flight_hours: float = Field(0.0, ge=0)
    flight_cycles: float = Field(0.0, ge=0)
    battery_cycles: float = Field(0.0, ge=0)
    as_of: Optional[datetime] = None
    baseline_value: Optional[float] = Field(None, ge=0)
    baseline_date: Optional[date] = None


class CalculationPreview(BaseModel):
    trigger_id: str
    trigger_type: TriggerTypeEnum
    due_at_value: Optional[float] = None
    due_at_date: Optional[date] = None
    remaining_value: Optional[float] = None
    remaining_days: Optional[int] = None
    current_value: float
    status: ScheduleStatusEnum
    alert_type: Optional[AlertTypeEnum] = None

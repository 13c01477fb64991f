# backend/dronemx/apps/work/schemas.py

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .models import WorkOrderPriorityEnum, WorkOrderStatusEnum, WorkOrderTypeEnum


class WorkOrderCreate(BaseModel):
    aircraft_id: str
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    wo_number: Optional[str] = None
    priority: WorkOrderPriorityEnum = WorkOrderPriorityEnum.MEDIUM


class WorkOrderStatusUpdate(BaseModel):
    status: WorkOrderStatusEnum


class WorkOrderRead(BaseModel):
    id: str
    wo_number: str
    aircraft_id: str
    schedule_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    task_code: Optional[str] = None
    wo_type: WorkOrderTypeEnum
    status: WorkOrderStatusEnum
    priority: WorkOrderPriorityEnum
    assigned_role: Optional[str] = None
    is_rii: bool
    closed_at: Optional[datetime] = None
    closed_at_flight_hours: Optional[float] = None
    closed_at_flight_cycles: Optional[float] = None
    closed_at_battery_cycles: Optional[float] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

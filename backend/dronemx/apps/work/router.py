# backend/dronemx/apps/work/router.py
"""
Work orders API.

- Ad-hoc work orders can be raised here; scheduled ones come from the
  maintenance scheduler.
- Status changes follow WORK_ORDER_TRANSITIONS. Closing a scheduled work
  order completes its maintenance schedule in the same transaction.
"""

from __future__ import annotations

from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db
from dronemx.apps.maintenance_program.errors import SchedulingError

from . import models, schemas, services

router = APIRouter(
    prefix="/work-orders",
    tags=["work_orders"],
)


def _raise_http(exc: SchedulingError) -> NoReturn:
    raise HTTPException(status_code=exc.http_status, detail=exc.as_dict()) from exc


@router.get("/", response_model=List[schemas.WorkOrderRead])
def list_work_orders(
    aircraft_id: Optional[str] = None,
    status: Optional[models.WorkOrderStatusEnum] = None,
    schedule_id: Optional[str] = None,
    db: Session = Depends(get_read_db),
):
    return services.list_work_orders(db, aircraft_id=aircraft_id, status=status, schedule_id=schedule_id)


@router.get("/{work_order_id}", response_model=schemas.WorkOrderRead)
def get_work_order(work_order_id: str, db: Session = Depends(get_read_db)):
    try:
        return services.get_work_order(db, work_order_id)
    except SchedulingError as exc:
        _raise_http(exc)


@router.post("/", response_model=schemas.WorkOrderRead, status_code=status.HTTP_201_CREATED)
def create_work_order(payload: schemas.WorkOrderCreate, db: Session = Depends(get_db)):
    try:
        work_order = services.create_work_order(db, payload=payload)
    except SchedulingError as exc:
        _raise_http(exc)
    db.commit()
    db.refresh(work_order)
    return work_order


@router.post("/{work_order_id}/status", response_model=schemas.WorkOrderRead)
def update_work_order_status(
    work_order_id: str,
    payload: schemas.WorkOrderStatusUpdate,
    db: Session = Depends(get_db),
):
    try:
        work_order = services.transition_work_order(db, work_order_id, payload.status)
    except SchedulingError as exc:
        db.rollback()
        _raise_http(exc)
    db.commit()
    db.refresh(work_order)
    return work_order

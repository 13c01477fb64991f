# backend/dronemx/apps/maintenance_program/router.py

from __future__ import annotations

from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db
from . import scheduler, services, store
from .errors import SchedulingError
from .evaluator import AlertTypeEnum
from .models import ScheduleStatusEnum, TriggerTypeEnum
from .schemas import (
    Alert,
    BaselineModeEnum,
    CalculationPreview,
    CalculationPreviewRequest,
    ComplianceRecordRead,
    CompleteScheduleRequest,
    CreateWorkOrdersRequest,
    InitializeResult,
    ProgramCreate,
    ProgramRead,
    RunSummary,
    ScheduleCounts,
    ScheduleRead,
    TriggerCreate,
    TriggerRead,
    WorkOrderBatchResult,
)

router = APIRouter(
    prefix="/maintenance-scheduler",
    tags=["maintenance_scheduler"],
)


def _raise_http(exc: SchedulingError) -> NoReturn:
    raise HTTPException(status_code=exc.http_status, detail=exc.as_dict()) from exc


# ---------------------------------------------------------------------------
# Scheduler operations
# ---------------------------------------------------------------------------


@router.post("/run", response_model=RunSummary)
def run_scheduler(db: Session = Depends(get_db)) -> RunSummary:
    return scheduler.run_scheduler(db)


@router.post("/create-work-orders", response_model=WorkOrderBatchResult)
def create_work_orders(
    payload: Optional[CreateWorkOrdersRequest] = None,
    db: Session = Depends(get_db),
) -> WorkOrderBatchResult:
    auto_assign = payload.auto_assign if payload is not None else scheduler.AUTO_ASSIGN_DEFAULT
    return scheduler.create_work_orders(db, auto_assign=auto_assign)


@router.get("/alerts", response_model=List[Alert])
def list_alerts(
    aircraft_id: Optional[str] = None,
    alert_type: Optional[List[AlertTypeEnum]] = Query(None),
    limit: int = Query(scheduler.ALERT_DEFAULT_LIMIT, ge=1, le=1000),
    db: Session = Depends(get_read_db),
) -> List[Alert]:
    return scheduler.get_alerts(db, aircraft_id=aircraft_id, types=alert_type, limit=limit)


@router.post(
    "/aircraft/{aircraft_id}/initialize",
    response_model=InitializeResult,
    status_code=status.HTTP_201_CREATED,
)
def initialize_aircraft(
    aircraft_id: str,
    baseline: BaselineModeEnum = BaselineModeEnum.CURRENT,
    db: Session = Depends(get_db),
) -> InitializeResult:
    try:
        created = scheduler.initialize_aircraft_schedules(db, aircraft_id, baseline=baseline)
    except SchedulingError as exc:
        _raise_http(exc)
    return InitializeResult(
        created=len(created),
        schedules=[ScheduleRead.model_validate(s) for s in created],
    )


@router.post("/calculate-preview", response_model=CalculationPreview)
def calculate_preview(
    payload: CalculationPreviewRequest,
    db: Session = Depends(get_db),
) -> CalculationPreview:
    try:
        return scheduler.preview_calculation(db, payload=payload)
    except SchedulingError as exc:
        _raise_http(exc)


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


@router.get("/schedules/counts", response_model=ScheduleCounts)
def schedule_counts(db: Session = Depends(get_read_db)) -> ScheduleCounts:
    return ScheduleCounts(**scheduler.get_schedule_counts(db))


@router.get("/schedules", response_model=List[ScheduleRead])
def list_schedules(
    aircraft_id: Optional[str] = None,
    status_filter: Optional[ScheduleStatusEnum] = None,
    include_inactive: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_read_db),
) -> List[ScheduleRead]:
    schedules = store.list_schedules(
        db,
        aircraft_id=aircraft_id,
        status=status_filter,
        is_active=None if include_inactive else True,
        limit=limit,
        offset=skip,
    )
    return [ScheduleRead.model_validate(s) for s in schedules]


@router.get("/schedules/{schedule_id}", response_model=ScheduleRead)
def get_schedule(schedule_id: str, db: Session = Depends(get_read_db)) -> ScheduleRead:
    try:
        return ScheduleRead.model_validate(store.get_schedule(db, schedule_id))
    except SchedulingError as exc:
        _raise_http(exc)


@router.get("/schedules/{schedule_id}/history", response_model=List[ComplianceRecordRead])
def schedule_history(schedule_id: str, db: Session = Depends(get_read_db)) -> List[ComplianceRecordRead]:
    try:
        store.get_schedule(db, schedule_id)
    except SchedulingError as exc:
        _raise_http(exc)
    return [ComplianceRecordRead.model_validate(r) for r in store.list_compliance_history(db, schedule_id)]


@router.post("/schedules/{schedule_id}/complete", response_model=ScheduleRead)
def complete_schedule(
    schedule_id: str,
    payload: Optional[CompleteScheduleRequest] = None,
    db: Session = Depends(get_db),
) -> ScheduleRead:
    payload = payload or CompleteScheduleRequest()
    try:
        schedule = scheduler.complete_schedule(
            db,
            schedule_id,
            completed_at_value=payload.completed_at_value,
            completed_at=payload.completed_at,
        )
    except SchedulingError as exc:
        _raise_http(exc)
    return ScheduleRead.model_validate(schedule)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@router.post("/programs", response_model=ProgramRead, status_code=status.HTTP_201_CREATED)
def create_program(payload: ProgramCreate, db: Session = Depends(get_db)) -> ProgramRead:
    try:
        program = services.create_program(db, payload=payload)
    except SchedulingError as exc:
        _raise_http(exc)
    db.commit()
    db.refresh(program)
    return ProgramRead.model_validate(program)


@router.get("/programs", response_model=List[ProgramRead])
def list_programs(
    aircraft_model: Optional[str] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_read_db),
) -> List[ProgramRead]:
    programs = services.list_programs(
        db,
        aircraft_model=aircraft_model,
        is_active=None if include_inactive else True,
    )
    return [ProgramRead.model_validate(p) for p in programs]


@router.post("/programs/{program_id}/deactivate", response_model=ProgramRead)
def deactivate_program(program_id: str, db: Session = Depends(get_db)) -> ProgramRead:
    try:
        return ProgramRead.model_validate(services.deactivate_program(db, program_id))
    except SchedulingError as exc:
        _raise_http(exc)


@router.post("/triggers", response_model=TriggerRead, status_code=status.HTTP_201_CREATED)
def create_trigger(payload: TriggerCreate, db: Session = Depends(get_db)) -> TriggerRead:
    try:
        trigger = services.create_trigger(db, payload=payload)
    except SchedulingError as exc:
        _raise_http(exc)
    db.commit()
    db.refresh(trigger)
    return TriggerRead.model_validate(trigger)


@router.get("/triggers", response_model=List[TriggerRead])
def list_triggers(
    program_id: Optional[str] = None,
    trigger_type: Optional[TriggerTypeEnum] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_read_db),
) -> List[TriggerRead]:
    triggers = services.list_triggers(
        db,
        program_id=program_id,
        trigger_type=trigger_type,
        is_active=None if include_inactive else True,
    )
    return [TriggerRead.model_validate(t) for t in triggers]


@router.post("/triggers/{trigger_id}/deactivate", response_model=TriggerRead)
def deactivate_trigger(trigger_id: str, db: Session = Depends(get_db)) -> TriggerRead:
    try:
        return TriggerRead.model_validate(services.deactivate_trigger(db, trigger_id))
    except SchedulingError as exc:
        _raise_http(exc)

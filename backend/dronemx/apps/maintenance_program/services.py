# backend/dronemx/apps/maintenance_program/services.py
#
# Catalog services for maintenance programs and triggers.
#
# Responsibilities:
# - Create / list / deactivate programs and triggers (never delete).
# - Validate trigger configuration (threshold below interval) at creation.
# - TriggerCatalog: which active triggers apply to an aircraft model.

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import store
from .errors import InvalidStateError, NotFoundError
from .models import (
    WILDCARD_MODEL,
    MaintenanceProgram,
    MaintenanceTrigger,
    TriggerTypeEnum,
)
from .schemas import ProgramCreate, TriggerCreate

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Programs
# ---------------------------------------------------------------------------


def create_program(db: Session, *, payload: ProgramCreate) -> MaintenanceProgram:
    if db.query(MaintenanceProgram.id).filter(MaintenanceProgram.code == payload.code).first():
        raise InvalidStateError(f"Program code {payload.code} already exists.")
    program = MaintenanceProgram(
        name=payload.name,
        code=payload.code,
        description=payload.description,
        aircraft_model=payload.aircraft_model or WILDCARD_MODEL,
        is_default=payload.is_default,
        is_active=True,
    )
    db.add(program)
    db.flush()
    return program


def get_program(db: Session, program_id: str) -> MaintenanceProgram:
    program = db.get(MaintenanceProgram, program_id)
    if program is None:
        raise NotFoundError(f"Program {program_id} not found.", entity_id=program_id)
    return program


def list_programs(
    db: Session,
    *,
    aircraft_model: Optional[str] = None,
    is_active: Optional[bool] = True,
) -> List[MaintenanceProgram]:
    query = db.query(MaintenanceProgram)
    if aircraft_model:
        query = query.filter(MaintenanceProgram.aircraft_model == aircraft_model)
    if is_active is not None:
        query = query.filter(MaintenanceProgram.is_active.is_(is_active))
    return query.order_by(MaintenanceProgram.code).all()


def get_default_program(db: Session, aircraft_model: str) -> Optional[MaintenanceProgram]:
    """Active default program for a model; an exact model match wins over "*"."""
    candidates = (
        db.query(MaintenanceProgram)
        .filter(
            MaintenanceProgram.is_active.is_(True),
            MaintenanceProgram.is_default.is_(True),
            MaintenanceProgram.aircraft_model.in_([aircraft_model, WILDCARD_MODEL]),
        )
        .order_by(MaintenanceProgram.code)
        .all()
    )
    for program in candidates:
        if program.aircraft_model == aircraft_model:
            return program
    return candidates[0] if candidates else None


def deactivate_program(db: Session, program_id: str) -> MaintenanceProgram:
    program = get_program(db, program_id)
    trigger_ids = [t.id for t in program.triggers if t.is_active]
    program.is_active = False
    for trigger in program.triggers:
        trigger.is_active = False
    db.flush()
    deactivated = store.deactivate_schedules(db, trigger_ids=trigger_ids)
    db.commit()
    logger.info(
        "Maintenance program deactivated",
        extra={"program_id": program_id, "schedules_deactivated": deactivated},
    )
    return program


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------


def validate_trigger_config(
    *,
    trigger_type: TriggerTypeEnum,
    interval_value: float,
    warning_threshold: float,
) -> None:
    if interval_value is None or interval_value <= 0:
        raise InvalidStateError("interval_value must be positive.")
    if warning_threshold is None or warning_threshold <= 0:
        raise InvalidStateError("warning_threshold must be positive.")
    if warning_threshold >= interval_value:
        raise InvalidStateError(
            f"warning_threshold ({warning_threshold}) must be smaller than interval_value ({interval_value})."
        )
    if TriggerTypeEnum(trigger_type).is_calendar and not float(interval_value).is_integer():
        raise InvalidStateError("CALENDAR_DAYS intervals must be whole days.")


def create_trigger(db: Session, *, payload: TriggerCreate) -> MaintenanceTrigger:
    program = get_program(db, payload.program_id)
    if not program.is_active:
        raise InvalidStateError(f"Program {program.code} is inactive.", entity_id=program.id)
    validate_trigger_config(
        trigger_type=payload.trigger_type,
        interval_value=payload.interval_value,
        warning_threshold=payload.warning_threshold,
    )
    if db.query(MaintenanceTrigger.id).filter(MaintenanceTrigger.code == payload.code).first():
        raise InvalidStateError(f"Trigger code {payload.code} already exists.")

    trigger = MaintenanceTrigger(
        program_id=program.id,
        name=payload.name,
        code=payload.code,
        description=payload.description,
        trigger_type=payload.trigger_type,
        interval_value=payload.interval_value,
        warning_threshold=payload.warning_threshold,
        recurring=payload.recurring,
        priority=payload.priority,
        required_role=payload.required_role,
        is_rii=payload.is_rii,
        is_active=True,
    )
    db.add(trigger)
    db.flush()
    return trigger


def get_trigger(db: Session, trigger_id: str) -> MaintenanceTrigger:
    trigger = db.get(MaintenanceTrigger, trigger_id)
    if trigger is None:
        raise NotFoundError(f"Trigger {trigger_id} not found.", entity_id=trigger_id)
    return trigger


def list_triggers(
    db: Session,
    *,
    program_id: Optional[str] = None,
    trigger_type: Optional[TriggerTypeEnum] = None,
    is_active: Optional[bool] = True,
) -> List[MaintenanceTrigger]:
    query = db.query(MaintenanceTrigger)
    if program_id:
        query = query.filter(MaintenanceTrigger.program_id == program_id)
    if trigger_type:
        query = query.filter(MaintenanceTrigger.trigger_type == trigger_type)
    if is_active is not None:
        query = query.filter(MaintenanceTrigger.is_active.is_(is_active))
    return query.order_by(MaintenanceTrigger.code).all()


def deactivate_trigger(db: Session, trigger_id: str) -> MaintenanceTrigger:
    trigger = get_trigger(db, trigger_id)
    trigger.is_active = False
    db.flush()
    deactivated = store.deactivate_schedules(db, trigger_ids=[trigger.id])
    db.commit()
    logger.info(
        "Maintenance trigger deactivated",
        extra={"trigger_id": trigger_id, "schedules_deactivated": deactivated},
    )
    return trigger


class TriggerCatalog:
    """Read side of the catalog used by schedule initialisation."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_active_triggers(self, aircraft_model: str) -> List[MaintenanceTrigger]:
        return (
            self.db.query(MaintenanceTrigger)
            .join(MaintenanceProgram, MaintenanceProgram.id == MaintenanceTrigger.program_id)
            .filter(
                MaintenanceTrigger.is_active.is_(True),
                MaintenanceProgram.is_active.is_(True),
                or_(
                    MaintenanceProgram.aircraft_model == aircraft_model,
                    MaintenanceProgram.aircraft_model == WILDCARD_MODEL,
                ),
            )
            .order_by(MaintenanceTrigger.code)
            .all()
        )

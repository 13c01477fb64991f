# backend/dronemx/apps/maintenance_program/store.py
#
# Schedule store and state machine.
#
# Every write to a MaintenanceSchedule row goes through
# update_schedule_atomically(): fresh read, mutate inside a SAVEPOINT, commit
# with the ORM version check. One stale write is retried against a fresh read;
# a second one surfaces as ConcurrencyConflictError. A mutation either commits whole
# (status, link, history row, any work order created alongside) or not at all.

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .errors import ConcurrencyConflictError, InvalidStateError, NotFoundError
from .evaluator import compute_due_point, is_forward
from .models import (
    MaintenanceComplianceRecord,
    MaintenanceSchedule,
    MaintenanceTrigger,
    ScheduleStatusEnum,
    TriggerTypeEnum,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_UPDATE_ATTEMPTS = 2


# ---------------------------------------------------------------------------
# Atomic update primitive
# ---------------------------------------------------------------------------


def update_schedule_atomically(
    db: Session,
    schedule_id: str,
    mutate: Callable[[MaintenanceSchedule], T],
) -> T:
    for attempt in range(1, MAX_UPDATE_ATTEMPTS + 1):
        schedule = db.get(MaintenanceSchedule, schedule_id, populate_existing=True)
        if schedule is None:
            raise NotFoundError(f"Schedule {schedule_id} not found.", entity_id=schedule_id)
        try:
            with db.begin_nested():
                result = mutate(schedule)
            db.commit()
            return result
        except StaleDataError:
            # Only the savepoint is gone; earlier work in the caller's transaction stays.
            logger.warning(
                "Schedule version conflict",
                extra={"schedule_id": schedule_id, "attempt": attempt},
            )
        except Exception:
            db.rollback()
            raise
    db.rollback()
    raise ConcurrencyConflictError(
        f"Schedule {schedule_id} was modified concurrently; retry later.",
        entity_id=schedule_id,
    )


def check_due_point_invariant(schedule: MaintenanceSchedule, trigger: MaintenanceTrigger) -> None:
    """Exactly one of due_at_date / due_at_value is set, matching the trigger type."""
    calendar = TriggerTypeEnum(trigger.trigger_type).is_calendar
    has_date = schedule.due_at_date is not None
    has_value = schedule.due_at_value is not None
    if calendar != has_date or calendar == has_value:
        raise InvalidStateError(
            f"Schedule {schedule.id} due point does not match trigger type {trigger.trigger_type}.",
            entity_id=schedule.id,
        )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_schedule(db: Session, schedule_id: str) -> MaintenanceSchedule:
    schedule = db.get(MaintenanceSchedule, schedule_id)
    if schedule is None:
        raise NotFoundError(f"Schedule {schedule_id} not found.", entity_id=schedule_id)
    return schedule


def list_schedules(
    db: Session,
    *,
    aircraft_id: Optional[str] = None,
    status: Optional[ScheduleStatusEnum] = None,
    is_active: Optional[bool] = True,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[MaintenanceSchedule]:
    query = db.query(MaintenanceSchedule)
    if aircraft_id:
        query = query.filter(MaintenanceSchedule.aircraft_id == aircraft_id)
    if status:
        query = query.filter(MaintenanceSchedule.status == status)
    if is_active is not None:
        query = query.filter(MaintenanceSchedule.is_active.is_(is_active))
    query = query.order_by(MaintenanceSchedule.id).offset(offset)
    if limit:
        query = query.limit(limit)
    return query.all()


def count_by_status(db: Session) -> Dict[str, int]:
    """Counts of active schedules by persisted status (never by alert tier)."""
    counts = {status.value: 0 for status in ScheduleStatusEnum}
    rows = (
        db.query(MaintenanceSchedule.status, func.count(MaintenanceSchedule.id))
        .filter(MaintenanceSchedule.is_active.is_(True))
        .group_by(MaintenanceSchedule.status)
        .all()
    )
    for status, count in rows:
        counts[ScheduleStatusEnum(status).value] = int(count)
    return counts


def list_compliance_history(db: Session, schedule_id: str) -> List[MaintenanceComplianceRecord]:
    return (
        db.query(MaintenanceComplianceRecord)
        .filter(MaintenanceComplianceRecord.schedule_id == schedule_id)
        .order_by(MaintenanceComplianceRecord.completed_at, MaintenanceComplianceRecord.id)
        .all()
    )


# ---------------------------------------------------------------------------
# State machine writes
# ---------------------------------------------------------------------------


def advance_status(schedule: MaintenanceSchedule, status: ScheduleStatusEnum) -> bool:
    current = ScheduleStatusEnum(schedule.status)
    if current == status:
        return False
    if status == ScheduleStatusEnum.COMPLETED or current == ScheduleStatusEnum.COMPLETED:
        raise InvalidStateError(
            f"Schedule {schedule.id} reaches or leaves COMPLETED only through completion.",
            entity_id=schedule.id,
        )
    if not is_forward(current, status):
        raise InvalidStateError(
            f"Schedule {schedule.id} cannot move from {current.value} back to {status.value}.",
            entity_id=schedule.id,
        )
    schedule.status = status
    check_due_point_invariant(schedule, schedule.trigger)
    return True


def update_status(db: Session, schedule_id: str, status: ScheduleStatusEnum) -> bool:
    """UpdateStatus: forward-only; returns False (no write) when unchanged."""
    return update_schedule_atomically(db, schedule_id, lambda s: advance_status(s, status))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _current_baseline_value(schedule: MaintenanceSchedule, trigger: MaintenanceTrigger) -> float:
    """Metric value the running cycle started from; before any completion it sits one interval behind due."""
    if schedule.last_completed_at_value is not None:
        return schedule.last_completed_at_value
    return schedule.due_at_value - trigger.interval_value


def complete(
    db: Session,
    schedule_id: str,
    *,
    completed_at: datetime,
    completed_at_value: Optional[float],
    work_order_id: Optional[str] = None,
) -> MaintenanceSchedule:
    """
    Record a completion and start the next cycle.

    New baseline = (completed_at_value, completed_at); due point recomputed
    from the trigger interval; link cleared; status PENDING for recurring
    triggers, terminal COMPLETED otherwise. Appends a compliance record in
    the same transaction.

    Completions only move forward: a time in the future or before the last
    completion, a metric value below the running baseline, or a due point
    that does not pass the current one raise InvalidStateError.
    """

    completed_at_utc = _as_utc(completed_at)

    def _mutate(schedule: MaintenanceSchedule) -> MaintenanceSchedule:
        if not schedule.is_active:
            raise InvalidStateError(f"Schedule {schedule.id} is inactive.", entity_id=schedule.id)
        if schedule.status == ScheduleStatusEnum.COMPLETED:
            raise InvalidStateError(
                f"Schedule {schedule.id} is already completed (one-time requirement).",
                entity_id=schedule.id,
            )

        trigger = schedule.trigger
        calendar = TriggerTypeEnum(trigger.trigger_type).is_calendar
        if completed_at_utc > _utcnow():
            raise InvalidStateError(
                f"Completion time {completed_at_utc.isoformat()} is in the future.",
                entity_id=schedule.id,
            )
        if (
            schedule.last_completed_at is not None
            and completed_at_utc < _as_utc(schedule.last_completed_at)
        ):
            raise InvalidStateError(
                f"Completion time {completed_at_utc.isoformat()} is before the previous completion.",
                entity_id=schedule.id,
            )
        if not calendar:
            if completed_at_value is None:
                raise InvalidStateError(
                    f"Completion of metric schedule {schedule.id} needs a metric value.",
                    entity_id=schedule.id,
                )
            baseline = _current_baseline_value(schedule, trigger)
            if completed_at_value < baseline:
                raise InvalidStateError(
                    f"Completion value {completed_at_value} is below the current baseline {baseline}.",
                    entity_id=schedule.id,
                )

        status_before = ScheduleStatusEnum(schedule.status)
        previous_date, previous_value = schedule.due_at_date, schedule.due_at_value
        due_date, due_value = compute_due_point(
            trigger,
            baseline_value=None if calendar else completed_at_value,
            baseline_date=completed_at_utc.date(),
        )
        # The next due point always lies beyond the one being closed out.
        if (calendar and due_date <= previous_date) or (not calendar and due_value <= previous_value):
            raise InvalidStateError(
                f"Completion would not move schedule {schedule.id} past its current due point.",
                entity_id=schedule.id,
            )

        schedule.last_completed_at = completed_at_utc
        schedule.last_completed_at_value = None if calendar else completed_at_value
        schedule.due_at_date = due_date
        schedule.due_at_value = due_value
        schedule.linked_work_order_id = None
        schedule.status = (
            ScheduleStatusEnum.PENDING if trigger.recurring else ScheduleStatusEnum.COMPLETED
        )
        check_due_point_invariant(schedule, trigger)

        db.add(
            MaintenanceComplianceRecord(
                schedule_id=schedule.id,
                aircraft_id=schedule.aircraft_id,
                trigger_id=schedule.trigger_id,
                work_order_id=work_order_id,
                completed_at=completed_at_utc,
                completed_at_value=schedule.last_completed_at_value,
                previous_due_at_date=previous_date,
                previous_due_at_value=previous_value,
                next_due_at_date=due_date,
                next_due_at_value=due_value,
                status_before=status_before.value,
                status_after=ScheduleStatusEnum(schedule.status).value,
            )
        )
        return schedule

    schedule = update_schedule_atomically(db, schedule_id, _mutate)
    logger.info(
        "Schedule completed",
        extra={
            "schedule_id": schedule_id,
            "work_order_id": work_order_id,
            "status": ScheduleStatusEnum(schedule.status).value,
        },
    )
    return schedule


def deactivate_schedules(
    db: Session,
    *,
    aircraft_id: Optional[str] = None,
    trigger_ids: Optional[List[str]] = None,
) -> int:
    """Deactivate (never delete) schedules of a retired aircraft or trigger."""
    query = db.query(MaintenanceSchedule.id).filter(MaintenanceSchedule.is_active.is_(True))
    if aircraft_id:
        query = query.filter(MaintenanceSchedule.aircraft_id == aircraft_id)
    if trigger_ids is not None:
        if not trigger_ids:
            return 0
        query = query.filter(MaintenanceSchedule.trigger_id.in_(trigger_ids))
    schedule_ids = [row[0] for row in query.all()]

    def _deactivate(schedule: MaintenanceSchedule) -> bool:
        if not schedule.is_active:
            return False
        schedule.is_active = False
        return True

    return sum(
        1 for schedule_id in schedule_ids if update_schedule_atomically(db, schedule_id, _deactivate)
    )

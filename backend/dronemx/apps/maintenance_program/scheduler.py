# backend/dronemx/apps/maintenance_program/scheduler.py
#
# Maintenance scheduling engine.
#
# Responsibilities:
# - run_scheduler: re-evaluate every active schedule, advance persisted status
#   (forward only) and report alert-tier counts.
# - get_alerts: ranked, filterable WARNING / DUE / OVERDUE projection.
# - create_work_orders: one work order per DUE/OVERDUE schedule, exactly once.
# - complete_schedule / handle_work_order_closed: start the next cycle.
# - initialize_aircraft_schedules: one schedule per applicable trigger.
#
# Batch operations commit per schedule and record per-item failures; a
# cancel_event (threading.Event) stops them between schedules.

from __future__ import annotations

import logging
import os
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dronemx.apps.fleet import models as fleet_models
from dronemx.apps.fleet.services import FleetMetricProvider
from dronemx.apps.work import services as work_services

from . import store
from .collaborators import MetricProvider, TaskTemplate, WorkOrderGateway
from .errors import (
    ConcurrencyConflictError,
    InvalidStateError,
    NotFoundError,
    SchedulingError,
    TransientCollaboratorError,
)
from .evaluator import (
    AlertTypeEnum,
    Evaluation,
    MetricSnapshot,
    baseline_value_for,
    compute_due_point,
    evaluate,
    evaluate_due_point,
    is_forward,
)
from .models import (
    MaintenanceSchedule,
    MaintenanceTrigger,
    ScheduleStatusEnum,
    TriggerTypeEnum,
)
from .schemas import (
    Alert,
    BaselineModeEnum,
    CalculationPreview,
    CalculationPreviewRequest,
    ItemError,
    RunSummary,
    WorkOrderBatchResult,
)
from .services import TriggerCatalog, get_trigger

logger = logging.getLogger(__name__)

SCHEDULER_INTERVAL_SEC = int(os.getenv("SCHEDULER_INTERVAL_SEC", "300"))
COLLABORATOR_TIMEOUT_SEC = float(os.getenv("SCHEDULER_COLLABORATOR_TIMEOUT_SEC", "10"))
ALERT_DEFAULT_LIMIT = int(os.getenv("SCHEDULER_ALERT_LIMIT", "50"))
AUTO_ASSIGN_DEFAULT = os.getenv("SCHEDULER_AUTO_ASSIGN", "false").lower() in {"1", "true", "yes", "on"}

ALERT_TIER_ORDER = {
    AlertTypeEnum.OVERDUE: 0,
    AlertTypeEnum.DUE: 1,
    AlertTypeEnum.WARNING: 2,
}

UNIT_LABELS = {
    TriggerTypeEnum.CALENDAR_DAYS: "days",
    TriggerTypeEnum.FLIGHT_HOURS: "flight hours",
    TriggerTypeEnum.FLIGHT_CYCLES: "flight cycles",
    TriggerTypeEnum.BATTERY_CYCLES: "battery cycles",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _cancelled(cancel_event) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def _item_error(schedule_id: str, exc: Exception) -> ItemError:
    code = exc.code if isinstance(exc, SchedulingError) else "database_error"
    return ItemError(schedule_id=schedule_id, code=code, detail=str(exc))


class _MetricsCache:
    """One provider call per aircraft per batch; failures are cached too."""

    def __init__(self, provider: MetricProvider, timeout: Optional[float]) -> None:
        self.provider = provider
        self.timeout = timeout
        self._results: Dict[str, Union[MetricSnapshot, SchedulingError]] = {}

    def get(self, aircraft_id: str) -> MetricSnapshot:
        if aircraft_id not in self._results:
            try:
                self._results[aircraft_id] = self.provider.get_current_metrics(
                    aircraft_id, timeout=self.timeout
                )
            except (NotFoundError, TransientCollaboratorError) as exc:
                self._results[aircraft_id] = exc
        result = self._results[aircraft_id]
        if isinstance(result, SchedulingError):
            raise result
        return result


def _open_schedule_rows(
    db: Session,
    *,
    statuses: Optional[Iterable[ScheduleStatusEnum]] = None,
    aircraft_id: Optional[str] = None,
) -> List[Tuple[str, str]]:
    query = db.query(MaintenanceSchedule.id, MaintenanceSchedule.aircraft_id).filter(
        MaintenanceSchedule.is_active.is_(True),
        MaintenanceSchedule.status != ScheduleStatusEnum.COMPLETED,
    )
    if statuses is not None:
        query = query.filter(MaintenanceSchedule.status.in_(list(statuses)))
    if aircraft_id:
        query = query.filter(MaintenanceSchedule.aircraft_id == aircraft_id)
    return [(row[0], row[1]) for row in query.order_by(MaintenanceSchedule.aircraft_id, MaintenanceSchedule.id).all()]


# ---------------------------------------------------------------------------
# Run loop
# ---------------------------------------------------------------------------


def _evaluate_and_advance(db: Session, schedule_id: str, metrics: MetricSnapshot) -> Tuple[Evaluation, bool]:
    schedule = store.get_schedule(db, schedule_id)
    evaluation = evaluate(schedule, metrics)
    if not is_forward(ScheduleStatusEnum(schedule.status), evaluation.status):
        return evaluation, False

    def _mutate(fresh: MaintenanceSchedule) -> Tuple[Evaluation, bool]:
        # Re-evaluate: a completion may have moved the due point since the read above.
        fresh_evaluation = evaluate(fresh, metrics)
        if not fresh.is_active or not is_forward(ScheduleStatusEnum(fresh.status), fresh_evaluation.status):
            return fresh_evaluation, False
        return fresh_evaluation, store.advance_status(fresh, fresh_evaluation.status)

    return store.update_schedule_atomically(db, schedule_id, _mutate)


def run_scheduler(
    db: Session,
    *,
    metric_provider: Optional[MetricProvider] = None,
    cancel_event=None,
    timeout: Optional[float] = COLLABORATOR_TIMEOUT_SEC,
) -> RunSummary:
    """
    Re-evaluate all active schedules.

    `updated` counts persisted status changes only; the tier counters reflect
    the current evaluation whether or not a write happened, so an unchanged
    second run reports the same tiers with updated == 0.
    """
    summary = RunSummary(started_at=_utcnow())
    metrics = _MetricsCache(metric_provider or FleetMetricProvider(db), timeout)

    for schedule_id, aircraft_id in _open_schedule_rows(db):
        if _cancelled(cancel_event):
            summary.cancelled = True
            break
        summary.processed += 1
        try:
            snapshot = metrics.get(aircraft_id)
            evaluation, changed = _evaluate_and_advance(db, schedule_id, snapshot)
        except (NotFoundError, TransientCollaboratorError) as exc:
            summary.skipped += 1
            summary.errors.append(_item_error(schedule_id, exc))
            logger.warning(
                "Schedule skipped for this run",
                extra={"schedule_id": schedule_id, "aircraft_id": aircraft_id, "reason": exc.code},
            )
            continue
        except (SchedulingError, SQLAlchemyError) as exc:
            summary.errors.append(_item_error(schedule_id, exc))
            logger.exception("Schedule evaluation failed", extra={"schedule_id": schedule_id})
            continue

        if changed:
            summary.updated += 1
        if evaluation.tier == AlertTypeEnum.WARNING:
            summary.warnings += 1
        elif evaluation.tier == AlertTypeEnum.DUE:
            summary.due += 1
        elif evaluation.tier == AlertTypeEnum.OVERDUE:
            summary.overdue += 1

    summary.finished_at = _utcnow()
    logger.info(
        "Scheduler run completed",
        extra={
            "processed": summary.processed,
            "updated": summary.updated,
            "warnings": summary.warnings,
            "due": summary.due,
            "overdue": summary.overdue,
            "skipped": summary.skipped,
            "errors": len(summary.errors),
            "cancelled": summary.cancelled,
        },
    )
    return summary


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


def _alert_message(trigger: MaintenanceTrigger, evaluation: Evaluation) -> str:
    if evaluation.tier == AlertTypeEnum.OVERDUE:
        return f"Maintenance overdue: {trigger.name}"
    if evaluation.tier == AlertTypeEnum.DUE:
        return f"Maintenance due: {trigger.name}"
    unit = UNIT_LABELS[evaluation.trigger_type]
    return f"Maintenance due soon: {trigger.name} ({evaluation.remaining.value:g} {unit} remaining)"


def get_alerts(
    db: Session,
    *,
    aircraft_id: Optional[str] = None,
    types: Optional[Iterable[AlertTypeEnum]] = None,
    limit: Optional[int] = ALERT_DEFAULT_LIMIT,
    metric_provider: Optional[MetricProvider] = None,
    timeout: Optional[float] = COLLABORATOR_TIMEOUT_SEC,
) -> List[Alert]:
    """
    Most urgent first: OVERDUE (most negative remaining first), DUE, then
    WARNING (smallest remaining first). `limit` applies after sorting.
    Schedules of deleted or retired aircraft are left out silently.
    """
    wanted = {AlertTypeEnum(t) for t in types} if types else None
    metrics = _MetricsCache(metric_provider or FleetMetricProvider(db), timeout)
    ranked: List[Tuple[Tuple[int, float, str], Alert]] = []

    query = db.query(MaintenanceSchedule).filter(
        MaintenanceSchedule.is_active.is_(True),
        MaintenanceSchedule.status != ScheduleStatusEnum.COMPLETED,
    )
    if aircraft_id:
        query = query.filter(MaintenanceSchedule.aircraft_id == aircraft_id)

    for schedule in query.order_by(MaintenanceSchedule.id).all():
        aircraft = schedule.aircraft
        trigger = schedule.trigger
        if aircraft is None or not aircraft.is_active or trigger is None or not trigger.is_active:
            continue
        try:
            snapshot = metrics.get(schedule.aircraft_id)
        except NotFoundError:
            continue
        except TransientCollaboratorError:
            logger.warning(
                "Alert skipped, metrics unavailable",
                extra={"schedule_id": schedule.id, "aircraft_id": schedule.aircraft_id},
            )
            continue

        evaluation = evaluate(schedule, snapshot, trigger=trigger)
        if evaluation.tier is None or (wanted is not None and evaluation.tier not in wanted):
            continue

        alert = Alert(
            schedule_id=schedule.id,
            trigger_id=trigger.id,
            trigger_name=trigger.name,
            trigger_type=evaluation.trigger_type,
            aircraft_id=schedule.aircraft_id,
            aircraft_registration=aircraft.registration,
            alert_type=evaluation.tier,
            message=_alert_message(trigger, evaluation),
            remaining_value=evaluation.remaining_value,
            remaining_days=evaluation.remaining_days,
            current_value=evaluation.current.value,
            due_at_value=schedule.due_at_value,
            due_at_date=schedule.due_at_date,
        )
        ranked.append(((ALERT_TIER_ORDER[evaluation.tier], evaluation.remaining.value, schedule.id), alert))

    ranked.sort(key=lambda item: item[0])
    alerts = [alert for _, alert in ranked]
    if limit is not None:
        alerts = alerts[:limit]
    return alerts


# ---------------------------------------------------------------------------
# Work order generation
# ---------------------------------------------------------------------------


def build_task_template(
    trigger: MaintenanceTrigger,
    aircraft: Optional[fleet_models.Aircraft],
    *,
    auto_assign: bool,
) -> TaskTemplate:
    registration = aircraft.registration if aircraft is not None else "UNKNOWN"
    return TaskTemplate(
        title=f"{trigger.name} - {registration}",
        description=trigger.description or f"Scheduled maintenance: {trigger.name}",
        task_code=trigger.code,
        priority=getattr(trigger.priority, "value", trigger.priority),
        required_role=trigger.required_role,
        is_rii=bool(trigger.is_rii),
        auto_assign=auto_assign,
    )


def _has_open_link(gateway: WorkOrderGateway, schedule: MaintenanceSchedule) -> bool:
    return bool(schedule.linked_work_order_id) and not gateway.is_cancelled(schedule.linked_work_order_id)


def create_work_orders(
    db: Session,
    *,
    auto_assign: bool = False,
    work_order_service: Optional[WorkOrderGateway] = None,
    cancel_event=None,
    timeout: Optional[float] = COLLABORATOR_TIMEOUT_SEC,
) -> WorkOrderBatchResult:
    """
    Raise one work order per DUE/OVERDUE schedule without an open linked one.

    Creation and linking commit together under the schedule's version check,
    so concurrent callers cannot both link the same schedule.
    """
    gateway = work_order_service or work_services.WorkOrderService(db)
    result = WorkOrderBatchResult()
    due_statuses = (ScheduleStatusEnum.DUE, ScheduleStatusEnum.OVERDUE)

    for schedule_id, _ in _open_schedule_rows(db, statuses=due_statuses):
        if _cancelled(cancel_event):
            result.cancelled = True
            break

        def _raise_and_link(schedule: MaintenanceSchedule) -> Optional[str]:
            if not schedule.is_active or schedule.status not in due_statuses:
                return None
            if _has_open_link(gateway, schedule):
                return None
            template = build_task_template(schedule.trigger, schedule.aircraft, auto_assign=auto_assign)
            work_order_id = gateway.create(schedule.aircraft_id, schedule.id, template, timeout=timeout)
            schedule.linked_work_order_id = work_order_id
            return work_order_id

        try:
            work_order_id = store.update_schedule_atomically(db, schedule_id, _raise_and_link)
        except (SchedulingError, SQLAlchemyError) as exc:
            result.failures.append(_item_error(schedule_id, exc))
            logger.warning(
                "Work order creation failed",
                extra={"schedule_id": schedule_id, "error": str(exc)},
            )
            continue

        if work_order_id is None:
            result.skipped += 1
            continue
        result.created += 1
        result.work_orders.append(work_order_id)
        logger.info(
            "Work order created for schedule",
            extra={"schedule_id": schedule_id, "work_order_id": work_order_id},
        )

    return result


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------


def complete_schedule(
    db: Session,
    schedule_id: str,
    *,
    completed_at_value: Optional[float] = None,
    completed_at: Optional[datetime] = None,
    work_order_id: Optional[str] = None,
    metric_provider: Optional[MetricProvider] = None,
    timeout: Optional[float] = COLLABORATOR_TIMEOUT_SEC,
) -> MaintenanceSchedule:
    """CompleteSchedule: missing value/date default to the aircraft's current metrics."""
    schedule = store.get_schedule(db, schedule_id)
    if not schedule.is_active:
        raise InvalidStateError(f"Schedule {schedule_id} is inactive.", entity_id=schedule_id)
    kind = TriggerTypeEnum(schedule.trigger.trigger_type)

    needs_value = not kind.is_calendar and completed_at_value is None
    if needs_value or completed_at is None:
        provider = metric_provider or FleetMetricProvider(db)
        snapshot = provider.get_current_metrics(schedule.aircraft_id, timeout=timeout)
        if needs_value:
            completed_at_value = baseline_value_for(kind, snapshot)
        completed_at = completed_at or snapshot.as_of

    return store.complete(
        db,
        schedule_id,
        completed_at=completed_at,
        completed_at_value=None if kind.is_calendar else completed_at_value,
        work_order_id=work_order_id,
    )


def handle_work_order_closed(
    db: Session,
    work_order_id: str,
    aircraft_id: str,
    closed_at_metrics: MetricSnapshot,
) -> Optional[MaintenanceSchedule]:
    """Completion handler: ad-hoc work orders (no linked schedule) are ignored."""
    schedule = (
        db.query(MaintenanceSchedule)
        .filter(MaintenanceSchedule.linked_work_order_id == work_order_id)
        .first()
    )
    if schedule is None:
        return None
    if schedule.aircraft_id != aircraft_id:
        raise InvalidStateError(
            f"Work order {work_order_id} aircraft does not match schedule {schedule.id}.",
            entity_id=schedule.id,
        )
    kind = TriggerTypeEnum(schedule.trigger.trigger_type)
    return store.complete(
        db,
        schedule.id,
        completed_at=closed_at_metrics.as_of,
        completed_at_value=baseline_value_for(kind, closed_at_metrics),
        work_order_id=work_order_id,
    )


def register_completion_handler() -> None:
    work_services.on_closed(handle_work_order_closed)


# ---------------------------------------------------------------------------
# Initialisation
# ---------------------------------------------------------------------------


def initialize_aircraft_schedules(
    db: Session,
    aircraft_id: str,
    *,
    baseline: BaselineModeEnum = BaselineModeEnum.CURRENT,
    metric_provider: Optional[MetricProvider] = None,
    catalog: Optional[TriggerCatalog] = None,
    timeout: Optional[float] = COLLABORATOR_TIMEOUT_SEC,
) -> List[MaintenanceSchedule]:
    """
    Create the missing schedules for every active trigger applicable to the
    aircraft's model. All-or-nothing: a concurrent initialisation of the same
    aircraft surfaces as ConcurrencyConflictError with nothing written.
    """
    aircraft = db.get(fleet_models.Aircraft, aircraft_id)
    if aircraft is None or not aircraft.is_active:
        raise NotFoundError(f"Aircraft {aircraft_id} not found or retired.", entity_id=aircraft_id)

    provider = metric_provider or FleetMetricProvider(db)
    current = provider.get_current_metrics(aircraft_id, timeout=timeout)
    if baseline == BaselineModeEnum.COMMISSIONING:
        origin = provider.get_commissioning_metrics(aircraft_id, timeout=timeout)
    else:
        origin = current

    triggers = (catalog or TriggerCatalog(db)).get_active_triggers(aircraft.model)
    existing = {
        row[0]
        for row in db.query(MaintenanceSchedule.trigger_id)
        .filter(MaintenanceSchedule.aircraft_id == aircraft_id)
        .all()
    }

    created: List[MaintenanceSchedule] = []
    for trigger in triggers:
        if trigger.id in existing:
            continue
        kind = TriggerTypeEnum(trigger.trigger_type)
        due_date, due_value = compute_due_point(
            trigger,
            baseline_value=baseline_value_for(kind, origin),
            baseline_date=origin.as_of_date,
        )
        schedule = MaintenanceSchedule(
            aircraft_id=aircraft_id,
            trigger_id=trigger.id,
            due_at_date=due_date,
            due_at_value=due_value,
            is_active=True,
        )
        evaluation = evaluate_due_point(
            trigger=trigger,
            due_at_date=due_date,
            due_at_value=due_value,
            metrics=current,
        )
        schedule.status = evaluation.status
        store.check_due_point_invariant(schedule, trigger)
        db.add(schedule)
        created.append(schedule)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConcurrencyConflictError(
            f"Schedules for aircraft {aircraft_id} were initialised concurrently.",
            entity_id=aircraft_id,
        ) from exc

    logger.info(
        "Initialized maintenance schedules",
        extra={"aircraft_id": aircraft_id, "created": len(created), "baseline": baseline.value},
    )
    return created


def get_schedule_counts(db: Session) -> Dict[str, int]:
    return store.count_by_status(db)


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------


def preview_calculation(db: Session, *, payload: CalculationPreviewRequest) -> CalculationPreview:
    """Evaluate a trigger against an ad-hoc snapshot and baseline. Writes nothing."""
    trigger = get_trigger(db, payload.trigger_id)
    as_of = payload.as_of or _utcnow()
    if as_of.tzinfo is None:
        as_of = as_of.replace(tzinfo=timezone.utc)
    snapshot = MetricSnapshot(
        flight_hours=payload.flight_hours,
        flight_cycles=payload.flight_cycles,
        battery_cycles=payload.battery_cycles,
        as_of=as_of,
    )
    baseline_date: date = payload.baseline_date or trigger.created_at.date()
    due_date, due_value = compute_due_point(
        trigger,
        baseline_value=payload.baseline_value if payload.baseline_value is not None else 0.0,
        baseline_date=baseline_date,
    )
    evaluation = evaluate_due_point(
        trigger=trigger,
        due_at_date=due_date,
        due_at_value=due_value,
        metrics=snapshot,
    )
    return CalculationPreview(
        trigger_id=trigger.id,
        trigger_type=evaluation.trigger_type,
        due_at_value=due_value,
        due_at_date=due_date,
        remaining_value=evaluation.remaining_value,
        remaining_days=evaluation.remaining_days,
        current_value=evaluation.current.value,
        status=evaluation.status,
        alert_type=evaluation.tier,
    )

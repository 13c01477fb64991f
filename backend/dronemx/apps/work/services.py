from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from dronemx.apps.fleet import models as fleet_models
from dronemx.apps.fleet.services import FleetMetricProvider
from dronemx.apps.maintenance_program.collaborators import ClosedCallback, MetricProvider, TaskTemplate
from dronemx.apps.maintenance_program.errors import (
    InvalidStateError,
    NotFoundError,
    TransientCollaboratorError,
)
from dronemx.utils.identifiers import generate_work_order_number

from . import models, schemas

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


WORK_ORDER_TRANSITIONS = {
    models.WorkOrderStatusEnum.DRAFT: {
        models.WorkOrderStatusEnum.RELEASED,
        models.WorkOrderStatusEnum.CANCELLED,
    },
    models.WorkOrderStatusEnum.RELEASED: {
        models.WorkOrderStatusEnum.IN_PROGRESS,
        models.WorkOrderStatusEnum.CANCELLED,
    },
    models.WorkOrderStatusEnum.IN_PROGRESS: {
        models.WorkOrderStatusEnum.CLOSED,
        models.WorkOrderStatusEnum.CANCELLED,
    },
    models.WorkOrderStatusEnum.CLOSED: set(),
    models.WorkOrderStatusEnum.CANCELLED: set(),
}


# ---------------------------------------------------------------------------
# Closed-work-order subscription
# ---------------------------------------------------------------------------

_closed_subscribers: List[ClosedCallback] = []
_subscribers_lock = threading.Lock()


def on_closed(callback: ClosedCallback) -> None:
    """Subscribe to work order closure. Registering the same callback twice is a no-op."""
    with _subscribers_lock:
        if callback not in _closed_subscribers:
            _closed_subscribers.append(callback)


def clear_closed_subscribers() -> None:
    with _subscribers_lock:
        _closed_subscribers.clear()


def _notify_closed(db: Session, work_order: models.WorkOrder, metrics) -> None:
    with _subscribers_lock:
        subscribers = list(_closed_subscribers)
    for callback in subscribers:
        callback(db, work_order.id, work_order.aircraft_id, metrics)


# ---------------------------------------------------------------------------
# CRUD / lifecycle
# ---------------------------------------------------------------------------


def get_work_order(db: Session, work_order_id: str) -> models.WorkOrder:
    work_order = db.get(models.WorkOrder, work_order_id)
    if work_order is None:
        raise NotFoundError(f"Work order {work_order_id} not found.", entity_id=work_order_id)
    return work_order


def list_work_orders(
    db: Session,
    *,
    aircraft_id: Optional[str] = None,
    status: Optional[models.WorkOrderStatusEnum] = None,
    schedule_id: Optional[str] = None,
) -> List[models.WorkOrder]:
    query = db.query(models.WorkOrder)
    if aircraft_id:
        query = query.filter(models.WorkOrder.aircraft_id == aircraft_id)
    if status:
        query = query.filter(models.WorkOrder.status == status)
    if schedule_id:
        query = query.filter(models.WorkOrder.schedule_id == schedule_id)
    return query.order_by(models.WorkOrder.created_at.desc(), models.WorkOrder.id).all()


def create_work_order(db: Session, *, payload: schemas.WorkOrderCreate) -> models.WorkOrder:
    """Ad-hoc (unscheduled) work order. Closing it never touches a schedule."""
    aircraft = db.get(fleet_models.Aircraft, payload.aircraft_id)
    if aircraft is None or not aircraft.is_active:
        raise NotFoundError(f"Aircraft {payload.aircraft_id} not found or retired.", entity_id=payload.aircraft_id)
    work_order = models.WorkOrder(
        wo_number=payload.wo_number or generate_work_order_number(aircraft.registration),
        aircraft_id=aircraft.id,
        title=payload.title,
        description=payload.description,
        wo_type=models.WorkOrderTypeEnum.UNSCHEDULED,
        status=models.WorkOrderStatusEnum.DRAFT,
        priority=payload.priority,
    )
    db.add(work_order)
    db.flush()
    return work_order


def transition_work_order(
    db: Session,
    work_order_id: str,
    new_status: models.WorkOrderStatusEnum,
    *,
    metric_provider: Optional[MetricProvider] = None,
) -> models.WorkOrder:
    """
    Move a work order along its lifecycle.

    Closing captures the aircraft's utilisation and notifies the closure
    subscribers in the same transaction, so a failed schedule completion
    keeps the work order open.
    """
    work_order = get_work_order(db, work_order_id)
    current = models.WorkOrderStatusEnum(work_order.status)
    if current == new_status:
        return work_order
    if new_status not in WORK_ORDER_TRANSITIONS.get(current, set()):
        raise InvalidStateError(
            f"Invalid work order transition {current.value} -> {new_status.value}.",
            entity_id=work_order_id,
        )

    work_order.status = new_status
    if new_status != models.WorkOrderStatusEnum.CLOSED:
        db.flush()
        return work_order

    provider = metric_provider or FleetMetricProvider(db)
    metrics = provider.get_current_metrics(work_order.aircraft_id)
    work_order.closed_at = metrics.as_of
    work_order.closed_at_flight_hours = metrics.flight_hours
    work_order.closed_at_flight_cycles = metrics.flight_cycles
    work_order.closed_at_battery_cycles = metrics.battery_cycles
    db.flush()
    _notify_closed(db, work_order, metrics)
    logger.info(
        "Work order closed",
        extra={"work_order_id": work_order.id, "schedule_id": work_order.schedule_id},
    )
    return work_order


# ---------------------------------------------------------------------------
# Gateway used by the maintenance scheduler
# ---------------------------------------------------------------------------


class WorkOrderService:
    """Creates scheduled work orders inside the caller's session/transaction."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _apply_timeout(self, timeout: Optional[float]) -> None:
        if timeout and self.db.get_bind().dialect.name == "postgresql":
            self.db.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))

    def create(
        self,
        aircraft_id: str,
        schedule_id: str,
        task_template: TaskTemplate,
        *,
        timeout: Optional[float] = None,
    ) -> str:
        try:
            self._apply_timeout(timeout)
            aircraft = self.db.get(fleet_models.Aircraft, aircraft_id)
            if aircraft is None:
                raise NotFoundError(f"Aircraft {aircraft_id} not found.", entity_id=aircraft_id)
            auto_assign = task_template.auto_assign
            work_order = models.WorkOrder(
                wo_number=generate_work_order_number(aircraft.registration),
                aircraft_id=aircraft_id,
                schedule_id=schedule_id,
                title=task_template.title,
                description=task_template.description,
                task_code=task_template.task_code,
                wo_type=models.WorkOrderTypeEnum.SCHEDULED,
                status=models.WorkOrderStatusEnum.RELEASED if auto_assign else models.WorkOrderStatusEnum.DRAFT,
                priority=models.WorkOrderPriorityEnum(task_template.priority),
                assigned_role=task_template.required_role if auto_assign else None,
                is_rii=task_template.is_rii,
            )
            self.db.add(work_order)
            self.db.flush()
        except OperationalError as exc:
            raise TransientCollaboratorError(
                f"Work order service unavailable: {exc.orig}", entity_id=schedule_id
            ) from exc
        return work_order.id

    def is_cancelled(self, work_order_id: str) -> bool:
        work_order = self.db.get(models.WorkOrder, work_order_id)
        return work_order is not None and work_order.status == models.WorkOrderStatusEnum.CANCELLED

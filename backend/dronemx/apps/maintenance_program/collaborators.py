# backend/dronemx/apps/maintenance_program/collaborators.py
#
# Narrow interfaces the scheduling core consumes. Default implementations
# live in the fleet app (metrics) and the work app (work orders); tests and
# remote deployments can pass their own.
#
# Implementations must bound each call by `timeout` seconds and raise
# TransientCollaboratorError when they cannot answer in time.

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session

from .evaluator import MetricSnapshot


class MetricProvider(Protocol):
    def get_current_metrics(self, aircraft_id: str, *, timeout: Optional[float] = None) -> MetricSnapshot:
        """Current utilisation; NotFoundError for unknown/retired aircraft."""

    def get_commissioning_metrics(self, aircraft_id: str, *, timeout: Optional[float] = None) -> MetricSnapshot:
        """Utilisation and date at commissioning."""


@dataclass(frozen=True)
class TaskTemplate:
    """What the work order generator asks the work order service to raise."""

    title: str
    description: Optional[str]
    task_code: str
    priority: str
    required_role: Optional[str]
    is_rii: bool
    auto_assign: bool = False


class WorkOrderGateway(Protocol):
    def create(
        self,
        aircraft_id: str,
        schedule_id: str,
        task_template: TaskTemplate,
        *,
        timeout: Optional[float] = None,
    ) -> str:
        """Create a work order and return its id."""

    def is_cancelled(self, work_order_id: str) -> bool:
        """True when the work order was cancelled (its schedule may be re-raised)."""


# Completion subscribers receive (db, work_order_id, aircraft_id, closed_at_metrics).
ClosedCallback = Callable[[Session, str, str, MetricSnapshot], object]

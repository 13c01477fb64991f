# backend/dronemx/apps/maintenance_program/evaluator.py
#
# Pure evaluation of a schedule against an explicit metrics snapshot.
#
# - Every quantity is a Measure: a value tagged with the trigger type whose
#   unit it is expressed in. Arithmetic and comparisons between different
#   kinds raise instead of silently mixing hours, cycles and days.
# - Nothing here reads the clock or the database; "now" is metrics.as_of.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Tuple

from .models import MaintenanceSchedule, MaintenanceTrigger, ScheduleStatusEnum, TriggerTypeEnum

# Utilisation totals are recorded to this many decimals; rounding the
# difference keeps 50.3 - 50.3 at exactly zero.
_PRECISION = 6


class AlertTypeEnum(str, Enum):
    """Alert tier shown on dashboards. Derived on read, never persisted."""
    WARNING = "WARNING"
    DUE = "DUE"
    OVERDUE = "OVERDUE"


class UnitMismatchError(ValueError):
    pass


@dataclass(frozen=True)
class Measure:
    kind: TriggerTypeEnum
    value: float

    def _same_kind(self, other: "Measure") -> None:
        if self.kind != other.kind:
            raise UnitMismatchError(f"Cannot combine {self.kind.value} with {other.kind.value}")

    def __sub__(self, other: "Measure") -> "Measure":
        self._same_kind(other)
        return Measure(self.kind, round(self.value - other.value, _PRECISION))

    def __lt__(self, other: "Measure") -> bool:
        self._same_kind(other)
        return self.value < other.value

    def __le__(self, other: "Measure") -> bool:
        self._same_kind(other)
        return self.value <= other.value

    def is_negative(self) -> bool:
        return self.value < 0

    def is_positive(self) -> bool:
        return self.value > 0


@dataclass(frozen=True)
class MetricSnapshot:
    """Aircraft utilisation at `as_of`, as returned by a metric provider."""

    flight_hours: float
    flight_cycles: float
    battery_cycles: float
    as_of: datetime

    @property
    def as_of_date(self) -> date:
        return self.as_of.date()

    def measure(self, kind: TriggerTypeEnum) -> Measure:
        if kind == TriggerTypeEnum.FLIGHT_HOURS:
            return Measure(kind, float(self.flight_hours))
        if kind == TriggerTypeEnum.FLIGHT_CYCLES:
            return Measure(kind, float(self.flight_cycles))
        if kind == TriggerTypeEnum.BATTERY_CYCLES:
            return Measure(kind, float(self.battery_cycles))
        raise UnitMismatchError("Calendar triggers are measured from as_of, not from a counter")


@dataclass(frozen=True)
class Evaluation:
    schedule_id: Optional[str]
    trigger_type: TriggerTypeEnum
    remaining: Measure
    current: Measure
    status: ScheduleStatusEnum
    tier: Optional[AlertTypeEnum]

    @property
    def remaining_days(self) -> Optional[int]:
        if self.trigger_type.is_calendar:
            return int(self.remaining.value)
        return None

    @property
    def remaining_value(self) -> Optional[float]:
        if self.trigger_type.is_calendar:
            return None
        return self.remaining.value


# Forward order of the persisted, unresolved states.
STATUS_RANK = {
    ScheduleStatusEnum.PENDING: 0,
    ScheduleStatusEnum.DUE: 1,
    ScheduleStatusEnum.OVERDUE: 2,
}


def is_forward(current: ScheduleStatusEnum, new: ScheduleStatusEnum) -> bool:
    """True when `new` is strictly more urgent than `current` (re-evaluation never regresses)."""
    if current not in STATUS_RANK or new not in STATUS_RANK:
        return False
    return STATUS_RANK[new] > STATUS_RANK[current]


def classify(remaining: Measure, warning_threshold: Measure) -> Tuple[ScheduleStatusEnum, Optional[AlertTypeEnum]]:
    """
    Map remaining margin to (persisted status, alert tier). First match wins:

    - remaining < 0                   -> OVERDUE / OVERDUE
    - remaining <= warning_threshold:
        remaining > 0                 -> PENDING / WARNING
        remaining == 0                -> DUE / DUE
    - otherwise                       -> PENDING / no alert
    """
    if remaining.is_negative():
        return ScheduleStatusEnum.OVERDUE, AlertTypeEnum.OVERDUE
    if remaining <= warning_threshold:
        if remaining.is_positive():
            return ScheduleStatusEnum.PENDING, AlertTypeEnum.WARNING
        return ScheduleStatusEnum.DUE, AlertTypeEnum.DUE
    return ScheduleStatusEnum.PENDING, None


def evaluate_due_point(
    *,
    trigger: MaintenanceTrigger,
    due_at_date: Optional[date],
    due_at_value: Optional[float],
    metrics: MetricSnapshot,
    schedule_id: Optional[str] = None,
) -> Evaluation:
    kind = TriggerTypeEnum(trigger.trigger_type)
    threshold = Measure(kind, float(trigger.warning_threshold))

    if kind.is_calendar:
        if due_at_date is None:
            raise ValueError(f"Calendar schedule {schedule_id} has no due date")
        remaining = Measure(kind, float((due_at_date - metrics.as_of_date).days))
        current = Measure(kind, float(trigger.interval_value) - remaining.value)
    else:
        if due_at_value is None:
            raise ValueError(f"Metric schedule {schedule_id} has no due value")
        current = metrics.measure(kind)
        remaining = Measure(kind, float(due_at_value)) - current

    status, tier = classify(remaining, threshold)
    return Evaluation(
        schedule_id=schedule_id,
        trigger_type=kind,
        remaining=remaining,
        current=current,
        status=status,
        tier=tier,
    )


def evaluate(
    schedule: MaintenanceSchedule,
    metrics: MetricSnapshot,
    *,
    trigger: Optional[MaintenanceTrigger] = None,
) -> Evaluation:
    """Evaluate(schedule, metrics) -> remaining margin, status and alert tier. No side effects."""
    trigger = trigger or schedule.trigger
    return evaluate_due_point(
        trigger=trigger,
        due_at_date=schedule.due_at_date,
        due_at_value=schedule.due_at_value,
        metrics=metrics,
        schedule_id=schedule.id,
    )


# ---------------------------------------------------------------------------
# Due point arithmetic
# ---------------------------------------------------------------------------


def compute_due_point(
    trigger: MaintenanceTrigger,
    *,
    baseline_value: Optional[float],
    baseline_date: Optional[date],
) -> Tuple[Optional[date], Optional[float]]:
    """
    Returns (due_at_date, due_at_value); exactly one is set.

    due_at_value = baseline_value + interval_value
    due_at_date  = baseline_date + interval_value days
    """
    kind = TriggerTypeEnum(trigger.trigger_type)
    if kind.is_calendar:
        if baseline_date is None:
            raise ValueError("Calendar due point needs a baseline date")
        return baseline_date + timedelta(days=int(trigger.interval_value)), None
    if baseline_value is None:
        raise ValueError("Metric due point needs a baseline value")
    return None, round(float(baseline_value) + float(trigger.interval_value), _PRECISION)


def baseline_value_for(kind: TriggerTypeEnum, metrics: MetricSnapshot) -> Optional[float]:
    if TriggerTypeEnum(kind).is_calendar:
        return None
    return metrics.measure(TriggerTypeEnum(kind)).value

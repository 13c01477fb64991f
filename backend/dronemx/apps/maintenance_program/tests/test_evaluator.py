from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from dronemx.apps.maintenance_program import models as mp_models
from dronemx.apps.maintenance_program.evaluator import (
    AlertTypeEnum,
    Measure,
    MetricSnapshot,
    UnitMismatchError,
    classify,
    compute_due_point,
    evaluate,
    evaluate_due_point,
    is_forward,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
PENDING = mp_models.ScheduleStatusEnum.PENDING
DUE = mp_models.ScheduleStatusEnum.DUE
OVERDUE = mp_models.ScheduleStatusEnum.OVERDUE


def _trigger(trigger_type=mp_models.TriggerTypeEnum.FLIGHT_HOURS, interval=50.0, warning=5.0):
    return mp_models.MaintenanceTrigger(
        id="trg-1",
        name="50-Hour Inspection",
        code="INSP-50H",
        trigger_type=trigger_type,
        interval_value=interval,
        warning_threshold=warning,
        recurring=True,
    )


def _snapshot(hours=0.0, cycles=0.0, battery=0.0, as_of=NOW):
    return MetricSnapshot(flight_hours=hours, flight_cycles=cycles, battery_cycles=battery, as_of=as_of)


@pytest.mark.parametrize(
    "hours, remaining, status, tier",
    [
        (44.0, 6.0, PENDING, None),
        (45.0, 5.0, PENDING, AlertTypeEnum.WARNING),
        (46.0, 4.0, PENDING, AlertTypeEnum.WARNING),
        (50.0, 0.0, DUE, AlertTypeEnum.DUE),
        (52.0, -2.0, OVERDUE, AlertTypeEnum.OVERDUE),
        (53.0, -3.0, OVERDUE, AlertTypeEnum.OVERDUE),
    ],
)
def test_flight_hours_classification(hours, remaining, status, tier):
    result = evaluate_due_point(
        trigger=_trigger(),
        due_at_date=None,
        due_at_value=50.0,
        metrics=_snapshot(hours=hours),
    )
    assert result.remaining_value == remaining
    assert result.remaining_days is None
    assert result.current.value == hours
    assert result.status == status
    assert result.tier == tier


def test_fractional_totals_hit_due_exactly():
    result = evaluate_due_point(
        trigger=_trigger(),
        due_at_date=None,
        due_at_value=50.3,
        metrics=_snapshot(hours=50.1 + 0.2),
    )
    assert result.remaining_value == 0
    assert result.status == DUE


def test_calendar_overdue_by_days():
    trigger = _trigger(mp_models.TriggerTypeEnum.CALENDAR_DAYS, interval=180, warning=14)
    commissioned = date(2024, 11, 13)  # 200 days before NOW
    due_date, due_value = compute_due_point(trigger, baseline_value=None, baseline_date=commissioned)
    assert due_value is None
    assert due_date == date(2025, 5, 12)

    result = evaluate_due_point(trigger=trigger, due_at_date=due_date, due_at_value=None, metrics=_snapshot())
    assert result.remaining_days == -20
    assert result.remaining_value is None
    assert result.current.value == 200
    assert result.status == OVERDUE
    assert result.tier == AlertTypeEnum.OVERDUE


def test_calendar_warning_and_due_day():
    trigger = _trigger(mp_models.TriggerTypeEnum.CALENDAR_DAYS, interval=30, warning=7)
    warning = evaluate_due_point(
        trigger=trigger, due_at_date=date(2025, 6, 8), due_at_value=None, metrics=_snapshot()
    )
    due_today = evaluate_due_point(
        trigger=trigger, due_at_date=date(2025, 6, 1), due_at_value=None, metrics=_snapshot()
    )
    assert (warning.status, warning.tier, warning.remaining_days) == (PENDING, AlertTypeEnum.WARNING, 7)
    assert (due_today.status, due_today.tier) == (DUE, AlertTypeEnum.DUE)


def test_cycle_triggers_read_their_own_counter():
    cycles = _trigger(mp_models.TriggerTypeEnum.FLIGHT_CYCLES, interval=100, warning=10)
    battery = _trigger(mp_models.TriggerTypeEnum.BATTERY_CYCLES, interval=300, warning=20)
    snapshot = _snapshot(hours=999.0, cycles=95.0, battery=150.0)

    by_cycles = evaluate_due_point(trigger=cycles, due_at_date=None, due_at_value=100.0, metrics=snapshot)
    by_battery = evaluate_due_point(trigger=battery, due_at_date=None, due_at_value=300.0, metrics=snapshot)

    assert by_cycles.remaining_value == 5.0
    assert by_cycles.tier == AlertTypeEnum.WARNING
    assert by_battery.remaining_value == 150.0
    assert by_battery.tier is None


def test_evaluate_reads_schedule_without_mutating_it():
    trigger = _trigger()
    schedule = mp_models.MaintenanceSchedule(
        id="sch-1",
        aircraft_id="ac-1",
        trigger_id=trigger.id,
        status=PENDING,
        due_at_value=50.0,
    )
    schedule.trigger = trigger

    first = evaluate(schedule, _snapshot(hours=52.0))
    second = evaluate(schedule, _snapshot(hours=52.0))

    assert first == second
    assert first.schedule_id == "sch-1"
    assert schedule.status == PENDING
    assert schedule.due_at_value == 50.0


def test_measures_of_different_units_do_not_mix():
    hours = Measure(mp_models.TriggerTypeEnum.FLIGHT_HOURS, 10.0)
    cycles = Measure(mp_models.TriggerTypeEnum.FLIGHT_CYCLES, 10.0)
    with pytest.raises(UnitMismatchError):
        hours - cycles
    with pytest.raises(UnitMismatchError):
        classify(hours, cycles)
    with pytest.raises(UnitMismatchError):
        _snapshot().measure(mp_models.TriggerTypeEnum.CALENDAR_DAYS)


def test_missing_due_point_is_rejected():
    with pytest.raises(ValueError):
        evaluate_due_point(trigger=_trigger(), due_at_date=None, due_at_value=None, metrics=_snapshot())


def test_metric_due_point_adds_interval_to_baseline():
    assert compute_due_point(_trigger(), baseline_value=120.4, baseline_date=None) == (None, 170.4)


def test_status_only_moves_forward():
    assert is_forward(PENDING, DUE)
    assert is_forward(DUE, OVERDUE)
    assert is_forward(PENDING, OVERDUE)
    assert not is_forward(OVERDUE, DUE)
    assert not is_forward(DUE, PENDING)
    assert not is_forward(DUE, DUE)
    assert not is_forward(mp_models.ScheduleStatusEnum.COMPLETED, OVERDUE)

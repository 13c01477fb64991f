from __future__ import annotations

import pytest
from fastapi import HTTPException

from dronemx.apps.fleet import models as fleet_models
from dronemx.apps.maintenance_program import models as mp_models
from dronemx.apps.maintenance_program import router as scheduler_router
from dronemx.apps.maintenance_program.schemas import (
    CalculationPreviewRequest,
    CompleteScheduleRequest,
    CreateWorkOrdersRequest,
    ProgramCreate,
    TriggerCreate,
)


def _seed(db, hours: float = 52.0):
    program = scheduler_router.create_program(
        ProgramCreate(name="Quad-X AMP", code="AMP-QX", aircraft_model="Quad-X", is_default=True),
        db=db,
    )
    trigger = scheduler_router.create_trigger(
        TriggerCreate(
            program_id=program.id,
            name="50-Hour Inspection",
            code="INSP-50H",
            trigger_type=mp_models.TriggerTypeEnum.FLIGHT_HOURS,
            interval_value=50,
            warning_threshold=5,
        ),
        db=db,
    )
    aircraft = fleet_models.Aircraft(registration="DR-API", model="Quad-X", total_flight_hours=hours)
    db.add(aircraft)
    db.commit()
    return aircraft, trigger


def test_routes_are_registered():
    paths = {route.path for route in scheduler_router.router.routes}
    assert {
        "/maintenance-scheduler/run",
        "/maintenance-scheduler/create-work-orders",
        "/maintenance-scheduler/alerts",
        "/maintenance-scheduler/aircraft/{aircraft_id}/initialize",
        "/maintenance-scheduler/schedules/{schedule_id}/complete",
        "/maintenance-scheduler/schedules/counts",
        "/maintenance-scheduler/calculate-preview",
    } <= paths


def test_initialize_run_and_generate_through_router(db_session):
    aircraft, _ = _seed(db_session)

    result = scheduler_router.initialize_aircraft(
        aircraft.id, baseline=scheduler_router.BaselineModeEnum.COMMISSIONING, db=db_session
    )
    assert result.created == 1
    assert result.schedules[0].status == mp_models.ScheduleStatusEnum.OVERDUE

    again = scheduler_router.initialize_aircraft(aircraft.id, db=db_session)
    assert again.created == 0

    summary = scheduler_router.run_scheduler(db=db_session)
    assert summary.overdue == 1

    counts = scheduler_router.schedule_counts(db=db_session)
    assert (counts.PENDING, counts.DUE, counts.OVERDUE, counts.COMPLETED) == (0, 0, 1, 0)

    batch = scheduler_router.create_work_orders(CreateWorkOrdersRequest(auto_assign=True), db=db_session)
    assert batch.created == 1

    alerts = scheduler_router.list_alerts(aircraft_id=None, alert_type=None, limit=10, db=db_session)
    assert [a.alert_type for a in alerts] == ["OVERDUE"]


def test_complete_and_history_through_router(db_session):
    aircraft, _ = _seed(db_session)
    (schedule,) = scheduler_router.initialize_aircraft(aircraft.id, db=db_session).schedules

    completed = scheduler_router.complete_schedule(
        schedule.id, CompleteScheduleRequest(completed_at_value=53.0), db=db_session
    )

    assert completed.due_at_value == 103.0
    history = scheduler_router.schedule_history(schedule.id, db=db_session)
    assert [h.completed_at_value for h in history] == [53.0]


def test_errors_map_to_http_status(db_session):
    with pytest.raises(HTTPException) as missing:
        scheduler_router.initialize_aircraft("missing", db=db_session)
    assert missing.value.status_code == 404
    assert missing.value.detail["code"] == "not_found"

    aircraft, _ = _seed(db_session)
    (schedule,) = scheduler_router.initialize_aircraft(aircraft.id, db=db_session).schedules
    scheduler_router.deactivate_trigger(schedule.trigger_id, db=db_session)

    with pytest.raises(HTTPException) as inactive:
        scheduler_router.complete_schedule(
            schedule.id, CompleteScheduleRequest(completed_at_value=60.0), db=db_session
        )
    assert inactive.value.status_code == 409


def test_calculation_preview_writes_nothing(db_session):
    _, trigger = _seed(db_session)

    preview = scheduler_router.calculate_preview(
        CalculationPreviewRequest(trigger_id=trigger.id, flight_hours=47.0, baseline_value=0.0),
        db=db_session,
    )

    assert preview.due_at_value == 50.0
    assert preview.remaining_value == 3.0
    assert preview.status == mp_models.ScheduleStatusEnum.PENDING
    assert preview.alert_type == "WARNING"
    assert scheduler_router.list_schedules(
        aircraft_id=None, status_filter=None, include_inactive=True, skip=0, limit=100, db=db_session
    ) == []

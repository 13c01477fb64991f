from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

from dronemx.apps.fleet import schemas as fleet_schemas
from dronemx.apps.fleet import services as fleet_services
from dronemx.apps.fleet.services import FleetMetricProvider
from dronemx.apps.maintenance_program import models as mp_models
from dronemx.apps.maintenance_program import scheduler, services, store
from dronemx.apps.maintenance_program.errors import TransientCollaboratorError
from dronemx.apps.maintenance_program.schemas import BaselineModeEnum, ProgramCreate, TriggerCreate

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _provider(db):
    return FleetMetricProvider(db, clock=lambda: NOW)


def _create_aircraft(db, registration: str = "DR-001", **kwargs):
    aircraft = fleet_services.create_aircraft(
        db,
        payload=fleet_schemas.AircraftCreate(registration=registration, model="Quad-X", **kwargs),
    )
    db.commit()
    return aircraft


def _create_trigger(db, *, code: str, trigger_type, interval, warning):
    program = services.get_default_program(db, "Quad-X")
    if program is None:
        program = services.create_program(
            db,
            payload=ProgramCreate(name="Quad-X AMP", code="AMP-QX", aircraft_model="Quad-X", is_default=True),
        )
    trigger = services.create_trigger(
        db,
        payload=TriggerCreate(
            program_id=program.id,
            name=code,
            code=code,
            trigger_type=trigger_type,
            interval_value=interval,
            warning_threshold=warning,
        ),
    )
    db.commit()
    return trigger


def _fly_to(db, aircraft, hours: float) -> None:
    fleet_services.record_utilisation(db, aircraft.id, flight_hours=hours - aircraft.total_flight_hours)
    db.commit()


def _run(db, **kwargs):
    return scheduler.run_scheduler(db, metric_provider=_provider(db), **kwargs)


def test_flight_hours_schedule_walks_through_tiers(db_session):
    aircraft = _create_aircraft(db_session)
    _create_trigger(
        db_session, code="INSP-50H", trigger_type=mp_models.TriggerTypeEnum.FLIGHT_HOURS, interval=50, warning=5
    )
    (schedule,) = scheduler.initialize_aircraft_schedules(db_session, aircraft.id, metric_provider=_provider(db_session))
    assert schedule.due_at_value == 50.0

    expectations = [
        # hours, updated, warnings, due, overdue, persisted status
        (44.0, 0, 0, 0, 0, mp_models.ScheduleStatusEnum.PENDING),
        (46.0, 0, 1, 0, 0, mp_models.ScheduleStatusEnum.PENDING),
        (50.0, 1, 0, 1, 0, mp_models.ScheduleStatusEnum.DUE),
        (52.0, 1, 0, 0, 1, mp_models.ScheduleStatusEnum.OVERDUE),
        (53.0, 0, 0, 0, 1, mp_models.ScheduleStatusEnum.OVERDUE),
    ]
    for hours, updated, warnings, due, overdue, status in expectations:
        _fly_to(db_session, aircraft, hours)
        summary = _run(db_session)
        assert summary.processed == 1
        assert (summary.updated, summary.warnings, summary.due, summary.overdue) == (
            updated,
            warnings,
            due,
            overdue,
        ), hours
        assert store.get_schedule(db_session, schedule.id).status == status


def test_second_run_with_same_metrics_changes_nothing(db_session):
    aircraft = _create_aircraft(db_session, total_flight_hours=51.0)
    _create_trigger(
        db_session, code="INSP-50H", trigger_type=mp_models.TriggerTypeEnum.FLIGHT_HOURS, interval=50, warning=5
    )
    (schedule,) = scheduler.initialize_aircraft_schedules(
        db_session, aircraft.id, baseline=BaselineModeEnum.COMMISSIONING, metric_provider=_provider(db_session)
    )
    version = schedule.version

    first = _run(db_session)
    second = _run(db_session)

    assert (first.overdue, second.overdue) == (1, 1)
    assert second.updated == 0
    assert store.get_schedule(db_session, schedule.id).version == version


def test_calendar_schedule_from_commissioning_is_overdue(db_session):
    aircraft = _create_aircraft(db_session, commissioned_on=(NOW - timedelta(days=200)).date())
    _create_trigger(
        db_session, code="CAL-180", trigger_type=mp_models.TriggerTypeEnum.CALENDAR_DAYS, interval=180, warning=14
    )
    (schedule,) = scheduler.initialize_aircraft_schedules(
        db_session, aircraft.id, baseline=BaselineModeEnum.COMMISSIONING, metric_provider=_provider(db_session)
    )

    assert schedule.due_at_date == (NOW - timedelta(days=20)).date()
    assert schedule.status == mp_models.ScheduleStatusEnum.OVERDUE

    summary = _run(db_session)
    assert summary.overdue == 1

    (alert,) = scheduler.get_alerts(db_session, metric_provider=_provider(db_session))
    assert alert.alert_type == "OVERDUE"
    assert alert.remaining_days == -20
    assert alert.remaining_value is None
    assert alert.current_value == 200


def test_status_never_regresses_when_metrics_drop(db_session):
    aircraft = _create_aircraft(db_session)
    _create_trigger(
        db_session, code="INSP-50H", trigger_type=mp_models.TriggerTypeEnum.FLIGHT_HOURS, interval=50, warning=5
    )
    (schedule,) = scheduler.initialize_aircraft_schedules(db_session, aircraft.id, metric_provider=_provider(db_session))
    _fly_to(db_session, aircraft, 55.0)
    _run(db_session)

    aircraft.total_flight_hours = 10.0  # corrected logbook entry
    db_session.commit()
    summary = _run(db_session)

    assert summary.updated == 0
    assert summary.overdue == 0
    assert store.get_schedule(db_session, schedule.id).status == mp_models.ScheduleStatusEnum.OVERDUE


def test_cancelled_run_stops_between_schedules(db_session):
    aircraft = _create_aircraft(db_session, total_flight_hours=60.0)
    for code in ("INSP-A", "INSP-B", "INSP-C"):
        _create_trigger(
            db_session, code=code, trigger_type=mp_models.TriggerTypeEnum.FLIGHT_HOURS, interval=50, warning=5
        )
    scheduler.initialize_aircraft_schedules(
        db_session, aircraft.id, baseline=BaselineModeEnum.COMMISSIONING, metric_provider=_provider(db_session)
    )
    # Initialisation already marked them OVERDUE; drop them back to look at cancellation alone.
    db_session.query(mp_models.MaintenanceSchedule).update({"status": mp_models.ScheduleStatusEnum.PENDING})
    db_session.commit()

    cancel = threading.Event()
    provider = _provider(db_session)

    class StopAfterFirst:
        def get_current_metrics(self, aircraft_id, *, timeout=None):
            cancel.set()
            return provider.get_current_metrics(aircraft_id, timeout=timeout)

    summary = scheduler.run_scheduler(db_session, metric_provider=StopAfterFirst(), cancel_event=cancel)

    assert summary.cancelled is True
    assert summary.processed == 1
    assert summary.updated == 1
    assert store.count_by_status(db_session)["OVERDUE"] == 1


def test_unavailable_metrics_skip_only_that_aircraft(db_session):
    healthy = _create_aircraft(db_session, "DR-OK", total_flight_hours=50.0)
    flaky = _create_aircraft(db_session, "DR-FLAKY", total_flight_hours=50.0)
    _create_trigger(
        db_session, code="INSP-50H", trigger_type=mp_models.TriggerTypeEnum.FLIGHT_HOURS, interval=50, warning=5
    )
    for aircraft in (healthy, flaky):
        scheduler.initialize_aircraft_schedules(db_session, aircraft.id, metric_provider=_provider(db_session))
    _fly_to(db_session, healthy, 101.0)
    _fly_to(db_session, flaky, 101.0)

    provider = _provider(db_session)
    calls = []

    class FlakyProvider:
        def get_current_metrics(self, aircraft_id, *, timeout=None):
            calls.append((aircraft_id, timeout))
            if aircraft_id == flaky.id:
                raise TransientCollaboratorError("metrics timed out", entity_id=aircraft_id)
            return provider.get_current_metrics(aircraft_id, timeout=timeout)

    summary = scheduler.run_scheduler(db_session, metric_provider=FlakyProvider(), timeout=2.5)

    assert summary.processed == 2
    assert summary.skipped == 1
    assert summary.overdue == 1
    assert [e.code for e in summary.errors] == ["transient_collaborator"]
    assert all(timeout == 2.5 for _, timeout in calls)
    statuses = {
        s.aircraft_id: s.status for s in store.list_schedules(db_session)
    }
    assert statuses[healthy.id] == mp_models.ScheduleStatusEnum.OVERDUE
    assert statuses[flaky.id] == mp_models.ScheduleStatusEnum.PENDING


def test_retired_aircraft_is_skipped_not_fatal(db_session):
    aircraft = _create_aircraft(db_session, total_flight_hours=10.0)
    _create_trigger(
        db_session, code="INSP-50H", trigger_type=mp_models.TriggerTypeEnum.FLIGHT_HOURS, interval=50, warning=5
    )
    scheduler.initialize_aircraft_schedules(db_session, aircraft.id, metric_provider=_provider(db_session))
    aircraft.is_active = False  # retired without the schedule cascade
    db_session.commit()

    summary = _run(db_session)

    assert summary.skipped == 1
    assert summary.errors[0].code == "not_found"

from __future__ import annotations

import threading

from sqlalchemy import update

from dronemx.apps.fleet import models as fleet_models
from dronemx.apps.maintenance_program import models as mp_models
from dronemx.apps.maintenance_program import scheduler, store
from dronemx.apps.maintenance_program.errors import TransientCollaboratorError
from dronemx.apps.work import models as work_models
from dronemx.apps.work import services as work_services


def _seed(db, statuses):
    program = mp_models.MaintenanceProgram(name="Quad-X AMP", code="AMP-QX", aircraft_model="Quad-X")
    aircraft = fleet_models.Aircraft(registration="DR-WO", model="Quad-X", total_flight_hours=60.0)
    db.add_all([program, aircraft])
    db.flush()
    schedules = []
    for index, status in enumerate(statuses):
        trigger = mp_models.MaintenanceTrigger(
            program_id=program.id,
            name=f"Inspection {index}",
            code=f"INSP-{index}",
            trigger_type=mp_models.TriggerTypeEnum.FLIGHT_HOURS,
            interval_value=50.0,
            warning_threshold=5.0,
            priority=mp_models.TriggerPriorityEnum.HIGH,
            required_role="CERTIFYING_TECH",
            is_rii=index == 0,
        )
        db.add(trigger)
        db.flush()
        schedule = mp_models.MaintenanceSchedule(
            aircraft_id=aircraft.id,
            trigger_id=trigger.id,
            status=status,
            due_at_value=50.0,
        )
        db.add(schedule)
        schedules.append(schedule)
    db.commit()
    return aircraft, schedules


def _work_orders(db):
    return db.query(work_models.WorkOrder).all()


def test_due_schedules_get_exactly_one_work_order(db_session):
    _, (due, overdue, pending) = _seed(
        db_session,
        [
            mp_models.ScheduleStatusEnum.DUE,
            mp_models.ScheduleStatusEnum.OVERDUE,
            mp_models.ScheduleStatusEnum.PENDING,
        ],
    )

    first = scheduler.create_work_orders(db_session)
    second = scheduler.create_work_orders(db_session)

    assert first.created == 2
    assert first.failures == []
    assert second.created == 0
    assert second.skipped == 2
    assert len(_work_orders(db_session)) == 2

    for schedule in (due, overdue):
        schedule = store.get_schedule(db_session, schedule.id)
        work_order = work_services.get_work_order(db_session, schedule.linked_work_order_id)
        assert work_order.schedule_id == schedule.id
        assert work_order.wo_type == work_models.WorkOrderTypeEnum.SCHEDULED
        assert work_order.status == work_models.WorkOrderStatusEnum.DRAFT
        assert work_order.assigned_role is None
        assert work_order.priority == work_models.WorkOrderPriorityEnum.HIGH
        assert work_order.wo_number.startswith("WO-DRWO-")
    assert store.get_schedule(db_session, pending.id).linked_work_order_id is None


def test_template_carries_trigger_details_and_auto_assign(db_session):
    _seed(db_session, [mp_models.ScheduleStatusEnum.DUE])

    result = scheduler.create_work_orders(db_session, auto_assign=True)

    work_order = work_services.get_work_order(db_session, result.work_orders[0])
    assert work_order.status == work_models.WorkOrderStatusEnum.RELEASED
    assert work_order.assigned_role == "CERTIFYING_TECH"
    assert work_order.is_rii is True
    assert work_order.task_code == "INSP-0"
    assert work_order.title == "Inspection 0 - DR-WO"


def test_cancelled_work_order_is_replaced(db_session):
    _, (schedule,) = _seed(db_session, [mp_models.ScheduleStatusEnum.OVERDUE])
    first = scheduler.create_work_orders(db_session)
    work_services.transition_work_order(db_session, first.work_orders[0], work_models.WorkOrderStatusEnum.CANCELLED)
    db_session.commit()

    second = scheduler.create_work_orders(db_session)

    assert second.created == 1
    assert second.work_orders != first.work_orders
    assert store.get_schedule(db_session, schedule.id).linked_work_order_id == second.work_orders[0]


def test_failure_on_one_schedule_does_not_block_others(db_session):
    _, (failing, healthy) = _seed(
        db_session,
        [mp_models.ScheduleStatusEnum.DUE, mp_models.ScheduleStatusEnum.DUE],
    )
    real = work_services.WorkOrderService(db_session)

    class FlakyWorkOrders:
        def create(self, aircraft_id, schedule_id, task_template, *, timeout=None):
            if schedule_id == failing.id:
                real.create(aircraft_id, schedule_id, task_template, timeout=timeout)
                raise TransientCollaboratorError("work order service timed out", entity_id=schedule_id)
            return real.create(aircraft_id, schedule_id, task_template, timeout=timeout)

        def is_cancelled(self, work_order_id):
            return real.is_cancelled(work_order_id)

    result = scheduler.create_work_orders(db_session, work_order_service=FlakyWorkOrders())

    assert result.created == 1
    assert [(f.schedule_id, f.code) for f in result.failures] == [(failing.id, "transient_collaborator")]
    assert store.get_schedule(db_session, failing.id).linked_work_order_id is None
    assert store.get_schedule(db_session, healthy.id).linked_work_order_id == result.work_orders[0]
    # The half-created work order went down with the failed transaction.
    assert [wo.schedule_id for wo in _work_orders(db_session)] == [healthy.id]


def test_version_conflict_while_linking_leaves_one_work_order(db_session):
    _, (schedule,) = _seed(db_session, [mp_models.ScheduleStatusEnum.DUE])
    real = work_services.WorkOrderService(db_session)
    table = mp_models.MaintenanceSchedule.__table__
    calls = []

    class RacingWorkOrders:
        def create(self, aircraft_id, schedule_id, task_template, *, timeout=None):
            calls.append(schedule_id)
            if len(calls) == 1:
                db_session.execute(
                    update(table).where(table.c.id == schedule_id).values(version=table.c.version + 1)
                )
            return real.create(aircraft_id, schedule_id, task_template, timeout=timeout)

        def is_cancelled(self, work_order_id):
            return real.is_cancelled(work_order_id)

    result = scheduler.create_work_orders(db_session, work_order_service=RacingWorkOrders())

    assert len(calls) == 2
    assert result.created == 1
    assert len(_work_orders(db_session)) == 1
    assert store.get_schedule(db_session, schedule.id).linked_work_order_id == result.work_orders[0]


def test_cancel_event_stops_generation(db_session):
    _seed(db_session, [mp_models.ScheduleStatusEnum.DUE])
    cancel = threading.Event()
    cancel.set()

    result = scheduler.create_work_orders(db_session, cancel_event=cancel)

    assert result.cancelled is True
    assert result.created == 0
    assert _work_orders(db_session) == []

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from typing import Callable, Optional

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from dronemx.apps.maintenance_program import store as schedule_store
from dronemx.apps.maintenance_program.errors import (
    InvalidStateError,
    NotFoundError,
    TransientCollaboratorError,
)
from dronemx.apps.maintenance_program.evaluator import MetricSnapshot

from . import models, schemas

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Aircraft CRUD
# ---------------------------------------------------------------------------


def create_aircraft(db: Session, *, payload: schemas.AircraftCreate) -> models.Aircraft:
    existing = (
        db.query(models.Aircraft)
        .filter(models.Aircraft.registration == payload.registration)
        .first()
    )
    if existing:
        raise InvalidStateError(
            f"Aircraft {payload.registration} already exists.", entity_id=existing.id
        )
    aircraft = models.Aircraft(
        registration=payload.registration,
        serial_number=payload.serial_number,
        model=payload.model,
        commissioned_on=payload.commissioned_on,
        commissioning_flight_hours=payload.commissioning_flight_hours,
        commissioning_flight_cycles=payload.commissioning_flight_cycles,
        commissioning_battery_cycles=payload.commissioning_battery_cycles,
        total_flight_hours=payload.total_flight_hours
        if payload.total_flight_hours is not None
        else payload.commissioning_flight_hours,
        total_flight_cycles=payload.total_flight_cycles
        if payload.total_flight_cycles is not None
        else payload.commissioning_flight_cycles,
        total_battery_cycles=payload.total_battery_cycles
        if payload.total_battery_cycles is not None
        else payload.commissioning_battery_cycles,
    )
    db.add(aircraft)
    db.flush()
    return aircraft


def get_aircraft(db: Session, aircraft_id: str) -> models.Aircraft:
    aircraft = db.get(models.Aircraft, aircraft_id)
    if aircraft is None:
        raise NotFoundError(f"Aircraft {aircraft_id} not found.", entity_id=aircraft_id)
    return aircraft


def record_utilisation(
    db: Session,
    aircraft_id: str,
    *,
    flight_hours: float = 0.0,
    flight_cycles: float = 0.0,
    battery_cycles: float = 0.0,
) -> models.Aircraft:
    """Add a flight's utilisation to the aircraft totals."""
    if min(flight_hours, flight_cycles, battery_cycles) < 0:
        raise InvalidStateError("Utilisation deltas cannot be negative.", entity_id=aircraft_id)
    aircraft = get_aircraft(db, aircraft_id)
    if not aircraft.is_active:
        raise InvalidStateError(f"Aircraft {aircraft.registration} is retired.", entity_id=aircraft_id)
    aircraft.total_flight_hours = (aircraft.total_flight_hours or 0.0) + flight_hours
    aircraft.total_flight_cycles = (aircraft.total_flight_cycles or 0.0) + flight_cycles
    aircraft.total_battery_cycles = (aircraft.total_battery_cycles or 0.0) + battery_cycles
    db.flush()
    return aircraft


def retire_aircraft(db: Session, aircraft_id: str) -> models.Aircraft:
    """Deactivate the aircraft and every schedule it owns. Nothing is deleted."""
    aircraft = get_aircraft(db, aircraft_id)
    if aircraft.is_active:
        aircraft.is_active = False
        aircraft.retired_at = _utcnow()
        db.flush()
    deactivated = schedule_store.deactivate_schedules(db, aircraft_id=aircraft_id)
    db.commit()
    logger.info(
        "Aircraft retired",
        extra={"aircraft_id": aircraft_id, "schedules_deactivated": deactivated},
    )
    return aircraft


# ---------------------------------------------------------------------------
# Metric provider backed by the fleet tables
# ---------------------------------------------------------------------------


class FleetMetricProvider:
    """
    Reads aircraft utilisation totals for the maintenance scheduler.

    `clock` supplies as_of; pass a fixed clock in tests instead of patching
    datetime.
    """

    def __init__(self, db: Session, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.db = db
        self.clock = clock or _utcnow

    def _apply_timeout(self, timeout: Optional[float]) -> None:
        if not timeout:
            return
        bind = self.db.get_bind()
        if bind.dialect.name == "postgresql":
            self.db.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))

    def _load(self, aircraft_id: str, timeout: Optional[float]) -> models.Aircraft:
        try:
            self._apply_timeout(timeout)
            aircraft = self.db.get(models.Aircraft, aircraft_id)
        except OperationalError as exc:
            raise TransientCollaboratorError(
                f"Metrics for aircraft {aircraft_id} unavailable: {exc.orig}",
                entity_id=aircraft_id,
            ) from exc
        if aircraft is None or not aircraft.is_active:
            raise NotFoundError(f"Aircraft {aircraft_id} not found or retired.", entity_id=aircraft_id)
        return aircraft

    def get_current_metrics(self, aircraft_id: str, *, timeout: Optional[float] = None) -> MetricSnapshot:
        aircraft = self._load(aircraft_id, timeout)
        return MetricSnapshot(
            flight_hours=float(aircraft.total_flight_hours or 0.0),
            flight_cycles=float(aircraft.total_flight_cycles or 0.0),
            battery_cycles=float(aircraft.total_battery_cycles or 0.0),
            as_of=self.clock(),
        )

    def get_commissioning_metrics(self, aircraft_id: str, *, timeout: Optional[float] = None) -> MetricSnapshot:
        aircraft = self._load(aircraft_id, timeout)
        commissioned_on: date = aircraft.commissioned_on or self.clock().date()
        return MetricSnapshot(
            flight_hours=float(aircraft.commissioning_flight_hours or 0.0),
            flight_cycles=float(aircraft.commissioning_flight_cycles or 0.0),
            battery_cycles=float(aircraft.commissioning_battery_cycles or 0.0),
            as_of=datetime.combine(commissioned_on, time.min, tzinfo=timezone.utc),
        )

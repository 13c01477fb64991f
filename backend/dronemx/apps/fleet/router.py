# backend/dronemx/apps/fleet/router.py

from typing import List, NoReturn

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db
from dronemx.apps.maintenance_program.errors import SchedulingError
from . import models, schemas, services

router = APIRouter(
    prefix="/aircraft",
    tags=["aircraft"],
)


def _raise_http(exc: SchedulingError) -> NoReturn:
    raise HTTPException(status_code=exc.http_status, detail=exc.as_dict()) from exc


@router.get("/", response_model=List[schemas.AircraftRead])
def list_aircraft(
    skip: int = 0,
    limit: int = 100,
    only_active: bool = True,
    db: Session = Depends(get_read_db),
):
    query = db.query(models.Aircraft)
    if only_active:
        query = query.filter(models.Aircraft.is_active.is_(True))
    return query.order_by(models.Aircraft.registration).offset(skip).limit(limit).all()


@router.get("/{aircraft_id}", response_model=schemas.AircraftRead)
def get_aircraft(aircraft_id: str, db: Session = Depends(get_read_db)):
    try:
        return services.get_aircraft(db, aircraft_id)
    except SchedulingError as exc:
        _raise_http(exc)


@router.post("/", response_model=schemas.AircraftRead, status_code=status.HTTP_201_CREATED)
def create_aircraft(payload: schemas.AircraftCreate, db: Session = Depends(get_db)):
    try:
        aircraft = services.create_aircraft(db, payload=payload)
    except SchedulingError as exc:
        _raise_http(exc)
    db.commit()
    db.refresh(aircraft)
    return aircraft


@router.post("/{aircraft_id}/utilisation", response_model=schemas.AircraftRead)
def record_utilisation(
    aircraft_id: str,
    payload: schemas.UtilisationRecord,
    db: Session = Depends(get_db),
):
    try:
        aircraft = services.record_utilisation(
            db,
            aircraft_id,
            flight_hours=payload.flight_hours,
            flight_cycles=payload.flight_cycles,
            battery_cycles=payload.battery_cycles,
        )
    except SchedulingError as exc:
        _raise_http(exc)
    db.commit()
    db.refresh(aircraft)
    return aircraft


@router.post("/{aircraft_id}/retire", response_model=schemas.AircraftRead)
def retire_aircraft(aircraft_id: str, db: Session = Depends(get_db)):
    try:
        return services.retire_aircraft(db, aircraft_id)
    except SchedulingError as exc:
        _raise_http(exc)

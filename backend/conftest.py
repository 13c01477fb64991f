from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"

from dronemx.database import Base  # noqa: E402
from dronemx.apps.fleet import models as fleet_models  # noqa: E402
from dronemx.apps.work import models as work_models  # noqa: E402
from dronemx.apps.work import services as work_services  # noqa: E402
from dronemx.apps.maintenance_program import models as maintenance_program_models  # noqa: E402


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(
        bind=engine,
        tables=[
            fleet_models.Aircraft.__table__,
            work_models.WorkOrder.__table__,
            maintenance_program_models.MaintenanceProgram.__table__,
            maintenance_program_models.MaintenanceTrigger.__table__,
            maintenance_program_models.MaintenanceSchedule.__table__,
            maintenance_program_models.MaintenanceComplianceRecord.__table__,
        ],
    )
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(autouse=True)
def _reset_closed_subscribers():
    work_services.clear_closed_subscribers()
    yield
    work_services.clear_closed_subscribers()

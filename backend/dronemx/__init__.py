# backend/dronemx/__init__.py
"""
Import ORM models from each app so that Base.metadata.create_all() sees
all tables and relationship targets resolve.

The model classes live in dronemx/apps/*/models.py.
"""

from .apps.fleet import models as fleet_models                # aircraft + utilisation totals
from .apps.work import models as work_models                  # work orders
from .apps.maintenance_program import models as maintenance_program_models  # programs, triggers, schedules

__all__ = [
    "fleet_models",
    "work_models",
    "maintenance_program_models",
]

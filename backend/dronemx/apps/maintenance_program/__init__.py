# backend/dronemx/apps/maintenance_program/__init__.py
"""
Maintenance scheduling (programs, triggers, per-aircraft schedules).

Only models and schemas are imported at package import time; the fleet and
work apps import the store and errors from here, so importing services
eagerly would create an import cycle.
"""

from . import models, schemas  # noqa: F401

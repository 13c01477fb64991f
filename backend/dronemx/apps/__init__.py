# backend/dronemx/apps/__init__.py
"""Feature apps: fleet (aircraft registry), work (work orders), maintenance_program (scheduling engine)."""

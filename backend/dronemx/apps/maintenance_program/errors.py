# backend/dronemx/apps/maintenance_program/errors.py
#
# Error taxonomy for the scheduling core. Routers answer with `http_status`;
# batch operations (run loop, work order generation) record these per item
# instead of aborting.

from __future__ import annotations

from typing import Optional


class SchedulingError(Exception):
    code = "scheduling_error"
    http_status = 400

    def __init__(self, message: str, *, entity_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id

    def as_dict(self) -> dict:
        return {"code": self.code, "detail": self.message, "entity_id": self.entity_id}


class NotFoundError(SchedulingError):
    """Unknown or retired aircraft, trigger, program or schedule. Not retried."""

    code = "not_found"
    http_status = 404


class InvalidStateError(SchedulingError):
    """Illegal transition or misconfigured trigger. Rejected, never clamped."""

    code = "invalid_state"
    http_status = 409


class TransientCollaboratorError(SchedulingError):
    """Metric provider / work order service timed out or is unavailable."""

    code = "transient_collaborator"
    http_status = 503


class ConcurrencyConflictError(SchedulingError):
    """Optimistic version check failed twice on the same schedule."""

    code = "concurrency_conflict"
    http_status = 409

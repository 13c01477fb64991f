"""Maintenance scheduler runner.

One cycle = re-evaluate every active schedule, then raise work orders for
DUE/OVERDUE ones. Safe to run from cron (both steps are idempotent) or as a
long-lived loop:

    python -m dronemx.jobs.maintenance_scheduler_runner           # one cycle
    python -m dronemx.jobs.maintenance_scheduler_runner --loop    # every SCHEDULER_INTERVAL_SEC
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from typing import Optional

from dronemx.database import WriteSessionLocal
from dronemx.apps.maintenance_program import scheduler

logger = logging.getLogger(__name__)


def run(
    *,
    cancel_event: Optional[threading.Event] = None,
    auto_assign: bool = scheduler.AUTO_ASSIGN_DEFAULT,
    session_factory=WriteSessionLocal,
) -> dict:
    """Execute one scheduler cycle and return a summary dict."""
    db = session_factory()
    try:
        summary = scheduler.run_scheduler(db, cancel_event=cancel_event)
        result = {"run": summary.model_dump(mode="json")}
        if not summary.cancelled:
            batch = scheduler.create_work_orders(db, auto_assign=auto_assign, cancel_event=cancel_event)
            result["work_orders"] = batch.model_dump(mode="json")
        return result
    finally:
        db.close()


def run_loop(
    stop_event: threading.Event,
    *,
    interval_sec: float = scheduler.SCHEDULER_INTERVAL_SEC,
    session_factory=WriteSessionLocal,
) -> int:
    """Repeat run() until stop_event is set. Returns the number of cycles."""
    cycles = 0
    while not stop_event.is_set():
        try:
            run(cancel_event=stop_event, session_factory=session_factory)
        except Exception:
            logger.exception("Maintenance scheduler cycle failed")
        cycles += 1
        stop_event.wait(interval_sec)
    logger.info("Maintenance scheduler loop stopped", extra={"cycles": cycles})
    return cycles


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def _stop(signum, frame):
        logger.info("Stop requested", extra={"signal": signum})
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    if "--loop" in sys.argv[1:]:
        stop = threading.Event()
        _install_signal_handlers(stop)
        run_loop(stop)
    else:
        result = run()
        print("Maintenance scheduler completed:", result)

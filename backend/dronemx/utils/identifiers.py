from __future__ import annotations

import os
import re
import time
import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_uuid7() -> str:
    """
    Generate a UUIDv7 string (time-ordered).

    Used as primary key for aircraft, schedules and work orders so that
    index order follows creation order.
    """
    ts_ms = int(time.time() * 1000)
    raw = bytearray(ts_ms.to_bytes(6, "big", signed=False) + os.urandom(10))
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))


_REG_CLEAN = re.compile(r"[^A-Z0-9]")


def generate_work_order_number(registration: Optional[str], *, now: Optional[datetime] = None) -> str:
    """
    Human-facing work order number: ``WO-<REG>-<YYYYMMDD>-<suffix>``.

    The random suffix keeps numbers unique when several requirements on the
    same aircraft fall due on the same day.
    """
    now = now or datetime.now(timezone.utc)
    reg = _REG_CLEAN.sub("", (registration or "UNKNOWN").upper())[:10] or "UNKNOWN"
    suffix = os.urandom(3).hex().upper()
    return f"WO-{reg}-{now:%Y%m%d}-{suffix}"

from __future__ import annotations

import time
from datetime import date, datetime

from fastapi import APIRouter

from ..notifications import hub


router = APIRouter(prefix="/api/system", tags=["system"])

_STARTED = time.monotonic()


@router.get("/date")
def server_date():
    now = datetime.now().astimezone()
    return {
        "current_date": date.today().isoformat(),
        "server_time": now.isoformat(timespec="seconds"),
        "timezone": now.tzname(),
    }


@router.get("/health")
def system_health():
    return {
        "status": "healthy",
        "uptime_seconds": int(time.monotonic() - _STARTED),
        "connected_clients": hub.connected_count(),
    }

"""Trace events emitted by the scan stream."""

from __future__ import annotations

import time
from typing import Any

TraceEvent = dict[str, Any]


def make_event(stage: str, status: str, message: str, data: dict[str, Any] | None = None) -> TraceEvent:
    payload: TraceEvent = {
        "type": "stage",
        "stage": stage,
        "status": status,
        "message": message,
        "ts": round(time.time(), 3),
    }
    if data:
        payload["data"] = data
    return payload


def final_event(result: Any) -> TraceEvent:
    return {"type": "final", "result": result}

"""
CONTRACT: inline
ROLE: Structured logging to the bus + console.

INPUTS:
  - n/a
OUTPUTS:
  - Topic: log.events  Type: LogEvent

CONFIG KEYS:
  - logging.level: minimum console level

PERF / TIMING:
  - emit never blocks on disk; the log sink persists asynchronously

FAILURE MODES:
  - n/a

LOG EVENTS:
  - n/a

TESTS:
  - tests/test_bus_and_logging.py

CONTRACT DETAILS:
# Logging contract

- Structured LogEvent with module, severity, and context.
- Every event is published; only events at or above the level are printed.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from handsigns.core.clock import now_ns


LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}


class LogEmitter:
    """Emit structured LogEvents to the bus and stdout."""

    def __init__(self, bus: Optional[Any], min_level: str = "info", run_id: str = "") -> None:
        self._bus = bus
        self._min_level = LEVELS.get(min_level, 20)
        self._run_id = run_id

    def emit(self, level: str, module: str, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        record = {
            "t_ns": now_ns(),
            "level": level,
            "message": event,
            "context": {
                "module": module,
                "event": event,
                "details": payload or {},
            },
        }
        if self._run_id:
            record["run_id"] = self._run_id
        if self._bus is not None:
            self._bus.publish("log.events", record)
        if LEVELS.get(level, 0) >= self._min_level:
            print(json.dumps(record, sort_keys=True))

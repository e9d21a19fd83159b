"""
CONTRACT: inline
ROLE: Monotonic timestamps.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - Topic: n/a  Type: n/a

CONFIG KEYS:
  - n/a

PERF / TIMING:
  - monotonic now_ns() for all modules

FAILURE MODES:
  - n/a

LOG EVENTS:
  - n/a

TESTS:
  - n/a

CONTRACT DETAILS:
# Clock and timestamps

- t_ns is monotonic per process.
- Frames, predictions and log events share the same clock.
"""

from __future__ import annotations

import time


def now_ns() -> int:
    return time.monotonic_ns()


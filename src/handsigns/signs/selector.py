"""
CONTRACT: inline
ROLE: Pick the top label from the running belief.

INPUTS:
  - running belief (label -> smoothed confidence)
OUTPUTS:
  - TopResult

PERF / TIMING:
  - O(labels ever seen); pure read

CONTRACT DETAILS:
# Top-label selection

- Strict ">" against a running maximum that starts at 0.0.
- The first label in iteration order wins ties.
- Empty belief (or nothing above 0) yields ("", 0.0).
"""

from __future__ import annotations

from typing import Mapping

from handsigns.contracts.messages import EMPTY_RESULT, TopResult


def select_top(belief: Mapping[str, float]) -> TopResult:
    best_label = ""
    best_conf = 0.0
    found = False
    for label, conf in belief.items():
        if conf > best_conf:
            best_conf = conf
            best_label = label
            found = True
    if not found:
        return EMPTY_RESULT
    return TopResult(best_label, float(best_conf))

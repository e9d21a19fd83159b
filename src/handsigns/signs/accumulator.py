"""
CONTRACT: inline
ROLE: Per-label exponential smoothing of classifier confidences.

INPUTS:
  - LabelScore[] per frame or still image
OUTPUTS:
  - running belief (label -> smoothed confidence), read by the selector

CONFIG KEYS:
  - signs.smoothing.decay: weight given to history, in (0, 1)
  - signs.smoothing.absence_decay: optional factor applied to labels missing
    from a non-empty frame (null disables)

PERF / TIMING:
  - O(labels in frame) per update; no allocation beyond new labels

FAILURE MODES:
  - non-finite confidence -> entry skipped
  - out-of-range confidence -> accepted as-is

LOG EVENTS:
  - n/a

TESTS:
  - tests/test_accumulator_and_selector.py

CONTRACT DETAILS:
# Score accumulator

- new = (1 - decay) * c + decay * prev; an unseen label starts from 0.
- Labels absent from a frame keep their last value unless absence_decay is
  set. A label can therefore stay "hot" after the subject leaves the frame.
- Insertion order of labels is preserved so tie-breaks are reproducible.
- Not thread-safe: all calls must come from one execution context.
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from handsigns.contracts.messages import RawScores, normalize_scores


class ScoreAccumulator:
    """Running belief over labels, one EMA filter per label."""

    def __init__(self, decay: float = 0.5, absence_decay: Optional[float] = None) -> None:
        if not 0.0 < float(decay) < 1.0:
            raise ValueError(f"decay must be in (0, 1), got {decay}")
        if absence_decay is not None and not 0.0 < float(absence_decay) < 1.0:
            raise ValueError(f"absence_decay must be in (0, 1), got {absence_decay}")
        self._decay = float(decay)
        self._absence_decay = float(absence_decay) if absence_decay is not None else None
        self._belief: Dict[str, float] = {}

    @classmethod
    def from_config(cls, config: Dict) -> "ScoreAccumulator":
        smoothing = config.get("signs", {}).get("smoothing", {})
        return cls(
            decay=float(smoothing.get("decay", 0.5)),
            absence_decay=smoothing.get("absence_decay"),
        )

    @property
    def decay(self) -> float:
        return self._decay

    @property
    def absence_decay(self) -> Optional[float]:
        return self._absence_decay

    @property
    def belief(self) -> Dict[str, float]:
        """Snapshot of the running belief, in insertion order."""
        return dict(self._belief)

    @property
    def belief_view(self) -> Mapping[str, float]:
        """Read-only live view of the running belief."""
        return MappingProxyType(self._belief)

    def __len__(self) -> int:
        return len(self._belief)

    def update(self, raw_scores: RawScores) -> None:
        scores = normalize_scores(raw_scores)
        if not scores:
            return
        gain = 1.0 - self._decay
        seen = set()
        for score in scores:
            conf = score.confidence
            if not math.isfinite(conf):
                continue
            seen.add(score.label)
            previous = self._belief.get(score.label)
            if previous is None:
                self._belief[score.label] = gain * conf
            else:
                self._belief[score.label] = gain * conf + self._decay * previous
        if self._absence_decay is not None:
            for label in self._belief:
                if label not in seen:
                    self._belief[label] *= self._absence_decay

    def reset(self) -> None:
        self._belief.clear()

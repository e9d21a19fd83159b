"""
CONTRACT: inline
ROLE: Typed value objects shared by the classification core and its adapters.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - Topic: n/a  Type: n/a

CONFIG KEYS:
  - n/a

PERF / TIMING:
  - n/a

FAILURE MODES:
  - malformed score entry -> TypeError/ValueError at normalization

LOG EVENTS:
  - n/a

TESTS:
  - tests/test_accumulator_and_selector.py

CONTRACT DETAILS:
# Messages

- LabelScore: one (label, confidence) pair reported by the classifier.
- TopResult: arg-max of the running belief; ("", 0.0) when nothing is known.
- AnnounceDecision: Fire(label) or Skip(reason).
- Bus payloads for signs.prediction are plain dicts built by prediction_msg().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class LabelScore:
    label: str
    confidence: float


@dataclass(frozen=True)
class TopResult:
    label: str
    confidence: float

    @property
    def is_empty(self) -> bool:
        return self == EMPTY_RESULT


EMPTY_RESULT = TopResult("", 0.0)

# Receives every emitted (label, confidence).
Observer = Callable[[str, float], None]


SKIP_BELOW_THRESHOLD = "below_threshold"
SKIP_REPEAT = "repeat"
SKIP_CHANNEL_BUSY = "channel_busy"


@dataclass(frozen=True)
class AnnounceDecision:
    """Outcome of one debouncer check."""

    fire: bool
    label: Optional[str] = None
    reason: str = ""

    @classmethod
    def skip(cls, reason: str) -> "AnnounceDecision":
        return cls(fire=False, label=None, reason=reason)

    @classmethod
    def fire_label(cls, label: str) -> "AnnounceDecision":
        return cls(fire=True, label=label, reason="fire")


RawScores = Union[Mapping[str, float], Iterable[Union[LabelScore, Tuple[str, float]]]]


def normalize_scores(raw_scores: Optional[RawScores]) -> List[LabelScore]:
    """Coerce classifier output into a list of LabelScore.

    Accepts a ``label -> confidence`` mapping, LabelScore objects, or
    ``(label, confidence)`` pairs. Order is preserved.
    """
    if raw_scores is None:
        return []
    if isinstance(raw_scores, Mapping):
        return [LabelScore(str(label), float(conf)) for label, conf in raw_scores.items()]
    out: List[LabelScore] = []
    for item in raw_scores:
        if isinstance(item, LabelScore):
            out.append(item)
        else:
            label, conf = item
            out.append(LabelScore(str(label), float(conf)))
    return out


def prediction_msg(t_ns: int, seq: int, source: str, result: TopResult) -> Dict[str, Any]:
    return {
        "t_ns": t_ns,
        "seq": seq,
        "source": source,
        "label": result.label,
        "confidence": float(result.confidence),
    }

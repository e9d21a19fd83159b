"""
CONTRACT: inline
ROLE: Push a single still-image classification through the selector/observer path.

INPUTS:
  - Topic: vision.stills  Type: StillFrame (routed by the classification worker)
OUTPUTS:
  - observer(label, confidence)

CONFIG KEYS:
  - signs.still_capture.share_belief: reuse the live-stream belief (true) or
    classify each still against a fresh belief (false)

FAILURE MODES:
  - classifier error or malformed result -> skip still -> log inference_failed

LOG EVENTS:
  - module=signs.still_capture, event=inference_failed, payload keys=error

TESTS:
  - tests/test_pipeline.py

CONTRACT DETAILS:
# Still capture

- Same math as the stream: accumulate, then select.
- With a shared belief the still is biased by recent video history; the
  choice is made by whoever constructs the adapter.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from handsigns.contracts.errors import ClassifierInferenceFailed
from handsigns.contracts.messages import Observer, RawScores, TopResult, normalize_scores
from handsigns.signs.accumulator import ScoreAccumulator
from handsigns.signs.selector import select_top


class StillCaptureAdapter:
    """Classify on-demand stills and forward the result to the stream observer."""

    def __init__(
        self,
        observer: Observer,
        accumulator: Optional[ScoreAccumulator] = None,
        accumulator_factory: Optional[Callable[[], ScoreAccumulator]] = None,
        classifier: Any = None,
        logger: Any = None,
    ) -> None:
        if (accumulator is None) == (accumulator_factory is None):
            raise ValueError("pass exactly one of accumulator (shared) or accumulator_factory (isolated)")
        self._observer = observer
        self._accumulator = accumulator
        self._factory = accumulator_factory
        self._classifier = classifier
        self._logger = logger

    @classmethod
    def shared(cls, accumulator: ScoreAccumulator, observer: Observer, **kwargs: Any) -> "StillCaptureAdapter":
        return cls(observer, accumulator=accumulator, **kwargs)

    @classmethod
    def isolated(
        cls,
        decay: float,
        observer: Observer,
        absence_decay: Optional[float] = None,
        **kwargs: Any,
    ) -> "StillCaptureAdapter":
        return cls(observer, accumulator_factory=lambda: ScoreAccumulator(decay, absence_decay), **kwargs)

    @property
    def shares_belief(self) -> bool:
        return self._accumulator is not None

    def on_still_classification(self, raw_scores: RawScores) -> TopResult:
        accumulator = self._accumulator if self._accumulator is not None else self._factory()
        accumulator.update(raw_scores)
        result = select_top(accumulator.belief_view)
        self._observer(result.label, result.confidence)
        return result

    def process_still(self, image: Any) -> Optional[TopResult]:
        if self._classifier is None:
            raise RuntimeError("StillCaptureAdapter has no classifier")
        try:
            scores = normalize_scores(self._classifier.classify(image))
        except ClassifierInferenceFailed as exc:
            self._log_failed(str(exc))
            return None
        except Exception as exc:  # noqa: BLE001
            self._log_failed(f"{type(exc).__name__}: {exc}")
            return None
        return self.on_still_classification(scores)

    def _log_failed(self, error: str) -> None:
        if self._logger is not None:
            self._logger.emit("warning", "signs.still_capture", "inference_failed", {"error": error})

"""
CONTRACT: inline
ROLE: Per-frame classification smoothing and the serialized classification worker.

INPUTS:
  - Topic: vision.frames  Type: VideoFrame (depth-1 subscription, late frames dropped)
  - Topic: vision.stills  Type: StillFrame
  - Topic: signs.control  Type: {"command": "reset"}
OUTPUTS:
  - Topic: signs.prediction  Type: Prediction

CONFIG KEYS:
  - signs.smoothing.decay: EMA decay
  - signs.smoothing.absence_decay: optional decay for absent labels
  - signs.still_capture.share_belief: stills reuse the stream belief

PERF / TIMING:
  - one classifier call per accepted frame; smoothing is O(labels)
  - results are published in submission order

FAILURE MODES:
  - classifier error or malformed result -> skip frame, belief unchanged -> log inference_failed
  - empty classifier result -> no-op, nothing emitted

LOG EVENTS:
  - module=signs.pipeline, event=inference_failed, payload keys=source, seq, error
  - module=signs.pipeline, event=belief_reset, payload keys=labels
  - module=signs.pipeline, event=unknown_command, payload keys=command

TESTS:
  - tests/test_pipeline.py

CONTRACT DETAILS:
# Classification stream

- on_frame_scores: accumulate, select, call the observer synchronously.
- No queueing inside the pipeline; only one call may be in flight. The
  worker thread is the single execution context for the stream, stills and
  resets, so the accumulator needs no lock.
- Observers must hand work off quickly (publish to the bus) because they run
  on the worker thread.
"""

from __future__ import annotations

import queue
import threading
from typing import Any, Dict, Optional

from handsigns.contracts.errors import ClassifierInferenceFailed
from handsigns.contracts.messages import Observer, RawScores, TopResult, normalize_scores, prediction_msg
from handsigns.core.clock import now_ns
from handsigns.signs.accumulator import ScoreAccumulator
from handsigns.signs.selector import select_top
from handsigns.signs.still_capture import StillCaptureAdapter


class ClassificationStreamPipeline:
    """Turns noisy per-frame scores into a stable (label, confidence) stream."""

    def __init__(
        self,
        accumulator: ScoreAccumulator,
        observer: Observer,
        classifier: Any = None,
        logger: Any = None,
    ) -> None:
        self._accumulator = accumulator
        self._observer = observer
        self._classifier = classifier
        self._logger = logger
        self._frames = 0
        self._skipped = 0

    @property
    def accumulator(self) -> ScoreAccumulator:
        return self._accumulator

    @property
    def stats(self) -> Dict[str, int]:
        return {"frames": self._frames, "skipped": self._skipped}

    def on_frame_scores(self, raw_scores: RawScores) -> Optional[TopResult]:
        scores = normalize_scores(raw_scores)
        if not scores:
            # Keep the previous emission on screen.
            self._skipped += 1
            if self._logger is not None:
                self._logger.emit("debug", "signs.pipeline", "empty_scores", {})
            return None
        self._accumulator.update(scores)
        result = select_top(self._accumulator.belief_view)
        self._frames += 1
        self._observer(result.label, result.confidence)
        return result

    def process_frame(self, image: Any, seq: Optional[int] = None) -> Optional[TopResult]:
        if self._classifier is None:
            raise RuntimeError("ClassificationStreamPipeline has no classifier")
        try:
            scores = normalize_scores(self._classifier.classify(image))
        except ClassifierInferenceFailed as exc:
            self._skip_failed(seq, str(exc))
            return None
        except Exception as exc:  # noqa: BLE001
            # Opaque backends: any per-frame failure skips the frame.
            self._skip_failed(seq, f"{type(exc).__name__}: {exc}")
            return None
        return self.on_frame_scores(scores)

    def _skip_failed(self, seq: Optional[int], error: str) -> None:
        self._skipped += 1
        if self._logger is not None:
            self._logger.emit(
                "warning",
                "signs.pipeline",
                "inference_failed",
                {"source": "stream", "seq": seq, "error": error},
            )

    def reset(self) -> None:
        self._accumulator.reset()


def build_still_adapter(
    config: Dict[str, Any],
    accumulator: ScoreAccumulator,
    observer: Observer,
    classifier: Any = None,
    logger: Any = None,
) -> StillCaptureAdapter:
    share = bool(config.get("signs", {}).get("still_capture", {}).get("share_belief", True))
    if share:
        return StillCaptureAdapter.shared(accumulator, observer, classifier=classifier, logger=logger)
    return StillCaptureAdapter.isolated(
        accumulator.decay,
        observer,
        absence_decay=accumulator.absence_decay,
        classifier=classifier,
        logger=logger,
    )


def start_classification_stream(
    bus: Any,
    config: Dict[str, Any],
    logger: Any,
    stop_event: threading.Event,
    classifier: Any,
) -> threading.Thread:
    q_frames = bus.subscribe("vision.frames", max_queue_depth=1)
    q_stills = bus.subscribe("vision.stills")
    q_control = bus.subscribe("signs.control")
    accumulator = ScoreAccumulator.from_config(config)
    seq = 0
    source = "stream"

    def _publish(label: str, confidence: float) -> None:
        nonlocal seq
        seq += 1
        bus.publish("signs.prediction", prediction_msg(now_ns(), seq, source, TopResult(label, confidence)))

    pipeline = ClassificationStreamPipeline(accumulator, _publish, classifier=classifier, logger=logger)
    stills = build_still_adapter(config, accumulator, _publish, classifier=classifier, logger=logger)
    logger.emit(
        "info",
        "signs.pipeline",
        "stream_started",
        {"decay": accumulator.decay, "share_belief": stills.shares_belief},
    )

    def _handle_control(msg: Dict[str, Any]) -> None:
        command = str(msg.get("command", ""))
        if command == "reset":
            labels = len(accumulator)
            pipeline.reset()
            logger.emit("info", "signs.pipeline", "belief_reset", {"labels": labels})
        else:
            logger.emit("warning", "signs.pipeline", "unknown_command", {"command": command})

    def _run() -> None:
        nonlocal source
        while not stop_event.is_set():
            try:
                while True:
                    _handle_control(q_control.get_nowait())
            except queue.Empty:
                pass
            try:
                still = q_stills.get_nowait()
            except queue.Empty:
                still = None
            if still is not None:
                source = "still"
                if stills.process_still(still["data"]) is None:
                    logger.emit("debug", "signs.pipeline", "still_skipped", {"seq": still.get("seq")})
                continue
            try:
                frame = q_frames.get(timeout=0.05)
            except queue.Empty:
                continue
            source = "stream"
            pipeline.process_frame(frame["data"], seq=frame.get("seq"))

    thread = threading.Thread(target=_run, name="sign-classifier", daemon=True)
    thread.start()
    return thread

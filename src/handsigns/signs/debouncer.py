"""
CONTRACT: inline
ROLE: Decide when a smoothed prediction is announced through the speech channel.

INPUTS:
  - Topic: signs.prediction  Type: Prediction
  - Topic: signs.control  Type: {"command": "reset"}
OUTPUTS:
  - Topic: signs.announcement  Type: {"t_ns", "label", "confidence"}

CONFIG KEYS:
  - signs.speech.threshold: strict lower bound on confidence for speaking

PERF / TIMING:
  - O(1) per prediction; the speech engine runs on its own thread

FAILURE MODES:
  - speech channel busy -> skip, retry on a later prediction
  - speak() refused after the busy check -> skip, state unchanged

LOG EVENTS:
  - module=signs.debouncer, event=announced, payload keys=label, confidence
  - module=signs.debouncer, event=speak_refused, payload keys=label

TESTS:
  - tests/test_debouncer.py

CONTRACT DETAILS:
# Announcement debouncing

Rules, in order:
1. confidence <= threshold -> Skip(below_threshold); state kept.
2. label == last announced label -> Skip(repeat).
3. speech channel busy -> Skip(channel_busy); state kept, so the same label
   is retried on the next eligible prediction.
4. otherwise Fire(label). The label is recorded only when speak() accepts it.
"""

from __future__ import annotations

import queue
import threading
from typing import Any, Dict, Optional

from handsigns.contracts.messages import (
    SKIP_BELOW_THRESHOLD,
    SKIP_CHANNEL_BUSY,
    SKIP_REPEAT,
    AnnounceDecision,
)
from handsigns.core.clock import now_ns


class AnnouncementDebouncer:
    """Announce each newly stable label once, never over an ongoing utterance."""

    def __init__(self, speech: Any, threshold: float = 0.7, logger: Any = None) -> None:
        self._speech = speech
        self._threshold = float(threshold)
        self._logger = logger
        self._last_announced: Optional[str] = None

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def last_announced_label(self) -> Optional[str]:
        return self._last_announced

    def consider(self, label: str, confidence: float) -> AnnounceDecision:
        if not confidence > self._threshold:
            return AnnounceDecision.skip(SKIP_BELOW_THRESHOLD)
        if label == self._last_announced:
            return AnnounceDecision.skip(SKIP_REPEAT)
        if self._speech.is_busy():
            return AnnounceDecision.skip(SKIP_CHANNEL_BUSY)
        return AnnounceDecision.fire_label(label)

    def mark_announced(self, label: str) -> None:
        self._last_announced = label

    def announce(self, label: str, confidence: float) -> AnnounceDecision:
        """Run consider() and, on Fire, hand the label to the speech channel."""
        decision = self.consider(label, confidence)
        if not decision.fire:
            return decision
        if not self._speech.speak(label):
            # Channel became busy between the check and the call.
            if self._logger is not None:
                self._logger.emit("debug", "signs.debouncer", "speak_refused", {"label": label})
            return AnnounceDecision.skip(SKIP_CHANNEL_BUSY)
        self.mark_announced(label)
        if self._logger is not None:
            self._logger.emit(
                "info",
                "signs.debouncer",
                "announced",
                {"label": label, "confidence": round(float(confidence), 4)},
            )
        return decision

    def reset(self) -> None:
        self._last_announced = None


def start_announcer(
    bus: Any,
    config: Dict[str, Any],
    logger: Any,
    stop_event: threading.Event,
    speech: Any,
) -> threading.Thread:
    threshold = float(config.get("signs", {}).get("speech", {}).get("threshold", 0.7))
    q = bus.subscribe("signs.prediction")
    q_control = bus.subscribe("signs.control")
    debouncer = AnnouncementDebouncer(speech, threshold=threshold, logger=logger)

    def _run() -> None:
        while not stop_event.is_set():
            try:
                while True:
                    if q_control.get_nowait().get("command") == "reset":
                        debouncer.reset()
            except queue.Empty:
                pass
            try:
                msg = q.get(timeout=0.1)
            except queue.Empty:
                continue
            label = str(msg.get("label", ""))
            confidence = float(msg.get("confidence", 0.0))
            decision = debouncer.announce(label, confidence)
            if decision.fire:
                bus.publish(
                    "signs.announcement",
                    {"t_ns": now_ns(), "label": label, "confidence": confidence},
                )

    thread = threading.Thread(target=_run, name="announcer", daemon=True)
    thread.start()
    return thread

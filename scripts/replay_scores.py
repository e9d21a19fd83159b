#!/usr/bin/env python3
"""Replay recorded classifier scores through smoothing and debouncing.

Each input line is a JSON object, either a bare ``{"label": confidence}``
mapping or ``{"scores": {...}}``. Lines with ``"speech_busy": true`` simulate
an utterance still playing. One line is printed per frame:

  seq  top-label  smoothed-confidence  decision

Handy for tuning signs.smoothing.decay and signs.speech.threshold against
captured sessions without a camera or model.

Run:
  python3 scripts/replay_scores.py scores.jsonl --config configs/default.yaml
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List

from handsigns.core.config import get_path, load_config
from handsigns.signs.accumulator import ScoreAccumulator
from handsigns.signs.debouncer import AnnouncementDebouncer
from handsigns.signs.pipeline import ClassificationStreamPipeline


class _ReplaySpeech:
    def __init__(self) -> None:
        self.busy = False

    def is_busy(self) -> bool:
        return self.busy

    def speak(self, text: str) -> bool:
        return not self.busy


def _load_frames(path: str) -> List[Dict[str, Any]]:
    frames: List[Dict[str, Any]] = []
    with open(path, "r", encoding="utf-8") as handle:
        for line_no, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                frames.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise SystemExit(f"{path}:{line_no}: {exc}") from exc
    return frames


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay classifier scores")
    parser.add_argument("scores", help="JSONL file of per-frame scores")
    parser.add_argument("--config", default=None)
    parser.add_argument("--decay", type=float, default=None, help="Override signs.smoothing.decay")
    parser.add_argument("--threshold", type=float, default=None, help="Override signs.speech.threshold")
    args = parser.parse_args()

    config = load_config(args.config)
    if args.decay is not None:
        config["signs"]["smoothing"]["decay"] = args.decay
    threshold = args.threshold if args.threshold is not None else float(get_path(config, "signs.speech.threshold", 0.7))

    speech = _ReplaySpeech()
    debouncer = AnnouncementDebouncer(speech, threshold=threshold)
    decisions: List[str] = []

    def _observe(label: str, confidence: float) -> None:
        decision = debouncer.announce(label, confidence)
        decisions.append(f"FIRE {decision.label}" if decision.fire else f"skip:{decision.reason}")

    pipeline = ClassificationStreamPipeline(ScoreAccumulator.from_config(config), _observe)
    fired = 0
    for seq, frame in enumerate(_load_frames(args.scores), start=1):
        speech.busy = bool(frame.pop("speech_busy", False))
        scores = frame.get("scores", frame)
        result = pipeline.on_frame_scores(scores)
        if result is None:
            print(f"{seq:5d}  {'-':<16}  {'-':>8}  empty")
            continue
        decision = decisions[-1]
        fired += decision.startswith("FIRE")
        print(f"{seq:5d}  {result.label:<16}  {result.confidence:8.4f}  {decision}")

    print(f"frames={pipeline.stats['frames']} skipped={pipeline.stats['skipped']} announcements={fired}", file=sys.stderr)


if __name__ == "__main__":
    main()

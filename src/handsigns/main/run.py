"""
CONTRACT: inline
ROLE: Orchestration entrypoint for the HandSigns assistant.

INPUTS:
  - Topic: vision.frames  Type: VideoFrame (preview)
  - Topic: signs.prediction  Type: Prediction (display)
OUTPUTS:
  - Topic: vision.stills  Type: StillFrame
  - Topic: signs.control  Type: {"command": "reset"}
  - Topic: log.events  Type: LogEvent

CONFIG KEYS:
  - runtime.fail_fast: stop on the first worker crash
  - video.capture_mode: crop applied to still captures
  - ui.window_name, ui.confidence_threshold, ui.show_guide

PERF / TIMING:
  - start order: config -> bus -> logging -> classifier -> speech -> camera
    -> classification -> announcer -> preview; stop in reverse

FAILURE MODES:
  - classifier unavailable -> exit 2 -> log classifier_unavailable
  - worker crash -> stop pipeline -> log thread_crash

LOG EVENTS:
  - module=main.run, event=classifier_unavailable, payload keys=error
  - module=main.run, event=thread_crash, payload keys=thread, type, message
  - module=main.run, event=still_captured, payload keys=seq, mode, path
  - module=main.run, event=started / shutdown

TESTS:
  - tests/test_run.py

CONTRACT DETAILS:
# Preview keys

- c: capture a still and classify it
- r: reset the running belief and the announcement history
- q / Esc: quit
"""

from __future__ import annotations

import argparse
import json
import sys
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import cv2

from handsigns.adapters.classifier import load_classifier
from handsigns.adapters.speech import create_speech_channel
from handsigns.contracts.errors import ClassifierUnavailable
from handsigns.core.artifacts import create_run_dir, write_run_metadata
from handsigns.core.bus import Bus, drain_latest
from handsigns.core.clock import now_ns
from handsigns.core.config import get_path, load_config
from handsigns.core.log_sink import start_log_sink
from handsigns.core.logging import LogEmitter
from handsigns.signs.debouncer import start_announcer
from handsigns.signs.pipeline import start_classification_stream
from handsigns.ui.display import display_state, draw_overlay
from handsigns.vision.cameras import frame_msg, prepare_still, start_camera


def _ensure_artifacts(config: Dict[str, Any]) -> Path:
    runtime = config.setdefault("runtime", {})
    artifacts_cfg = runtime.setdefault("artifacts", {})
    base_dir = str(artifacts_cfg.get("dir", "artifacts"))
    retention = artifacts_cfg.get("retention", {})
    if not isinstance(retention, dict):
        retention = {}
    max_runs = int(retention.get("max_runs", 10))
    run_id = str(runtime.get("run_id", "") or "")
    run_dir = create_run_dir(base_dir, run_id=run_id, max_runs=max_runs)
    runtime["run_id"] = run_dir.name
    artifacts_cfg["dir"] = base_dir
    artifacts_cfg["dir_run"] = str(run_dir)
    write_run_metadata(run_dir, config)
    return run_dir


def _install_crash_handler(
    config: Dict[str, Any],
    logger: LogEmitter,
    stop_event: threading.Event,
) -> threading.Event:
    fail_fast = bool(config.get("runtime", {}).get("fail_fast", True))
    crash_event = threading.Event()

    def _thread_excepthook(args: threading.ExceptHookArgs) -> None:
        logger.emit(
            "error",
            "main.run",
            "thread_crash",
            {
                "thread": getattr(args.thread, "name", "<unknown>"),
                "type": getattr(args.exc_type, "__name__", str(args.exc_type)),
                "message": str(args.exc_value),
            },
        )
        if fail_fast:
            crash_event.set()
            stop_event.set()

    threading.excepthook = _thread_excepthook
    return crash_event


def _make_drop_handler(logger: LogEmitter) -> Any:
    drop_throttle: Dict[str, float] = {}

    def _on_drop(topic: str, depth: int) -> None:
        # Late video frames are dropped on purpose.
        if topic == "vision.frames":
            return
        now_s = time.time()
        if now_s - drop_throttle.get(topic, 0.0) < 0.25:
            return
        drop_throttle[topic] = now_s
        if topic == "log.events":
            print(
                json.dumps({"t_ns": now_ns(), "level": "warning", "module": "core.bus", "event": "queue_full", "topic": topic, "depth": depth}),
                file=sys.stderr,
            )
            return
        logger.emit("warning", "core.bus", "queue_full", {"topic": topic, "depth": depth})

    return _on_drop


def capture_still(
    bus: Bus,
    frame: Dict[str, Any],
    mode: str,
    logger: LogEmitter,
    stills_dir: Optional[Path] = None,
) -> Dict[str, Any]:
    image = prepare_still(frame["data"], mode)
    msg = frame_msg(image, int(frame.get("seq", 0)), str(frame.get("camera_id", "")))
    msg["mode"] = mode
    path = None
    if stills_dir is not None:
        path = stills_dir / f"still_{msg['seq']:06d}.png"
        cv2.imwrite(str(path), image)
    bus.publish("vision.stills", msg)
    logger.emit("info", "main.run", "still_captured", {"seq": msg["seq"], "mode": mode, "path": str(path) if path else None})
    return msg


def _preview_loop(
    bus: Bus,
    config: Dict[str, Any],
    logger: LogEmitter,
    stop_event: threading.Event,
    run_dir: Path,
) -> None:
    q_frames = bus.subscribe("vision.frames", max_queue_depth=1)
    q_predictions = bus.subscribe("signs.prediction", max_queue_depth=32)
    window = str(get_path(config, "ui.window_name", "HandSigns"))
    threshold = float(get_path(config, "ui.confidence_threshold", 0.7))
    show_guide = bool(get_path(config, "ui.show_guide", True))
    capture_mode = str(get_path(config, "video.capture_mode", "square"))
    state = display_state("", 0.0, threshold)
    last_frame: Optional[Dict[str, Any]] = None

    while not stop_event.is_set():
        prediction = drain_latest(q_predictions)
        if prediction is not None:
            state = display_state(str(prediction["label"]), float(prediction["confidence"]), threshold)
        frame = drain_latest(q_frames)
        if frame is not None:
            last_frame = frame
            cv2.imshow(window, draw_overlay(frame["data"], state, show_guide))
        key = cv2.waitKey(10) & 0xFF
        if key in (ord("q"), 27):
            break
        if key == ord("c") and last_frame is not None:
            capture_still(bus, last_frame, capture_mode, logger, run_dir / "stills")
        elif key == ord("r"):
            bus.publish("signs.control", {"command": "reset"})
    cv2.destroyWindow(window)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="HandSigns live sign classifier")
    parser.add_argument("--config", default=None, help="Path to YAML config")
    parser.add_argument("--headless", action="store_true", help="Run without the preview window")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    run_dir = _ensure_artifacts(config)
    bus = Bus(max_queue_depth=int(get_path(config, "bus.max_queue_depth", 8)))
    logger = LogEmitter(bus, min_level=str(get_path(config, "logging.level", "info")), run_id=str(get_path(config, "runtime.run_id", "")))
    bus.set_drop_handler(_make_drop_handler(logger))
    stop_event = threading.Event()
    crash_event = _install_crash_handler(config, logger, stop_event)

    threads: List[threading.Thread] = []
    log_thread = start_log_sink(bus, config, logger, stop_event)
    if log_thread is not None:
        threads.append(log_thread)

    try:
        classifier = load_classifier(config, logger)
    except ClassifierUnavailable as exc:
        logger.emit("error", "main.run", "classifier_unavailable", {"error": str(exc)})
        stop_event.set()
        _join(threads)
        raise SystemExit(2) from exc

    speech = create_speech_channel(config, logger, stop_event)
    speech_thread = getattr(speech, "thread", None)
    if speech_thread is not None:
        threads.append(speech_thread)
    threads.append(start_classification_stream(bus, config, logger, stop_event, classifier))
    threads.append(start_announcer(bus, config, logger, stop_event, speech))
    threads.append(start_camera(bus, config, logger, stop_event))

    logger.emit("info", "main.run", "started", {"run_dir": str(run_dir), "headless": bool(args.headless)})
    try:
        if args.headless:
            while not stop_event.is_set():
                time.sleep(0.2)
        else:
            _preview_loop(bus, config, logger, stop_event, run_dir)
    except KeyboardInterrupt:
        pass
    finally:
        logger.emit("info", "main.run", "shutdown", {})
        stop_event.set()
        _join(threads)

    if crash_event.is_set():
        raise SystemExit(1)


def _join(threads: List[threading.Thread], timeout_s: float = 1.0) -> None:
    for thread in reversed(threads):
        thread.join(timeout=timeout_s)


if __name__ == "__main__":
    main()

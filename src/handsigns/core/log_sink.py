"""handsigns.core.log_sink

CONTRACT: inline
ROLE: Persist structured LogEvent messages to disk as JSONL.

INPUTS:
  - Topic: log.events  Type: LogEvent
OUTPUTS:
  - <run_dir>/logs/events.jsonl

CONFIG KEYS:
  - logging.file.enabled: enable file logging
  - logging.file.flush_interval_ms: flush interval
  - logging.file.rotate_mb: optional rotation size (0 disables)
  - runtime.artifacts.dir_run: run directory path

FAILURE MODES:
  - write failure -> stop sink -> log log_write_failed
"""

from __future__ import annotations

import json
import queue
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional, TextIO


def start_log_sink(
    bus: Any,
    config: Dict[str, Any],
    logger: Any,
    stop_event: threading.Event,
) -> Optional[threading.Thread]:
    file_cfg = config.get("logging", {}).get("file", {})
    if not isinstance(file_cfg, dict):
        file_cfg = {}
    if not bool(file_cfg.get("enabled", False)):
        return None

    flush_interval_s = float(file_cfg.get("flush_interval_ms", 200.0)) / 1000.0
    rotate_bytes = int(float(file_cfg.get("rotate_mb", 0.0)) * 1024 * 1024)
    run_dir = config.get("runtime", {}).get("artifacts", {}).get("dir_run")
    if not run_dir:
        return None

    logs_dir = Path(str(run_dir)) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    path = logs_dir / "events.jsonl"
    q = bus.subscribe("log.events", max_queue_depth=256)

    def _run() -> None:
        fh = open(path, "a", encoding="utf-8")
        next_flush = time.time() + flush_interval_s
        file_index = 0
        try:
            while not stop_event.is_set() or not q.empty():
                try:
                    event = q.get(timeout=0.1)
                except queue.Empty:
                    event = None
                if event is not None:
                    fh.write(json.dumps(event, sort_keys=True) + "\n")
                now = time.time()
                if now < next_flush:
                    continue
                fh.flush()
                next_flush = now + flush_interval_s
                if rotate_bytes > 0 and fh.tell() >= rotate_bytes:
                    file_index += 1
                    fh = _rotate(fh, path, logs_dir / f"events.{file_index:03d}.jsonl")
        except OSError as exc:
            logger.emit("warning", "core.log_sink", "log_write_failed", {"path": str(path), "error": str(exc)})
        finally:
            fh.flush()
            fh.close()

    thread = threading.Thread(target=_run, name="log-sink", daemon=True)
    thread.start()
    return thread


def _rotate(fh: TextIO, path: Path, rotated: Path) -> TextIO:
    fh.close()
    path.rename(rotated)
    return open(path, "a", encoding="utf-8")

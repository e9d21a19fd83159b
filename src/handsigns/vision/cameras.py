"""
CONTRACT: inline
ROLE: Camera capture and still-image preparation.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - Topic: vision.frames  Type: VideoFrame

CONFIG KEYS:
  - video.camera.id: camera id used in messages
  - video.camera.device_index: OpenCV device index or path
  - video.camera.width: frame width
  - video.camera.height: frame height
  - video.camera.fps: frame rate
  - video.capture_mode: square | fullscreen (still captures only)

PERF / TIMING:
  - publishes every frame; the classifier subscription keeps only the latest

FAILURE MODES:
  - camera missing -> thread exits -> log camera_missing
  - read failure -> retry -> log frame_drop

LOG EVENTS:
  - module=vision.cameras, event=camera_missing, payload keys=camera_id
  - module=vision.cameras, event=frame_drop, payload keys=camera_id

TESTS:
  - tests/test_cameras.py

CONTRACT DETAILS:
# Camera capture

- Timestamp frames and emit VideoFrame {"t_ns", "seq", "camera_id", "width",
  "height", "data"} where data is the BGR ndarray.
- Still captures are cropped to a centred square in square mode so the
  classifier sees the same region as the on-screen guide.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Dict

import cv2
import numpy as np

from handsigns.core.clock import now_ns


CAPTURE_SQUARE = "square"
CAPTURE_FULLSCREEN = "fullscreen"


def start_camera(
    bus: Any,
    config: Dict[str, Any],
    logger: Any,
    stop_event: threading.Event,
) -> threading.Thread:
    cam_cfg = config.get("video", {}).get("camera", {})
    camera_id = str(cam_cfg.get("id", "cam0"))
    device = cam_cfg.get("device_index", 0)
    width = int(cam_cfg.get("width", 1280))
    height = int(cam_cfg.get("height", 720))
    fps = int(cam_cfg.get("fps", 30))
    thread = threading.Thread(
        target=_camera_loop,
        name=f"camera-{camera_id}",
        args=(bus, logger, stop_event, camera_id, device, width, height, fps),
        daemon=True,
    )
    thread.start()
    return thread


def _camera_loop(
    bus: Any,
    logger: Any,
    stop_event: threading.Event,
    camera_id: str,
    device: Any,
    width: int,
    height: int,
    fps: int,
) -> None:
    cap = cv2.VideoCapture(device)
    if not cap.isOpened():
        logger.emit("error", "vision.cameras", "camera_missing", {"camera_id": camera_id})
        stop_event.set()
        return
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    cap.set(cv2.CAP_PROP_FPS, fps)
    seq = 0
    try:
        while not stop_event.is_set():
            ok, frame = cap.read()
            if not ok:
                logger.emit("warning", "vision.cameras", "frame_drop", {"camera_id": camera_id})
                time.sleep(0.05)
                continue
            seq += 1
            bus.publish("vision.frames", frame_msg(frame, seq, camera_id))
    finally:
        cap.release()


def frame_msg(frame: np.ndarray, seq: int, camera_id: str) -> Dict[str, Any]:
    height, width = frame.shape[:2]
    return {
        "t_ns": now_ns(),
        "seq": seq,
        "camera_id": camera_id,
        "width": int(width),
        "height": int(height),
        "data": frame,
    }


def crop_center_square(image: np.ndarray) -> np.ndarray:
    """Crop the largest centred square out of an image."""
    height, width = image.shape[:2]
    side = min(width, height)
    x0 = (width - side) // 2
    y0 = (height - side) // 2
    return image[y0 : y0 + side, x0 : x0 + side]


def prepare_still(image: np.ndarray, mode: str) -> np.ndarray:
    mode = str(mode or CAPTURE_SQUARE).lower()
    if mode == CAPTURE_SQUARE:
        return np.ascontiguousarray(crop_center_square(image))
    if mode == CAPTURE_FULLSCREEN:
        return image.copy()
    raise ValueError(f"Unsupported capture mode: {mode}")

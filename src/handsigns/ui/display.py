"""
CONTRACT: inline
ROLE: Turn predictions into display state and draw it on the preview.

INPUTS:
  - Topic: signs.prediction  Type: Prediction (drained by the runner)
OUTPUTS:
  - annotated preview frame

CONFIG KEYS:
  - ui.confidence_threshold: boundary between the confident and tentative style
  - ui.show_guide: draw the square capture guide

PERF / TIMING:
  - drawing happens on the runner thread only

CONTRACT DETAILS:
# Display

- The label is drawn fully opaque above the threshold and half transparent
  at or below it.
- The meter fill equals the confidence clamped to [0, 1]; green above the
  threshold, yellow otherwise.
- The threshold is strict ">" like the announcement threshold, but the two
  are configured independently.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np


GREEN = (0, 200, 0)
YELLOW = (0, 220, 255)
RED = (0, 0, 255)
WHITE = (255, 255, 255)

Color = Tuple[int, int, int]


@dataclass(frozen=True)
class DisplayState:
    label: str
    confidence: float
    progress: float
    label_alpha: float
    meter_color: Color
    confident: bool


def display_state(label: str, confidence: float, threshold: float = 0.7) -> DisplayState:
    confident = confidence > threshold
    return DisplayState(
        label=label,
        confidence=float(confidence),
        progress=min(1.0, max(0.0, float(confidence))),
        label_alpha=1.0 if confident else 0.5,
        meter_color=GREEN if confident else YELLOW,
        confident=confident,
    )


def draw_overlay(frame: np.ndarray, state: DisplayState, show_guide: bool = True) -> np.ndarray:
    out = frame.copy()
    height, width = out.shape[:2]
    if show_guide:
        _draw_guide(out)

    if state.label:
        text_layer = out.copy()
        cv2.putText(text_layer, state.label, (20, 50), cv2.FONT_HERSHEY_SIMPLEX, 1.4, WHITE, 3, cv2.LINE_AA)
        out = cv2.addWeighted(text_layer, state.label_alpha, out, 1.0 - state.label_alpha, 0)

    bar_x0, bar_y0 = 20, height - 40
    bar_w, bar_h = max(1, width - 40), 16
    cv2.rectangle(out, (bar_x0, bar_y0), (bar_x0 + bar_w, bar_y0 + bar_h), WHITE, 1)
    fill = int(round(bar_w * state.progress))
    if fill > 0:
        cv2.rectangle(out, (bar_x0, bar_y0), (bar_x0 + fill, bar_y0 + bar_h), state.meter_color, -1)
    return out


def _draw_guide(frame: np.ndarray, dash: int = 6, gap: int = 2) -> None:
    """Dashed red square marking the still-capture crop."""
    height, width = frame.shape[:2]
    side = min(width, height)
    x0 = (width - side) // 2
    y0 = (height - side) // 2
    x1, y1 = x0 + side - 1, y0 + side - 1
    step = dash + gap
    for start in range(0, side, step):
        end = min(start + dash, side - 1)
        cv2.line(frame, (x0 + start, y0), (x0 + end, y0), RED, 2)
        cv2.line(frame, (x0 + start, y1), (x0 + end, y1), RED, 2)
        cv2.line(frame, (x0, y0 + start), (x0, y0 + end), RED, 2)
        cv2.line(frame, (x1, y0 + start), (x1, y0 + end), RED, 2)

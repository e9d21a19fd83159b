"""
CONTRACT: inline
ROLE: Load YAML config, validate, and expose typed accessors.

INPUTS:
  - Topic: n/a  Type: n/a
OUTPUTS:
  - Topic: n/a  Type: n/a

CONFIG KEYS:
  - config_path: path to YAML file
  - runtime.enable_validation: enable validation (bool)

PERF / TIMING:
  - load once at startup

FAILURE MODES:
  - missing/invalid key -> raise ValueError listing every problem

LOG EVENTS:
  - module=core.config, event=validation_failed, payload keys=path, errors

TESTS:
  - tests/test_config.py

CONTRACT DETAILS:
# Config contract

- Config files define the camera, classifier, smoothing and speech settings.
- User files are deep-merged onto defaults; missing keys fall back silently.
- Validation rejects values that would run but never behave (decay of 1.0,
  thresholds above 1, unknown backends).
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

import yaml


CAPTURE_MODES = {"square", "fullscreen"}
SPEECH_BACKENDS = {"pyttsx3", "log"}


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load YAML config and apply defaults.

    ``path=None`` returns the defaults unchanged.
    """
    data: Dict[str, Any] = {}
    if path:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config root must be a mapping: {path}")
    merged = _merge_dicts(_default_config(), data)
    if bool(get_path(merged, "runtime.enable_validation", False)):
        errors = validate_config(merged)
        if errors:
            joined = "\n".join(f"- {e}" for e in errors)
            raise ValueError(f"Config validation failed for {path}:\n{joined}")
    return merged


def get_path(config: Dict[str, Any], dotted_path: str, default: Any = None) -> Any:
    """Get a nested config value by dotted path."""
    node: Any = config
    for key in dotted_path.split("."):
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


def _default_config() -> Dict[str, Any]:
    return {
        "runtime": {
            "run_id": "",
            "fail_fast": True,
            "enable_validation": False,
            "artifacts": {
                "dir": "artifacts",
                "retention": {
                    "max_runs": 10,
                },
            },
        },
        "bus": {
            "max_queue_depth": 8,
        },
        "logging": {
            "level": "info",
            "file": {
                "enabled": True,
                "flush_interval_ms": 200,
                "rotate_mb": 50,
            },
        },
        "video": {
            "camera": {
                "id": "cam0",
                "device_index": 0,
                "width": 1280,
                "height": 720,
                "fps": 30,
            },
            "capture_mode": "square",
        },
        "classifier": {
            "model_path": "",
            "labels_path": "",
            "input_size": [224, 224],
            "scale": 1.0 / 255.0,
            "mean": [0.0, 0.0, 0.0],
            "swap_rb": True,
            "apply_softmax": True,
            "top_k": 5,
        },
        "signs": {
            "smoothing": {
                "decay": 0.5,
                # null keeps absent labels at their last value.
                "absence_decay": None,
            },
            "still_capture": {
                "share_belief": True,
            },
            "speech": {
                "backend": "pyttsx3",
                "threshold": 0.7,
                "rate": None,
                "volume": None,
                "voice_id": None,
            },
        },
        "ui": {
            "window_name": "HandSigns",
            "confidence_threshold": 0.7,
            "show_guide": True,
        },
    }


def _merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge_dicts(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def validate_config(config: Dict[str, Any]) -> List[str]:
    """Return a list of validation errors for the merged config."""
    errors: List[str] = []

    decay = _as_float(get_path(config, "signs.smoothing.decay"))
    if decay is None or not 0.0 < decay < 1.0:
        errors.append("signs.smoothing.decay must be a number in (0, 1)")
    absence = get_path(config, "signs.smoothing.absence_decay")
    if absence is not None:
        absence_f = _as_float(absence)
        if absence_f is None or not 0.0 < absence_f < 1.0:
            errors.append("signs.smoothing.absence_decay must be null or a number in (0, 1)")

    for key in ("signs.speech.threshold", "ui.confidence_threshold"):
        value = _as_float(get_path(config, key))
        if value is None or not 0.0 <= value <= 1.0:
            errors.append(f"{key} must be a number in [0, 1]")

    backend = str(get_path(config, "signs.speech.backend", "") or "").lower()
    if backend not in SPEECH_BACKENDS:
        errors.append(f"signs.speech.backend '{backend}' is not one of {sorted(SPEECH_BACKENDS)}")

    mode = str(get_path(config, "video.capture_mode", "") or "").lower()
    if mode not in CAPTURE_MODES:
        errors.append(f"video.capture_mode '{mode}' is not one of {sorted(CAPTURE_MODES)}")

    if not str(get_path(config, "classifier.model_path", "") or ""):
        errors.append("classifier.model_path is required")
    input_size = get_path(config, "classifier.input_size")
    sizes = [_as_float(v) for v in input_size] if isinstance(input_size, list) else []
    if len(sizes) != 2 or any(v is None or v <= 0 for v in sizes):
        errors.append("classifier.input_size must be [width, height] with positive values")
    top_k = get_path(config, "classifier.top_k")
    top_k_value = _as_float(top_k)
    if top_k is not None and (top_k_value is None or top_k_value <= 0):
        errors.append("classifier.top_k must be > 0")

    depth = _as_float(get_path(config, "bus.max_queue_depth", 0))
    if depth is None or depth <= 0:
        errors.append("bus.max_queue_depth must be > 0")

    return errors


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None

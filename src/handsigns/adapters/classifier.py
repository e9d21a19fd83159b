"""
CONTRACT: inline
ROLE: Image classifier backend (OpenCV DNN) producing LabelScore lists.

INPUTS:
  - BGR uint8 image (HxWx3)
OUTPUTS:
  - LabelScore[] sorted by confidence, truncated to top_k

CONFIG KEYS:
  - classifier.model_path: ONNX / Caffe / TensorFlow model file
  - classifier.labels_path: text file, one label per line (defaults to
    <model>.labels.txt next to the model)
  - classifier.input_size: [width, height] of the network input
  - classifier.scale: pixel scale factor
  - classifier.mean: per-channel mean subtracted before scaling
  - classifier.swap_rb: convert BGR frames to RGB
  - classifier.apply_softmax: convert logits to probabilities
  - classifier.top_k: number of labels reported per image

PERF / TIMING:
  - one forward pass per call; run on the classification worker only

FAILURE MODES:
  - model or labels missing/unreadable -> ClassifierUnavailable
  - forward pass error or bad image -> ClassifierInferenceFailed

LOG EVENTS:
  - module=adapters.classifier, event=model_loaded, payload keys=path, labels

TESTS:
  - tests/test_classifier_adapter.py
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Protocol, Sequence

import cv2
import numpy as np

from handsigns.contracts.errors import ClassifierInferenceFailed, ClassifierUnavailable
from handsigns.contracts.messages import LabelScore


class Classifier(Protocol):
    def classify(self, image: Any) -> List[LabelScore]:
        ...


class OpenCVDnnClassifier:
    """cv2.dnn wrapper that maps network output onto label names."""

    def __init__(
        self,
        net: Any,
        labels: Sequence[str],
        input_size: Sequence[int] = (224, 224),
        scale: float = 1.0 / 255.0,
        mean: Sequence[float] = (0.0, 0.0, 0.0),
        swap_rb: bool = True,
        apply_softmax: bool = True,
        top_k: Optional[int] = 5,
    ) -> None:
        if not labels:
            raise ClassifierUnavailable("classifier has no labels")
        self._net = net
        self._labels = [str(label) for label in labels]
        self._input_size = (int(input_size[0]), int(input_size[1]))
        self._scale = float(scale)
        self._mean = tuple(float(v) for v in mean)
        self._swap_rb = bool(swap_rb)
        self._apply_softmax = bool(apply_softmax)
        self._top_k = int(top_k) if top_k else None

    @property
    def labels(self) -> List[str]:
        return list(self._labels)

    def classify(self, image: Any) -> List[LabelScore]:
        if image is None or getattr(image, "size", 0) == 0:
            raise ClassifierInferenceFailed("empty image")
        try:
            blob = cv2.dnn.blobFromImage(
                image,
                scalefactor=self._scale,
                size=self._input_size,
                mean=self._mean,
                swapRB=self._swap_rb,
                crop=False,
            )
            self._net.setInput(blob)
            output = self._net.forward()
        except cv2.error as exc:
            raise ClassifierInferenceFailed(str(exc)) from exc
        return self._to_scores(np.asarray(output, dtype=np.float64).reshape(-1))

    def _to_scores(self, values: np.ndarray) -> List[LabelScore]:
        if values.shape[0] != len(self._labels):
            raise ClassifierInferenceFailed(
                f"model produced {values.shape[0]} outputs for {len(self._labels)} labels"
            )
        probs = _softmax(values) if self._apply_softmax else values
        order = np.argsort(-probs, kind="stable")
        if self._top_k is not None:
            order = order[: self._top_k]
        return [LabelScore(self._labels[int(idx)], float(probs[int(idx)])) for idx in order]


def load_classifier(config: Dict[str, Any], logger: Any = None) -> OpenCVDnnClassifier:
    """Build the configured classifier or raise ClassifierUnavailable."""
    cfg = config.get("classifier", {})
    model_path = str(cfg.get("model_path", "") or "")
    if not model_path:
        raise ClassifierUnavailable("classifier.model_path is not set")
    if not os.path.exists(model_path):
        raise ClassifierUnavailable(f"model not found: {model_path}")
    labels_path = str(cfg.get("labels_path", "") or "") or _default_labels_path(model_path)
    labels = load_labels(labels_path)
    try:
        net = cv2.dnn.readNet(model_path)
    except cv2.error as exc:
        raise ClassifierUnavailable(f"failed to load {model_path}: {exc}") from exc
    if net.empty():
        raise ClassifierUnavailable(f"failed to load {model_path}: empty network")
    classifier = OpenCVDnnClassifier(
        net,
        labels,
        input_size=cfg.get("input_size", (224, 224)),
        scale=float(cfg.get("scale", 1.0 / 255.0)),
        mean=cfg.get("mean", (0.0, 0.0, 0.0)),
        swap_rb=bool(cfg.get("swap_rb", True)),
        apply_softmax=bool(cfg.get("apply_softmax", True)),
        top_k=cfg.get("top_k", 5),
    )
    if logger is not None:
        logger.emit("info", "adapters.classifier", "model_loaded", {"path": model_path, "labels": len(labels)})
    return classifier


def load_labels(path: str) -> List[str]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            labels = [line.strip() for line in handle]
    except OSError as exc:
        raise ClassifierUnavailable(f"labels not readable: {path}: {exc}") from exc
    labels = [label for label in labels if label]
    if not labels:
        raise ClassifierUnavailable(f"labels file is empty: {path}")
    return labels


def _default_labels_path(model_path: str) -> str:
    root, _ = os.path.splitext(model_path)
    return f"{root}.labels.txt"


def _softmax(values: np.ndarray) -> np.ndarray:
    shifted = values - np.max(values)
    exp = np.exp(shifted)
    total = float(np.sum(exp))
    if total <= 0.0 or not np.isfinite(total):
        raise ClassifierInferenceFailed("softmax overflow")
    return exp / total

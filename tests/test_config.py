import os
import tempfile
import unittest

import yaml

from handsigns.core.config import get_path, load_config, validate_config


def _write_yaml(directory: str, data) -> str:  # noqa: ANN001
    path = os.path.join(directory, "config.yaml")
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle)
    return path


class ConfigTests(unittest.TestCase):
    def test_defaults_without_file(self) -> None:
        cfg = load_config(None)
        self.assertEqual(get_path(cfg, "signs.smoothing.decay"), 0.5)
        self.assertEqual(get_path(cfg, "signs.speech.threshold"), 0.7)
        self.assertEqual(get_path(cfg, "ui.confidence_threshold"), 0.7)
        self.assertIsNone(get_path(cfg, "signs.smoothing.absence_decay"))
        self.assertTrue(get_path(cfg, "signs.still_capture.share_belief"))
        self.assertEqual(get_path(cfg, "video.capture_mode"), "square")

    def test_user_values_merge_onto_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = _write_yaml(td, {"signs": {"smoothing": {"decay": 0.8}}, "video": {"camera": {"fps": 15}}})
            cfg = load_config(path)
        self.assertEqual(get_path(cfg, "signs.smoothing.decay"), 0.8)
        self.assertEqual(get_path(cfg, "video.camera.fps"), 15)
        self.assertEqual(get_path(cfg, "video.camera.width"), 1280)
        self.assertEqual(get_path(cfg, "signs.speech.backend"), "pyttsx3")

    def test_get_path_default(self) -> None:
        self.assertEqual(get_path({"a": {"b": 1}}, "a.c", "x"), "x")
        self.assertEqual(get_path({"a": 3}, "a.b", None), None)

    def test_validation_collects_all_errors(self) -> None:
        cfg = load_config(None)
        cfg["signs"]["smoothing"]["decay"] = 1.0
        cfg["signs"]["smoothing"]["absence_decay"] = 0.0
        cfg["signs"]["speech"]["threshold"] = 1.5
        cfg["signs"]["speech"]["backend"] = "espeak"
        cfg["video"]["capture_mode"] = "wide"
        errors = validate_config(cfg)
        joined = "\n".join(errors)
        self.assertIn("signs.smoothing.decay", joined)
        self.assertIn("signs.smoothing.absence_decay", joined)
        self.assertIn("signs.speech.threshold", joined)
        self.assertIn("signs.speech.backend", joined)
        self.assertIn("video.capture_mode", joined)
        self.assertIn("classifier.model_path", joined)

    def test_non_numeric_values_are_reported(self) -> None:
        cfg = load_config(None)
        cfg["classifier"]["model_path"] = "models/hand_signs.onnx"
        cfg["classifier"]["input_size"] = ["wide", 224]
        cfg["classifier"]["top_k"] = "five"
        cfg["bus"]["max_queue_depth"] = "deep"
        joined = "\n".join(validate_config(cfg))
        self.assertIn("classifier.input_size", joined)
        self.assertIn("classifier.top_k", joined)
        self.assertIn("bus.max_queue_depth", joined)

    def test_enabled_validation_raises(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = _write_yaml(td, {"runtime": {"enable_validation": True}})
            with self.assertRaises(ValueError) as ctx:
                load_config(path)
        self.assertIn("classifier.model_path", str(ctx.exception))

    def test_valid_config_passes(self) -> None:
        cfg = load_config(None)
        cfg["classifier"]["model_path"] = "models/hand_signs.onnx"
        self.assertEqual(validate_config(cfg), [])

    def test_non_mapping_root_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = _write_yaml(td, ["not", "a", "mapping"])
            with self.assertRaises(ValueError):
                load_config(path)


if __name__ == "__main__":
    unittest.main()

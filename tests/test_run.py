import os
import tempfile
import threading
import unittest
from pathlib import Path

import numpy as np
import yaml

from handsigns.core.bus import Bus
from handsigns.main.run import _make_drop_handler, capture_still, main


class _DummyLogger:
    def __init__(self) -> None:
        self.events = []

    def emit(self, level, module, event, payload=None):  # noqa: ANN001
        self.events.append((level, module, event, payload))


class RunnerTests(unittest.TestCase):
    def test_capture_still_crops_and_publishes(self) -> None:
        bus = Bus()
        q = bus.subscribe("vision.stills")
        logger = _DummyLogger()
        frame = {"seq": 7, "camera_id": "cam0", "data": np.zeros((6, 10, 3), dtype=np.uint8)}
        with tempfile.TemporaryDirectory() as td:
            msg = capture_still(bus, frame, "square", logger, Path(td))
            self.assertTrue((Path(td) / "still_000007.png").exists())
        published = q.get_nowait()
        self.assertIs(published, msg)
        self.assertEqual(published["data"].shape, (6, 6, 3))
        self.assertEqual(published["mode"], "square")
        self.assertEqual(logger.events[-1][2], "still_captured")

    def test_drop_handler_ignores_video_frames(self) -> None:
        logger = _DummyLogger()
        handler = _make_drop_handler(logger)
        handler("vision.frames", 1)
        handler("signs.prediction", 8)
        handler("signs.prediction", 8)
        self.assertEqual(len(logger.events), 1)
        self.assertEqual(logger.events[0][3], {"topic": "signs.prediction", "depth": 8})

    def test_missing_classifier_exits_with_code_2(self) -> None:
        previous_hook = threading.excepthook
        try:
            with tempfile.TemporaryDirectory() as td:
                path = os.path.join(td, "config.yaml")
                with open(path, "w", encoding="utf-8") as handle:
                    yaml.safe_dump(
                        {
                            "runtime": {"artifacts": {"dir": os.path.join(td, "artifacts")}},
                            "logging": {"level": "error", "file": {"enabled": False}},
                            "signs": {"speech": {"backend": "log"}},
                        },
                        handle,
                    )
                with self.assertRaises(SystemExit) as ctx:
                    main(["--config", path, "--headless"])
                self.assertEqual(ctx.exception.code, 2)
        finally:
            threading.excepthook = previous_hook


if __name__ == "__main__":
    unittest.main()

import sys
import threading
import time
import types
import unittest
from unittest import mock

from handsigns.adapters.speech import LogSpeechChannel, Pyttsx3SpeechChannel, create_speech_channel
from handsigns.contracts.messages import SKIP_BELOW_THRESHOLD, SKIP_CHANNEL_BUSY, SKIP_REPEAT
from handsigns.core.bus import Bus
from handsigns.signs.debouncer import AnnouncementDebouncer, start_announcer


class _FakeSpeech:
    def __init__(self, busy: bool = False, accept: bool = True) -> None:
        self.busy = busy
        self.accept = accept
        self.spoken = []

    def is_busy(self) -> bool:
        return self.busy

    def speak(self, text: str) -> bool:
        if self.busy or not self.accept:
            return False
        self.spoken.append(text)
        return True


class _DummyLogger:
    def __init__(self) -> None:
        self.events = []

    def emit(self, level, module, event, payload=None):  # noqa: ANN001
        self.events.append((level, module, event, payload))


class AnnouncementDebouncerTests(unittest.TestCase):
    def test_repeat_is_skipped(self) -> None:
        speech = _FakeSpeech()
        debouncer = AnnouncementDebouncer(speech, threshold=0.7)
        first = debouncer.announce("cat", 0.9)
        second = debouncer.announce("cat", 0.9)
        self.assertTrue(first.fire)
        self.assertEqual(first.label, "cat")
        self.assertFalse(second.fire)
        self.assertEqual(second.reason, SKIP_REPEAT)
        self.assertEqual(speech.spoken, ["cat"])

    def test_alternating_labels_fire_each_time(self) -> None:
        speech = _FakeSpeech()
        debouncer = AnnouncementDebouncer(speech, threshold=0.7)
        decisions = [debouncer.announce(label, 0.9) for label in ("cat", "dog", "cat")]
        self.assertEqual([d.fire for d in decisions], [True, True, True])
        self.assertEqual(speech.spoken, ["cat", "dog", "cat"])

    def test_busy_channel_does_not_record_label(self) -> None:
        speech = _FakeSpeech(busy=True)
        debouncer = AnnouncementDebouncer(speech, threshold=0.7)
        decision = debouncer.announce("cat", 0.9)
        self.assertFalse(decision.fire)
        self.assertEqual(decision.reason, SKIP_CHANNEL_BUSY)
        self.assertIsNone(debouncer.last_announced_label)

        speech.busy = False
        retry = debouncer.announce("cat", 0.9)
        self.assertTrue(retry.fire)
        self.assertEqual(debouncer.last_announced_label, "cat")

    def test_threshold_is_strict(self) -> None:
        debouncer = AnnouncementDebouncer(_FakeSpeech(), threshold=0.7)
        at_boundary = debouncer.consider("cat", 0.7)
        self.assertFalse(at_boundary.fire)
        self.assertEqual(at_boundary.reason, SKIP_BELOW_THRESHOLD)
        self.assertTrue(debouncer.consider("cat", 0.70000001).fire)

    def test_low_confidence_does_not_reset_last_label(self) -> None:
        debouncer = AnnouncementDebouncer(_FakeSpeech(), threshold=0.7)
        debouncer.announce("cat", 0.9)
        debouncer.announce("cat", 0.1)
        self.assertEqual(debouncer.last_announced_label, "cat")
        self.assertEqual(debouncer.announce("cat", 0.95).reason, SKIP_REPEAT)

    def test_consider_does_not_mutate_state(self) -> None:
        debouncer = AnnouncementDebouncer(_FakeSpeech(), threshold=0.7)
        self.assertTrue(debouncer.consider("cat", 0.9).fire)
        self.assertTrue(debouncer.consider("cat", 0.9).fire)
        debouncer.mark_announced("cat")
        self.assertEqual(debouncer.consider("cat", 0.9).reason, SKIP_REPEAT)

    def test_refused_speak_counts_as_busy(self) -> None:
        speech = _FakeSpeech(accept=False)
        logger = _DummyLogger()
        debouncer = AnnouncementDebouncer(speech, threshold=0.7, logger=logger)
        decision = debouncer.announce("cat", 0.9)
        self.assertFalse(decision.fire)
        self.assertEqual(decision.reason, SKIP_CHANNEL_BUSY)
        self.assertIsNone(debouncer.last_announced_label)
        self.assertTrue(any(e[2] == "speak_refused" for e in logger.events))

    def test_reset_allows_same_label_again(self) -> None:
        debouncer = AnnouncementDebouncer(_FakeSpeech(), threshold=0.7)
        debouncer.announce("cat", 0.9)
        debouncer.reset()
        self.assertTrue(debouncer.announce("cat", 0.9).fire)


class AnnouncerThreadTests(unittest.TestCase):
    def test_announcer_fires_once_per_label(self) -> None:
        bus = Bus(max_queue_depth=16)
        logger = _DummyLogger()
        speech = _FakeSpeech()
        stop = threading.Event()
        q_out = bus.subscribe("signs.announcement")
        config = {"signs": {"speech": {"threshold": 0.7}}}
        thread = start_announcer(bus, config, logger, stop, speech)
        for label, conf in (("A", 0.45), ("A", 0.675), ("A", 0.7875), ("A", 0.84), ("B", 0.9)):
            bus.publish("signs.prediction", {"t_ns": 0, "seq": 0, "source": "stream", "label": label, "confidence": conf})
        deadline = time.time() + 2.0
        while len(speech.spoken) < 2 and time.time() < deadline:
            time.sleep(0.01)
        stop.set()
        thread.join(timeout=1.0)
        self.assertEqual(speech.spoken, ["A", "B"])
        self.assertEqual(q_out.get_nowait()["label"], "A")


class SpeechChannelTests(unittest.TestCase):
    def test_log_channel_is_never_busy(self) -> None:
        logger = _DummyLogger()
        channel = LogSpeechChannel(logger)
        self.assertFalse(channel.is_busy())
        self.assertTrue(channel.speak("hello"))
        self.assertEqual(logger.events[-1][2], "spoken")
        self.assertEqual(logger.events[-1][3], {"text": "hello"})

    def test_factory_selects_backend(self) -> None:
        logger = _DummyLogger()
        stop = threading.Event()
        channel = create_speech_channel({"signs": {"speech": {"backend": "log"}}}, logger, stop)
        self.assertIsInstance(channel, LogSpeechChannel)
        with self.assertRaises(ValueError):
            create_speech_channel({"signs": {"speech": {"backend": "espeak"}}}, logger, stop)


class _FakeEngine:
    def __init__(self, fail_speech: bool = False) -> None:
        self.fail_speech = fail_speech
        self.spoken = []
        self.properties = {}
        self.speaking = threading.Event()
        self.release = threading.Event()
        self.stopped = False

    def setProperty(self, name, value) -> None:  # noqa: ANN001, N802
        self.properties[name] = value

    def say(self, text: str) -> None:
        self.spoken.append(text)

    def runAndWait(self) -> None:  # noqa: N802
        self.speaking.set()
        if self.fail_speech:
            raise RuntimeError("audio device lost")
        self.release.wait(timeout=2.0)

    def stop(self) -> None:
        self.stopped = True


def _fake_pyttsx3(engine=None, init_error=None):  # noqa: ANN001, ANN202
    module = types.ModuleType("pyttsx3")

    def _init():  # noqa: ANN202
        if init_error is not None:
            raise init_error
        return engine

    module.init = _init
    return module


def _wait_until(predicate, timeout_s: float = 2.0) -> bool:  # noqa: ANN001
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class Pyttsx3SpeechChannelTests(unittest.TestCase):
    def test_busy_from_accepted_speak_until_utterance_ends(self) -> None:
        engine = _FakeEngine()
        logger = _DummyLogger()
        stop = threading.Event()
        with mock.patch.dict(sys.modules, {"pyttsx3": _fake_pyttsx3(engine)}):
            channel = create_speech_channel(
                {"signs": {"speech": {"backend": "pyttsx3", "rate": 150, "volume": 0.8}}}, logger, stop
            )
            self.assertIsInstance(channel, Pyttsx3SpeechChannel)
            self.assertTrue(_wait_until(lambda: not channel.is_busy()))
            self.assertEqual(engine.properties, {"rate": 150, "volume": 0.8})

            self.assertTrue(channel.speak("hello"))
            self.assertTrue(channel.is_busy())
            self.assertTrue(engine.speaking.wait(timeout=2.0))
            self.assertTrue(channel.is_busy())
            self.assertFalse(channel.speak("again"))

            engine.release.set()
            self.assertTrue(_wait_until(lambda: not channel.is_busy()))
            self.assertEqual(engine.spoken, ["hello"])

            stop.set()
            channel.thread.join(timeout=1.0)
        self.assertFalse(channel.thread.is_alive())
        self.assertTrue(engine.stopped)
        self.assertTrue(channel.is_busy())

    def test_init_failure_leaves_channel_busy(self) -> None:
        logger = _DummyLogger()
        stop = threading.Event()
        with mock.patch.dict(sys.modules, {"pyttsx3": _fake_pyttsx3(init_error=RuntimeError("no driver"))}):
            channel = Pyttsx3SpeechChannel(logger)
            thread = channel.start(stop)
            thread.join(timeout=1.0)
        self.assertIs(channel.thread, thread)
        self.assertFalse(thread.is_alive())
        self.assertTrue(channel.is_busy())
        self.assertFalse(channel.speak("hello"))
        self.assertEqual(logger.events[-1][2], "speech_unavailable")
        stop.set()

    def test_failed_utterance_clears_busy(self) -> None:
        engine = _FakeEngine(fail_speech=True)
        logger = _DummyLogger()
        stop = threading.Event()
        with mock.patch.dict(sys.modules, {"pyttsx3": _fake_pyttsx3(engine)}):
            channel = Pyttsx3SpeechChannel(logger)
            channel.start(stop)
            self.assertTrue(_wait_until(lambda: not channel.is_busy()))
            self.assertTrue(channel.speak("hello"))
            self.assertTrue(_wait_until(lambda: any(e[2] == "speech_failed" for e in logger.events)))
            self.assertTrue(_wait_until(lambda: not channel.is_busy()))
            self.assertTrue(channel.speak("retry"))
            stop.set()
            channel.thread.join(timeout=1.0)
        failed = [e[3] for e in logger.events if e[2] == "speech_failed"]
        self.assertEqual(failed[0]["text"], "hello")


if __name__ == "__main__":
    unittest.main()

"""
CONTRACT: inline
ROLE: Speech channel backends exposing is_busy() / speak().

INPUTS:
  - speak(text) calls from the announcer thread
OUTPUTS:
  - audio via the system TTS engine (pyttsx3) or a log event (log backend)

CONFIG KEYS:
  - signs.speech.backend: pyttsx3 | log
  - signs.speech.rate: words per minute (null keeps the engine default)
  - signs.speech.volume: 0..1 (null keeps the engine default)
  - signs.speech.voice_id: engine voice id (null keeps the engine default)

PERF / TIMING:
  - speak() never blocks; utterances run on a dedicated engine thread

FAILURE MODES:
  - engine init failure -> speech disabled -> log speech_unavailable
  - utterance failure -> channel freed -> log speech_failed

LOG EVENTS:
  - module=adapters.speech, event=speech_unavailable, payload keys=error
  - module=adapters.speech, event=speech_failed, payload keys=text, error
  - module=adapters.speech, event=spoken, payload keys=text

TESTS:
  - tests/test_debouncer.py

CONTRACT DETAILS:
# Speech channel

- is_busy() is true from an accepted speak() until the utterance finishes.
- speak() returns False without side effects while busy.
- The pyttsx3 engine is created and driven on its own thread because its
  event loop is not safe to share between threads.
"""

from __future__ import annotations

import queue
import threading
from typing import Any, Dict, Optional, Protocol


class SpeechChannel(Protocol):
    def is_busy(self) -> bool:
        ...

    def speak(self, text: str) -> bool:
        ...


class LogSpeechChannel:
    """Headless backend: announcements become log events."""

    def __init__(self, logger: Any) -> None:
        self._logger = logger

    def is_busy(self) -> bool:
        return False

    def speak(self, text: str) -> bool:
        self._logger.emit("info", "adapters.speech", "spoken", {"text": text})
        return True


class Pyttsx3SpeechChannel:
    """pyttsx3 engine driven by a single background thread."""

    def __init__(
        self,
        logger: Any,
        rate: Optional[int] = None,
        volume: Optional[float] = None,
        voice_id: Optional[str] = None,
    ) -> None:
        self._logger = logger
        self._rate = rate
        self._volume = volume
        self._voice_id = voice_id
        self._busy = threading.Event()
        self._available = threading.Event()
        self._pending: queue.Queue[str] = queue.Queue(maxsize=1)
        self._thread: Optional[threading.Thread] = None

    def start(self, stop_event: threading.Event) -> threading.Thread:
        self._thread = threading.Thread(target=self._run, args=(stop_event,), name="speech", daemon=True)
        self._thread.start()
        return self._thread

    @property
    def thread(self) -> Optional[threading.Thread]:
        return self._thread

    def is_busy(self) -> bool:
        return self._busy.is_set() or not self._available.is_set()

    def speak(self, text: str) -> bool:
        if self.is_busy():
            return False
        self._busy.set()
        try:
            self._pending.put_nowait(text)
        except queue.Full:
            self._busy.clear()
            return False
        return True

    def _run(self, stop_event: threading.Event) -> None:
        try:
            import pyttsx3

            engine = pyttsx3.init()
            self._configure(engine)
        except Exception as exc:  # noqa: BLE001
            self._logger.emit("error", "adapters.speech", "speech_unavailable", {"error": str(exc)})
            return
        self._available.set()
        try:
            while not stop_event.is_set():
                try:
                    text = self._pending.get(timeout=0.1)
                except queue.Empty:
                    continue
                try:
                    engine.say(text)
                    engine.runAndWait()
                    self._logger.emit("debug", "adapters.speech", "spoken", {"text": text})
                except Exception as exc:  # noqa: BLE001
                    self._logger.emit("warning", "adapters.speech", "speech_failed", {"text": text, "error": str(exc)})
                finally:
                    self._busy.clear()
        finally:
            self._available.clear()
            engine.stop()

    def _configure(self, engine: Any) -> None:
        if self._rate is not None:
            engine.setProperty("rate", int(self._rate))
        if self._volume is not None:
            engine.setProperty("volume", float(self._volume))
        if self._voice_id:
            engine.setProperty("voice", str(self._voice_id))


def create_speech_channel(
    config: Dict[str, Any],
    logger: Any,
    stop_event: threading.Event,
) -> Any:
    speech_cfg = config.get("signs", {}).get("speech", {})
    backend = str(speech_cfg.get("backend", "pyttsx3")).lower()
    if backend == "log":
        return LogSpeechChannel(logger)
    if backend != "pyttsx3":
        raise ValueError(f"Unsupported speech backend: {backend}")
    channel = Pyttsx3SpeechChannel(
        logger,
        rate=speech_cfg.get("rate"),
        volume=speech_cfg.get("volume"),
        voice_id=speech_cfg.get("voice_id"),
    )
    channel.start(stop_event)
    return channel

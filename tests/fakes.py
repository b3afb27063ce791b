"""Fakes standing in for the microphone, camera, detector and speaker.

Everything here runs without a microphone, camera, speaker or model.
"""

from __future__ import annotations

import asyncio
import threading

import numpy as np

from hey_india.config import SessionConfig, SpeakerConfig
from hey_india.controller import ActivationController, ActivationState
from hey_india.detector import Detection
from hey_india.errors import CaptureError
from hey_india.speaker import Speaker
from hey_india.speech import RecognitionStream


class FakeRecognitionStream(RecognitionStream):
    """Recognition stream driven by the test.

    ``log`` records start/stop calls; each stop entry notes whether the
    result callback was still attached at that moment.
    """

    def __init__(self) -> None:
        super().__init__()
        self.active = False
        self.log: list[tuple[str, bool]] = []
        self.start_error: Exception | None = None

    @property
    def is_active(self) -> bool:
        return self.active

    @property
    def starts(self) -> int:
        return sum(1 for name, _ in self.log if name == "start")

    def start(self) -> None:
        if self.start_error is not None:
            error, self.start_error = self.start_error, None
            raise error
        self._generation += 1
        self.active = True
        self.log.append(("start", self.on_result is not None))
        self._deliver(self._generation, "on_start")

    def stop(self) -> None:
        self.log.append(("stop", self.on_result is not None))
        self.active = False

    def say(self, text: str) -> None:
        """Deliver a recognition result as the platform would."""
        self._deliver(self._generation, "on_result", text)

    def fail(self, code: str) -> None:
        self._deliver(self._generation, "on_error", code)

    def end(self) -> None:
        """Simulate the stream ending on its own (timeout, network hiccup)."""
        self.active = False
        self._deliver(self._generation, "on_end")


class FakeCommandListener:
    """Returns scripted commands.

    Script entries are strings, exceptions (raised), or ``None`` to wait
    until cancelled by the command-window timer.
    """

    def __init__(self, script: list | None = None) -> None:
        self.script = list(script or [])
        self.locale = "en-IN"
        self.calls: list[float] = []
        self.cancelled = 0

    async def listen(self, timeout: float) -> str:
        self.calls.append(timeout)
        item = self.script.pop(0) if self.script else ""
        if isinstance(item, Exception):
            raise item
        if item is None:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        return item


class FakeChannel:
    def __init__(self, commands: list | None = None) -> None:
        self.stream = FakeRecognitionStream()
        self.listener = FakeCommandListener(commands)
        self.supported = True
        self.microphone = True
        self.loads = True

    def is_supported(self) -> bool:
        return self.supported

    def has_microphone(self) -> bool:
        return self.microphone

    def load(self) -> bool:
        return self.loads


class FakeCamera:
    def __init__(self, opens: bool = True) -> None:
        self.opens = opens
        self.is_opened = False
        self.captures = 0
        self.closed = 0
        self.fail = False

    def open(self) -> bool:
        self.is_opened = self.opens
        return self.opens

    def capture(self):
        if self.fail:
            raise CaptureError("camera returned no frame")
        self.captures += 1
        return np.zeros((48, 64, 3), dtype=np.uint8)

    def close(self) -> None:
        self.is_opened = False
        self.closed += 1


class FakeDetector:
    """Returns the labels in ``frames`` one frame per call.

    When ``gate`` is set up, ``detect`` blocks until the test releases it.
    """

    def __init__(self, frames: list[list[str]] | None = None, loads: bool = True) -> None:
        self.frames = list(frames or [])
        self.loads = loads
        self.is_loaded = False
        self.calls = 0
        self.error: Exception | None = None
        self.gate: threading.Event | None = None
        self.entered = threading.Event()

    def load(self) -> bool:
        self.is_loaded = self.loads
        return self.loads

    def detect(self, frame) -> list[Detection]:
        self.calls += 1
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        labels = self.frames.pop(0) if self.frames else []
        return [Detection(label=label, confidence=0.9, box=(0, 0, 10, 10)) for label in labels]


class RecordingEngine:
    """Speech engine that records what would have been spoken."""

    def __init__(self) -> None:
        self.spoken: list[str] = []
        self.stops = 0

    def speak(self, text: str, locale: str) -> None:
        self.spoken.append(text)

    def stop(self) -> None:
        self.stops += 1


class RecordingCue:
    def __init__(self) -> None:
        self.dings = 0
        self.pulses: list[tuple[int, ...]] = []

    def ding(self) -> None:
        self.dings += 1

    def vibrate(self, pattern) -> None:
        self.pulses.append(tuple(pattern))


class Harness:
    """A controller wired to fakes, plus a recorded state trace."""

    def __init__(self, commands=None, frames=None, **session) -> None:
        options = {"command_timeout": 0.05, "recognition_grace": 0.0, "restart_delay": 0.01, "toggle_delay": 0.01}
        options.update(session)
        self.channel = FakeChannel(commands)
        self.camera = FakeCamera()
        self.detector = FakeDetector(frames)
        self.engine = RecordingEngine()
        self.cue = RecordingCue()
        self.speaker = Speaker(SpeakerConfig(), engine=self.engine, blocking=True)
        self.controller = ActivationController(
            channel=self.channel,
            camera=self.camera,
            detector=self.detector,
            speaker=self.speaker,
            cue=self.cue,
            config=SessionConfig(**options),
        )
        self.events = []
        self.controller.add_observer(self.events.append)

    @property
    def stream(self) -> FakeRecognitionStream:
        return self.channel.stream

    @property
    def spoken(self) -> list[str]:
        return self.engine.spoken

    @property
    def trace(self) -> list[ActivationState]:
        states: list[ActivationState] = []
        for event in self.events:
            if not states or states[-1] is not event.state:
                states.append(event.state)
        return states

    @property
    def statuses(self) -> list[str]:
        return [event.status for event in self.events]


async def wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


async def run_cycle(harness: Harness, utterance: str = "hey india") -> None:
    """Deliver an utterance and wait for the controller to listen again."""
    starts = harness.stream.starts
    harness.stream.say(utterance)
    await wait_until(
        lambda: harness.stream.starts > starts
        and harness.controller.state is ActivationState.LISTENING
    )

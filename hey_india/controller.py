"""Activation-and-response state machine.

The controller turns recognition events and camera frames into one ordered
cycle at a time:

    LISTENING -> COMMAND_WINDOW -> CAPTURING -> SPEAKING -> LISTENING

It owns the recognition stream and the camera for the whole session. All
handlers run on a single asyncio loop; blocking camera and detector calls
are pushed to worker threads so status updates keep flowing meanwhile.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from hey_india.config import SessionConfig
from hey_india.cue import DONE_PULSE, PROCESSING_PULSE, WAKE_PULSE
from hey_india.describer import SceneDescriber
from hey_india.errors import DetectionError, DevicePermissionError, UnsupportedError
from hey_india.intent import CommandIntent, CommandMatcher, Utterance, WakePhraseMatcher, normalize

logger = logging.getLogger(__name__)

MSG_NOT_SUPPORTED = "Speech recognition is not supported on this device."
MSG_CAMERA_DENIED = "Camera permission denied or not available."
MSG_MIC_DENIED = "Microphone permission denied or not available."
MSG_MODEL_FAILED = "The object detection model could not be loaded."
MSG_NOT_RECOGNIZED = "Command not recognized. Try saying: What is in front of me?"
MSG_COMMAND_ERROR = "I couldn't hear your command. Please try again."
MSG_ANALYSIS_ERROR = "There was an error analyzing the scene."


class ActivationState(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    COMMAND_WINDOW = "command_window"
    CAPTURING = "capturing"
    SPEAKING = "speaking"
    RESTARTING = "restarting"


@dataclass(frozen=True)
class StatusEvent:
    state: ActivationState
    status: str
    timestamp: float


class _SilentCue:
    def ding(self) -> None:
        pass

    def vibrate(self, pattern) -> None:
        pass


class ActivationController:
    """Wake → confirm → capture → describe → resume, for one session.

    Collaborators:
        channel: exposes ``stream`` (continuous recognizer), ``listener``
            (one-shot command listener), ``is_supported()``,
            ``has_microphone()`` and ``load()``.
        camera: ``open() -> bool``, ``capture()``, ``close()``.
        detector: ``is_loaded``, ``load() -> bool``, ``detect(frame)``.
        speaker: ``say(text)``, ``last_response``.
        cue: ``ding()`` and ``vibrate(pattern)``; optional.
    """

    def __init__(
        self,
        channel,
        camera,
        detector,
        speaker,
        cue=None,
        describer: SceneDescriber | None = None,
        config: SessionConfig | None = None,
    ) -> None:
        self.channel = channel
        self.camera = camera
        self.detector = detector
        self.speaker = speaker
        self.cue = cue or _SilentCue()
        self.describer = describer or SceneDescriber()

        self._observers: list[Callable[[StatusEvent], None]] = []
        self._state = ActivationState.IDLE
        self._status = "idle"
        self._running = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._cycle_task: asyncio.Task | None = None
        self._pending: asyncio.TimerHandle | None = None

        self._apply_config(config or SessionConfig())

    def _apply_config(self, config: SessionConfig) -> None:
        self.config = config
        self._continuous = config.continuous
        self._wake = WakePhraseMatcher(config.wake_phrase)
        self._commands = CommandMatcher(config)

    # Public surface

    @property
    def state(self) -> ActivationState:
        return self._state

    @property
    def status(self) -> str:
        return self._status

    @property
    def running(self) -> bool:
        return self._running

    @property
    def continuous(self) -> bool:
        return self._continuous

    @property
    def last_response(self) -> str:
        return self.speaker.last_response

    def add_observer(self, callback: Callable[[StatusEvent], None]) -> None:
        self._observers.append(callback)

    def remove_observer(self, callback: Callable[[StatusEvent], None]) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    async def start(self, session_config: SessionConfig | None = None) -> None:
        """Start the session and return once it is listening.

        Raises:
            UnsupportedError: Speech recognition is unavailable.
            DevicePermissionError: Camera or microphone is unavailable.
            DetectionError: The detection model could not be loaded.
        """
        if self._running:
            logger.debug("Session already running")
            return

        if session_config is not None:
            self._apply_config(session_config)
        self._loop = asyncio.get_running_loop()
        self._set_status("initializing...")

        if not self.channel.is_supported():
            self._fail_start("speech recognition not supported", MSG_NOT_SUPPORTED)
            raise UnsupportedError("speech recognition is not available")

        if not await asyncio.to_thread(self.camera.open):
            self._fail_start("camera permission denied or not available", MSG_CAMERA_DENIED)
            raise DevicePermissionError("camera")

        if not self.channel.has_microphone():
            self.camera.close()
            self._fail_start("microphone permission denied or not available", MSG_MIC_DENIED)
            raise DevicePermissionError("microphone")

        if not self.detector.is_loaded:
            self._set_status("loading model...")
            if not await asyncio.to_thread(self.detector.load):
                self.camera.close()
                self._fail_start("model failed to load", MSG_MODEL_FAILED)
                raise DetectionError("detector model failed to load")

        self._set_status("loading speech model...")
        if not await asyncio.to_thread(self.channel.load):
            self.camera.close()
            self._fail_start("speech model failed to load", MSG_NOT_SUPPORTED)
            raise UnsupportedError("speech recognition model failed to load")

        self._set_status("model loaded. Ready.")
        self._running = True
        self._open_stream()

    def stop(self) -> None:
        """Stop the session and release camera and recognition resources.

        Safe to call at any time, any number of times.
        """
        self._running = False
        self._cancel_pending()
        self._close_stream()

        task = self._cycle_task
        self._cycle_task = None
        if task is not None and not task.done():
            task.cancel()

        try:
            self.camera.close()
        except Exception as e:
            logger.warning("Camera release failed: %s", e)

        if self._state is not ActivationState.IDLE or self._status != "idle":
            self._transition(ActivationState.IDLE, "idle")

    def set_continuous_mode(self, enabled: bool) -> None:
        """Switch continuous listening on or off, restarting the stream if needed."""
        changed = enabled != self._continuous
        self._continuous = enabled
        logger.info("Continuous mode: %s", "on" if enabled else "off")

        if not changed or not self._running:
            return
        if self._state in (ActivationState.LISTENING, ActivationState.RESTARTING):
            self._close_stream()
            self._transition(ActivationState.RESTARTING, "applying listening mode...")
            self._schedule(self.config.toggle_delay, self._restart_stream)

    # Recognition stream

    def _open_stream(self) -> None:
        stream = self.channel.stream
        stream.bind(self._loop)
        stream.continuous = self._continuous
        stream.locale = self.config.locale
        stream.on_start = self._on_stream_start
        stream.on_result = self._on_result
        stream.on_error = self._on_error
        stream.on_end = self._on_end

        self._transition(ActivationState.LISTENING, "listening for wake phrase...")
        try:
            stream.start()
        except Exception as e:
            logger.warning("Recognition start error: %s", e)
            self._on_end()

    def _close_stream(self) -> None:
        stream = self.channel.stream
        # Detach first so an in-flight event cannot reach a stopped session
        stream.detach()
        try:
            stream.stop()
        except Exception as e:
            logger.warning("Recognition stop error: %s", e)

    def _on_stream_start(self) -> None:
        logger.info("[Hey India] recognition started")

    def _on_result(self, text: str) -> None:
        utterance = Utterance.from_transcript(text)
        logger.info("[Hey India] heard: %s", utterance.text)

        if self._state is not ActivationState.LISTENING:
            logger.debug("Ignoring utterance in state %s", self._state.value)
            return
        if not self._wake.matches(utterance.text):
            return
        self._activate()

    def _on_error(self, code: str) -> None:
        logger.warning("[Hey India] recognition error: %s", code)

    def _on_end(self) -> None:
        logger.info("[Hey India] recognition ended")
        if not self._running or self._state is not ActivationState.LISTENING:
            return

        if self._continuous:
            self._transition(ActivationState.RESTARTING, "restarting listener...")
            self._schedule(self.config.restart_delay, self._restart_stream)
        else:
            self._set_status("stopped listening")
            self.stop()

    def _restart_stream(self) -> None:
        self._pending = None
        if self._running and self._state is ActivationState.RESTARTING:
            self._open_stream()

    def _schedule(self, delay: float, callback: Callable[[], None]) -> None:
        self._cancel_pending()
        self._pending = self._loop.call_later(delay, callback)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    # Activation cycle

    def _activate(self) -> None:
        self._transition(ActivationState.COMMAND_WINDOW, "wake phrase heard")
        # The one-shot listener must never share the microphone with the stream
        self._close_stream()
        self.cue.ding()
        self.cue.vibrate(WAKE_PULSE)
        self._cycle_task = self._loop.create_task(self._run_cycle())

    async def _run_cycle(self) -> None:
        try:
            try:
                command = await self._await_command()
            except Exception as e:
                logger.warning("Command listen error: %s", e)
                self._set_status("error capturing command")
                self._say(MSG_COMMAND_ERROR)
            else:
                intent = self._commands.match(command)
                logger.info("[Hey India] command %r -> %s", command, intent.value)
                if intent.wants_description:
                    await self._analyze_scene(intent)
                else:
                    self._set_status("command not recognized")
                    self._say(MSG_NOT_RECOGNIZED)
        finally:
            if self._cycle_task is asyncio.current_task():
                self._cycle_task = None

        if self._running:
            self._open_stream()

    async def _await_command(self) -> str:
        """Race the command listener against the command-window timer.

        A window that closes without a result counts as an empty command.
        """
        self._set_status("listening for command...")
        listener = self.channel.listener
        listener.locale = self.config.locale
        limit = self.config.command_timeout + self.config.recognition_grace

        try:
            command = await asyncio.wait_for(listener.listen(self.config.command_timeout), timeout=limit)
        except asyncio.TimeoutError:
            logger.info("[Hey India] command window timed out")
            return ""
        return normalize(command)

    async def _analyze_scene(self, intent: CommandIntent) -> None:
        if intent is CommandIntent.FALLBACK:
            self._transition(ActivationState.CAPTURING, "capturing image (fallback)...")
        else:
            self._transition(ActivationState.CAPTURING, "capturing image...")
        self.cue.vibrate(PROCESSING_PULSE)

        try:
            self._set_status("processing image...")
            frame = await asyncio.to_thread(self.camera.capture)
            detections = await asyncio.to_thread(self.detector.detect, frame)
            sentence = self.describer.describe(detections)
        except Exception as e:
            logger.error("Analysis error: %s", e)
            self._transition(ActivationState.SPEAKING, "error during analysis")
            self._say(MSG_ANALYSIS_ERROR)
            return

        if not detections:
            self._transition(ActivationState.SPEAKING, "no objects detected")
        else:
            self._transition(ActivationState.SPEAKING, "done")
            self.cue.vibrate(DONE_PULSE)
        self._say(sentence)

    # Status reporting

    def _fail_start(self, status: str, message: str) -> None:
        self._set_status(status)
        self._say(message)

    def _say(self, text: str) -> None:
        try:
            self.speaker.say(text)
        except Exception as e:
            logger.error("Speaker failed: %s", e)

    def _transition(self, state: ActivationState, status: str) -> None:
        if state is not self._state:
            logger.debug("State %s -> %s", self._state.value, state.value)
        self._state = state
        self._set_status(status)

    def _set_status(self, status: str) -> None:
        self._status = status
        logger.info("[Hey India] status: %s", status)
        event = StatusEvent(state=self._state, status=status, timestamp=time.time())
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.warning("Status observer failed: %s", e)

"""Speech input: continuous wake listening and one-shot command capture.

Audio is read from the microphone with sounddevice and transcribed with
OpenAI Whisper. The continuous stream runs in its own thread and delivers
its events on the asyncio loop it is bound to, mirroring a callback-style
recognition API (``on_start``, ``on_result``, ``on_error``, ``on_end``).
"""

import asyncio
import logging
import re
import threading
import time
from collections.abc import Callable

import numpy as np
from numpy.typing import NDArray

from hey_india.config import VoiceConfig
from hey_india.errors import RecognitionError
from hey_india.intent import normalize

logger = logging.getLogger(__name__)


def language_for(locale: str) -> str:
    """Whisper language code for a locale tag ("en-IN" -> "en")."""
    return locale.replace("_", "-").split("-")[0].lower() or "en"


def is_silence(audio: NDArray[np.float32], peak_threshold: float, rms_threshold: float) -> bool:
    if audio.size == 0:
        return True
    peak = float(np.max(np.abs(audio)))
    if peak < peak_threshold:
        return True
    rms = float(np.sqrt(np.mean(audio.astype(np.float64) ** 2)))
    return rms < rms_threshold


class VoiceInput:
    """Whisper-based speech-to-text."""

    HALLUCINATIONS = {
        "thank you", "thanks for watching", "thank you for watching",
        "thank you so much", "you", "bye", "the end", "subscribe",
        "...", "…",
    }

    HALLUCINATION_PATTERNS = [
        re.compile(r"welcome to (my|our|the) channel", re.I),
        re.compile(r"(like|hit).{0,15}subscribe", re.I),
        re.compile(r"see you (in the |in |next )", re.I),
    ]

    def __init__(self, config: VoiceConfig) -> None:
        self.config = config
        self.model = None

    @property
    def is_loaded(self) -> bool:
        return self.model is not None

    def load(self) -> bool:
        """Load Whisper model.

        Returns:
            True if loaded successfully, False otherwise.
        """
        if self.model is not None:
            return True

        try:
            import whisper

            logger.info("Loading Whisper model: %s", self.config.model)
            self.model = whisper.load_model(self.config.model, device=self.config.device)
            logger.info("Whisper model loaded")
            return True

        except ImportError:
            logger.error("Whisper not installed. Run: pip install openai-whisper")
            return False
        except Exception as e:
            logger.error("Failed to load Whisper model: %s", e)
            return False

    def transcribe(self, audio: NDArray[np.float32], language: str = "en") -> str:
        """Transcribe audio to text.

        Args:
            audio: Audio data as float32 numpy array (16kHz sample rate).
            language: Whisper language code.

        Returns:
            Transcribed text, empty if nothing usable was heard.

        Raises:
            RecognitionError: The model is missing or transcription failed.
        """
        if self.model is None:
            raise RecognitionError("not-loaded", "Whisper model is not loaded")

        try:
            result = self.model.transcribe(
                audio,
                language=language,
                fp16=False,
                condition_on_previous_text=False,
            )
        except Exception as e:
            raise RecognitionError("transcription", f"Transcription error: {e}") from e

        text = result.get("text", "").strip()
        return "" if self._is_hallucination(text) else text

    def _is_hallucination(self, text: str) -> bool:
        if not text:
            return True
        if text.lower().rstrip(".!?,") in self.HALLUCINATIONS:
            logger.debug("STT filtered (hallucination): %r", text)
            return True
        return any(p.search(text) for p in self.HALLUCINATION_PATTERNS)


class Microphone:
    """Exclusive access to the audio input.

    The wake stream and the command listener each hold the microphone for
    as long as their ``InputStream`` is open, so one only opens the device
    once the other has fully closed it.
    """

    def __init__(self, poll_seconds: float = 0.05) -> None:
        self.poll_seconds = poll_seconds
        self._lock = threading.Lock()

    def acquire(self, stop: threading.Event, timeout: float | None = None) -> bool:
        """Wait for the microphone until ``stop`` is set or ``timeout`` passes.

        Returns:
            True if the caller now owns the microphone and must release it.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not stop.is_set():
            wait = self.poll_seconds
            if deadline is not None:
                wait = min(wait, deadline - time.monotonic())
                if wait <= 0:
                    return False
            if self._lock.acquire(timeout=wait):
                return True
        return False

    def release(self) -> None:
        self._lock.release()


# One input device per process
shared_microphone = Microphone()


class PhraseRecorder:
    """Reads microphone blocks and cuts them into spoken phrases."""

    def __init__(self, config: VoiceConfig) -> None:
        self.config = config
        self.block_size = max(1, int(config.block_seconds * config.sample_rate))

    def open(self):
        import sounddevice as sd

        return sd.InputStream(
            samplerate=self.config.sample_rate,
            channels=1,
            dtype="float32",
            blocksize=self.block_size,
            device=self.config.input_device,
        )

    def capture(
        self,
        stream,
        stop: threading.Event,
        max_seconds: float | None = None,
    ) -> NDArray[np.float32] | None:
        """Record one phrase.

        Waits for speech, then records until trailing silence or the phrase
        limit. With ``max_seconds`` the whole call, waiting included, is
        bounded.

        Returns:
            The phrase audio, or None if nothing was said or ``stop`` was set.
        """
        cfg = self.config
        chunks: list[NDArray[np.float32]] = []
        elapsed = 0.0
        spoken = 0.0
        silent_run = 0.0

        while not stop.is_set():
            if max_seconds is not None and elapsed >= max_seconds:
                break

            data, _overflowed = stream.read(self.block_size)
            chunk = np.asarray(data, dtype=np.float32).reshape(-1)
            elapsed += cfg.block_seconds
            quiet = is_silence(chunk, cfg.silence_peak, cfg.silence_rms)

            if not chunks and quiet:
                continue

            chunks.append(chunk)
            spoken += cfg.block_seconds
            silent_run = silent_run + cfg.block_seconds if quiet else 0.0
            if silent_run >= cfg.end_silence or spoken >= cfg.phrase_seconds:
                break

        if stop.is_set() or not chunks:
            return None
        return np.concatenate(chunks)


class RecognitionStream:
    """Callback-style continuous recognizer.

    Events are delivered on the bound asyncio loop. Each ``start`` opens a new
    generation; events from an older generation are dropped, so nothing fires
    after ``stop`` even if the audio thread is still winding down.
    """

    max_alternatives = 1
    interim_results = False

    def __init__(self) -> None:
        self.continuous = True
        self.locale = "en-IN"
        self.on_start: Callable[[], None] | None = None
        self.on_result: Callable[[str], None] | None = None
        self.on_error: Callable[[str], None] | None = None
        self.on_end: Callable[[], None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._generation = 0

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def detach(self) -> None:
        self.on_start = None
        self.on_result = None
        self.on_error = None
        self.on_end = None

    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    @property
    def is_active(self) -> bool:
        raise NotImplementedError

    def _emit(self, generation: int, name: str, *args) -> None:
        loop = self._loop
        if loop is None:
            self._deliver(generation, name, *args)
            return
        try:
            loop.call_soon_threadsafe(self._deliver, generation, name, *args)
        except RuntimeError:
            # Loop already closed
            pass

    def _deliver(self, generation: int, name: str, *args) -> None:
        if generation != self._generation:
            return
        callback = getattr(self, name)
        if callback is not None:
            callback(*args)


class WhisperRecognitionStream(RecognitionStream):
    """Continuous recognition over the microphone."""

    def __init__(self, voice: VoiceInput, config: VoiceConfig, microphone: Microphone | None = None) -> None:
        super().__init__()
        self.voice = voice
        self.config = config
        self.recorder = PhraseRecorder(config)
        self.microphone = microphone or shared_microphone
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def is_active(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        if self.is_active:
            logger.warning("Recognition stream already running")
            return

        self._generation += 1
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._generation, self._stop_event, self.continuous, language_for(self.locale)),
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        self._generation += 1

    def _run(self, generation: int, stop: threading.Event, continuous: bool, language: str) -> None:
        self._emit(generation, "on_start")
        try:
            if not self.microphone.acquire(stop):
                return
            try:
                with self.recorder.open() as stream:
                    while not stop.is_set():
                        audio = self.recorder.capture(stream, stop)
                        if audio is None:
                            continue
                        text = normalize(self.voice.transcribe(audio, language))
                        if not text:
                            continue
                        self._emit(generation, "on_result", text)
                        if not continuous:
                            break
            finally:
                self.microphone.release()
        except RecognitionError as e:
            logger.warning("Recognition error: %s", e)
            self._emit(generation, "on_error", e.code)
        except Exception as e:
            logger.warning("Audio capture error: %s", e)
            self._emit(generation, "on_error", "audio-capture")
        finally:
            self._emit(generation, "on_end")


class CommandListener:
    """Single-shot recognition of the command spoken after the wake phrase."""

    def __init__(self, voice: VoiceInput, config: VoiceConfig, microphone: Microphone | None = None) -> None:
        self.voice = voice
        self.config = config
        self.recorder = PhraseRecorder(config)
        self.microphone = microphone or shared_microphone
        self.locale = "en-IN"

    async def listen(self, timeout: float) -> str:
        """Capture one command.

        Returns:
            The normalized command, or "" if nothing was said before
            ``timeout``.

        Raises:
            RecognitionError: Audio capture or transcription failed.
        """
        stop = threading.Event()
        try:
            return await asyncio.to_thread(self._listen_blocking, timeout, stop, language_for(self.locale))
        except asyncio.CancelledError:
            stop.set()
            raise

    def _listen_blocking(self, timeout: float, stop: threading.Event, language: str) -> str:
        started = time.monotonic()
        # Waits for a stopping wake stream to let go of the device
        if not self.microphone.acquire(stop, timeout):
            if stop.is_set():
                return ""
            raise RecognitionError("audio-capture", "Microphone is busy")

        try:
            remaining = max(0.0, timeout - (time.monotonic() - started))
            with self.recorder.open() as stream:
                audio = self.recorder.capture(stream, stop, max_seconds=remaining)
        except Exception as e:
            raise RecognitionError("audio-capture", f"Failed to record command: {e}") from e
        finally:
            self.microphone.release()

        if audio is None or stop.is_set():
            return ""
        return normalize(self.voice.transcribe(audio, language))


class SpeechChannel:
    """Continuous stream and one-shot listener sharing one Whisper model."""

    def __init__(self, config: VoiceConfig) -> None:
        self.config = config
        self.voice = VoiceInput(config)
        self.microphone = shared_microphone
        self.stream = WhisperRecognitionStream(self.voice, config, self.microphone)
        self.listener = CommandListener(self.voice, config, self.microphone)

    def is_supported(self) -> bool:
        try:
            import sounddevice  # noqa: F401
            import whisper  # noqa: F401
        except (ImportError, OSError) as e:
            logger.error("Speech recognition unavailable: %s", e)
            return False
        return True

    def has_microphone(self) -> bool:
        try:
            import sounddevice as sd

            device = sd.query_devices(self.config.input_device, kind="input")
        except Exception as e:
            logger.error("No microphone available: %s", e)
            return False
        return int(device.get("max_input_channels", 0)) > 0

    def load(self) -> bool:
        return self.voice.load()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    channel = SpeechChannel(VoiceConfig())
    if not channel.is_supported() or not channel.load():
        print("Speech recognition not available")
        exit(1)

    print("Say something (5 seconds)...")
    text = asyncio.run(channel.listener.listen(5.0))
    print(f"Heard: {text!r}" if text else "No speech detected")

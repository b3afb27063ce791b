"""Spoken output with a configurable cooldown policy.

Two policies are available and exactly one is active per speaker:

* ``interrupt`` (default): stop whatever is being said and always speak the
  newest text, so the latest scene description is never lost.
* ``suppress``: drop the new text if it repeats the last spoken text or if
  the cooldown has not elapsed since the last utterance started.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock, RLock, Thread

from hey_india.config import SpeakerConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpokenPhrase:
    text: str
    timestamp: float


class CooldownPolicy:
    name = "base"
    interrupts = False

    def admit(self, text: str, last: SpokenPhrase | None, now: float) -> bool:
        raise NotImplementedError


class InterruptPolicy(CooldownPolicy):
    name = "interrupt"
    interrupts = True

    def admit(self, text: str, last: SpokenPhrase | None, now: float) -> bool:
        return True


class SuppressPolicy(CooldownPolicy):
    name = "suppress"

    def __init__(self, cooldown: float = 2.5) -> None:
        self.cooldown = cooldown

    def admit(self, text: str, last: SpokenPhrase | None, now: float) -> bool:
        if last is None:
            return True
        if text == last.text:
            return False
        return now - last.timestamp >= self.cooldown


def make_policy(config: SpeakerConfig) -> CooldownPolicy:
    if config.policy == "suppress":
        return SuppressPolicy(config.cooldown)
    return InterruptPolicy()


class Pyttsx3Engine:
    """Blocking text-to-speech through pyttsx3."""

    def __init__(self, config: SpeakerConfig) -> None:
        self.config = config
        self.lock = Lock()
        self._locale: str | None = None

        import pyttsx3

        self.engine = pyttsx3.init()
        self.engine.setProperty("rate", config.voice_rate)
        self.engine.setProperty("volume", config.voice_volume)

    def _select_voice(self, locale: str) -> None:
        if locale == self._locale:
            return
        self._locale = locale
        wanted = locale.lower().replace("-", "_")
        for voice in self.engine.getProperty("voices"):
            languages = [
                lang.decode(errors="ignore") if isinstance(lang, bytes) else str(lang)
                for lang in (getattr(voice, "languages", None) or [])
            ]
            names = [voice.id.lower(), *(lang.lower().replace("-", "_") for lang in languages)]
            if any(wanted in name for name in names):
                self.engine.setProperty("voice", voice.id)
                logger.debug("Using voice %s for %s", voice.id, locale)
                return
        logger.debug("No voice for %s, keeping default", locale)

    def speak(self, text: str, locale: str) -> None:
        with self.lock:
            self._select_voice(locale)
            self.engine.say(text)
            self.engine.runAndWait()

    def stop(self) -> None:
        self.engine.stop()


class Speaker:
    """Say things out loud, honoring the configured cooldown policy."""

    def __init__(
        self,
        config: SpeakerConfig,
        locale: str = "en-IN",
        engine=None,
        policy: CooldownPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
        blocking: bool = False,
    ) -> None:
        self.config = config
        self.locale = locale
        self.policy = policy or make_policy(config)
        self.clock = clock
        self.blocking = blocking
        self.last_phrase: SpokenPhrase | None = None
        self.last_response = ""
        self.on_end: Callable[[str], None] | None = None
        self.lock = Lock()
        self._speech_lock = RLock()
        self._generation = 0
        self.engine = engine if engine is not None else self._init_tts()

    def _init_tts(self):
        if not self.config.enabled:
            return None

        try:
            return Pyttsx3Engine(self.config)
        except Exception as e:
            logger.warning("TTS initialization failed: %s; falling back to log output", e)
            return None

    def say(self, text: str) -> bool:
        """Speak ``text`` unless the policy suppresses it.

        Returns:
            True if the text was handed to the speech engine.
        """
        now = self.clock()
        with self.lock:
            if not self.policy.admit(text, self.last_phrase, now):
                logger.debug("[Hey India] suppressed: %s", text)
                return False
            self.last_phrase = SpokenPhrase(text=text, timestamp=now)
            self.last_response = text
            self._generation += 1
            generation = self._generation

        logger.info("[Hey India] speak: %s", text)

        if self.engine is None:
            self._finished(text)
            return True

        if self.policy.interrupts:
            self.cancel()

        if self.blocking:
            self._speak(text, generation)
        else:
            Thread(target=self._speak, args=(text, generation), daemon=True).start()
        return True

    def cancel(self) -> None:
        if self.engine is None:
            return
        try:
            self.engine.stop()
        except Exception as e:
            logger.warning("TTS stop failed: %s", e)

    def _speak(self, text: str, generation: int) -> None:
        with self._speech_lock:
            # A newer interrupting phrase replaces any that has not started yet
            if self.policy.interrupts and generation != self._generation:
                logger.debug("[Hey India] skipped stale: %s", text)
                return
            try:
                self.engine.speak(text, self.locale)
            except Exception as e:
                logger.error("TTS error: %s", e)
            finally:
                self._finished(text)

    def _finished(self, text: str) -> None:
        if self.on_end is not None:
            self.on_end(text)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    speaker = Speaker(SpeakerConfig(policy="suppress", cooldown=1.0))
    print("Testing speaker...")
    print(speaker.say("I see a person and dog and chair."))
    print(speaker.say("I see a person and dog and chair."))  # suppressed
    time.sleep(2)
    print(speaker.say("I see a cat."))
    time.sleep(2)

"""Non-verbal feedback: the confirmation ding and haptic pulses."""

import logging
from collections.abc import Callable, Sequence

import numpy as np
from numpy.typing import NDArray

from hey_india.config import CueConfig

logger = logging.getLogger(__name__)

# Pulse patterns in milliseconds (on, off, on, ...)
WAKE_PULSE = (40,)
PROCESSING_PULSE = (60,)
DONE_PULSE = (30, 20, 30)


def make_tone(config: CueConfig) -> NDArray[np.float32]:
    """Sine tone with a short fade in/out to avoid clicks."""
    n = int(config.duration * config.sample_rate)
    t = np.arange(n, dtype=np.float32) / config.sample_rate
    tone = np.sin(2 * np.pi * config.frequency * t) * config.volume
    fade = min(n // 10, int(0.01 * config.sample_rate))
    if fade > 0:
        ramp = np.linspace(0.0, 1.0, fade, dtype=np.float32)
        tone[:fade] *= ramp
        tone[-fade:] *= ramp[::-1]
    return tone.astype(np.float32)


class ToneCue:
    """Plays the wake confirmation tone and forwards haptic patterns.

    Haptics are only available when a ``vibrate`` callable is supplied
    (for example a bridge to a wearable); otherwise pulses are a no-op.
    """

    def __init__(
        self,
        config: CueConfig,
        vibrate: Callable[[Sequence[int]], None] | None = None,
    ) -> None:
        self.config = config
        self._vibrate = vibrate
        self._tone = make_tone(config)

    def ding(self) -> None:
        if not self.config.enabled:
            return
        try:
            import sounddevice as sd

            sd.play(self._tone, samplerate=self.config.sample_rate)
        except Exception as e:
            logger.warning("Confirmation tone failed: %s", e)

    def vibrate(self, pattern: Sequence[int]) -> None:
        if self._vibrate is None:
            return
        try:
            self._vibrate(pattern)
        except Exception as e:
            logger.warning("Haptic feedback failed: %s", e)


if __name__ == "__main__":
    import time

    cue = ToneCue(CueConfig(), vibrate=lambda p: print(f"vibrate {list(p)}"))
    cue.ding()
    cue.vibrate(DONE_PULSE)
    time.sleep(0.5)

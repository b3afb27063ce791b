"""Wake-phrase and command matching for recognized utterances."""

import re
from dataclasses import dataclass
from enum import Enum

from hey_india.config import SessionConfig


class CommandIntent(Enum):
    """How a command-window utterance was interpreted."""

    KEYWORD = "keyword"  # "What is in front of me?"
    IMPLICIT = "implicit"  # Silence or a single character after the wake phrase
    FALLBACK = "fallback"  # "can you see anything", "what's there"
    UNRECOGNIZED = "unrecognized"

    @property
    def wants_description(self) -> bool:
        return self is not CommandIntent.UNRECOGNIZED


@dataclass(frozen=True)
class Utterance:
    """Normalized transcript of a single recognition result."""

    text: str
    confidence: float | None = None

    @classmethod
    def from_transcript(cls, transcript: str | None, confidence: float | None = None) -> "Utterance":
        return cls(text=normalize(transcript), confidence=confidence)


def normalize(text: str | None) -> str:
    if not text:
        return ""
    return " ".join(text.lower().split())


class WakePhraseMatcher:
    """Case-insensitive whole-phrase containment check.

    The phrase may appear anywhere in the utterance but must not be part of a
    longer word, so "please hey india now" matches while "hey indiana" does not.
    """

    def __init__(self, phrase: str) -> None:
        words = normalize(phrase).split()
        if not words:
            raise ValueError("wake phrase must not be empty")
        self.phrase = " ".join(words)
        body = r"\s+".join(re.escape(w) for w in words)
        self._pattern = re.compile(rf"(?<!\w){body}(?!\w)", re.IGNORECASE)

    def matches(self, text: str | None) -> bool:
        if not text:
            return False
        return self._pattern.search(text) is not None


class CommandMatcher:
    """Classify the single-shot command heard after the wake phrase.

    Rules are checked in order and the first match wins:
    keyword phrase, implicit confirmation (empty or too short), fallback token.
    """

    def __init__(self, config: SessionConfig) -> None:
        self.keywords = [normalize(k) for k in config.command_keywords]
        self.fallback_tokens = [normalize(t) for t in config.fallback_tokens]
        self.min_length = config.min_command_length

    def match(self, text: str | None) -> CommandIntent:
        """Parse a command utterance into a CommandIntent.

        Args:
            text: Transcript of the command; empty when the window timed out.

        Returns:
            The matched intent, UNRECOGNIZED if no rule applies.
        """
        command = normalize(text)

        if any(keyword in command for keyword in self.keywords):
            return CommandIntent.KEYWORD

        if len(command) < self.min_length:
            return CommandIntent.IMPLICIT

        if any(token in command for token in self.fallback_tokens):
            return CommandIntent.FALLBACK

        return CommandIntent.UNRECOGNIZED


if __name__ == "__main__":
    config = SessionConfig()
    wake = WakePhraseMatcher(config.wake_phrase)
    matcher = CommandMatcher(config)

    print("Wake phrase checks:")
    for text in ["hey india", "please Hey India now", "hey indiana", "hello"]:
        print(f"  {text!r:28} -> {wake.matches(text)}")

    print("\nCommand checks:")
    for text in ["What is in front of me?", "", "k", "can you see anything", "play music"]:
        print(f"  {text!r:28} -> {matcher.match(text).value}")

"""Unit tests for the Speaker and its cooldown policies."""

from __future__ import annotations

import threading

import pytest

from fakes import RecordingEngine
from hey_india.config import SpeakerConfig
from hey_india.speaker import (
    InterruptPolicy,
    Speaker,
    SpokenPhrase,
    SuppressPolicy,
    make_policy,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class GatedEngine(RecordingEngine):
    """Holds the first phrase mid-speech until ``gate`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = threading.Event()
        self.entered = threading.Event()

    def speak(self, text: str, locale: str) -> None:
        first = not self.entered.is_set()
        self.entered.set()
        if first:
            self.gate.wait(timeout=2)
        self.spoken.append(text)


def _speaker(policy: str, clock: FakeClock | None = None) -> tuple[Speaker, RecordingEngine]:
    engine = RecordingEngine()
    speaker = Speaker(
        SpeakerConfig(policy=policy, cooldown=2.5),
        engine=engine,
        clock=clock or FakeClock(),
        blocking=True,
    )
    return speaker, engine


@pytest.mark.unit
class TestPolicies:

    def test_make_policy(self):
        assert isinstance(make_policy(SpeakerConfig()), InterruptPolicy)
        policy = make_policy(SpeakerConfig(policy="suppress", cooldown=1.0))
        assert isinstance(policy, SuppressPolicy)
        assert policy.cooldown == 1.0

    def test_suppress_first_phrase_admitted(self):
        assert SuppressPolicy().admit("hello", None, 0.0)

    def test_suppress_duplicate_even_after_cooldown(self):
        last = SpokenPhrase(text="hello", timestamp=0.0)
        assert not SuppressPolicy(2.5).admit("hello", last, 100.0)

    def test_suppress_within_cooldown(self):
        last = SpokenPhrase(text="hello", timestamp=0.0)
        policy = SuppressPolicy(2.5)
        assert not policy.admit("other", last, 2.4)
        assert policy.admit("other", last, 2.5)

    def test_interrupt_always_admits(self):
        last = SpokenPhrase(text="hello", timestamp=0.0)
        assert InterruptPolicy().admit("hello", last, 0.0)


@pytest.mark.unit
class TestSpeaker:

    def test_interrupt_stops_previous_and_speaks(self):
        speaker, engine = _speaker("interrupt")
        assert speaker.say("I see a person.")
        assert speaker.say("I see a person.")
        assert engine.spoken == ["I see a person.", "I see a person."]
        assert engine.stops == 2

    def test_suppress_drops_repeats_and_cooldown(self):
        clock = FakeClock()
        speaker, engine = _speaker("suppress", clock)
        assert speaker.say("I see a person.")
        clock.now += 1.0
        assert not speaker.say("I see a dog.")
        clock.now += 2.0
        assert not speaker.say("I see a person.")
        assert speaker.say("I see a dog.")
        assert engine.spoken == ["I see a person.", "I see a dog."]
        assert engine.stops == 0

    def test_last_response_and_on_end(self):
        speaker, _ = _speaker("interrupt")
        finished = []
        speaker.on_end = finished.append
        speaker.say("done")
        assert speaker.last_response == "done"
        assert speaker.last_phrase.text == "done"
        assert finished == ["done"]

    def test_engine_failure_is_contained(self):
        speaker, engine = _speaker("interrupt")

        def broken(text, locale):
            raise RuntimeError("audio device busy")

        engine.speak = broken
        finished = []
        speaker.on_end = finished.append
        assert speaker.say("hello")
        assert finished == ["hello"]

    def test_disabled_speaker_only_logs(self):
        speaker = Speaker(SpeakerConfig(enabled=False))
        assert speaker.engine is None
        assert speaker.say("hello")
        assert speaker.last_response == "hello"

    def test_background_thread_speaks(self):
        engine = RecordingEngine()
        speaker = Speaker(SpeakerConfig(), engine=engine)
        done = threading.Event()
        speaker.on_end = lambda text: done.set()
        speaker.say("hello")
        assert done.wait(timeout=2)
        assert engine.spoken == ["hello"]

    def test_interrupt_skips_phrases_that_never_started(self):
        engine = GatedEngine()
        speaker = Speaker(SpeakerConfig(), engine=engine)
        done = threading.Event()

        def finished(text):
            if text == "three":
                done.set()

        speaker.on_end = finished
        speaker.say("one")
        assert engine.entered.wait(timeout=2)
        speaker.say("two")
        speaker.say("three")
        engine.gate.set()

        assert done.wait(timeout=2)
        assert engine.spoken == ["one", "three"]

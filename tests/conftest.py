"""Shared fixtures for storycast tests."""

import asyncio

import numpy as np
import pytest

from storycast.errors import RateLimitError, SynthesisError
from storycast.models import CharacterProfile, Segment


def pcm(value: int = 1000, samples: int = 240) -> bytes:
    """Raw 16-bit mono PCM: `samples` frames all holding `value`."""
    return np.full(samples, value, dtype="<i2").tobytes()


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSynthesizer:
    """Records calls and returns PCM; per-text scripted failures.

    `script` maps segment text to a list of outcomes consumed one per call:
    "rate_limit", "error", or None for success. `delays` maps text to seconds.
    """

    def __init__(self, script=None, delays=None, payloads=None, on_call=None):
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.delays = delays or {}
        self.payloads = payloads or {}
        self.on_call = on_call
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def synthesize(self, text, voice, credential):
        self.calls.append((text, voice, credential.token))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.on_call:
                self.on_call(text)
            await asyncio.sleep(self.delays.get(text, 0.001))
            outcomes = self.script.get(text)
            outcome = outcomes.pop(0) if outcomes else None
            if outcome == "rate_limit":
                raise RateLimitError("429 RESOURCE_EXHAUSTED")
            if outcome == "error":
                raise SynthesisError("provider hiccup")
            return self.payloads.get(text, pcm())
        finally:
            self.active -= 1


class FakeAnalyzer:
    """Returns a canned (characters, script) pair, or raises `error`."""

    def __init__(self, characters=None, script=None, error=None):
        self.characters = characters or []
        self.script = script or []
        self.error = error
        self.tokens = []

    def analyze(self, text, credential):
        self.tokens.append(credential.token)
        if self.error:
            raise self.error
        return self.characters, self.script


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tokens():
    return ["key-alpha-0001", "key-bravo-0002", "key-charlie-03"]


@pytest.fixture
def sample_script():
    """Script with a same-speaker run to merge."""
    return [
        Segment(speaker="Narrator", text="It was dark."),
        Segment(speaker="Narrator", text="The wind howled."),
        Segment(speaker="Alice", text="Who's there?"),
        Segment(speaker="Bob", text="Only me."),
    ]


@pytest.fixture
def sample_characters():
    return [
        CharacterProfile(name="Narrator", gender="Neutral", description="Story narrator"),
        CharacterProfile(name="Alice", gender="Female", description="A young girl"),
        CharacterProfile(name="Bob", gender="Male", description="An old fisherman"),
    ]

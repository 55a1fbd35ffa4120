"""Tests for data models."""

import dataclasses

import pytest

from storycast.models import CharacterProfile, GenerationResult, Job, JobState, Segment, VoiceProfile


def test_segment_fields():
    seg = Segment(speaker="Narrator", text="Hello")
    assert seg.speaker == "Narrator"
    assert seg.text == "Hello"


def test_character_defaults():
    char = CharacterProfile(name="Alice")
    assert char.gender == "Neutral"
    assert char.description == ""


def test_voice_profile_is_immutable():
    voice = VoiceProfile("Puck", "Male", "Medium", ("upbeat",))
    with pytest.raises(dataclasses.FrozenInstanceError):
        voice.name = "Other"


def test_job_starts_pending():
    job = Job(index=0, segment=Segment("Narrator", "x"), voice="Puck")
    assert job.state == JobState.PENDING
    assert job.attempts == 0
    assert JobState.DONE == "done"


def test_generation_result_total():
    assert GenerationResult(chunks=[None, None, None]).total == 3
    assert GenerationResult().total == 0

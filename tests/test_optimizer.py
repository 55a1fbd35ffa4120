"""Tests for same-speaker segment merging."""

from storycast.models import Segment
from storycast.optimizer import optimize_script


def test_merges_consecutive_same_speaker():
    script = [Segment("A", "x"), Segment("A", "y"), Segment("B", "z")]
    assert optimize_script(script, max_chars=10) == [Segment("A", "x y"), Segment("B", "z")]


def test_cap_starts_new_segment():
    script = [Segment("A", "a" * 5), Segment("A", "b" * 5)]
    # 5 + 5 is not < 10
    assert len(optimize_script(script, max_chars=10)) == 2
    assert len(optimize_script(script, max_chars=11)) == 1


def test_never_reorders_speakers(sample_script):
    merged = optimize_script(sample_script)
    assert [s.speaker for s in merged] == ["Narrator", "Alice", "Bob"]
    assert merged[0].text == "It was dark. The wind howled."


def test_interleaved_speakers_stay_separate():
    script = [Segment("A", "1"), Segment("B", "2"), Segment("A", "3")]
    assert optimize_script(script) == script


def test_empty_script():
    assert optimize_script([]) == []


def test_input_not_mutated(sample_script):
    before = [Segment(s.speaker, s.text) for s in sample_script]
    optimize_script(sample_script)
    assert sample_script == before


def test_no_text_lost():
    script = [Segment("A", f"line {i}") for i in range(50)]
    merged = optimize_script(script, max_chars=60)
    assert " ".join(s.text for s in merged) == " ".join(s.text for s in script)
    assert all(len(s.text) <= 60 for s in merged)

"""Tests for PCM decoding and track assembly."""

import numpy as np
import pytest
from pydub import AudioSegment

from conftest import pcm
from storycast.assembly import assemble, empty_track, pad_with_silence, pcm_to_audio, silence
from storycast.errors import SynthesisError
from storycast.models import AudioChunk


def _chunk(index, ms=100, value=500, frame_rate=24000):
    samples = frame_rate * ms // 1000
    return AudioChunk(index=index, audio=pcm_to_audio(pcm(value, samples), sample_rate=frame_rate))


# --- pcm_to_audio ---

def test_pcm_to_audio_format():
    audio = pcm_to_audio(pcm(samples=24000))
    assert audio.frame_rate == 24000
    assert audio.channels == 1
    assert audio.sample_width == 2
    assert len(audio) == 1000


def test_pcm_to_audio_drops_partial_frame():
    audio = pcm_to_audio(pcm(samples=10) + b"\x01")
    assert audio.frame_count() == 10


def test_pcm_to_audio_empty_raises():
    with pytest.raises(SynthesisError):
        pcm_to_audio(b"")
    with pytest.raises(SynthesisError):
        pcm_to_audio(b"\x01")


# --- silence ---

def test_silence_matches_rate():
    gap = silence(250, frame_rate=24000)
    assert gap.frame_rate == 24000
    assert gap.frame_count() == 6000
    assert gap.max == 0


def test_pad_with_silence_uses_chunk_rate():
    audio = pcm_to_audio(pcm(samples=1600), sample_rate=16000)
    padded = pad_with_silence(audio, 500)
    assert padded.frame_rate == 16000
    assert len(padded) == 600


# --- assemble ---

def test_assemble_duration_is_sum_of_padded_chunks():
    """Track length = Σ(segment duration + silence), whatever the completion order."""
    durations = [100, 400, 250]
    chunks = [
        AudioChunk(index=i, audio=pad_with_silence(_chunk(i, ms).audio, 250))
        for i, ms in enumerate(durations)
    ]
    track = assemble(list(reversed(chunks)))
    assert len(track) == sum(d + 250 for d in durations)


def test_assemble_orders_by_index():
    chunks = [_chunk(2, value=3), _chunk(0, value=1), _chunk(1, value=2)]
    samples = np.frombuffer(assemble(chunks).raw_data, dtype="<i2")
    assert samples[0] == 1
    assert samples[2400] == 2
    assert samples[4800] == 3


def test_assemble_skips_empty_slots():
    chunks = [_chunk(0), None, _chunk(2)]
    assert len(assemble(chunks)) == 200


def test_assemble_nothing_gives_one_silent_frame():
    track = assemble([None, None])
    assert track.frame_count() == 1
    assert track.frame_rate == 24000
    assert track.channels == 1
    assert track.max == 0


def test_empty_track_is_well_formed():
    track = empty_track()
    assert track.raw_data == b"\x00\x00"


def test_assemble_rate_mismatch_raises():
    chunks = [_chunk(0), _chunk(1, frame_rate=16000)]
    with pytest.raises(ValueError):
        assemble(chunks)


def test_assemble_channel_mismatch_raises():
    stereo = AudioSegment(data=b"\x00\x00" * 480, sample_width=2, frame_rate=24000, channels=2)
    with pytest.raises(ValueError):
        assemble([_chunk(0), AudioChunk(index=1, audio=stereo)])

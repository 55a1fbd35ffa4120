"""Decode synthesized PCM and stitch chunks back into script order."""

import numpy as np
from pydub import AudioSegment

from storycast.constants import CHANNELS, SAMPLE_RATE, SAMPLE_WIDTH, SEGMENT_SILENCE_MS
from storycast.errors import SynthesisError
from storycast.models import AudioChunk


def pcm_to_audio(raw: bytes, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> AudioSegment:
    """Wrap raw little-endian 16-bit PCM in an AudioSegment.

    A trailing partial frame is dropped. Empty payloads raise SynthesisError.
    """
    frame_bytes = SAMPLE_WIDTH * channels
    usable = len(raw) - len(raw) % frame_bytes
    samples = np.frombuffer(raw[:usable], dtype="<i2")
    if samples.size == 0:
        raise SynthesisError("Empty audio payload")
    return AudioSegment(
        data=samples.tobytes(),
        sample_width=SAMPLE_WIDTH,
        frame_rate=sample_rate,
        channels=channels,
    )


def silence(duration_ms: int, frame_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> AudioSegment:
    return AudioSegment.silent(duration=duration_ms, frame_rate=frame_rate).set_channels(channels)


def pad_with_silence(audio: AudioSegment, duration_ms: int = SEGMENT_SILENCE_MS) -> AudioSegment:
    """Append a pause at the audio's own rate and channel layout."""
    return audio + silence(duration_ms, audio.frame_rate, audio.channels)


def empty_track() -> AudioSegment:
    """Minimal well-formed buffer: one silent mono frame at the provider rate."""
    return AudioSegment(
        data=b"\x00" * SAMPLE_WIDTH,
        sample_width=SAMPLE_WIDTH,
        frame_rate=SAMPLE_RATE,
        channels=CHANNELS,
    )


def assemble(chunks: list[AudioChunk | None]) -> AudioSegment:
    """Concatenate non-empty chunks in ascending segment index order.

    Completion order is irrelevant; only AudioChunk.index decides placement.
    Chunks must share sample rate, width and channel count; mismatches are
    not resampled and raise ValueError.
    """
    valid = sorted(
        (c for c in chunks if c is not None and c.audio.frame_count() > 0),
        key=lambda c: c.index,
    )
    if not valid:
        return empty_track()

    first = valid[0].audio
    for chunk in valid[1:]:
        audio = chunk.audio
        if (audio.frame_rate, audio.channels, audio.sample_width) != (
            first.frame_rate, first.channels, first.sample_width
        ):
            raise ValueError(
                f"Chunk {chunk.index} is {audio.frame_rate} Hz/{audio.channels} ch, "
                f"expected {first.frame_rate} Hz/{first.channels} ch"
            )

    return AudioSegment(
        data=b"".join(c.audio.raw_data for c in valid),
        sample_width=first.sample_width,
        frame_rate=first.frame_rate,
        channels=first.channels,
    )

"""Tests for WAV encoding and the final export."""

import json
import os
import struct

from pydub import AudioSegment

from conftest import pcm
from storycast.assembly import pcm_to_audio
from storycast.constants import VERSION
from storycast.exporter import decode_wav, encode_wav, export


def _make_track(samples=24000):
    return pcm_to_audio(pcm(value=1200, samples=samples))


def _make_cast():
    return {
        "narrator": {"voice": "Puck", "source": "auto"},
        "characters": {"Alice": {"voice": "Kore", "gender": "Female", "description": "", "source": "auto"}},
    }


# --- encode_wav / decode_wav ---

def test_wav_header_fields():
    data = encode_wav(_make_track(samples=480))
    assert data[:4] == b"RIFF"
    assert data[8:12] == b"WAVE"
    assert data[12:16] == b"fmt "
    fmt_tag, channels, rate, byte_rate, block_align, bits = struct.unpack("<HHIIHH", data[20:36])
    assert fmt_tag == 1
    assert channels == 1
    assert rate == 24000
    assert byte_rate == 24000 * 1 * 2
    assert block_align == 2
    assert bits == 16
    assert data[36:40] == b"data"
    assert struct.unpack("<I", data[40:44])[0] == 480 * 2
    assert struct.unpack("<I", data[4:8])[0] == len(data) - 8


def test_wav_round_trip():
    stereo = AudioSegment(data=b"\x10\x00\x20\x00" * 1000, sample_width=2, frame_rate=44100, channels=2)
    decoded = decode_wav(encode_wav(stereo))
    assert decoded.channels == 2
    assert decoded.frame_rate == 44100
    assert decoded.frame_count() == 1000
    assert decoded.raw_data == stereo.raw_data


def test_encode_forces_16_bit():
    wide = AudioSegment(data=b"\x00\x00\x00\x00" * 10, sample_width=4, frame_rate=24000, channels=1)
    decoded = decode_wav(encode_wav(wide))
    assert decoded.sample_width == 2
    assert decoded.frame_count() == 10


# --- export ---

def test_export_creates_wav_and_manifest(tmp_path):
    path = export(
        _make_track(), str(tmp_path), "my_story",
        {"title": "My Story", "source": "my_story.txt"},
        _make_cast(), {"keys": 2}, {"segments_total": 3, "segments_completed": 3},
    )
    assert path == os.path.join(str(tmp_path), "final", "my_story.wav")
    assert os.path.exists(path)

    manifest = json.loads((tmp_path / "final" / "output.json").read_text())
    assert manifest["project"] == "my_story"
    assert manifest["source"] == "my_story.txt"
    assert manifest["storycast_version"] == VERSION
    assert manifest["metadata"]["title"] == "My Story"
    assert manifest["cast"]["characters"]["Alice"]["voice"] == "Kore"
    assert manifest["settings"] == {"keys": 2}
    assert manifest["stats"]["segments_completed"] == 3
    assert manifest["stats"]["duration_seconds"] == 1.0
    assert manifest["stats"]["sample_rate"] == 24000
    assert manifest["stats"]["channels"] == 1
    assert "generated_at" in manifest


def test_export_wav_is_decodable(tmp_path):
    path = export(_make_track(samples=12000), str(tmp_path), "s", {}, {}, {}, {})
    with open(path, "rb") as f:
        audio = decode_wav(f.read())
    assert len(audio) == 500

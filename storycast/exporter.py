"""Export the assembled track as WAV with a provenance manifest."""

import io
import json
import os
from datetime import datetime, timezone

from pydub import AudioSegment

from storycast.constants import SAMPLE_WIDTH, VERSION


def encode_wav(audio: AudioSegment) -> bytes:
    """Serialize to RIFF/WAVE, format tag 1, 16-bit little-endian PCM."""
    if audio.sample_width != SAMPLE_WIDTH:
        audio = audio.set_sample_width(SAMPLE_WIDTH)
    buf = io.BytesIO()
    audio.export(buf, format="wav")
    return buf.getvalue()


def decode_wav(data: bytes) -> AudioSegment:
    return AudioSegment.from_file(io.BytesIO(data), format="wav")


def export(
    track: AudioSegment,
    project_dir: str,
    slug: str,
    metadata: dict,
    cast_data: dict,
    settings: dict,
    stats: dict,
) -> str:
    """Write the final WAV and its manifest.

    Creates:
      - <project_dir>/final/<slug>.wav (the production)
      - <project_dir>/final/output.json (provenance manifest)

    Returns path to the WAV file.
    """
    final_dir = os.path.join(project_dir, "final")
    os.makedirs(final_dir, exist_ok=True)

    output_path = os.path.join(final_dir, f"{slug}.wav")
    with open(output_path, "wb") as f:
        f.write(encode_wav(track))

    manifest = {
        "project": slug,
        "source": metadata.get("source", ""),
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "storycast_version": VERSION,
        "metadata": {"title": metadata.get("title", "")},
        "cast": cast_data,
        "settings": settings,
        "stats": {
            **stats,
            "duration_seconds": round(len(track) / 1000, 2),
            "sample_rate": track.frame_rate,
            "channels": track.channels,
        },
    }

    manifest_path = os.path.join(final_dir, "output.json")
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2, ensure_ascii=False)

    return output_path

"""Project directory management and JSON artifacts (script, cast, diagnostics)."""

import json
import os
import re
import shutil

from storycast.constants import NARRATOR, OUTPUT_DIR
from storycast.models import CharacterProfile, Segment

SUBDIRS = ["final", "logs"]


def slug_from_path(story_path: str) -> str:
    """Convert story filename to output directory slug.

    "Chapter One.txt" → "chapter_one"
    "/path/to/The Open Window.txt" → "the_open_window"
    """
    basename = os.path.splitext(os.path.basename(story_path))[0]
    slug = re.sub(r"[^a-zA-Z0-9]+", "_", basename).strip("_").lower()
    return slug


def title_from_path(story_path: str) -> str:
    basename = os.path.splitext(os.path.basename(story_path))[0]
    return re.sub(r"[_\-]+", " ", basename).strip() or "Untitled"


def init_output_dir(story_path: str, output_base: str = OUTPUT_DIR) -> str:
    """Create output/<slug>/ and its subdirectories. Returns the project directory."""
    project_dir = os.path.join(output_base, slug_from_path(story_path))
    for subdir in SUBDIRS:
        os.makedirs(os.path.join(project_dir, subdir), exist_ok=True)
    return project_dir


def write_artifact(project_dir: str, filename: str, data: dict) -> str:
    path = os.path.join(project_dir, filename)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return path


def load_artifact(project_dir: str, filename: str) -> dict | None:
    """Read JSON artifact. Returns None if file doesn't exist."""
    path = os.path.join(project_dir, filename)
    if not os.path.exists(path):
        return None
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def clear_final(project_dir: str) -> bool:
    """Delete generated output after the cast changes. Returns True if anything was removed."""
    path = os.path.join(project_dir, "final")
    if not os.path.exists(path) or not os.listdir(path):
        return False
    shutil.rmtree(path)
    os.makedirs(path, exist_ok=True)
    return True


def script_data(title: str, source: str, characters: list[CharacterProfile], script: list[Segment]) -> dict:
    return {
        "metadata": {"title": title},
        "source": source,
        "characters": [
            {"name": c.name, "gender": c.gender, "description": c.description}
            for c in characters
        ],
        "segments": [{"speaker": s.speaker, "text": s.text} for s in script],
    }


def script_from_data(data: dict) -> tuple[list[CharacterProfile], list[Segment]]:
    characters = [
        CharacterProfile(name=c["name"], gender=c.get("gender", "Neutral"), description=c.get("description", ""))
        for c in data.get("characters", [])
    ]
    script = [Segment(speaker=s["speaker"], text=s["text"]) for s in data.get("segments", [])]
    return characters, script


def cast_data(assignments: dict[str, str], characters: list[CharacterProfile], manual=()) -> dict:
    """Build cast.json from an assignment map; `manual` lists hand-picked speakers."""
    profiles = {c.name: c for c in characters}
    data = {
        "narrator": {
            "voice": assignments.get(NARRATOR, ""),
            "source": "manual" if NARRATOR in manual else "auto",
        },
        "characters": {},
    }
    for speaker, voice in assignments.items():
        if speaker == NARRATOR:
            continue
        profile = profiles.get(speaker)
        data["characters"][speaker] = {
            "voice": voice,
            "gender": profile.gender if profile else "Neutral",
            "description": profile.description if profile else "",
            "source": "manual" if speaker in manual else "auto",
        }
    return data


def assignments_from_cast(data: dict) -> dict[str, str]:
    assignments = {}
    narrator_voice = data.get("narrator", {}).get("voice")
    if narrator_voice:
        assignments[NARRATOR] = narrator_voice
    for speaker, info in data.get("characters", {}).items():
        if info.get("voice"):
            assignments[speaker] = info["voice"]
    return assignments


def manual_speakers(data: dict) -> set[str]:
    speakers = {s for s, info in data.get("characters", {}).items() if info.get("source") == "manual"}
    if data.get("narrator", {}).get("source") == "manual":
        speakers.add(NARRATOR)
    return speakers


def get_project_status(project_dir: str) -> dict:
    """Return dict describing current state of each pipeline step."""
    status = {}

    script = load_artifact(project_dir, "script.json")
    if script:
        status["analyze"] = {"state": "done", "segments": len(script.get("segments", []))}
    else:
        status["analyze"] = {"state": "pending"}

    cast = load_artifact(project_dir, "cast.json")
    if cast:
        status["cast"] = {"state": "done", "voices": len(cast.get("characters", {})) + 1}
    else:
        status["cast"] = {"state": "pending"}

    final_dir = os.path.join(project_dir, "final")
    wavs = [f for f in os.listdir(final_dir) if f.endswith(".wav")] if os.path.exists(final_dir) else []
    manifest = load_artifact(final_dir, "output.json") if wavs else None
    if manifest:
        stats = manifest.get("stats", {})
        state = "partial" if stats.get("segments_dropped") else "done"
        status["generate"] = {
            "state": state,
            "completed": stats.get("segments_completed", 0),
            "total": stats.get("segments_total", 0),
        }
    else:
        status["generate"] = {"state": "pending"}

    return status


def list_projects(output_base: str = OUTPUT_DIR) -> list[str]:
    """Sorted names of directories under output_base that contain a script.json."""
    if not os.path.exists(output_base):
        return []
    projects = []
    for name in os.listdir(output_base):
        project_dir = os.path.join(output_base, name)
        if os.path.isdir(project_dir) and os.path.exists(os.path.join(project_dir, "script.json")):
            projects.append(name)
    return sorted(projects)

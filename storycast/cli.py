"""CLI interface with subcommand routing and pipeline orchestration."""

import argparse
import asyncio
import logging
import os
import random
import sys

from storycast.analysis import GeminiAnalyzer
from storycast.artifacts import (
    assignments_from_cast,
    cast_data,
    clear_final,
    get_project_status,
    init_output_dir,
    list_projects,
    load_artifact,
    manual_speakers,
    script_data,
    script_from_data,
    slug_from_path,
    title_from_path,
    write_artifact,
)
from storycast.config import build_pool, voice_catalog_path
from storycast.constants import NARRATOR, OUTPUT_DIR, VERSION
from storycast.diagnostics import SessionLog
from storycast.errors import StorycastError
from storycast.exporter import export
from storycast.pipeline import StoryPipeline
from storycast.tts import GeminiSynthesizer
from storycast.voices import filter_voices, find_voice, load_catalog


def _fail(message: str, hint: str | None = None):
    print(f"Error: {message}", file=sys.stderr)
    if hint:
        print(hint, file=sys.stderr)
    raise SystemExit(1)


def _get_project_dir(slug: str) -> str:
    """Get project directory path, verify it exists."""
    project_dir = os.path.join(OUTPUT_DIR, slug)
    if not os.path.isdir(project_dir):
        _fail(f"Project '{slug}' not found.", "Run 'storycast new <file>' to create a project.")
    if not os.path.exists(os.path.join(project_dir, "script.json")):
        _fail(f"Project '{slug}' is incomplete (no script.json).")
    return project_dir


def _print_progress(completed: int, total: int, message: str) -> None:
    print(f"  {message}")


def _build_pipeline(session: SessionLog, on_progress=None) -> StoryPipeline:
    pool = build_pool()
    if len(pool) == 0:
        _fail("No API keys configured.", "Set STORYCAST_API_KEYS (comma separated) or GEMINI_API_KEY.")
    return StoryPipeline(
        pool,
        load_catalog(voice_catalog_path()),
        analyzer=GeminiAnalyzer(),
        synthesizer=GeminiSynthesizer(),
        session=session,
        on_progress=on_progress,
    )


def _print_cast(assignments: dict[str, str]) -> None:
    print("Cast:")
    print(f"  {NARRATOR:<15} → {assignments.get(NARRATOR, 'unset')}")
    for name, voice in assignments.items():
        if name != NARRATOR:
            print(f"  {name:<15} → {voice}")


def cmd_new(args):
    """Analyze a text file into a new project."""
    file_path = args.file
    if not os.path.exists(file_path):
        _fail(f"File not found: {file_path}")
    with open(file_path, encoding="utf-8") as f:
        text = f.read()
    if not text.strip():
        _fail(f"File is empty: {file_path}")

    slug = slug_from_path(file_path)
    if os.path.exists(os.path.join(OUTPUT_DIR, slug, "script.json")):
        _fail(
            f"Project '{slug}' already exists.",
            f"Use 'storycast run {slug}' to generate audio, or 'storycast recast {slug}' to change voices.",
        )

    session = SessionLog()
    pipeline = _build_pipeline(session)
    rng = random.Random(args.seed) if args.seed is not None else None
    print(f"Analyzing {os.path.basename(file_path)}...")
    try:
        assignments = pipeline.analyze(text, rng=rng)
    except StorycastError as e:
        log_path = os.path.join(init_output_dir(file_path, output_base=OUTPUT_DIR), "logs", "analysis.json")
        session.save(log_path)
        _fail(f"Failed to analyze text: {e}", f"Session log saved to {log_path}")

    project_dir = init_output_dir(file_path, output_base=OUTPUT_DIR)
    write_artifact(project_dir, "script.json", script_data(
        title_from_path(file_path), os.path.abspath(file_path), pipeline.characters, pipeline.script,
    ))
    write_artifact(project_dir, "cast.json", cast_data(assignments, pipeline.characters))
    session.save(os.path.join(project_dir, "logs", "analysis.json"))

    print(f"Created project: {slug}")
    print(f"Parsed {len(pipeline.script)} script lines, {len(pipeline.characters)} speakers")
    _print_cast(assignments)
    print(f"Run 'storycast run {slug}' to generate audio.")


def _load_pipeline(project_dir: str, session: SessionLog, on_progress=None, rng=None, keep_cast=True):
    script = load_artifact(project_dir, "script.json")
    cast = load_artifact(project_dir, "cast.json") or {}
    characters, segments = script_from_data(script)
    pipeline = _build_pipeline(session, on_progress=on_progress)
    saved = assignments_from_cast(cast) if keep_cast else {
        s: v for s, v in assignments_from_cast(cast).items() if s in manual_speakers(cast)
    }
    pipeline.load(characters, segments, assignments=saved, rng=rng)
    return pipeline, script, cast


def cmd_run(args):
    """Generate the audio track for a project."""
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    slug = args.slug
    project_dir = _get_project_dir(slug)

    wav_path = os.path.join(project_dir, "final", f"{slug}.wav")
    if os.path.exists(wav_path) and not args.force:
        print(f"[skip] {wav_path} exists (use --force to regenerate)")
        return

    session = SessionLog()
    pipeline, script, cast = _load_pipeline(project_dir, session, on_progress=_print_progress)
    print(f"Generating audio for {len(pipeline.script)} script lines...")
    try:
        track = asyncio.run(pipeline.generate())
    except StorycastError as e:
        session.save(os.path.join(project_dir, "logs", "generation.json"))
        _fail(f"Generation failed: {e}")
    finally:
        pipeline.close()

    result = pipeline.result
    stats = {
        "segments_total": result.total,
        "segments_completed": len(result.completed),
        "segments_dropped": len(result.dropped),
        "segments_rate_limited_out": len(result.exhausted),
        "generation_seconds": round(result.elapsed_seconds, 1),
    }
    output_path = export(
        track, project_dir, slug,
        {**script.get("metadata", {}), "source": script.get("source", "")},
        cast_data(pipeline.assignments, pipeline.characters, manual=manual_speakers(cast)),
        {"keys": len(pipeline.pool), "concurrency": result.peak_active},
        stats,
    )
    session.save(os.path.join(project_dir, "final", "diagnostics.json"))

    if result.dropped:
        print(f"Warning: {len(result.dropped)} of {result.total} segments failed and were skipped.")
    print(f"Done: {output_path}")


def cmd_recast(args):
    """Re-run automatic casting, keeping manual overrides."""
    slug = args.slug
    project_dir = _get_project_dir(slug)
    rng = random.Random(args.seed) if args.seed is not None else random.Random()
    pipeline, _, cast = _load_pipeline(project_dir, SessionLog(), rng=rng, keep_cast=False)
    write_artifact(project_dir, "cast.json", cast_data(
        pipeline.assignments, pipeline.characters, manual=manual_speakers(cast),
    ))
    _print_cast(pipeline.assignments)
    if clear_final(project_dir):
        print("Invalidated: final (will regenerate on next run)")


def cmd_set(args):
    """Assign a voice to a speaker by hand."""
    slug = args.slug
    project_dir = _get_project_dir(slug)
    voice = find_voice(load_catalog(voice_catalog_path()), args.voice)
    if voice is None:
        _fail(f"Unknown voice: {args.voice}", "Run 'storycast voices' to list available voices.")

    cast = load_artifact(project_dir, "cast.json") or {"narrator": {}, "characters": {}}
    if args.speaker.lower() == NARRATOR.lower():
        cast["narrator"] = {"voice": voice.name, "source": "manual"}
    else:
        characters = cast.setdefault("characters", {})
        speaker = next((name for name in characters if name.lower() == args.speaker.lower()), args.speaker)
        if speaker not in characters:
            print(f"Warning: Speaker '{speaker}' not in cast. Adding.", file=sys.stderr)
            characters[speaker] = {}
        characters[speaker]["voice"] = voice.name
        characters[speaker]["source"] = "manual"
    write_artifact(project_dir, "cast.json", cast)
    print(f"Updated: {args.speaker} → {voice.name}")
    if clear_final(project_dir):
        print("Invalidated: final (will regenerate on next run)")


def cmd_status(args):
    """Show project status and the configured keys."""
    slug = args.slug
    project_dir = _get_project_dir(slug)
    script = load_artifact(project_dir, "script.json")
    cast = load_artifact(project_dir, "cast.json") or {}
    status = get_project_status(project_dir)

    print(f"Project: {slug}")
    print(f"Source:  {script.get('source', 'unknown')}")
    print(f"Lines:   {len(script.get('segments', []))}")
    _print_cast(assignments_from_cast(cast))

    print("Steps:")
    for step in ("analyze", "cast", "generate"):
        info = status.get(step, {"state": "pending"})
        state = info["state"]
        marker = "[done]" if state == "done" else "[part]" if state == "partial" else "[----]"
        details = ""
        if "total" in info:
            details = f" ({info['completed']}/{info['total']} segments)"
        print(f"  {marker} {step}{details}")

    pool = build_pool()
    print(f"Keys: {len(pool)}")
    for cred in pool.credentials:
        print(f"  {cred.fingerprint}")


def cmd_list(args):
    """List all projects."""
    projects = list_projects(output_base=OUTPUT_DIR)
    if not projects:
        print("No projects found.")
        return
    print("Projects:")
    for name in projects:
        status = get_project_status(os.path.join(OUTPUT_DIR, name))
        marker = "[done]" if status["generate"]["state"] == "done" else "[----]"
        print(f"  {marker} {name}")


def cmd_voices(args):
    """List available voices."""
    voices = filter_voices(load_catalog(voice_catalog_path()), args.filter)
    if not voices:
        print("No matching voices found.")
        return
    print("Available voices:")
    for v in voices:
        print(f"  {v.name:<14} {v.gender:<7} {v.pitch:<12} {', '.join(v.characteristics)}")


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="storycast",
        description="storycast — turn a story into a multi-voice audio track",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    new_parser = subparsers.add_parser("new", help="Analyze a text file into a new project")
    new_parser.add_argument("file", help="Path to the story text file")
    new_parser.add_argument("--seed", type=int, help="Seed for casting tie-breaks")
    new_parser.set_defaults(func=cmd_new)

    run_parser = subparsers.add_parser("run", help="Generate the audio track")
    run_parser.add_argument("slug", help="Project slug (from filename)")
    run_parser.add_argument("-v", "--verbose", action="store_true", help="Log pipeline activity")
    run_parser.add_argument("--force", action="store_true", help="Regenerate even if output exists")
    run_parser.set_defaults(func=cmd_run)

    recast_parser = subparsers.add_parser("recast", help="Re-run automatic casting")
    recast_parser.add_argument("slug", help="Project slug")
    recast_parser.add_argument("--seed", type=int, help="Seed for casting tie-breaks")
    recast_parser.set_defaults(func=cmd_recast)

    set_parser = subparsers.add_parser("set", help="Assign a voice to a speaker")
    set_parser.add_argument("slug", help="Project slug")
    set_parser.add_argument("property", choices=["voice"], help="What to set")
    set_parser.add_argument("speaker", help="Speaker name (or Narrator)")
    set_parser.add_argument("voice", help="Voice name")
    set_parser.set_defaults(func=cmd_set)

    status_parser = subparsers.add_parser("status", help="Show project status")
    status_parser.add_argument("slug", help="Project slug")
    status_parser.set_defaults(func=cmd_status)

    list_parser = subparsers.add_parser("list", help="List all projects")
    list_parser.set_defaults(func=cmd_list)

    voices_parser = subparsers.add_parser("voices", help="List available voices")
    voices_parser.add_argument("--filter", help="Filter by name, gender, pitch or trait")
    voices_parser.set_defaults(func=cmd_voices)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    args.func(args)

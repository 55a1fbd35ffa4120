"""Voice catalog: the provider's prebuilt voices plus optional JSON overrides."""

import json
import logging
import os

from storycast.models import VoiceProfile

logger = logging.getLogger(__name__)

# Hardcoded catalog of prebuilt voices (avoids a metadata fetch at startup)
VOICE_CATALOG = [
    VoiceProfile("Puck", "Male", "Medium", ("upbeat", "clear", "youthful")),
    VoiceProfile("Charon", "Male", "Low", ("informative", "deep", "mature")),
    VoiceProfile("Kore", "Female", "Medium", ("firm", "confident")),
    VoiceProfile("Fenrir", "Male", "Medium-High", ("excitable", "energetic")),
    VoiceProfile("Aoede", "Female", "Medium", ("breezy", "warm")),
    VoiceProfile("Zephyr", "Female", "High", ("bright", "youthful")),
    VoiceProfile("Leda", "Female", "High", ("youthful", "playful")),
    VoiceProfile("Orus", "Male", "Low-Medium", ("firm", "mature")),
    VoiceProfile("Callirrhoe", "Female", "Medium", ("easy-going", "calm")),
    VoiceProfile("Autonoe", "Female", "Medium-High", ("bright", "articulate")),
    VoiceProfile("Enceladus", "Male", "Low", ("breathy", "deep")),
    VoiceProfile("Iapetus", "Male", "Medium", ("clear", "neutral")),
    VoiceProfile("Umbriel", "Male", "Low-Medium", ("easy-going", "calm")),
    VoiceProfile("Algieba", "Male", "Low-Medium", ("smooth", "warm")),
    VoiceProfile("Despina", "Female", "Medium", ("smooth", "warm")),
    VoiceProfile("Erinome", "Female", "Medium", ("clear", "precise")),
    VoiceProfile("Algenib", "Male", "Low", ("gravelly", "deep", "mature")),
    VoiceProfile("Rasalgethi", "Male", "Medium", ("informative", "professional")),
    VoiceProfile("Laomedeia", "Female", "Medium-High", ("upbeat", "youthful")),
    VoiceProfile("Achernar", "Female", "High", ("soft", "gentle")),
    VoiceProfile("Alnilam", "Male", "Low-Medium", ("firm", "authoritative")),
    VoiceProfile("Schedar", "Male", "Medium", ("even", "neutral")),
    VoiceProfile("Gacrux", "Female", "Low-Medium", ("mature", "wise")),
    VoiceProfile("Pulcherrima", "Female", "Medium-High", ("forward", "expressive")),
    VoiceProfile("Achird", "Male", "Medium", ("friendly", "youthful")),
    VoiceProfile("Zubenelgenubi", "Male", "Medium", ("casual", "relaxed")),
    VoiceProfile("Vindemiatrix", "Female", "Medium", ("gentle", "calm")),
    VoiceProfile("Sadachbia", "Male", "Medium-High", ("lively", "energetic")),
    VoiceProfile("Sadaltager", "Male", "Medium", ("knowledgeable", "mature")),
    VoiceProfile("Sulafat", "Female", "Medium", ("warm", "confident")),
]


def _profile_from_dict(entry: dict) -> VoiceProfile:
    return VoiceProfile(
        name=entry["name"],
        gender=entry.get("gender", "Neutral"),
        pitch=entry.get("pitch", "Medium"),
        characteristics=tuple(entry.get("characteristics", ())),
    )


def load_catalog(path: str | None = None) -> list[VoiceProfile]:
    """Load a voice catalog from a JSON file, or return the built-in one.

    The file holds a list of {"name", "gender", "pitch", "characteristics"}
    objects. Missing or malformed files fall back to VOICE_CATALOG.
    """
    if not path or not os.path.exists(path):
        return list(VOICE_CATALOG)
    try:
        with open(path, encoding="utf-8") as f:
            entries = json.load(f)
        return [_profile_from_dict(e) for e in entries]
    except (json.JSONDecodeError, KeyError, TypeError):
        logger.warning("Malformed voice catalog: %s, using built-in voices", path)
        return list(VOICE_CATALOG)


def find_voice(catalog: list[VoiceProfile], name: str) -> VoiceProfile | None:
    for voice in catalog:
        if voice.name.lower() == name.lower():
            return voice
    return None


def filter_voices(catalog: list[VoiceProfile], query: str | None = None) -> list[VoiceProfile]:
    """Case-insensitive substring match on name, gender, pitch and tags."""
    if not query:
        return list(catalog)
    q = query.lower()
    matches = []
    for voice in catalog:
        haystack = " ".join([voice.name, voice.gender, voice.pitch, *voice.characteristics]).lower()
        if q in haystack:
            matches.append(voice)
    return matches

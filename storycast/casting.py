"""Voice casting: score every (character, voice) pair and pick one voice per speaker."""

import logging
import re

from storycast.constants import DEFAULT_NARRATOR_VOICE, NARRATOR
from storycast.errors import CastingError
from storycast.models import CharacterProfile, Segment, VoiceProfile

logger = logging.getLogger(__name__)

GENDER_MISMATCH_PENALTY = -100
GENDER_MATCH_BONUS = 20
TRAIT_BONUS = 10
HIGH_PITCH_BONUS = 5
REUSE_PENALTY = -5

_UNSPECIFIED_GENDERS = {"", "unknown", "n/a", "neutral"}
_OLD_RE = re.compile(r"\b(old(er|est)?|elderly)\b")
_YOUNG_RE = re.compile(r"\b(young(er|est)?|child(ren)?)\b")


def _gender_score(char_gender: str, voice_gender: str) -> int:
    if char_gender in _UNSPECIFIED_GENDERS:
        return 0
    # "female" contains "male", so it has to be checked first
    if "female" in char_gender:
        if voice_gender == "male":
            return GENDER_MISMATCH_PENALTY
    elif "male" in char_gender and voice_gender == "female":
        return GENDER_MISMATCH_PENALTY
    if char_gender == voice_gender:
        return GENDER_MATCH_BONUS
    return 0


def score_voice(character: CharacterProfile, voice: VoiceProfile, used: set[str] | None = None) -> int:
    """Compatibility score of a voice for a character, without tie-break noise."""
    char_gender = (character.gender or "").strip().lower()
    score = _gender_score(char_gender, voice.gender.lower())

    desc = (character.description or "").lower()
    tags = {c.lower() for c in voice.characteristics}
    if _OLD_RE.search(desc):
        if "mature" in tags or "deep" in tags:
            score += TRAIT_BONUS
    elif _YOUNG_RE.search(desc):
        if "youthful" in tags:
            score += TRAIT_BONUS
        if "high" in voice.pitch.lower():
            score += HIGH_PITCH_BONUS

    if used and voice.name in used:
        score += REUSE_PENALTY
    return score


def pick_narrator_voice(catalog: list[VoiceProfile]) -> VoiceProfile:
    for voice in catalog:
        if voice.name == DEFAULT_NARRATOR_VOICE:
            return voice
    return catalog[0]


def cast_voices(
    characters: list[CharacterProfile],
    catalog: list[VoiceProfile],
    script: list[Segment] | None = None,
    rng=None,
) -> dict[str, str]:
    """Assign one voice per speaker.

    Narrator is fixed first. Every other character takes the best-scoring
    voice; `rng` (a random.Random) adds a tie-break perturbation in [0, 1),
    otherwise ties resolve by catalog order. Speakers that appear in `script`
    without a profile are cast as neutral characters.
    """
    if not catalog:
        raise CastingError("Voice catalog is empty; cannot cast")

    roster = list(characters)
    if script:
        known = {c.name for c in roster}
        for seg in script:
            if seg.speaker not in known:
                roster.append(CharacterProfile(name=seg.speaker, description="Identified speaker"))
                known.add(seg.speaker)

    narrator_voice = pick_narrator_voice(catalog)
    assignments = {NARRATOR: narrator_voice.name}
    used = {narrator_voice.name}

    for char in roster:
        if char.name == NARRATOR:
            continue
        best_voice, best_score = None, None
        for voice in catalog:
            score = score_voice(char, voice, used)
            if rng is not None:
                score += rng.random()
            if best_score is None or score > best_score:
                best_voice, best_score = voice, score
        assignments[char.name] = best_voice.name
        used.add(best_voice.name)
        logger.debug("Cast %s as %s (score %.2f)", char.name, best_voice.name, best_score)

    return assignments

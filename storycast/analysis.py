"""Turn raw chapter text into a character roster and a speaker-tagged script.

The heavy lifting is delegated to a Gemini text model with a JSON response
schema; this module owns the prompt and the clean-up applied to whatever the
model returns.
"""

import json
import logging

from google import genai
from google.genai import types

from storycast.constants import ANALYSIS_MAX_CHARS, ANALYSIS_MODEL, NARRATOR, NARRATOR_ALIASES
from storycast.errors import AnalysisError
from storycast.models import CharacterProfile, Segment

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = """\
You are a casting director for an audio drama.
Analyze the following novel chapter.

Tasks:
1. Identify the 'Narrator' and all distinct characters who speak.
2. Create a character profile for each.
3. Break the text down into a sequential script.

Rules:
- "Narrator" must be included.
- CRITICAL: Always use the exact English name "Narrator" for the narration role.
- For Narrator lines, text should include descriptions and actions.
- For Character lines, text should be ONLY the spoken dialogue.

Input Text:
\"\"\"
{text}
\"\"\"
"""

RESPONSE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "characters": types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "name": types.Schema(type=types.Type.STRING),
                    "gender": types.Schema(type=types.Type.STRING),
                    "description": types.Schema(type=types.Type.STRING),
                },
                required=["name", "gender", "description"],
            ),
        ),
        "script": types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "speaker": types.Schema(type=types.Type.STRING),
                    "text": types.Schema(type=types.Type.STRING),
                },
                required=["speaker", "text"],
            ),
        ),
    },
)


def build_prompt(text: str, max_chars: int = ANALYSIS_MAX_CHARS) -> str:
    return ANALYSIS_PROMPT.format(text=text[:max_chars])


def _canonical_speaker(name: str) -> str:
    name = str(name or "").strip()
    if not name or name.lower() in NARRATOR_ALIASES:
        return NARRATOR
    return name


def normalize_analysis(payload) -> tuple[list[CharacterProfile], list[Segment]]:
    """Clean up a raw {characters, script} payload.

    - narrator aliases (any language we know of) become "Narrator"
    - characters with no lines in the script are dropped
    - speakers with lines but no profile get a neutral one
    - Narrator gets a profile, listed first, whenever it speaks
    """
    if not isinstance(payload, dict):
        raise AnalysisError("Analysis result is not an object")

    script = []
    for item in payload.get("script") or []:
        if not isinstance(item, dict):
            continue
        text = str(item.get("text") or "").strip()
        if not text:
            continue
        script.append(Segment(speaker=_canonical_speaker(item.get("speaker")), text=text))
    if not script:
        raise AnalysisError("Analysis returned an empty script")

    active = list(dict.fromkeys(seg.speaker for seg in script))

    characters = []
    seen = set()
    for item in payload.get("characters") or []:
        if not isinstance(item, dict):
            continue
        name = _canonical_speaker(item.get("name"))
        if name not in active or name in seen:
            continue
        seen.add(name)
        characters.append(CharacterProfile(
            name=name,
            gender=str(item.get("gender") or "Neutral"),
            description=str(item.get("description") or ""),
        ))

    if NARRATOR in active and NARRATOR not in seen:
        characters.insert(0, CharacterProfile(name=NARRATOR, gender="Neutral", description="Story narrator"))
        seen.add(NARRATOR)

    for speaker in active:
        if speaker not in seen:
            characters.append(CharacterProfile(name=speaker, gender="Neutral", description="Identified speaker"))
            seen.add(speaker)

    return characters, script


class GeminiAnalyzer:
    def __init__(self, model: str = ANALYSIS_MODEL, client_factory=None):
        self.model = model
        self._client_factory = client_factory or (lambda api_key: genai.Client(api_key=api_key))

    def analyze(self, text: str, credential) -> tuple[list[CharacterProfile], list[Segment]]:
        """Run the analysis call and return (characters, script).

        Any provider or parsing failure raises AnalysisError.
        """
        if not text.strip():
            raise AnalysisError("Input text is empty")
        client = self._client_factory(credential.token)
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=build_prompt(text),
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=RESPONSE_SCHEMA,
                ),
            )
        except Exception as e:
            raise AnalysisError(f"Analysis call failed: {e}") from e

        try:
            payload = json.loads(response.text or "{}")
        except (json.JSONDecodeError, TypeError) as e:
            raise AnalysisError(f"Analysis returned malformed JSON: {e}") from e

        characters, script = normalize_analysis(payload)
        logger.info("Analysis parsed: %d characters, %d script lines", len(characters), len(script))
        return characters, script

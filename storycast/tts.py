"""TTS generation via the Gemini speech models, one credential per call."""

import base64
import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from storycast.constants import TTS_MODEL
from storycast.errors import RateLimitError, SynthesisError

logger = logging.getLogger(__name__)


def is_rate_limit_error(error: Exception) -> bool:
    """True for HTTP 429 / RESOURCE_EXHAUSTED responses."""
    if isinstance(error, genai_errors.APIError) and error.code == 429:
        return True
    text = str(error)
    return "429" in text or "RESOURCE_EXHAUSTED" in text


def extract_audio(response) -> bytes:
    """Pull the raw PCM payload out of a generate_content response.

    Raises SynthesisError when the response carries no inline audio.
    """
    try:
        data = response.candidates[0].content.parts[0].inline_data.data
    except (AttributeError, IndexError, TypeError) as e:
        raise SynthesisError(f"Response missing inline audio data: {e}") from e
    if not data:
        raise SynthesisError("No audio data returned")
    if isinstance(data, str):
        data = base64.b64decode(data)
    return data


def speech_config(voice: str) -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        response_modalities=["AUDIO"],
        speech_config=types.SpeechConfig(
            voice_config=types.VoiceConfig(
                prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice),
            ),
        ),
    )


class GeminiSynthesizer:
    """Async synthesizer: (text, voice, credential) -> 16-bit mono PCM at 24 kHz.

    Clients are cached per credential token. Rate-limit responses surface as
    RateLimitError, everything else as SynthesisError.
    """

    def __init__(self, model: str = TTS_MODEL, client_factory=None):
        self.model = model
        self._client_factory = client_factory or (lambda api_key: genai.Client(api_key=api_key))
        self._clients = {}

    def _client(self, token: str):
        if token not in self._clients:
            self._clients[token] = self._client_factory(token)
        return self._clients[token]

    async def synthesize(self, text: str, voice: str, credential) -> bytes:
        client = self._client(credential.token)
        try:
            response = await client.aio.models.generate_content(
                model=self.model,
                contents=text,
                config=speech_config(voice),
            )
        except Exception as e:
            if is_rate_limit_error(e):
                raise RateLimitError(str(e)) from e
            raise SynthesisError(f"Synthesis call failed: {e}") from e
        return extract_audio(response)

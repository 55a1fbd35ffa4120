"""Environment configuration: credentials from the process env or a .env file."""

import os

from dotenv import load_dotenv

from storycast.constants import CREDENTIALS_ENV, FALLBACK_CREDENTIALS_ENV, VOICE_CATALOG_ENV
from storycast.credentials import CredentialPool


def load_environment(env_path: str | None = None) -> None:
    """Load a .env file without overriding variables already set."""
    load_dotenv(env_path, override=False)


def credential_config() -> str | None:
    """Raw credential list: STORYCAST_API_KEYS, else GEMINI_API_KEY."""
    return os.getenv(CREDENTIALS_ENV) or os.getenv(FALLBACK_CREDENTIALS_ENV)


def build_pool(env_path: str | None = None, **kwargs) -> CredentialPool:
    load_environment(env_path)
    return CredentialPool.from_config(credential_config(), **kwargs)


def voice_catalog_path() -> str | None:
    return os.getenv(VOICE_CATALOG_ENV) or None

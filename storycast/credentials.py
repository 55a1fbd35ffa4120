"""Rotating credential pool with request budgets and rate-limit suspension."""

import logging
import math
import re
import threading
import time
from dataclasses import dataclass

from storycast.constants import (
    FALLBACK_CREDENTIALS,
    MAX_REQUESTS_PER_WINDOW,
    MIN_CREDENTIAL_LENGTH,
    RATE_WINDOW_SECONDS,
    SUSPEND_DURATION_MS,
)

logger = logging.getLogger(__name__)


@dataclass
class Credential:
    token: str
    request_count: int = 0
    window_start: float = 0.0
    suspended_until: float | None = None

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.token)


def fingerprint(token: str) -> str:
    """Short form of a token that is safe to log: "...abcd"."""
    return f"...{token[-4:]}" if token else "none"


def _looks_invalid(raw: str | None) -> bool:
    # Unset, a literal placeholder, or a template that never got substituted
    if raw is None or not raw.strip():
        return True
    return raw.strip() == "API_KEY" or "undefined" in raw


def parse_credentials(raw: str | None, fallback=FALLBACK_CREDENTIALS) -> list[str]:
    """Split a comma/newline separated token list.

    Strips whitespace and quotes, drops tokens shorter than
    MIN_CREDENTIAL_LENGTH and duplicates. Falls back to `fallback` when the
    configuration is empty or clearly invalid.
    """
    if _looks_invalid(raw):
        logger.warning("Credential configuration missing or invalid; using fallback set")
        return list(fallback)

    tokens = []
    for item in re.split(r"[\r\n,]+", raw):
        token = item.strip().replace('"', "").replace("'", "")
        if len(token) < MIN_CREDENTIAL_LENGTH or token in tokens:
            continue
        tokens.append(token)

    if not tokens:
        logger.warning("No credential passed validation; using fallback set")
        return list(fallback)
    return tokens


class CredentialPool:
    """Decides which credential, if any, may be used right now.

    A credential is usable iff it is not suspended and has budget left in the
    current window. Selection is round-robin starting from the last credential
    handed out. All state changes happen under one lock.
    """

    def __init__(
        self,
        tokens,
        max_requests: int = MAX_REQUESTS_PER_WINDOW,
        window_seconds: float = RATE_WINDOW_SECONDS,
        clock=time.monotonic,
    ):
        self._clock = clock
        self._lock = threading.Lock()
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        now = clock()
        self._window_start = now
        self._credentials = [Credential(token=t, window_start=now) for t in tokens]
        self._current = 0
        logger.info("Loaded %d credentials", len(self._credentials))

    @classmethod
    def from_config(cls, raw: str | None, **kwargs) -> "CredentialPool":
        return cls(parse_credentials(raw), **kwargs)

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def credentials(self) -> list[Credential]:
        return list(self._credentials)

    def _roll_window(self, now: float) -> None:
        if now - self._window_start < self.window_seconds:
            return
        self._window_start = now
        for cred in self._credentials:
            cred.request_count = 0
            cred.window_start = now

    def _usable(self, cred: Credential, now: float) -> bool:
        if cred.suspended_until is not None and now < cred.suspended_until:
            return False
        return cred.request_count < self.max_requests

    def reserve(self) -> Credential | None:
        """Return a usable credential with its counter incremented, or None."""
        with self._lock:
            now = self._clock()
            self._roll_window(now)
            size = len(self._credentials)
            for offset in range(size):
                index = (self._current + offset) % size
                cred = self._credentials[index]
                if self._usable(cred, now):
                    cred.request_count += 1
                    self._current = index
                    return cred
            return None

    def suspend(self, credential, duration_ms: int = SUSPEND_DURATION_MS) -> None:
        """Jail a credential after a rate-limit signal and move the pointer on."""
        token = credential.token if isinstance(credential, Credential) else credential
        with self._lock:
            now = self._clock()
            for cred in self._credentials:
                if cred.token == token:
                    cred.suspended_until = now + duration_ms / 1000
                    logger.warning("Suspending credential %s for %ds", cred.fingerprint, duration_ms // 1000)
                    break
            else:
                raise KeyError(f"Unknown credential {fingerprint(token)}")

            size = len(self._credentials)
            for offset in range(1, size):
                index = (self._current + offset) % size
                if self._usable(self._credentials[index], now):
                    self._current = index
                    return
            # Nothing usable: advance by one
            self._current = (self._current + 1) % size

    def reset_window(self) -> None:
        with self._lock:
            self._window_start = float("-inf")
            self._roll_window(self._clock())

    def all_suspended(self) -> bool:
        """True iff no credential is usable right now."""
        with self._lock:
            now = self._clock()
            self._roll_window(now)
            return not any(self._usable(c, now) for c in self._credentials)

    def states(self) -> list[dict]:
        """Per-credential snapshot for diagnostics; tokens are fingerprinted."""
        with self._lock:
            now = self._clock()
            self._roll_window(now)
            snapshot = []
            for cred in self._credentials:
                until = cred.suspended_until or 0.0
                jailed = cred.suspended_until is not None and now < until
                snapshot.append({
                    "key": cred.fingerprint,
                    "suspended": jailed,
                    "remaining_cooldown": math.ceil(until - now) if jailed else 0,
                    "requests": cred.request_count,
                })
            return snapshot

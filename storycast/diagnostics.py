"""Structured session log: timestamped stage/level/message entries exportable as JSON."""

import copy
import json
import logging
import time

logger = logging.getLogger("storycast")

LEVELS = ("INFO", "WARN", "ERROR", "METRIC")

_LOGGING_LEVELS = {
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "METRIC": logging.DEBUG,
}


class SessionLog:
    """Collects diagnostic entries for one session.

    Timestamps are milliseconds since the session started. Every entry is also
    mirrored to the package logger.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._start = clock()
        self._timers = {}
        self.entries = []
        self.log("SYSTEM", "INFO", "Session started")

    def _elapsed_ms(self) -> int:
        return int((self._clock() - self._start) * 1000)

    def log(self, stage: str, level: str, message: str, data: dict | None = None) -> None:
        if level not in LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        self.entries.append({
            "timestamp": self._elapsed_ms(),
            "stage": stage,
            "level": level,
            "message": message,
            # Detach from caller-owned structures
            "data": copy.deepcopy(data) if data else None,
        })
        logger.log(_LOGGING_LEVELS[level], "[%s] %s", stage, message)

    def start_timer(self, label: str) -> None:
        self._timers[label] = self._clock()

    def end_timer(self, label: str, stage: str = "PERF") -> float:
        """Record a METRIC entry for the timer and return its duration in ms."""
        start = self._timers.pop(label, None)
        if start is None:
            return 0.0
        duration_ms = (self._clock() - start) * 1000
        self.log(stage, "METRIC", f"Timer: {label}", {"duration_ms": round(duration_ms, 2)})
        return duration_ms

    def summary(self) -> dict:
        return {
            "total_duration_ms": self._elapsed_ms(),
            "error_count": sum(1 for e in self.entries if e["level"] == "ERROR"),
            "warn_count": sum(1 for e in self.entries if e["level"] == "WARN"),
            "api_call_count": sum(1 for e in self.entries if "API Call" in e["message"]),
        }

    def export(self) -> str:
        return json.dumps({"summary": self.summary(), "logs": self.entries}, indent=2, ensure_ascii=False)

    def save(self, path: str) -> str:
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.export())
        return path

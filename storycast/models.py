"""Data models for story-to-speech generation."""

from dataclasses import dataclass, field
from enum import Enum

from pydub import AudioSegment


@dataclass
class Segment:
    speaker: str       # "Narrator" or a character name
    text: str


@dataclass
class CharacterProfile:
    name: str
    gender: str = "Neutral"
    description: str = ""


@dataclass(frozen=True)
class VoiceProfile:
    name: str
    gender: str            # "Male" or "Female"
    pitch: str             # "Low", "Low-Medium", "Medium", "Medium-High", "High"
    characteristics: tuple[str, ...] = ()


class JobState(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    DONE = "done"
    REQUEUED = "requeued"
    DROPPED = "dropped"


@dataclass
class Job:
    index: int         # position in the optimized script
    segment: Segment
    voice: str
    attempts: int = 0
    state: JobState = JobState.PENDING
    error: str = ""


@dataclass
class AudioChunk:
    index: int
    audio: AudioSegment


@dataclass
class GenerationResult:
    chunks: list = field(default_factory=list)      # AudioChunk | None, by index
    completed: list[int] = field(default_factory=list)
    dropped: list[int] = field(default_factory=list)
    exhausted: list[int] = field(default_factory=list)
    peak_active: int = 0
    elapsed_seconds: float = 0.0
    cancelled: bool = False

    @property
    def total(self) -> int:
        return len(self.chunks)

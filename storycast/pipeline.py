"""Story pipeline as an explicit stage machine.

    INPUT -> ANALYZING -> CASTING -> GENERATING -> COMPLETE

Analysis failures return to INPUT, generation failures return to CASTING.
A saved project can be restored straight into CASTING.
"""

import logging
from enum import Enum

from pydub import AudioSegment

from storycast.assembly import assemble
from storycast.casting import cast_voices
from storycast.diagnostics import SessionLog
from storycast.errors import AnalysisError, CastingError, GenerationError, InvalidTransition
from storycast.exporter import encode_wav
from storycast.models import CharacterProfile, GenerationResult, Segment
from storycast.optimizer import optimize_script
from storycast.scheduler import GenerationScheduler

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    INPUT = "input"
    ANALYZING = "analyzing"
    CASTING = "casting"
    GENERATING = "generating"
    COMPLETE = "complete"


TRANSITIONS = {
    Stage.INPUT: {Stage.ANALYZING, Stage.CASTING},
    Stage.ANALYZING: {Stage.CASTING, Stage.INPUT},
    Stage.CASTING: {Stage.GENERATING, Stage.INPUT},
    Stage.GENERATING: {Stage.COMPLETE, Stage.CASTING},
    Stage.COMPLETE: {Stage.CASTING, Stage.INPUT},
}


class StoryPipeline:
    def __init__(self, pool, catalog, analyzer=None, synthesizer=None, session=None, on_progress=None):
        self.pool = pool
        self.catalog = list(catalog)
        self.analyzer = analyzer
        self.synthesizer = synthesizer
        self.session = session or SessionLog()
        self.on_progress = on_progress

        self.stage = Stage.INPUT
        self.characters: list[CharacterProfile] = []
        self.script: list[Segment] = []
        self.assignments: dict[str, str] = {}
        self.result: GenerationResult | None = None
        self.track: AudioSegment | None = None
        self._scheduler: GenerationScheduler | None = None

    def _advance(self, stage: Stage) -> None:
        if stage not in TRANSITIONS[self.stage]:
            raise InvalidTransition(f"Cannot go from {self.stage.value} to {stage.value}")
        logger.debug("Stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def analyze(self, text: str, rng=None) -> dict[str, str]:
        """Analyze text, cast voices and land in CASTING. Returns the assignments."""
        self._advance(Stage.ANALYZING)
        self.session.log("ANALYSIS", "INFO", "Starting text analysis", {"text_length": len(text)})
        try:
            credential = self.pool.reserve()
            if credential is None:
                raise AnalysisError("No usable credential for analysis")
            characters, script = self.analyzer.analyze(text, credential)
        except Exception as e:
            self.session.log("ANALYSIS", "ERROR", "Analysis failed", {"error": str(e)})
            self._advance(Stage.INPUT)
            raise
        self.session.log("ANALYSIS", "INFO", "Analysis result parsed", {
            "character_count": len(characters),
            "script_segments": len(script),
        })
        return self.load(characters, script, rng=rng)

    def load(self, characters, script, assignments=None, rng=None) -> dict[str, str]:
        """Install a roster and script and move to CASTING.

        Existing assignments are kept for speakers they cover; everyone else
        is cast automatically.
        """
        if self.stage == Stage.GENERATING:
            raise InvalidTransition("Cannot load a script while generating")
        if self.stage != Stage.CASTING:
            self._advance(Stage.CASTING)
        self.characters = list(characters)
        self.script = list(script)
        self.recast(rng=rng)
        if assignments:
            self.assignments.update({k: v for k, v in assignments.items() if v})
        return dict(self.assignments)

    def _require(self, *stages: Stage) -> None:
        if self.stage not in stages:
            allowed = ", ".join(s.value for s in stages)
            raise InvalidTransition(f"Expected stage {allowed}, pipeline is {self.stage.value}")

    def recast(self, rng=None) -> dict[str, str]:
        """Replace the whole speaker → voice mapping."""
        self._require(Stage.CASTING, Stage.COMPLETE)
        self.session.start_timer("smart-casting")
        self.assignments = cast_voices(self.characters, self.catalog, script=self.script, rng=rng)
        self.session.end_timer("smart-casting", "CASTING")
        return dict(self.assignments)

    def assign(self, speaker: str, voice: str) -> None:
        self._require(Stage.CASTING, Stage.COMPLETE)
        if not any(v.name == voice for v in self.catalog):
            raise CastingError(f"Unknown voice: {voice}")
        self.assignments[speaker] = voice

    async def generate(self) -> AudioSegment:
        """Synthesize the script and assemble the final track."""
        if self.stage == Stage.COMPLETE:
            self._advance(Stage.CASTING)
        self._advance(Stage.GENERATING)
        self.track = None

        optimized = optimize_script(self.script)
        self.session.log("GENERATION", "INFO", "Optimized script", {
            "original_segments": len(self.script),
            "optimized_segments": len(optimized),
        })
        self._scheduler = GenerationScheduler(
            self.pool,
            self.synthesizer,
            self.assignments,
            fallback_voice=self.catalog[0].name if self.catalog else "",
            session=self.session,
            on_progress=self.on_progress,
        )
        try:
            self.result = await self._scheduler.run(optimized)
            if self.result.cancelled:
                raise GenerationError("Generation was cancelled")
            if not self.result.completed:
                raise GenerationError("No audio generated")
            track = assemble(self.result.chunks)
        except Exception as e:
            self.session.log("GENERATION", "ERROR", "Generation failed", {"error": str(e)})
            if self.stage == Stage.GENERATING:
                self._advance(Stage.CASTING)
            raise
        finally:
            self._scheduler = None

        self.track = track
        self.session.log("COMPLETION", "METRIC", "Generation Summary", {
            "segments_completed": len(self.result.completed),
            "segments_dropped": len(self.result.dropped),
            "final_audio_duration": round(len(track) / 1000, 2),
            "key_count": len(self.pool),
            "keys": self.pool.states(),
        })
        self._advance(Stage.COMPLETE)
        return track

    def wav_bytes(self) -> bytes:
        self._require(Stage.COMPLETE)
        return encode_wav(self.track)

    def close(self) -> None:
        """Tear down: in-flight results from a running generation are discarded."""
        if self._scheduler is not None:
            self._scheduler.deactivate()

    def reset(self) -> None:
        self.close()
        self.stage = Stage.INPUT
        self.characters, self.script, self.assignments = [], [], {}
        self.result, self.track = None, None

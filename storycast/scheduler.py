"""Bounded-concurrency generation: pair script segments with credentials and synthesize.

Jobs are dispatched in FIFO order, one reserved credential per job, with at
most `concurrency` jobs in flight. Rate-limited jobs go back to the front of
the queue; any other failure drops the job and leaves its output slot empty.
Output placement depends only on the job's index, never on completion order.
"""

import asyncio
import logging
import time
from collections import deque

from storycast.assembly import pad_with_silence, pcm_to_audio
from storycast.constants import (
    CREDENTIAL_POLL_SECONDS,
    MAX_CONCURRENCY,
    MAX_RATE_LIMIT_RETRIES,
    NARRATOR,
    SEGMENT_SILENCE_MS,
    SUSPEND_DURATION_MS,
    SYNTHESIS_TIMEOUT_SECONDS,
    WORKERS_PER_CREDENTIAL,
)
from storycast.diagnostics import SessionLog
from storycast.errors import NoCredentialsError, RateLimitError
from storycast.models import AudioChunk, GenerationResult, Job, JobState, Segment

logger = logging.getLogger(__name__)


def concurrency_limit(credential_count: int) -> int:
    return max(1, min(MAX_CONCURRENCY, WORKERS_PER_CREDENTIAL * credential_count))


class GenerationScheduler:
    def __init__(
        self,
        pool,
        synthesizer,
        assignments: dict[str, str],
        fallback_voice: str,
        session: SessionLog | None = None,
        on_progress=None,
        max_retries: int = MAX_RATE_LIMIT_RETRIES,
        poll_interval: float = CREDENTIAL_POLL_SECONDS,
        timeout: float = SYNTHESIS_TIMEOUT_SECONDS,
        silence_ms: int = SEGMENT_SILENCE_MS,
        suspend_ms: int = SUSPEND_DURATION_MS,
    ):
        self.pool = pool
        self.synthesizer = synthesizer
        self.assignments = dict(assignments)
        self.fallback_voice = fallback_voice
        self.session = session or SessionLog()
        self.on_progress = on_progress
        self.max_retries = max_retries
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.silence_ms = silence_ms
        self.suspend_ms = suspend_ms
        self.concurrency = concurrency_limit(len(pool))

        self.jobs: list[Job] = []
        self.chunks: list[AudioChunk | None] = []
        self.completed = 0
        self.active = 0
        self.peak_active = 0
        self._alive = True
        self._queue: deque[Job] = deque()
        self._queue_lock = None
        self._exhausted: list[int] = []

    @property
    def alive(self) -> bool:
        return self._alive

    def deactivate(self) -> None:
        """Stop accepting work; results that arrive afterwards are discarded."""
        self._alive = False

    def voice_for(self, speaker: str) -> str:
        return self.assignments.get(speaker) or self.assignments.get(NARRATOR) or self.fallback_voice

    def _report(self, message: str) -> None:
        if not self.on_progress:
            return
        try:
            self.on_progress(self.completed, len(self.jobs), message)
        except Exception:
            # Listener errors never abort the run
            logger.exception("Progress callback failed")

    async def _dequeue(self) -> Job | None:
        async with self._queue_lock:
            return self._queue.popleft() if self._queue else None

    async def _requeue(self, job: Job) -> None:
        async with self._queue_lock:
            job.state = JobState.PENDING
            self._queue.appendleft(job)

    async def _process(self, job: Job, credential) -> None:
        if not self._alive:
            return
        job.state = JobState.ACTIVE
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        timer = f"segment-{job.index}"
        try:
            self.session.log(
                "GENERATION", "INFO",
                f"API Call: segment {job.index} with {job.voice} on key {credential.fingerprint}",
            )
            self.session.start_timer(timer)
            try:
                raw = await asyncio.wait_for(
                    self.synthesizer.synthesize(job.segment.text, job.voice, credential),
                    timeout=self.timeout,
                )
                audio = pad_with_silence(pcm_to_audio(raw), self.silence_ms)
            except RateLimitError:
                if self._alive:
                    await self._handle_rate_limit(job, credential)
                return
            except asyncio.TimeoutError:
                self._drop(job, f"timed out after {self.timeout}s")
                return
            except Exception as e:
                self._drop(job, str(e) or type(e).__name__)
                return

            if not self._alive:
                return
            self.chunks[job.index] = AudioChunk(index=job.index, audio=audio)
            job.state = JobState.DONE
            self.completed += 1
            self._report(f"Processing segment {self.completed}/{len(self.jobs)}")
        finally:
            self.session.end_timer(timer, "API_LATENCY")
            self.active -= 1

    async def _handle_rate_limit(self, job: Job, credential) -> None:
        self.pool.suspend(credential, self.suspend_ms)
        job.attempts += 1
        if job.attempts > self.max_retries:
            job.state = JobState.DROPPED
            job.error = f"rate limited {job.attempts} times"
            self._exhausted.append(job.index)
            self.session.log(
                "GENERATION", "ERROR",
                f"Segment {job.index} dropped after {job.attempts} rate-limited attempts",
            )
            return
        job.state = JobState.REQUEUED
        self.session.log("GENERATION", "WARN", f"429 Hit on key ending {credential.fingerprint}")
        await self._requeue(job)

    def _drop(self, job: Job, reason: str) -> None:
        if not self._alive:
            return
        job.state = JobState.DROPPED
        job.error = reason
        self.session.log("GENERATION", "ERROR", f"Failed segment {job.index}", {"error": reason})

    async def run(self, segments: list[Segment]) -> GenerationResult:
        """Synthesize every segment; returns once the queue is drained and workers are idle."""
        if len(self.pool) == 0:
            raise NoCredentialsError("No credentials configured")

        self.jobs = [
            Job(index=i, segment=seg, voice=self.voice_for(seg.speaker))
            for i, seg in enumerate(segments)
        ]
        self.chunks = [None] * len(self.jobs)
        self.completed = 0
        self._exhausted = []
        self._queue = deque(self.jobs)
        self._queue_lock = asyncio.Lock()

        started = time.monotonic()
        self.session.start_timer("total-generation")
        self.session.log("GENERATION", "INFO", f"Queued {len(self.jobs)} jobs", {"concurrency": self.concurrency})

        running = set()
        waiting = False
        while self._alive:
            if not self._queue or len(running) >= self.concurrency:
                if not running:
                    break
                done, running = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    task.result()
                continue

            credential = self.pool.reserve()
            if credential is None:
                if not waiting:
                    self.session.log("GENERATION", "WARN", "All credentials exhausted; waiting")
                    self._report("Rate limit reached. Waiting for available key...")
                waiting = True
                await asyncio.sleep(self.poll_interval)
                continue
            waiting = False

            job = await self._dequeue()
            if job is None:
                continue
            running.add(asyncio.create_task(self._process(job, credential)))

        # No hard cancellation: let stragglers finish, their results are discarded if deactivated
        if running:
            await asyncio.gather(*running)

        self.session.end_timer("total-generation")
        result = GenerationResult(
            chunks=list(self.chunks),
            completed=[j.index for j in self.jobs if j.state == JobState.DONE],
            dropped=[j.index for j in self.jobs if j.state == JobState.DROPPED],
            exhausted=sorted(self._exhausted),
            peak_active=self.peak_active,
            elapsed_seconds=time.monotonic() - started,
            cancelled=not self._alive,
        )
        logger.info(
            "Generation finished: %d/%d segments, %d dropped",
            len(result.completed), len(self.jobs), len(result.dropped),
        )
        return result

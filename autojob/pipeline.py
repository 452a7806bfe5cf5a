"""
Per-job application pipeline.

Runs: extract → match → [augment → match]* → cover letter → resume mutation
→ risk check → dispatch → log entry.

Every step is awaited in order; nothing for the same job runs concurrently.
All per-job failures are converted into a FAILED (or RISK_HALT) terminal
state here and never propagate to the caller.
"""
from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

from autojob.errors import GenerationError, InvalidTransition, RiskDenied
from autojob.events import KIND_STATE, ProgressLog
from autojob.log import get_logger
from autojob.models import (
    ApplicationLogEntry,
    ApplicationMaterials,
    CoverLetterStyle,
    JobIntent,
    JobRecord,
    MatchResult,
    PipelineState,
    Profile,
    new_id,
    utc_now,
)
from autojob.risk import RiskShield
from autojob.services import ApplicationStore, ContentService, Dispatcher

log = get_logger(__name__)

S = PipelineState

# Only AUGMENTING -> MATCHING moves "backward"; everything else is forward.
TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    S.PENDING: frozenset({S.INTERPRETING, S.STRATEGIZING, S.EXTRACTING, S.FAILED}),
    S.INTERPRETING: frozenset({S.PENDING, S.STRATEGIZING}),
    S.STRATEGIZING: frozenset({S.PENDING}),
    S.EXTRACTING: frozenset({S.MATCHING, S.FAILED}),
    S.MATCHING: frozenset({S.AUGMENTING, S.GENERATING_COVER_LETTER, S.FAILED}),
    S.AUGMENTING: frozenset({S.MATCHING}),
    S.GENERATING_COVER_LETTER: frozenset({S.MUTATING_RESUME, S.FAILED}),
    S.MUTATING_RESUME: frozenset({S.APPLYING, S.FAILED}),
    S.APPLYING: frozenset({S.COMPLETED, S.FAILED, S.RISK_HALT}),
    S.COMPLETED: frozenset(),
    S.FAILED: frozenset(),
    S.RISK_HALT: frozenset(),
}

EXTRACTION_FAILED = "Extraction failed: the job reference could not be parsed"
APPLY_ACTION = "Navigation"


class StateTracker:
    """Guards pipeline transitions and reports each one to the progress log."""

    def __init__(
        self,
        scope: str,
        progress: ProgressLog,
        clock: Callable[[], datetime] = utc_now,
        initial: PipelineState = S.PENDING,
    ) -> None:
        self.scope = scope
        self.state = initial
        self.history: list[tuple[PipelineState, datetime]] = [(initial, clock())]
        self._progress = progress
        self._clock = clock

    def can_advance(self, target: PipelineState) -> bool:
        return target in TRANSITIONS[self.state]

    def advance(self, target: PipelineState, **data: Any) -> None:
        if not self.can_advance(target):
            raise InvalidTransition(f"{self.state.value} -> {target.value}")
        previous = self.state
        self.state = target
        self.history.append((target, self._clock()))
        self._progress.emit(
            self.scope,
            f"State: {previous.value} → {target.value}",
            kind=KIND_STATE,
            state=target.value,
            previous=previous.value,
            **data,
        )


@dataclass
class PipelineRun:
    """Everything one pipeline invocation learns about its job."""

    id: str
    reference: str
    tracker: StateTracker
    job: JobRecord | None = None
    match: MatchResult | None = None
    materials: ApplicationMaterials | None = None
    entry: ApplicationLogEntry | None = None
    error: str | None = None
    augmentations: list[str] = field(default_factory=list)

    @property
    def scope(self) -> str:
        return self.tracker.scope

    @property
    def state(self) -> PipelineState:
        return self.tracker.state

    @property
    def succeeded(self) -> bool:
        return self.state == S.COMPLETED


class PipelineRunner:
    def __init__(
        self,
        content: ContentService,
        dispatcher: Dispatcher,
        risk: RiskShield,
        progress: ProgressLog,
        *,
        store: ApplicationStore | None = None,
        call_timeout: float | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.content = content
        self.dispatcher = dispatcher
        self.risk = risk
        self.progress = progress
        self.store = store
        self.call_timeout = call_timeout
        self._clock = clock

    async def call(self, awaitable: Awaitable[Any]) -> Any:
        if self.call_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self.call_timeout)

    def _fail(self, run: PipelineRun, reason: str, terminal: PipelineState = S.FAILED) -> PipelineRun:
        run.error = reason
        self.progress.error(run.scope, f"❌ APPLICATION FAILED: {reason}", run_id=run.id)
        run.tracker.advance(terminal, error=reason)
        return run

    def open(self, reference: str, scope: str | None = None) -> PipelineRun:
        run_id = new_id()
        tracker = StateTracker(scope or f"job-{run_id}", self.progress, self._clock)
        return PipelineRun(id=run_id, reference=reference, tracker=tracker)

    # ------------------------------------------------------------------
    # EXTRACTING → MATCHING
    # ------------------------------------------------------------------

    async def evaluate(self, run: PipelineRun, profile: Profile) -> PipelineRun:
        run.tracker.advance(S.EXTRACTING)
        self.progress.emit(run.scope, "Initiating job extraction & intent analysis...")
        try:
            job = await self.call(self.content.extract_job(run.reference))
        except Exception as exc:
            log.error("Extraction of %r failed: %s", run.reference[:120], exc)
            return self._fail(run, EXTRACTION_FAILED)

        run.job = job
        self.progress.emit(run.scope, f"Extracted: {job.title} at {job.company}", job_id=job.id)
        if job.intent.type != JobIntent.REAL_HIRE:
            self.progress.warning(
                run.scope,
                f"⚠️ Intent flagged: {job.intent.type.value} "
                f"({job.intent.confidence:.0%}): {job.intent.reasoning}",
            )

        run.tracker.advance(S.MATCHING)
        run.match = await self._score(run, profile)
        return run

    async def _score(self, run: PipelineRun, profile: Profile) -> MatchResult:
        assert run.job is not None
        try:
            match = await self.call(self.content.score_match(run.job, profile))
        except Exception as exc:
            log.warning("Scoring failed for %s: %s", run.job.id, exc)
            match = MatchResult(score=0, reasoning="Scoring service unavailable", error=str(exc))
        if match.error:
            self.progress.warning(run.scope, f"Match scoring degraded: {match.error}")
        self.progress.emit(run.scope, f"Match Score: {match.score:.0f}%", score=match.score)
        return match

    # ------------------------------------------------------------------
    # AUGMENTING (explicit user request only)
    # ------------------------------------------------------------------

    async def augment(
        self,
        run: PipelineRun,
        profile: Profile,
        skill: str,
        track_id: str | None = None,
    ) -> Profile:
        """Add *skill* to one resume track and rescore.

        Returns the updated profile, or *profile* unchanged when augmentation
        fails; either way the run is back in MATCHING afterwards.
        """
        if run.job is None or run.state != S.MATCHING:
            raise InvalidTransition(f"augment requires MATCHING, run is {run.state.value}")

        run.tracker.advance(S.AUGMENTING, skill=skill)
        self.progress.emit(run.scope, f"🧬 AUGMENTATION INITIATED: Injecting \"{skill}\" into profile...")
        track = profile.track(track_id)
        try:
            if track is None:
                raise GenerationError("No resume tracks found to augment.")
            augmented = await self.call(self.content.augment_resume(track, skill, run.job))
        except Exception as exc:
            self.progress.error(run.scope, f"❌ AUGMENTATION FAILED: {exc}")
            run.tracker.advance(S.MATCHING)
            return profile

        updated = dataclasses.replace(
            profile,
            resume_tracks=[
                dataclasses.replace(t, content=augmented) if t.id == track.id else t
                for t in profile.resume_tracks
            ],
        )
        run.augmentations.append(skill)
        self.progress.emit(run.scope, f"✅ AUGMENTATION SUCCESS: \"{skill}\" added to track {track.name}.")

        run.tracker.advance(S.MATCHING)
        run.match = await self._score(run, updated)
        self.progress.emit(run.scope, f"📈 NEW MATCH SCORE: {run.match.score:.0f}%")
        return updated

    # ------------------------------------------------------------------
    # GENERATING_COVER_LETTER → MUTATING_RESUME → APPLYING
    # ------------------------------------------------------------------

    async def complete(self, run: PipelineRun, profile: Profile, style: CoverLetterStyle) -> PipelineRun:
        if run.state.terminal:
            return run
        try:
            return await self._complete(run, profile, style)
        except InvalidTransition:
            raise
        except Exception as exc:
            log.exception("Unexpected pipeline error for %s", run.id)
            if not run.state.terminal:
                self._fail(run, f"Unexpected error: {exc}")
            return run

    async def _complete(self, run: PipelineRun, profile: Profile, style: CoverLetterStyle) -> PipelineRun:
        job = run.job
        assert job is not None

        run.tracker.advance(S.GENERATING_COVER_LETTER, style=style.value)
        self.progress.emit(run.scope, f"📝 Generating cover letter in {style.value} style...")
        try:
            cover_letter = await self.call(self.content.generate_cover_letter(job, profile, style))
        except Exception as exc:
            return self._fail(run, f"Cover letter generation failed: {exc}")
        if not cover_letter.strip():
            return self._fail(run, "Cover letter generation failed: empty response")

        run.tracker.advance(S.MUTATING_RESUME)
        self.progress.emit(run.scope, f"🔧 Tailoring resume for {job.company}...")
        try:
            resume, report = await self.call(self.content.tailor_resume(job, profile))
        except Exception as exc:
            return self._fail(run, f"Resume mutation failed: {exc}")
        if report.fallback:
            self.progress.warning(
                run.scope,
                f"⚠️ Resume mutation fell back to base track {report.selected_track_name}",
            )
        else:
            self.progress.emit(
                run.scope,
                f"Track selected: {report.selected_track_name} "
                f"(ATS estimate {report.ats_score_estimate:.0f}%, "
                f"{len(report.keywords_injected)} keyword(s) injected)",
            )
        run.materials = ApplicationMaterials(
            cover_letter=cover_letter,
            cover_letter_style=style,
            resume=resume,
            report=report,
        )

        run.tracker.advance(S.APPLYING)
        self.progress.emit(run.scope, f"🚀 APPLYING: {job.title} at {job.company}...")
        if not await self.risk.check(APPLY_ACTION, scope=run.scope):
            terminal = S.RISK_HALT if self.risk.locked and self.risk.auto_lock_on_high else S.FAILED
            return self._fail(run, RiskDenied.reason, terminal)

        try:
            result = await self.call(self.dispatcher.dispatch_application(job, profile, run.materials))
        except Exception as exc:
            return self._fail(run, f"Dispatch failed: {exc}")
        if not result.success:
            return self._fail(run, f"Dispatch failed: {result.message or 'collaborator reported failure'}")

        run.entry = ApplicationLogEntry(
            id=new_id(),
            job_id=job.id,
            job_title=job.title,
            company=job.company,
            status=S.COMPLETED,
            timestamp=self._clock().isoformat(timespec="seconds"),
            url=result.endpoint,
            platform=job.platform,
            location=job.location,
            materials=run.materials,
        )
        self.progress.emit(run.scope, f"✅ APPLICATION URL OPENED: {result.endpoint}")
        run.tracker.advance(S.COMPLETED, entry_id=run.entry.id)
        self.progress.emit(run.scope, f"✅ SUCCESS: Applied to {job.company}")
        await self._persist(run)
        return run

    async def _persist(self, run: PipelineRun) -> None:
        if self.store is None or run.entry is None:
            return
        try:
            await asyncio.to_thread(self.store.record, run.entry)
        except Exception as exc:
            self.progress.error(run.scope, f"Application history write failed: {exc}")

    async def run(
        self,
        reference: str,
        profile: Profile,
        style: CoverLetterStyle,
        *,
        scope: str | None = None,
    ) -> PipelineRun:
        """Full pipeline for one reference; returns the terminal run."""
        run = self.open(reference, scope)
        await self.evaluate(run, profile)
        if run.state.terminal:
            return run
        return await self.complete(run, profile, style)

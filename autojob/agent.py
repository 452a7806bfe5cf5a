"""
Autonomous job application agent.

One ``AutoJobAgent`` is one operator session: it owns the profile, the Risk
Shield, the active strategy, the progress stream and at most one bulk run,
and exposes the entry points used by the CLI.

Single run: extract → match → [augment → match]* → cover letter → resume
mutation → risk check → dispatch → log entry.
Bulk run: the same pipeline over a queue, one item at a time.
"""
from __future__ import annotations

import asyncio
import random
from datetime import datetime
from typing import AsyncIterator, Callable, Sequence

from autojob.bulk import ABORTED_BY_OPERATOR, NEVER_STARTED, BulkOrchestrator, BulkRun, QueueItem
from autojob.commands import CommandInterpreter, CommandResult
from autojob.config import Settings, get_env, load_profile, save_profile
from autojob.errors import BulkRunActive, GenerationError, InvalidTransition
from autojob.events import SESSION_SCOPE, ProgressLog, Subscriber
from autojob.log import get_logger
from autojob.models import (
    Command,
    CommandAction,
    CoverLetterStyle,
    DiscoveredJob,
    InterviewQuestion,
    ItemOutcome,
    MatchResult,
    PipelineState,
    Preferences,
    Profile,
    utc_now,
)
from autojob.pacing import HumanPacer, Sleep
from autojob.pipeline import PipelineRun, PipelineRunner, StateTracker
from autojob.planner import CONNECTION_FAILED
from autojob.risk import RiskShield
from autojob.services import ApplicationStore, ContentService, DiscoveryService, Dispatcher, Planner
from autojob.strategy import StrategyController

log = get_logger(__name__)

FALLBACK_SEARCH = Preferences(target_roles=["software engineer"], locations=["Remote"], remote_only=True)


class AutoJobAgent:
    def __init__(
        self,
        profile: Profile,
        *,
        content: ContentService,
        dispatcher: Dispatcher,
        discovery: DiscoveryService,
        planner: Planner,
        store: ApplicationStore | None = None,
        risk: RiskShield | None = None,
        pacer: HumanPacer | None = None,
        progress: ProgressLog | None = None,
        call_timeout: float | None = None,
        item_delay: tuple[float, float] = (1.5, 3.0),
        profile_sink: Callable[[Profile], object] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.profile = profile
        self.discovery = discovery
        self.planner = planner
        self.store = store
        self.profile_sink = profile_sink
        self.progress = progress if progress is not None else ProgressLog(clock)
        self.risk = risk or RiskShield(progress=self.progress)
        self.pacer = pacer or HumanPacer()
        self.strategy = StrategyController(self.progress, clock)
        self.runner = PipelineRunner(
            content, dispatcher, self.risk, self.progress,
            store=store, call_timeout=call_timeout, clock=clock,
        )
        self.bulk = BulkOrchestrator(
            self.runner, self.strategy, self.progress, self.pacer, item_delay=item_delay, clock=clock,
        )
        self.session = StateTracker(SESSION_SCOPE, self.progress, clock)
        self.commands = CommandInterpreter(self)
        self.active_bulk: BulkRun | None = None
        self.last_run: PipelineRun | None = None

    # ------------------------------------------------------------------
    # Single job
    # ------------------------------------------------------------------

    async def evaluate(self, reference: str) -> PipelineRun:
        """Extract and score one job; the run stops in MATCHING (or FAILED)."""
        self.risk.ensure_unlocked("start_single")
        run = self.runner.open(reference)
        self.last_run = run
        await self.runner.evaluate(run, self.profile)
        return run

    async def finish(self, run: PipelineRun, style: CoverLetterStyle | None = None) -> PipelineRun:
        if run.state.terminal:
            return run
        await self.pacer.pause()
        return await self.runner.complete(run, self.profile, style or self.strategy.default_style)

    async def start_single(self, reference: str, style: CoverLetterStyle | None = None) -> PipelineRun:
        run = await self.evaluate(reference)
        return await self.finish(run, style)

    async def augment(self, skill: str, run: PipelineRun | None = None, track_id: str | None = None) -> MatchResult:
        """Inject *skill* into a resume track and rescore the pending run."""
        run = run or self.last_run
        if run is None:
            raise InvalidTransition("augment requires an evaluated job")
        updated = await self.runner.augment(run, self.profile, skill, track_id)
        if updated is not self.profile:
            self.profile = updated
            if self.profile_sink is not None:
                try:
                    await asyncio.to_thread(self.profile_sink, updated)
                except OSError as exc:
                    self.progress.error(run.scope, f"Profile save failed: {exc}")
        assert run.match is not None
        return run.match

    async def prepare_interview(self, run: PipelineRun | None = None) -> list[InterviewQuestion]:
        """Interview brief for an extracted job, drafted against the tailored resume."""
        run = run or self.last_run
        if run is None or run.job is None:
            raise InvalidTransition("interview prep requires an extracted job")
        content = self.runner.content
        self.progress.emit(run.scope, "🧠 PREPARING INTERVIEW: Generating technical & cultural probing questions...")
        try:
            if run.materials is not None:
                resume = run.materials.resume
            else:
                resume, _ = await self.runner.call(content.tailor_resume(run.job, self.profile))
            questions = await self.runner.call(content.generate_interview_questions(run.job, resume))
        except Exception as exc:
            self.progress.error(run.scope, f"❌ PREP FAILED: {exc}")
            raise GenerationError(f"interview prep: {exc}") from exc
        self.progress.emit(run.scope, "✅ INTERVIEW BRIEF READY: Strategic questions and answers formulated.")
        return list(questions)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def _applied_urls(self) -> set[str]:
        if self.store is None:
            return set()
        try:
            return {r.get("url", "") for r in self.store.entries()} - {"", "#"}
        except OSError as exc:
            log.warning("Application history unavailable: %s", exc)
            return set()

    async def _search(self, prefs: Preferences) -> list[DiscoveredJob]:
        try:
            return await self.runner.call(self.discovery.discover_jobs(prefs))
        except Exception as exc:
            self.progress.error(SESSION_SCOPE, f"❌ DISCOVERY FAILED: {exc}")
            return []

    async def discover(self, overrides: Preferences | None = None) -> list[DiscoveredJob]:
        self.risk.ensure_unlocked("discover")
        prefs = overrides or self.profile.preferences
        roles = ", ".join(prefs.target_roles) or "any role"
        self.progress.emit(SESSION_SCOPE, f"🔍 SEARCHING: {roles} ({', '.join(prefs.locations) or 'anywhere'})")
        jobs = await self._search(prefs)
        if not jobs:
            self.progress.warning(SESSION_SCOPE, "No listings found; retrying with a broad remote search.")
            jobs = await self._search(FALLBACK_SEARCH)

        applied = await asyncio.to_thread(self._applied_urls)
        fresh = [j for j in jobs if j.url not in applied]
        if len(fresh) < len(jobs):
            self.progress.emit(SESSION_SCOPE, f"Skipping {len(jobs) - len(fresh)} listing(s) already applied to.")
        self.progress.emit(SESSION_SCOPE, f"✅ Found {len(fresh)} listing(s).", count=len(fresh))
        return fresh

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    def _retire_unstarted(self, run: BulkRun, reason: str) -> None:
        # A stream that is started later sees the cancelled token and stops at once
        run.token.cancel(reason)
        run.finished = True
        log.info("Bulk run %s discarded before its first item (%s)", run.id, reason)

    def prepare_bulk(self, queue: Sequence[QueueItem]) -> BulkRun:
        self.risk.ensure_unlocked("start_bulk")
        current = self.active_bulk
        if current is not None and not current.finished:
            if current.started:
                raise BulkRunActive(f"bulk run {current.id} is still in progress")
            self._retire_unstarted(current, NEVER_STARTED)
        self.active_bulk = self.bulk.prepare(list(queue))
        return self.active_bulk

    def stream_bulk(
        self,
        queue: Sequence[QueueItem],
        style: CoverLetterStyle | None = None,
    ) -> AsyncIterator[ItemOutcome]:
        """Validate and start a bulk run; outcomes stream as items finish.

        Lock and concurrency checks happen here, before the first item.
        """
        run = self.prepare_bulk(queue)
        return self.bulk.run_bulk(run, self.profile, style)

    async def start_bulk(self, queue: Sequence[QueueItem], style: CoverLetterStyle | None = None) -> BulkRun:
        async for _ in self.stream_bulk(queue, style):
            pass
        assert self.active_bulk is not None
        return self.active_bulk

    def cancel_bulk(self, reason: str = ABORTED_BY_OPERATOR) -> bool:
        """Request a cooperative stop; the item in flight still finishes."""
        run = self.active_bulk
        if run is None or run.finished:
            return False
        if not run.started:
            self._retire_unstarted(run, reason)
            return True
        run.token.cancel(reason)
        self.progress.warning(run.id, f"🛑 Stop requested: {reason}")
        return True

    # ------------------------------------------------------------------
    # Commands and operator controls
    # ------------------------------------------------------------------

    async def submit_command(self, command: Command | dict) -> CommandResult:
        return await self.commands.dispatch(command)

    async def submit_text(self, text: str) -> CommandResult:
        self.session.advance(PipelineState.INTERPRETING)
        self.progress.emit(SESSION_SCOPE, f"💬 INTERPRETING: \"{text[:120]}\"")
        try:
            command = await self.runner.call(self.planner.interpret_command(text))
        except Exception as exc:
            log.error("Command interpretation failed: %s", exc)
            command = Command.blocked(CONNECTION_FAILED)

        if not (isinstance(command, Command) and command.action == CommandAction.STRATEGY and command.goal):
            self.session.advance(PipelineState.PENDING)
        return await self.commands.dispatch(command)

    def override_risk_lock(self) -> None:
        self.risk.override()

    def subscribe(self, callback: Subscriber, scope: str | None = None) -> Callable[[], None]:
        return self.progress.subscribe(callback, scope)

    def applications(self) -> list[dict[str, str]]:
        return self.store.entries() if self.store is not None else []

    async def status_summary(self) -> str:
        state = self.risk.state
        lines = [
            f"Risk: {state.level.value} | locked={state.locked} | reputation={state.ip_reputation} "
            f"| denials={state.denial_count} | captchas={state.captcha_count}",
        ]
        plan = self.strategy.plan
        if plan is None:
            lines.append("Strategy: none")
        else:
            lines.append(
                f"Strategy: {plan.goal} | {plan.intensity.value} | {plan.daily_quota}/day | {plan.status.value}"
            )
        run = self.active_bulk
        if run is not None:
            done, total = run.progress
            lines.append(f"Bulk {run.id}: {done}/{total} processed{' (finished)' if run.finished else ''}")
        if plan is not None:
            recent = [e.message for e in self.progress.events()[-5:]]
            try:
                lines.append(f"Brief: {await self.runner.call(self.planner.strategy_brief(plan, recent))}")
            except Exception as exc:
                log.warning("Strategy brief failed: %s", exc)
        return "\n".join(lines)


def build_agent(
    settings: Settings | None = None,
    profile: Profile | None = None,
    *,
    rng: random.Random | None = None,
    sleep: Sleep | None = None,
) -> AutoJobAgent:
    """Wire the default Groq, discovery, dispatch and CSV collaborators."""
    from autojob.content import GroqContentService
    from autojob.dispatch import build_dispatcher
    from autojob.llm import GroqClient
    from autojob.planner import GroqPlanner
    from autojob.sources import JobDiscovery, get_sources
    from autojob.tracker import CsvApplicationStore

    settings = settings or Settings.from_env()
    profile = profile or load_profile()
    rng = rng or random.Random()

    client = GroqClient(settings.groq_api_key, settings.groq_model) if settings.groq_api_key else None
    if client is None:
        log.info("No GROQ_API_KEY, content and planning run offline")

    progress = ProgressLog()
    risk = RiskShield(
        rng=rng,
        sleep=sleep,
        threshold=settings.risk_threshold,
        pacing=settings.risk_pacing,
        auto_lock_on_high=settings.auto_lock_on_high,
        progress=progress,
    )
    return AutoJobAgent(
        profile,
        content=GroqContentService(client),
        dispatcher=build_dispatcher(settings.dispatch_mode, risk, headless=settings.headless),
        discovery=JobDiscovery(get_sources(get_env), limit=settings.discovery_limit),
        planner=GroqPlanner(client),
        store=CsvApplicationStore(),
        risk=risk,
        pacer=HumanPacer(rng, sleep, default_range=settings.human_delay),
        progress=progress,
        call_timeout=settings.call_timeout,
        item_delay=settings.bulk_delay,
        profile_sink=save_profile,
    )

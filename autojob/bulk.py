"""
Bulk Orchestrator: drives the pipeline over a queue of jobs, one at a time.

Items run strictly in queue order with a randomized pause between them.
Cancellation is cooperative: the token is consulted before each item, so
the item in flight always finishes first. One item's failure never stops
the batch.
"""
from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Callable, Union

from autojob.events import KIND_COMPLETE, KIND_PROGRESS, ProgressLog
from autojob.log import get_logger
from autojob.models import (
    CoverLetterStyle,
    DiscoveredJob,
    ItemOutcome,
    OutcomeStatus,
    PipelineState,
    PlanStatus,
    Profile,
    new_id,
    utc_now,
)
from autojob.pacing import HumanPacer
from autojob.pipeline import PipelineRunner
from autojob.strategy import StrategyController

log = get_logger(__name__)

QueueItem = Union[DiscoveredJob, str]

ABORTED_BY_OPERATOR = "aborted by operator"
STRATEGY_PAUSED = "strategy paused"
QUOTA_REACHED = "daily quota reached"
NEVER_STARTED = "superseded before start"


class CancellationToken:
    """Per-run stop flag; set from outside, polled by the orchestrator."""

    def __init__(self) -> None:
        self._reason: str | None = None

    def cancel(self, reason: str = ABORTED_BY_OPERATOR) -> None:
        if self._reason is None:
            self._reason = reason

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        return self._reason


def _reference(item: QueueItem) -> str:
    return item.url if isinstance(item, DiscoveredJob) else item


def _label(item: QueueItem) -> str:
    if isinstance(item, DiscoveredJob):
        return f"{item.title} at {item.company}"
    return item[:80]


@dataclass
class BulkRun:
    queue: tuple[QueueItem, ...]
    id: str = field(default_factory=lambda: f"batch-{new_id()}")
    token: CancellationToken = field(default_factory=CancellationToken)
    index: int = 0
    outcomes: list[ItemOutcome] = field(default_factory=list)
    terminus: ItemOutcome | None = None
    started: bool = False
    # today's completed applications recorded before this run began
    applied_before: int = 0
    finished: bool = False

    @property
    def total(self) -> int:
        return len(self.queue)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def progress(self) -> tuple[int, int]:
        return self.processed, self.total

    @property
    def aborted_remaining(self) -> int:
        return self.total - self.processed if self.terminus is not None else 0

    def counts(self) -> dict[OutcomeStatus, int]:
        tally = Counter(o.status for o in self.outcomes)
        return {status: tally.get(status, 0) for status in OutcomeStatus if status != OutcomeStatus.ABORTED}

    def remaining_queue(self) -> tuple[QueueItem, ...]:
        """Unprocessed items, for resuming after an operator halt."""
        return self.queue[self.processed:]


class BulkOrchestrator:
    def __init__(
        self,
        runner: PipelineRunner,
        strategy: StrategyController,
        progress: ProgressLog,
        pacer: HumanPacer,
        *,
        item_delay: tuple[float, float] = (1.5, 3.0),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.runner = runner
        self.strategy = strategy
        self.progress = progress
        self.pacer = pacer
        self.item_delay = item_delay
        self._clock = clock

    def prepare(self, queue: list[QueueItem] | tuple[QueueItem, ...]) -> BulkRun:
        return BulkRun(queue=tuple(queue))

    def applied_today(self) -> int:
        """Completed applications already in the history for today's date."""
        store = self.runner.store
        if store is None:
            return 0
        today = self._clock().date().isoformat()
        try:
            rows = store.entries()
        except OSError as exc:
            log.warning("Application history unavailable for the quota check: %s", exc)
            return 0
        return sum(
            1 for r in rows
            if r.get("status") == PipelineState.COMPLETED.value and r.get("applied_at", "").startswith(today)
        )

    def _stop_reason(self, run: BulkRun) -> str | None:
        if run.token.cancelled:
            return run.token.reason
        plan = self.strategy.plan
        if plan is None:
            return None
        if plan.status == PlanStatus.PAUSED:
            return STRATEGY_PAUSED
        completed = run.applied_before + sum(1 for o in run.outcomes if o.status == OutcomeStatus.COMPLETED)
        if plan.daily_quota and completed >= plan.daily_quota:
            return QUOTA_REACHED
        return None

    async def run_bulk(
        self,
        run: BulkRun,
        profile: Profile,
        style: CoverLetterStyle | None = None,
    ) -> AsyncIterator[ItemOutcome]:
        """Yield one outcome per processed item, plus a terminus when stopped early."""
        run.started = True
        self.progress.emit(run.id, f"🚀 BULK RUN INITIATED: {run.total} listing(s) queued.")
        try:
            if self.strategy.plan is not None and not run.token.cancelled:
                run.applied_before = await asyncio.to_thread(self.applied_today)
            for i, item in enumerate(run.queue):
                stop = self._stop_reason(run)
                if stop is not None:
                    run.terminus = ItemOutcome(
                        index=i,
                        reference=_reference(item),
                        status=OutcomeStatus.ABORTED,
                        detail=stop,
                    )
                    self.progress.warning(
                        run.id,
                        f"🛑 BULK RUN ABORTED ({stop}): {run.total - i} item(s) not processed.",
                    )
                    yield run.terminus
                    break

                run.index = i
                self.progress.emit(
                    run.id,
                    f"📦 PROCESSING [{i + 1}/{run.total}]: {_label(item)}",
                    kind=KIND_PROGRESS,
                    current=i + 1,
                    total=run.total,
                )
                outcome = await self._process(run, i, item, profile, style or self.strategy.default_style)
                run.outcomes.append(outcome)
                yield outcome

                await self.pacer.pause(*self.item_delay)
        finally:
            run.finished = True
            counts = run.counts()
            self.progress.emit(
                run.id,
                "🏁 BULK RUN COMPLETE: "
                f"{counts[OutcomeStatus.COMPLETED]} applied, "
                f"{counts[OutcomeStatus.SKIPPED]} skipped, "
                f"{counts[OutcomeStatus.FAILED]} failed, "
                f"{run.aborted_remaining} not processed.",
                kind=KIND_COMPLETE,
                processed=run.processed,
                total=run.total,
            )

    async def _process(
        self,
        run: BulkRun,
        index: int,
        item: QueueItem,
        profile: Profile,
        style: CoverLetterStyle,
    ) -> ItemOutcome:
        reference = _reference(item)
        label = _label(item)
        try:
            job_run = self.runner.open(reference, scope=run.id)
            await self.runner.evaluate(job_run, profile)
            if job_run.state.terminal:
                self.progress.error(run.id, f"❌ FAILED: {label}: {job_run.error}. Moving to next.")
                return ItemOutcome(index, reference, OutcomeStatus.FAILED, job_run.error or "")

            assert job_run.match is not None
            score = job_run.match.score
            threshold = profile.match_threshold
            if score < threshold:
                self.progress.emit(
                    run.id,
                    f"⚠️ SKIPPED: Match score ({score:.0f}%) below threshold ({threshold}%).",
                )
                return ItemOutcome(index, reference, OutcomeStatus.SKIPPED, "below threshold", score)

            await self.runner.complete(job_run, profile, style)
            if job_run.succeeded:
                return ItemOutcome(index, reference, OutcomeStatus.COMPLETED, "applied", score, job_run.entry)
            self.progress.error(run.id, f"❌ FAILED: {label}: {job_run.error}. Moving to next.")
            return ItemOutcome(index, reference, OutcomeStatus.FAILED, job_run.error or "", score)
        except Exception as exc:
            log.exception("Bulk item %d (%s) crashed", index, label)
            self.progress.error(run.id, f"❌ FAILED: Error processing {label}. Moving to next.")
            return ItemOutcome(index, reference, OutcomeStatus.FAILED, str(exc))

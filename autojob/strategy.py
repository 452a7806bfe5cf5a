"""Strategy Controller: owns the single active autonomous plan."""
from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Any, Callable

from autojob.events import SESSION_SCOPE, ProgressLog
from autojob.log import get_logger
from autojob.models import CoverLetterStyle, Intensity, PlanStatus, StrategyPlan, utc_now

log = get_logger(__name__)

# Fields an operator may adjust on a live plan
UPDATABLE_FIELDS: tuple[str, ...] = ("daily_quota", "intensity", "target_roles", "platforms")

_STYLE_BY_INTENSITY: dict[Intensity, CoverLetterStyle] = {
    Intensity.AGGRESSIVE: CoverLetterStyle.RESULTS_DRIVEN,
    Intensity.PRECISION: CoverLetterStyle.TECHNICAL_DEEP_CUT,
    Intensity.BALANCED: CoverLetterStyle.CHILL_PROFESSIONAL,
}


def _copy(plan: StrategyPlan) -> StrategyPlan:
    return dataclasses.replace(plan, target_roles=list(plan.target_roles), platforms=list(plan.platforms))


class StrategyController:
    def __init__(
        self,
        progress: ProgressLog | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._plan: StrategyPlan | None = None
        self._progress = progress
        self._clock = clock

    @property
    def plan(self) -> StrategyPlan | None:
        """Snapshot of the active plan; changes go through this controller."""
        return _copy(self._plan) if self._plan is not None else None

    @property
    def paused(self) -> bool:
        return self._plan is not None and self._plan.status == PlanStatus.PAUSED

    @property
    def default_style(self) -> CoverLetterStyle:
        """Advisory tone for generated materials; callers may override it."""
        if self._plan is None:
            return CoverLetterStyle.CHILL_PROFESSIONAL
        return _STYLE_BY_INTENSITY[self._plan.intensity]

    def _stamp(self) -> None:
        assert self._plan is not None
        self._plan.last_update = self._clock().isoformat(timespec="seconds")

    def _note(self, message: str) -> None:
        if self._progress is not None:
            self._progress.emit(SESSION_SCOPE, message)
        else:
            log.info(message)

    def adopt(self, plan: StrategyPlan) -> StrategyPlan:
        self._plan = _copy(plan)
        self._plan.status = PlanStatus.ACTIVE
        self._stamp()
        plan = self._plan
        self._note(
            f"✅ STRATEGY DEPLOYED: {plan.intensity.value} approach for "
            f"{len(plan.target_roles)} role(s), quota {plan.daily_quota}/day"
        )
        return _copy(plan)

    def update(self, partial: dict[str, Any] | None = None, **fields: Any) -> bool:
        """Merge adjustable fields into the active plan.

        Returns True only when something actually changed; an empty or
        identical partial leaves the plan (including last_update) untouched.
        """
        changes = dict(partial or {}, **fields)
        if self._plan is None:
            if changes:
                log.debug("Strategy update ignored, no active plan: %s", sorted(changes))
            return False

        unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
        if unknown:
            log.warning("Ignoring non-adjustable strategy fields: %s", ", ".join(unknown))

        applied: list[str] = []
        for name in UPDATABLE_FIELDS:
            if name not in changes:
                continue
            value = changes[name]
            if name == "intensity":
                value = Intensity.parse(value.value if isinstance(value, Intensity) else value)
            elif name == "daily_quota":
                value = max(int(value), 0)
            else:
                value = list(value)
            if getattr(self._plan, name) != value:
                setattr(self._plan, name, value)
                applied.append(name)

        if not applied:
            return False
        self._stamp()
        self._note(f"⚙️ STRATEGY UPDATED: {', '.join(applied)} adjusted.")
        return True

    def toggle(self) -> PlanStatus | None:
        if self._plan is None:
            return None
        if self._plan.status == PlanStatus.PAUSED:
            self._plan.status = PlanStatus.ACTIVE
        else:
            self._plan.status = PlanStatus.PAUSED
        self._stamp()
        self._note(f"⚙️ STRATEGY {'HALTED' if self._plan.status == PlanStatus.PAUSED else 'RESUMED'}")
        return self._plan.status

    def clear(self) -> None:
        if self._plan is not None:
            self._note("⚙️ STRATEGY CLEARED")
        self._plan = None

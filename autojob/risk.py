"""Risk Shield: stochastic circuit breaker in front of apply-class actions.

The shield owns the session's ``RiskState``. ``check()`` paces like a human,
then draws a uniform sample; samples above the threshold escalate the level
to HIGH and deny the action. The operator lock is separate: it is engaged by
``pause``, released by ``resume``/``override`` and gates new entry points
(single run, discovery, bulk run), never work already in flight.
"""
from __future__ import annotations

import logging
import random

from autojob.errors import SystemLocked
from autojob.events import SESSION_SCOPE, ProgressLog
from autojob.log import get_logger
from autojob.models import RiskLevel, RiskState
from autojob.pacing import HumanPacer, Sleep

log = get_logger(__name__)

DEFAULT_THRESHOLD = 0.96
CAPTCHA_CRITICAL_AT = 3

_SEVERITY: dict[RiskLevel, int] = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}


class RiskShield:
    def __init__(
        self,
        *,
        rng: random.Random | None = None,
        sleep: Sleep | None = None,
        threshold: float = DEFAULT_THRESHOLD,
        pacing: tuple[float, float] = (1.0, 2.0),
        auto_lock_on_high: bool = False,
        progress: ProgressLog | None = None,
    ) -> None:
        self.rng = rng or random.Random()
        self.threshold = threshold
        self.auto_lock_on_high = auto_lock_on_high
        self.state = RiskState()
        self._pacer = HumanPacer(self.rng, sleep, default_range=pacing)
        self._progress = progress

    @property
    def locked(self) -> bool:
        return self.state.locked

    @property
    def level(self) -> RiskLevel:
        return self.state.level

    def _note(self, message: str, scope: str = SESSION_SCOPE, warn: bool = False) -> None:
        if self._progress is None:
            log.log(logging.WARNING if warn else logging.INFO, message)
        elif warn:
            self._progress.warning(scope, message)
        else:
            self._progress.emit(scope, message)

    def _escalate(self, level: RiskLevel, scope: str) -> None:
        if _SEVERITY[level] > _SEVERITY[self.state.level]:
            self.state.level = level
        if self.auto_lock_on_high and _SEVERITY[self.state.level] >= _SEVERITY[RiskLevel.HIGH]:
            if not self.state.locked:
                self.state.locked = True
                self._note(f"[RiskShield] Level {self.state.level.value}: lock engaged automatically", scope, warn=True)

    async def check(self, action_label: str, scope: str = SESSION_SCOPE) -> bool:
        """Pace, sample and decide. Returns False when the action is denied."""
        self._note(f"[RiskShield] Scanning {action_label}...", scope)
        await self._pacer.pause()
        roll = self.rng.random()
        if roll > self.threshold:
            self.state.denial_count += 1
            self._escalate(RiskLevel.HIGH, scope)
            self._note(
                f"[RiskShield] {action_label} denied (roll {roll:.3f} > {self.threshold:.2f})",
                scope,
                warn=True,
            )
            return False
        return True

    def record_anomaly(self, kind: str, scope: str = SESSION_SCOPE) -> None:
        """Dispatchers report captcha walls and DOM changes here."""
        if kind == "captcha":
            self.state.captcha_count += 1
            level = RiskLevel.CRITICAL if self.state.captcha_count >= CAPTCHA_CRITICAL_AT else RiskLevel.MEDIUM
        elif kind == "dom_change":
            self.state.dom_changes_detected = True
            level = RiskLevel.MEDIUM
        else:
            log.debug("Ignoring unknown anomaly kind %r", kind)
            return
        self._escalate(level, scope)
        self._note(f"[RiskShield] Anomaly detected: {kind} (level {self.state.level.value})", scope, warn=True)

    def engage_lock(self, reason: str = "operator pause") -> None:
        self.state.locked = True
        self._note(f"⏸️ SYSTEM PAUSED ({reason})")

    def release_lock(self) -> None:
        self.state.locked = False
        self._note("▶️ SYSTEM RESUMED")

    def override(self) -> None:
        """Operator reset: clears the lock and all accumulated risk."""
        self.state = RiskState(ip_reputation=100)
        self._note("🛠️ SYSTEM RESET: risk state cleared by operator override")

    def ensure_unlocked(self, entry_point: str) -> None:
        if self.state.locked:
            self._note(f"🚨 OPERATION BLOCKED: {entry_point} refused while locked", warn=True)
            raise SystemLocked(entry_point)

"""
Command Interpreter adapter.

Validates canonical command objects (usually produced by the planner from
free text) and routes each action to the agent subsystem that owns it.
Anything outside the closed action vocabulary fails closed as ``blocked``.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from autojob.errors import AutoJobError
from autojob.events import SESSION_SCOPE
from autojob.log import get_logger
from autojob.models import (
    Command,
    CommandAction,
    CommandFilters,
    CommandLimits,
    DiscoveredJob,
    PipelineState,
    Preferences,
)

if TYPE_CHECKING:
    from autojob.agent import AutoJobAgent

log = get_logger(__name__)

MISSING_GOAL = "Strategy command needs a goal."


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _opt_int(value: Any) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number >= 0 else None


def _opt_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def normalize_command(data: Any) -> Command:
    """Build a Command from loosely-shaped JSON; never raises."""
    if isinstance(data, Command):
        return data
    if not isinstance(data, dict):
        return Command.blocked("Malformed command")

    raw_action = str(data.get("action") or "").strip().lower()
    try:
        action = CommandAction(raw_action)
    except ValueError:
        return Command.blocked(f"Unrecognized command: {raw_action or 'empty'}")

    filters = data.get("filters") if isinstance(data.get("filters"), dict) else {}
    limits = data.get("limits") if isinstance(data.get("limits"), dict) else {}
    schedule = data.get("schedule")
    if isinstance(schedule, dict):
        schedule = schedule.get("duration")
    exclude = filters.get("exclude_roles") or []
    if isinstance(exclude, str):
        exclude = [exclude]
    elif not isinstance(exclude, (list, tuple)):
        return Command.blocked("Malformed command")

    return Command(
        action=action,
        goal=_opt_str(data.get("goal")),
        filters=CommandFilters(
            role=_opt_str(filters.get("role")),
            location=_opt_str(filters.get("location")),
            remote=_opt_bool(filters.get("remote")),
            company_type=_opt_str(filters.get("company_type")),
            posted_within=_opt_str(filters.get("posted_within")),
            exclude_roles=tuple(str(r) for r in exclude if str(r).strip()),
        ),
        limits=CommandLimits(
            max_applications=_opt_int(limits.get("max_applications")),
            daily_quota=_opt_int(limits.get("daily_quota")),
        ),
        schedule=_opt_str(schedule),
        reason=_opt_str(data.get("reason")),
    )


def overlay_filters(prefs: Preferences, filters: CommandFilters) -> Preferences:
    """Stored preferences with the command's role/location/remote applied on top."""
    changes: dict[str, Any] = {}
    if filters.role:
        changes["target_roles"] = [filters.role]
    if filters.location:
        changes["locations"] = [filters.location]
    if filters.remote is not None:
        changes["remote_only"] = filters.remote
    return dataclasses.replace(prefs, **changes)


@dataclass
class CommandResult:
    action: CommandAction
    accepted: bool
    message: str
    jobs: list[DiscoveredJob] = field(default_factory=list)


class CommandInterpreter:
    def __init__(self, agent: AutoJobAgent) -> None:
        self.agent = agent
        self._handlers: dict[CommandAction, Callable[[Command], Awaitable[CommandResult]]] = {
            CommandAction.BLOCKED: self._blocked,
            CommandAction.STRATEGY: self._strategy,
            CommandAction.PAUSE: self._pause,
            CommandAction.RESUME: self._resume,
            CommandAction.APPLY: self._discover,
            CommandAction.FILTER: self._discover,
            CommandAction.LIMIT: self._limit,
            CommandAction.STATUS: self._status,
        }

    @property
    def progress(self):
        return self.agent.progress

    async def dispatch(self, command: Command | dict[str, Any]) -> CommandResult:
        cmd = normalize_command(command)
        self.progress.emit(SESSION_SCOPE, f"⌨️ COMMAND: {cmd.action.value}", action=cmd.action.value)
        return await self._handlers[cmd.action](cmd)

    async def _blocked(self, cmd: Command) -> CommandResult:
        reason = cmd.reason or "Command blocked"
        self.progress.warning(SESSION_SCOPE, f"🚫 COMMAND BLOCKED: {reason}")
        return CommandResult(CommandAction.BLOCKED, False, reason)

    async def _strategy(self, cmd: Command) -> CommandResult:
        if not cmd.goal:
            return await self._blocked(Command.blocked(MISSING_GOAL))
        agent = self.agent
        agent.session.advance(PipelineState.STRATEGIZING, goal=cmd.goal)
        self.progress.emit(SESSION_SCOPE, f"🧠 STRATEGIZING: \"{cmd.goal}\"")
        try:
            plan = await agent.runner.call(agent.planner.build_plan(cmd.goal, agent.profile))
        except Exception as exc:
            log.error("Strategy planning failed: %s", exc)
            self.progress.error(SESSION_SCOPE, f"❌ STRATEGY FAILED: {exc}")
            return CommandResult(CommandAction.STRATEGY, False, str(exc))
        finally:
            agent.session.advance(PipelineState.PENDING)
        agent.strategy.adopt(plan)
        return CommandResult(CommandAction.STRATEGY, True, plan.explanation or f"Plan adopted for {plan.goal}")

    async def _pause(self, cmd: Command) -> CommandResult:
        agent = self.agent
        agent.risk.engage_lock(cmd.reason or "operator pause")
        if agent.cancel_bulk():
            self.progress.warning(SESSION_SCOPE, "🛑 Active bulk run will stop after the current item.")
        return CommandResult(CommandAction.PAUSE, True, "System locked")

    async def _resume(self, cmd: Command) -> CommandResult:
        self.agent.risk.release_lock()
        return CommandResult(CommandAction.RESUME, True, "System unlocked")

    async def _discover(self, cmd: Command) -> CommandResult:
        agent = self.agent
        prefs = overlay_filters(agent.profile.preferences, cmd.filters)
        try:
            jobs = await agent.discover(prefs)
        except AutoJobError as exc:
            self.progress.warning(SESSION_SCOPE, f"🚫 {exc}")
            return CommandResult(cmd.action, False, str(exc))
        if cmd.filters.exclude_roles:
            banned = [r.lower() for r in cmd.filters.exclude_roles]
            jobs = [j for j in jobs if not any(b in j.title.lower() for b in banned)]
        if cmd.limits.max_applications is not None:
            jobs = jobs[: cmd.limits.max_applications]
        return CommandResult(cmd.action, True, f"{len(jobs)} listing(s) discovered", jobs)

    async def _limit(self, cmd: Command) -> CommandResult:
        quota = cmd.limits.daily_quota if cmd.limits.daily_quota is not None else cmd.limits.max_applications
        if quota is None:
            return await self._blocked(Command.blocked("Limit command needs a number."))
        if not self.agent.strategy.update(daily_quota=quota):
            self.progress.warning(SESSION_SCOPE, "Limit not applied: no active strategy or quota unchanged.")
            return CommandResult(CommandAction.LIMIT, False, "No change")
        return CommandResult(CommandAction.LIMIT, True, f"Daily quota set to {quota}")

    async def _status(self, cmd: Command) -> CommandResult:
        summary = await self.agent.status_summary()
        for line in summary.splitlines():
            self.progress.emit(SESSION_SCOPE, line)
        return CommandResult(CommandAction.STATUS, True, summary)

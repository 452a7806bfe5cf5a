"""Natural-language command interpretation and strategy planning."""
from __future__ import annotations

import json
import re
from dataclasses import asdict

from autojob.commands import normalize_command
from autojob.errors import GenerationError
from autojob.llm import GroqClient
from autojob.log import get_logger
from autojob.models import (
    Command,
    CommandAction,
    CommandFilters,
    CommandLimits,
    Intensity,
    Profile,
    StrategyPlan,
)

log = get_logger(__name__)

CONNECTION_FAILED = "Failed to connect to Command Center."
DEFAULT_PLATFORMS = ["LinkedIn", "Indeed", "Wellfound"]
_QUOTA_BY_INTENSITY = {Intensity.AGGRESSIVE: 25, Intensity.BALANCED: 10, Intensity.PRECISION: 5}

_PAUSE_WORDS = ("pause", "stop", "halt", "freeze")
_RESUME_WORDS = ("resume", "continue", "unpause", "restart")
_STATUS_WORDS = ("status", "report", "progress", "how are")
_STRATEGY_WORDS = ("strategy", "goal", "plan", "land", "get hired")
_APPLY_WORDS = ("apply", "find", "search", "hunt", "look for", "discover")

_NUMBER_RE = re.compile(r"\b(\d{1,4})\b")
_ROLE_RE = re.compile(
    r"(?:apply(?:\s+to)?|find|search(?:\s+for)?|hunt(?:\s+for)?|look\s+for|discover)\s+"
    r"(?:me\s+)?(?:\d+\s+)?(?:remote\s+)?(.+?)\s+(?:jobs?|roles?|positions?|openings?)\b",
    re.IGNORECASE,
)
_LOCATION_RE = re.compile(r"\bin\s+([A-Za-z][A-Za-z .'-]+?)(?:[,.!?]|$|\s+(?:with|for|and|that)\b)", re.IGNORECASE)
_EXCLUDE_RE = re.compile(r"\b(?:no|except|excluding|not)\s+([A-Za-z][A-Za-z -]+?)(?:\s+(?:roles?|jobs?))?(?:[,.!?]|$)", re.IGNORECASE)


def _has(text: str, words: tuple[str, ...]) -> bool:
    return any(re.search(rf"\b{re.escape(w)}\b", text) for w in words)


def parse_command_text(text: str) -> Command:
    """Keyword interpretation used when no model is configured."""
    raw = (text or "").strip()
    low = raw.lower()
    if not low:
        return Command.blocked("Empty command")

    if _has(low, _PAUSE_WORDS):
        return Command(action=CommandAction.PAUSE, reason=raw)
    if _has(low, _RESUME_WORDS):
        return Command(action=CommandAction.RESUME)
    if _has(low, _STATUS_WORDS):
        return Command(action=CommandAction.STATUS)

    number = _NUMBER_RE.search(low)
    if _has(low, ("limit", "quota", "cap", "max")) and number and not _has(low, _APPLY_WORDS):
        return Command(action=CommandAction.LIMIT, limits=CommandLimits(daily_quota=int(number.group(1))))
    if _has(low, _STRATEGY_WORDS) and not _has(low, _APPLY_WORDS):
        return Command(action=CommandAction.STRATEGY, goal=raw)

    if _has(low, _APPLY_WORDS) or _has(low, ("filter", "only")):
        role = _ROLE_RE.search(raw)
        location = _LOCATION_RE.search(raw)
        exclude = _EXCLUDE_RE.search(raw)
        return Command(
            action=CommandAction.APPLY if _has(low, _APPLY_WORDS) else CommandAction.FILTER,
            filters=CommandFilters(
                role=role.group(1).strip() if role else None,
                location=location.group(1).strip() if location else None,
                remote=True if "remote" in low else None,
                exclude_roles=(exclude.group(1).strip(),) if exclude else (),
            ),
            limits=CommandLimits(max_applications=int(number.group(1)) if number else None),
        )
    return Command.blocked(f"Could not interpret: {raw[:80]}")


def heuristic_plan(goal: str, profile: Profile) -> StrategyPlan:
    low = goal.lower()
    if _has(low, ("aggressive", "fast", "asap", "quickly", "urgent", "many", "lots")):
        intensity = Intensity.AGGRESSIVE
    elif _has(low, ("precise", "precision", "quality", "dream", "senior", "staff", "selective", "top")):
        intensity = Intensity.PRECISION
    else:
        intensity = Intensity.BALANCED

    quota = _QUOTA_BY_INTENSITY[intensity]
    m = re.search(r"(\d{1,3})\s*(?:applications?|apps|jobs?)?\s*(?:a|per|/)\s*day", low)
    if m:
        quota = int(m.group(1))

    roles = list(profile.preferences.target_roles) or [t.name for t in profile.resume_tracks if t.name]
    platforms = list(profile.preferences.preferred_platforms) or list(DEFAULT_PLATFORMS)
    return StrategyPlan(
        goal=goal,
        daily_quota=quota,
        target_roles=roles,
        platforms=platforms,
        intensity=intensity,
        explanation=f"{intensity.value} pace of {quota} application(s)/day across {len(roles)} target role(s).",
    )


class GroqPlanner:
    def __init__(self, client: GroqClient | None = None) -> None:
        self.client = client

    async def interpret_command(self, text: str) -> Command:
        if self.client is None:
            return parse_command_text(text)
        actions = ", ".join(a.value for a in CommandAction if a != CommandAction.BLOCKED)
        try:
            data = await self.client.acomplete_json(
                f'Interpret natural language instructions into a structured JSON command.\nInput: "{text}"\n'
                "Keys: action, goal, filters {role, location, remote, company_type, posted_within, exclude_roles}, "
                "limits {max_applications, daily_quota}, schedule {duration}, reason.",
                system=f"You are the AutoJob Command Interpreter. Convert user intent into action: {actions}. "
                "Use action 'blocked' with a reason for anything unsafe or out of scope.",
                max_tokens=400,
            )
        except Exception as exc:
            log.error("Command interpretation error: %s", exc)
            return Command.blocked(CONNECTION_FAILED)
        return normalize_command(data)

    async def build_plan(self, goal: str, profile: Profile) -> StrategyPlan:
        if self.client is None:
            return heuristic_plan(goal, profile)
        roles = profile.preferences.target_roles or [t.name for t in profile.resume_tracks]
        try:
            data = await self.client.acomplete_json(
                f'Create an executable Autonomous Strategy Plan. Goal: "{goal}"\n'
                f"Candidate target roles: {json.dumps(roles)}\n"
                "Return JSON: goal, dailyQuota, targetRoles, platforms, intensity (Aggressive | Balanced | Precision), explanation.",
                system="You are the Autonomous Strategy Engine. Determine daily quota, target roles, and intensity.",
                max_tokens=600,
            )
        except Exception as exc:
            raise GenerationError(f"strategy plan: {exc}") from exc
        if not isinstance(data, dict):
            raise GenerationError("strategy plan: model returned a non-object")
        plan = StrategyPlan.from_dict(data)
        plan.goal = plan.goal or goal
        return plan

    async def strategy_brief(self, plan: StrategyPlan, recent: list[str]) -> str:
        if self.client is None:
            roles = ", ".join(plan.target_roles[:3]) or "open roles"
            tail = f" Last: {recent[-1]}" if recent else ""
            return f"{plan.intensity.value} hunt, {plan.daily_quota}/day on {roles}. Status {plan.status.value}.{tail}"
        try:
            plan_json = json.dumps(asdict(plan), default=str)
            return await self.client.acomplete(
                f"Plan: {plan_json}. Logs: {json.dumps(recent[-5:])}.",
                system="Generate a ruthless daily brief under 40 words.",
                max_tokens=120,
            ) or "Strategy active."
        except Exception as exc:
            log.warning("Strategy brief unavailable: %s", exc)
            return "Agent monitoring active."

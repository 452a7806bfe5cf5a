"""Contracts for the external collaborators the agent core talks to.

Implementations live in ``content``, ``planner``, ``sources``, ``dispatch``
and ``tracker``; tests substitute in-memory fakes.
"""
from __future__ import annotations

from typing import Protocol

from autojob.models import (
    ApplicationLogEntry,
    ApplicationMaterials,
    Command,
    CoverLetterStyle,
    DiscoveredJob,
    DispatchResult,
    InterviewQuestion,
    JobRecord,
    MatchResult,
    MutationReport,
    Preferences,
    Profile,
    ResumeDocument,
    ResumeTrack,
    StrategyPlan,
)


class ContentService(Protocol):
    async def extract_job(self, reference: str) -> JobRecord: ...

    async def score_match(self, job: JobRecord, profile: Profile) -> MatchResult: ...

    async def generate_cover_letter(
        self, job: JobRecord, profile: Profile, style: CoverLetterStyle
    ) -> str: ...

    async def tailor_resume(
        self, job: JobRecord, profile: Profile
    ) -> tuple[ResumeDocument, MutationReport]: ...

    async def augment_resume(self, track: ResumeTrack, skill: str, job: JobRecord) -> ResumeDocument: ...

    async def generate_interview_questions(
        self, job: JobRecord, resume: ResumeDocument
    ) -> list[InterviewQuestion]: ...


class Dispatcher(Protocol):
    async def dispatch_application(
        self, job: JobRecord, profile: Profile, materials: ApplicationMaterials
    ) -> DispatchResult: ...


class DiscoveryService(Protocol):
    async def discover_jobs(self, preferences: Preferences) -> list[DiscoveredJob]: ...


class Planner(Protocol):
    async def interpret_command(self, text: str) -> Command: ...

    async def build_plan(self, goal: str, profile: Profile) -> StrategyPlan: ...

    async def strategy_brief(self, plan: StrategyPlan, recent: list[str]) -> str: ...


class ApplicationStore(Protocol):
    def record(self, entry: ApplicationLogEntry) -> None: ...

    def entries(self) -> list[dict[str, str]]: ...

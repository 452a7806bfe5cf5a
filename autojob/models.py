"""Data models for jobs, candidate profiles, materials and agent state."""
from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def new_id() -> str:
    return uuid.uuid4().hex[:9]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _str_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v is not None and str(v).strip()]


class PipelineState(str, Enum):
    PENDING = "PENDING"
    INTERPRETING = "INTERPRETING"
    STRATEGIZING = "STRATEGIZING"
    EXTRACTING = "EXTRACTING"
    MATCHING = "MATCHING"
    AUGMENTING = "AUGMENTING"
    GENERATING_COVER_LETTER = "GENERATING_COVER_LETTER"
    MUTATING_RESUME = "MUTATING_RESUME"
    APPLYING = "APPLYING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    RISK_HALT = "RISK_HALT"

    @property
    def terminal(self) -> bool:
        return self in (PipelineState.COMPLETED, PipelineState.FAILED, PipelineState.RISK_HALT)


class JobIntent(str, Enum):
    REAL_HIRE = "Real Hire"
    GHOST_JOB = "Ghost Job"
    DATA_HARVEST = "Data Harvesting"
    TRAINING_SCAM = "Training/Upskilling Scam"
    EVERGREEN = "Evergreen/Pipeline"

    @classmethod
    def parse(cls, raw: Any) -> JobIntent:
        text = str(raw or "").strip().lower()
        for member in cls:
            if text in (member.value.lower(), member.name.lower()):
                return member
        return cls.REAL_HIRE


class CoverLetterStyle(str, Enum):
    ULTRA_CONCISE = "Ultra Concise"
    RESULTS_DRIVEN = "Results Driven"
    FOUNDER_FRIENDLY = "Founder Friendly"
    TECHNICAL_DEEP_CUT = "Technical Deep-Cut"
    CHILL_PROFESSIONAL = "Chill but Professional"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Intensity(str, Enum):
    AGGRESSIVE = "Aggressive"
    BALANCED = "Balanced"
    PRECISION = "Precision"

    @classmethod
    def parse(cls, raw: Any) -> Intensity:
        text = str(raw or "").strip().lower()
        for member in cls:
            if text == member.value.lower():
                return member
        return cls.BALANCED


class PlanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    OPTIMIZING = "OPTIMIZING"


class CommandAction(str, Enum):
    APPLY = "apply"
    PAUSE = "pause"
    RESUME = "resume"
    FILTER = "filter"
    LIMIT = "limit"
    BLOCKED = "blocked"
    STATUS = "status"
    STRATEGY = "strategy"


class OutcomeStatus(str, Enum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    ABORTED = "ABORTED"


# ---------------------------------------------------------------------------
# Resume documents and candidate profile
# ---------------------------------------------------------------------------

@dataclass
class Experience:
    company: str
    role: str
    duration: str = ""
    achievements: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Experience:
        return cls(
            company=str(data.get("company", "")),
            role=str(data.get("role", "")),
            duration=str(data.get("duration", "")),
            achievements=_str_list(data.get("achievements")),
        )


@dataclass
class Project:
    name: str
    description: str = ""
    technologies: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Project:
        return cls(
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            technologies=_str_list(data.get("technologies")),
        )


@dataclass
class ResumeDocument:
    summary: str = ""
    skills: list[str] = field(default_factory=list)
    experience: list[Experience] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ResumeDocument:
        data = data or {}
        return cls(
            summary=str(data.get("summary", "")),
            skills=_str_list(data.get("skills")),
            experience=[Experience.from_dict(e) for e in data.get("experience") or [] if isinstance(e, dict)],
            projects=[Project.from_dict(p) for p in data.get("projects") or [] if isinstance(p, dict)],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ResumeTrack:
    id: str
    name: str
    content: ResumeDocument = field(default_factory=ResumeDocument)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResumeTrack:
        return cls(
            id=str(data.get("id") or new_id()),
            name=str(data.get("name", "")),
            content=ResumeDocument.from_dict(data.get("content")),
        )


@dataclass
class Preferences:
    target_roles: list[str] = field(default_factory=list)
    locations: list[str] = field(default_factory=list)
    remote_only: bool = False
    match_threshold: int = 70
    preferred_platforms: list[str] = field(default_factory=list)
    min_salary: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Preferences:
        data = data or {}
        return cls(
            target_roles=_str_list(data.get("target_roles")),
            locations=_str_list(data.get("locations")),
            remote_only=bool(data.get("remote_only", False)),
            match_threshold=int(data.get("match_threshold") or 70),
            preferred_platforms=_str_list(data.get("preferred_platforms")),
            min_salary=str(data.get("min_salary", "") or ""),
        )


@dataclass
class Profile:
    full_name: str
    email: str = ""
    phone: str = ""
    linkedin: str = ""
    portfolio: str = ""
    resume_tracks: list[ResumeTrack] = field(default_factory=list)
    preferences: Preferences = field(default_factory=Preferences)

    @property
    def match_threshold(self) -> int:
        return self.preferences.match_threshold

    def track(self, track_id: str | None = None) -> ResumeTrack | None:
        if not self.resume_tracks:
            return None
        if track_id is None:
            return self.resume_tracks[0]
        for t in self.resume_tracks:
            if t.id == track_id:
                return t
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Profile:
        ident = data.get("profile", {}) or {}
        return cls(
            full_name=str(ident.get("name", "")),
            email=str(ident.get("email", "")),
            phone=str(ident.get("phone", "")),
            linkedin=str(ident.get("linkedin", "")),
            portfolio=str(ident.get("portfolio", "")),
            resume_tracks=[ResumeTrack.from_dict(t) for t in data.get("resume_tracks") or []],
            preferences=Preferences.from_dict(data.get("preferences")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile": {
                "name": self.full_name,
                "email": self.email,
                "phone": self.phone,
                "linkedin": self.linkedin,
                "portfolio": self.portfolio,
            },
            "resume_tracks": [asdict(t) for t in self.resume_tracks],
            "preferences": asdict(self.preferences),
        }


# ---------------------------------------------------------------------------
# Jobs and scoring
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IntentAssessment:
    type: JobIntent = JobIntent.REAL_HIRE
    confidence: float = 0.5
    reasoning: str = ""


@dataclass(frozen=True)
class JobRecord:
    id: str
    title: str
    company: str
    location: str
    description: str
    apply_url: str
    platform: str = "Other"
    skills: tuple[str, ...] = ()
    scraped_at: str = ""
    intent: IntentAssessment = field(default_factory=IntentAssessment)


@dataclass(frozen=True)
class DiscoveredJob:
    title: str
    company: str
    url: str
    location: str = ""
    source: str = "unknown"


@dataclass
class MatchResult:
    score: float
    reasoning: str = ""
    missing_skills: list[str] = field(default_factory=list)
    error: str | None = None


# ---------------------------------------------------------------------------
# Materials and application log
# ---------------------------------------------------------------------------

@dataclass
class MirroredPhrase:
    original: str
    mirrored: str


@dataclass
class MutationReport:
    selected_track_id: str
    selected_track_name: str
    keywords_injected: list[str] = field(default_factory=list)
    mirrored_phrases: list[MirroredPhrase] = field(default_factory=list)
    reordering_justification: str = ""
    ats_score_estimate: float = 0.0
    iteration_count: int = 1
    fallback: bool = False


@dataclass
class ApplicationMaterials:
    cover_letter: str
    cover_letter_style: CoverLetterStyle
    resume: ResumeDocument
    report: MutationReport


@dataclass(frozen=True)
class InterviewQuestion:
    question: str
    context: str = ""
    suggested_answer: str = ""


@dataclass(frozen=True)
class DispatchResult:
    success: bool
    endpoint: str
    message: str = ""


@dataclass(frozen=True)
class ApplicationLogEntry:
    id: str
    job_id: str
    job_title: str
    company: str
    status: PipelineState
    timestamp: str
    url: str
    platform: str = ""
    location: str = ""
    materials: ApplicationMaterials | None = None


# ---------------------------------------------------------------------------
# Strategy, risk and commands
# ---------------------------------------------------------------------------

@dataclass
class StrategyPlan:
    goal: str
    daily_quota: int = 10
    target_roles: list[str] = field(default_factory=list)
    platforms: list[str] = field(default_factory=list)
    intensity: Intensity = Intensity.BALANCED
    explanation: str = ""
    status: PlanStatus = PlanStatus.ACTIVE
    last_update: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StrategyPlan:
        quota = data.get("daily_quota", data.get("dailyQuota", 10))
        return cls(
            goal=str(data.get("goal", "")),
            daily_quota=max(int(quota or 0), 0),
            target_roles=_str_list(data.get("target_roles", data.get("targetRoles"))),
            platforms=_str_list(data.get("platforms")),
            intensity=Intensity.parse(data.get("intensity")),
            explanation=str(data.get("explanation", "")),
        )


@dataclass
class RiskState:
    level: RiskLevel = RiskLevel.LOW
    captcha_count: int = 0
    dom_changes_detected: bool = False
    denial_count: int = 0
    ip_reputation: int = 98
    locked: bool = False


@dataclass(frozen=True)
class CommandFilters:
    role: str | None = None
    location: str | None = None
    remote: bool | None = None
    company_type: str | None = None
    posted_within: str | None = None
    exclude_roles: tuple[str, ...] = ()


@dataclass(frozen=True)
class CommandLimits:
    max_applications: int | None = None
    daily_quota: int | None = None


@dataclass(frozen=True)
class Command:
    action: CommandAction
    goal: str | None = None
    filters: CommandFilters = field(default_factory=CommandFilters)
    limits: CommandLimits = field(default_factory=CommandLimits)
    schedule: str | None = None
    reason: str | None = None

    @classmethod
    def blocked(cls, reason: str) -> Command:
        return cls(action=CommandAction.BLOCKED, reason=reason)


@dataclass(frozen=True)
class ItemOutcome:
    index: int
    reference: str
    status: OutcomeStatus
    detail: str = ""
    score: float | None = None
    entry: ApplicationLogEntry | None = None

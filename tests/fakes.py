"""In-memory collaborators shared by the test modules."""

import copy
import random
from dataclasses import asdict
from types import SimpleNamespace

from autojob.errors import ExtractionError, GenerationError
from autojob.llm import GroqClient
from autojob.models import (
    Command,
    DispatchResult,
    IntentAssessment,
    InterviewQuestion,
    JobIntent,
    JobRecord,
    MatchResult,
    MutationReport,
    StrategyPlan,
)


class RecordingSleep:
    """Awaitable stand-in for asyncio.sleep that only records delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class FixedRandom(random.Random):
    """random() always returns *value*; uniform() follows from it."""

    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


class FakeContent:
    def __init__(
        self,
        scores=None,
        default_score=82,
        fail_extract=(),
        fail_letter=False,
        fail_score=False,
        fallback=False,
        fail_augment=False,
        bonus_skill=None,
        bonus=0,
        intent=JobIntent.REAL_HIRE,
        fail_interview=False,
    ):
        self.scores = scores or {}
        self.default_score = default_score
        self.fail_extract = set(fail_extract)
        self.fail_letter = fail_letter
        self.fail_score = fail_score
        self.fallback = fallback
        self.fail_augment = fail_augment
        self.bonus_skill = bonus_skill
        self.bonus = bonus
        self.intent = intent
        self.fail_interview = fail_interview
        self.calls = []
        self._refs = {}

    async def extract_job(self, reference):
        self.calls.append(("extract", reference))
        if reference in self.fail_extract:
            raise ExtractionError(f"cannot parse {reference}")
        slug = reference.rsplit("/", 1)[-1]
        job = JobRecord(
            id=f"id-{slug}",
            title=f"Engineer {slug}",
            company=f"Company {slug}",
            location="Remote",
            description="Python services on Kubernetes.",
            apply_url=f"https://jobs.example.com/{slug}",
            platform="Other",
            skills=("Python",),
            intent=IntentAssessment(self.intent, 0.9, "test"),
        )
        self._refs[job.id] = reference
        return job

    async def score_match(self, job, profile):
        self.calls.append(("score", job.id))
        if self.fail_score:
            raise RuntimeError("scoring backend down")
        score = self.scores.get(self._refs.get(job.id), self.default_score)
        if self.bonus_skill and any(self.bonus_skill in t.content.skills for t in profile.resume_tracks):
            score += self.bonus
        return MatchResult(score=score, reasoning="fake")

    async def generate_cover_letter(self, job, profile, style):
        self.calls.append(("letter", job.id))
        if self.fail_letter:
            raise GenerationError("model unavailable")
        return f"Dear {job.company}, I am {profile.full_name}."

    async def tailor_resume(self, job, profile):
        self.calls.append(("tailor", job.id))
        track = profile.resume_tracks[0]
        report = MutationReport(
            selected_track_id=track.id,
            selected_track_name=track.name,
            keywords_injected=["Python"],
            ats_score_estimate=50.0 if self.fallback else 88.0,
            fallback=self.fallback,
        )
        return copy.deepcopy(track.content), report

    async def augment_resume(self, track, skill, job):
        self.calls.append(("augment", skill))
        if self.fail_augment:
            raise GenerationError("augmentation refused")
        content = copy.deepcopy(track.content)
        content.skills.append(skill)
        return content

    async def generate_interview_questions(self, job, resume):
        self.calls.append(("interview", job.id))
        if self.fail_interview:
            raise GenerationError("coach offline")
        return [InterviewQuestion(f"Why {job.company}?", "motivation", f"Because of {resume.skills[0]}.")]


class FakeDispatcher:
    def __init__(self, success=True, endpoint=None, on_dispatch=None):
        self.success = success
        self.endpoint = endpoint
        self.on_dispatch = on_dispatch
        self.dispatched = []

    async def dispatch_application(self, job, profile, materials):
        self.dispatched.append(job.id)
        if self.on_dispatch is not None:
            await self.on_dispatch(job)
        return DispatchResult(
            success=self.success,
            endpoint=self.endpoint or job.apply_url,
            message="ok" if self.success else "portal rejected the form",
        )


class FakeStore:
    def __init__(self):
        self.recorded = []

    def record(self, entry):
        self.recorded.append(entry)

    def entries(self):
        return [
            {
                "url": e.url,
                "title": e.job_title,
                "company": e.company,
                "applied_at": e.timestamp,
                "status": e.status.value,
            }
            for e in self.recorded
        ]


class FakePlanner:
    def __init__(self, commands=None, plan=None):
        self.commands = commands or {}
        self.plan = plan
        self.goals = []

    async def interpret_command(self, text):
        return self.commands.get(text, Command.blocked("Unrecognized command"))

    async def build_plan(self, goal, profile):
        self.goals.append(goal)
        plan = self.plan or StrategyPlan(goal=goal, daily_quota=5, target_roles=["Backend Engineer"])
        return StrategyPlan(**{**asdict(plan), "goal": goal})

    async def strategy_brief(self, plan, recent):
        return "Stay the course."


class FakeDiscovery:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    async def discover_jobs(self, preferences):
        self.requests.append(preferences)
        if not self.responses:
            return []
        return self.responses.pop(0)



class FakeCompletions:
    """Stands in for ``openai_client.chat.completions``; replies are consumed in order."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


def groq_with(*replies):
    completions = FakeCompletions(replies)
    openai_stub = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return GroqClient("test-key", "llama-test", client=openai_stub), completions

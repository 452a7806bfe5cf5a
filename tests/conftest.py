"""Shared fixtures for the agent tests."""

import os

os.environ.setdefault("AUTOJOB_LOG_FILE", "false")

import pytest

from autojob.agent import AutoJobAgent
from autojob.events import ProgressLog
from autojob.models import Experience, Preferences, Profile, Project, ResumeDocument, ResumeTrack
from autojob.pacing import HumanPacer
from autojob.risk import RiskShield

from tests.fakes import (
    FakeContent,
    FakeDiscovery,
    FakeDispatcher,
    FakePlanner,
    FakeStore,
    FixedRandom,
    RecordingSleep,
)


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: statistical tests that run many iterations")


@pytest.fixture
def profile():
    return Profile(
        full_name="Jane Roe",
        email="jane@example.com",
        phone="555-0100",
        resume_tracks=[
            ResumeTrack(
                id="backend",
                name="Backend Engineer",
                content=ResumeDocument(
                    summary="Backend engineer focused on Python services.",
                    skills=["Python", "Django", "PostgreSQL"],
                    experience=[Experience("Acme", "Backend Engineer", "2019 - Present", ["Cut p99 latency by 40%"])],
                    projects=[Project("Queue Service", "Durable job queue.", ["Python", "Redis"])],
                ),
            ),
            ResumeTrack(
                id="frontend",
                name="Frontend Engineer",
                content=ResumeDocument(
                    summary="Frontend engineer building design systems.",
                    skills=["React", "TypeScript", "CSS"],
                ),
            ),
        ],
        preferences=Preferences(
            target_roles=["Backend Engineer"],
            locations=["Remote"],
            remote_only=True,
            match_threshold=70,
        ),
    )


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def progress():
    return ProgressLog()


@pytest.fixture
def make_agent(profile, sleep):
    """Build an agent around fakes; keyword overrides replace any collaborator."""

    def _make(**overrides):
        owner = overrides.pop("profile", None) or profile
        progress = overrides.pop("progress", None)
        if progress is None:
            progress = ProgressLog()
        risk = overrides.pop("risk", None) or RiskShield(rng=FixedRandom(0.5), sleep=sleep, progress=progress)
        kwargs = dict(
            content=FakeContent(),
            dispatcher=FakeDispatcher(),
            discovery=FakeDiscovery(),
            planner=FakePlanner(),
            store=FakeStore(),
            risk=risk,
            pacer=HumanPacer(FixedRandom(0.5), sleep),
            progress=progress,
        )
        kwargs.update(overrides)
        return AutoJobAgent(owner, **kwargs)

    return _make

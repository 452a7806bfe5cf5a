"""Tests for the package dispatcher and its helpers."""

from datetime import datetime, timezone

import pytest

from autojob.dispatch import (
    BrowserDispatcher,
    PackageDispatcher,
    build_dispatcher,
    detect_platform,
    endpoint_for,
    format_resume,
)
from autojob.models import (
    ApplicationMaterials,
    CoverLetterStyle,
    JobRecord,
    MutationReport,
)
from autojob.risk import RiskShield


def _job(apply_url="https://boards.greenhouse.io/acme/jobs/1"):
    return JobRecord(
        id="abc123",
        title="Backend Engineer",
        company="Acme Robotics, Inc.",
        location="Remote",
        description="APIs",
        apply_url=apply_url,
    )


def _materials(profile):
    track = profile.track("backend")
    return ApplicationMaterials(
        cover_letter="Dear Hiring Team, hello.",
        cover_letter_style=CoverLetterStyle.RESULTS_DRIVEN,
        resume=track.content,
        report=MutationReport(track.id, track.name, ["Python", "FastAPI"], ats_score_estimate=77),
    )


def _fixed_clock():
    return datetime(2026, 3, 1, 14, 30, 5, tzinfo=timezone.utc)


class TestHelpers:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://www.linkedin.com/jobs/view/123", "linkedin"),
            ("https://acme.wd5.myworkdayjobs.com/en-US/careers/job/1", "workday"),
            ("https://boards.greenhouse.io/acme/jobs/1", "greenhouse"),
            ("https://jobs.lever.co/acme/1", "lever"),
            ("https://www.simplyhired.com/job/1", "aggregator"),
            ("https://acme.example/careers", "generic"),
        ],
    )
    def test_detect_platform(self, url, expected):
        assert detect_platform(url) == expected

    def test_endpoint_requires_http(self):
        assert endpoint_for(_job()) == "https://boards.greenhouse.io/acme/jobs/1"
        assert endpoint_for(_job(apply_url="#")) == "#"

    def test_format_resume_sections(self, profile):
        text = format_resume(profile.track("backend").content)
        assert "SKILLS:\nPython, Django, PostgreSQL" in text
        assert "Backend Engineer at Acme (2019 - Present)" in text
        assert "Technologies: Python, Redis" in text


class TestPackageDispatcher:
    @pytest.mark.asyncio
    async def test_writes_package_and_reports_endpoint(self, tmp_path, profile):
        dispatcher = PackageDispatcher(tmp_path, clock=_fixed_clock)

        result = await dispatcher.dispatch_application(_job(), profile, _materials(profile))

        assert result.success
        assert result.endpoint == "https://boards.greenhouse.io/acme/jobs/1"
        (path,) = tmp_path.iterdir()
        assert path.name == "20260301-143005_acme-robotics-inc_abc123.txt"
        content = path.read_text(encoding="utf-8")
        assert "COVER LETTER (Results Driven)" in content
        assert "Keywords Injected: Python, FastAPI" in content
        assert "Name: Jane Roe" in content
        assert result.message == f"Package saved to {path.name}"

    @pytest.mark.asyncio
    async def test_unparseable_apply_url_falls_back_to_placeholder(self, tmp_path, profile):
        dispatcher = PackageDispatcher(tmp_path, clock=_fixed_clock)
        result = await dispatcher.dispatch_application(_job(apply_url="Not Specified"), profile, _materials(profile))
        assert result.endpoint == "#"


class TestBuildDispatcher:
    def test_package_is_default(self):
        assert isinstance(build_dispatcher("package", RiskShield()), PackageDispatcher)
        assert isinstance(build_dispatcher("carrier-pigeon", RiskShield()), PackageDispatcher)

    def test_browser_mode(self):
        risk = RiskShield()
        dispatcher = build_dispatcher("browser", risk, headless=False)
        assert isinstance(dispatcher, BrowserDispatcher)
        assert dispatcher.risk is risk


class TestBrowserDispatcher:
    @pytest.mark.asyncio
    async def test_missing_apply_url_keeps_package_but_fails(self, tmp_path, profile):
        dispatcher = BrowserDispatcher(RiskShield(), packages=PackageDispatcher(tmp_path, clock=_fixed_clock))
        result = await dispatcher.dispatch_application(_job(apply_url="#"), profile, _materials(profile))
        assert not result.success
        assert result.endpoint == "#"
        assert len(list(tmp_path.iterdir())) == 1

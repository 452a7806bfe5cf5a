"""Tests for offline match scoring and track selection."""

from autojob.models import JobRecord
from autojob.scorer import candidate_skills, score_job, select_track


def _job(title, description="", skills=(), location="Remote"):
    return JobRecord(
        id="j1",
        title=title,
        company="Acme",
        location=location,
        description=description,
        apply_url="https://acme.example/jobs/1",
        skills=tuple(skills),
    )


class TestScoreJob:
    def test_strong_backend_match(self, profile):
        job = _job("Senior Backend Engineer", "We use Python and Django.", ("Python", "Django", "Go"))
        result = score_job(job, profile)
        assert result.score == 85.0
        assert result.missing_skills == ["Go"]
        assert "Role match: Backend Engineer" in result.reasoning

    def test_over_level_title_scores_zero(self, profile):
        result = score_job(_job("Director of Engineering", "Python"), profile)
        assert result.score == 0
        assert result.reasoning.startswith("Filtered")

    def test_unrelated_role_scores_low(self, profile):
        job = _job("Pastry Chef", "Croissants daily", ("Baking",), location="Paris")
        result = score_job(job, profile)
        assert result.score < profile.match_threshold
        assert result.missing_skills == ["Baking"]

    def test_score_never_exceeds_hundred(self, profile):
        job = _job(
            "Senior Backend Engineer",
            "Python Django PostgreSQL Redis backend engineer",
            ("Python", "Django", "PostgreSQL"),
        )
        assert score_job(job, profile).score <= 100


class TestSelectTrack:
    def test_frontend_posting_picks_frontend_track(self, profile):
        track, hits = select_track(_job("Frontend Engineer", "React and TypeScript UI work"), profile)
        assert track.id == "frontend"
        assert "react" in hits

    def test_no_overlap_keeps_first_track(self, profile):
        track, hits = select_track(_job("Gardener", "Hedges"), profile)
        assert track.id == "backend"
        assert hits == []

    def test_candidate_skills_include_project_tech(self, profile):
        skills = candidate_skills(profile)
        assert "Redis" in skills
        assert skills.count("Python") == 1

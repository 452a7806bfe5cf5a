"""Tests for settings, profile persistence and the progress stream."""

import logging
from datetime import datetime, timezone

import pytest
import yaml

from autojob.config import EXAMPLE_PROFILE_PATH, Settings, load_profile, save_profile
from autojob.events import KIND_STATE, ProgressLog
from autojob.models import Preferences, Profile, StrategyPlan


class TestSettings:
    def test_defaults(self, monkeypatch):
        for key in ("GROQ_API_KEY", "AUTOJOB_DISPATCH", "AUTOJOB_CALL_TIMEOUT", "AUTOJOB_BULK_DELAY"):
            monkeypatch.delenv(key, raising=False)
        settings = Settings.from_env()
        assert settings.groq_api_key == ""
        assert settings.dispatch_mode == "package"
        assert settings.call_timeout is None
        assert settings.risk_threshold == 0.96

    def test_ranges_and_flags(self, monkeypatch):
        monkeypatch.setenv("AUTOJOB_BULK_DELAY", "2,5")
        monkeypatch.setenv("AUTOJOB_RISK_PACING", "5,1")
        monkeypatch.setenv("AUTOJOB_AUTO_LOCK_ON_HIGH", "yes")
        monkeypatch.setenv("AUTOJOB_CALL_TIMEOUT", "45")
        monkeypatch.setenv("AUTOJOB_DISPATCH", "Browser")
        settings = Settings.from_env()
        assert settings.bulk_delay == (2.0, 5.0)
        assert settings.risk_pacing == (1.0, 2.0)
        assert settings.auto_lock_on_high is True
        assert settings.call_timeout == 45.0
        assert settings.dispatch_mode == "browser"

    @pytest.mark.parametrize("raw", ["0", "-3", "soon"])
    def test_non_positive_timeout_disables_it(self, monkeypatch, raw):
        monkeypatch.setenv("AUTOJOB_CALL_TIMEOUT", raw)
        assert Settings.from_env().call_timeout is None


class TestProfileFiles:
    def test_example_profile_loads(self):
        profile = load_profile(EXAMPLE_PROFILE_PATH)
        assert profile.full_name
        assert [t.id for t in profile.resume_tracks] == ["frontend-track", "fullstack-track"]
        assert profile.match_threshold == 75

    def test_save_then_load_keeps_augmented_skill(self, tmp_path, profile):
        profile.resume_tracks[0].content.skills.append("Kubernetes")
        path = save_profile(profile, tmp_path / "profile.yaml")
        assert path.read_text(encoding="utf-8").startswith("# ====")
        loaded = load_profile(path)
        assert loaded == profile

    def test_legacy_flat_roles_are_migrated(self, tmp_path):
        path = tmp_path / "profile.yaml"
        path.write_text(
            yaml.safe_dump({"profile": {"name": "Old Timer"}, "preferred_roles": ["SRE"], "locations": ["Remote"]}),
            encoding="utf-8",
        )
        profile = load_profile(path)
        assert profile.preferences.target_roles == ["SRE"]
        assert profile.preferences.locations == ["Remote"]

    def test_plan_from_camel_case(self):
        plan = StrategyPlan.from_dict({"goal": "x", "dailyQuota": "7", "targetRoles": ["SRE"], "intensity": "precision"})
        assert plan.daily_quota == 7
        assert plan.target_roles == ["SRE"]
        assert plan.intensity.value == "Precision"

    def test_profile_from_dict_tolerates_missing_sections(self):
        profile = Profile.from_dict({})
        assert profile.resume_tracks == []
        assert profile.preferences == Preferences()


class TestProgressLog:
    def _log(self):
        return ProgressLog(lambda: datetime(2026, 1, 1, 8, 15, 0, tzinfo=timezone.utc))

    def test_scoped_subscription(self):
        progress = self._log()
        seen = []
        progress.subscribe(seen.append, scope="job-1")
        progress.emit("job-1", "mine")
        progress.emit("job-2", "not mine")
        assert [e.message for e in seen] == ["mine"]

    def test_unsubscribe_stops_delivery(self):
        progress = self._log()
        seen = []
        unsubscribe = progress.subscribe(seen.append)
        progress.emit("a", "one")
        unsubscribe()
        unsubscribe()
        progress.emit("a", "two")
        assert [e.message for e in seen] == ["one"]

    def test_broken_subscriber_does_not_block_others(self):
        progress = self._log()
        seen = []

        def explode(event):
            raise RuntimeError("boom")

        progress.subscribe(explode)
        progress.subscribe(seen.append)
        progress.emit("a", "still delivered")
        assert len(seen) == 1
        assert len(progress) == 1

    def test_lines_are_timestamped(self):
        progress = self._log()
        progress.warning("a", "careful")
        assert progress.lines("a") == ["[08:15:00] careful"]
        assert progress.events("a")[0].level == logging.WARNING

    def test_filter_by_kind(self):
        progress = self._log()
        progress.emit("a", "plain")
        progress.emit("a", "moved", kind=KIND_STATE, state="EXTRACTING")
        assert [e.message for e in progress.events("a", KIND_STATE)] == ["moved"]

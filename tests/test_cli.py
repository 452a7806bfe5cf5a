"""Tests for the command-line entry point and default agent wiring."""

import argparse
import logging

import pytest

import run_agent
from autojob import config
from autojob.agent import build_agent
from autojob.config import Settings, load_profile
from autojob.content import GroqContentService
from autojob.dispatch import BrowserDispatcher, PackageDispatcher
from autojob.log import set_level
from autojob.models import CoverLetterStyle
from autojob.planner import GroqPlanner
from run_agent import STYLES, _read_queue, build_parser, cmd_import_resume


class TestParser:
    def test_single_with_augmentations(self):
        args = build_parser().parse_args(
            ["single", "https://jobs.example/1", "--style", "ultra_concise", "--augment", "Go", "--augment", "Rust"]
        )
        assert args.cmd == "single"
        assert STYLES[args.style] == CoverLetterStyle.ULTRA_CONCISE
        assert args.augment == ["Go", "Rust"]

    def test_unknown_style_is_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["single", "x", "--style", "shouty"])

    def test_queue_file_skips_comments(self, tmp_path):
        queue = tmp_path / "queue.txt"
        queue.write_text("# backlog\nhttps://jobs.example/2\n\n  https://jobs.example/3  \n", encoding="utf-8")
        args = argparse.Namespace(refs=["https://jobs.example/1"], queue_file=str(queue))
        assert _read_queue(args) == [
            "https://jobs.example/1",
            "https://jobs.example/2",
            "https://jobs.example/3",
        ]


class TestBuildAgent:
    def test_offline_wiring(self, profile):
        agent = build_agent(Settings(), profile)
        assert isinstance(agent.runner.content, GroqContentService)
        assert not agent.runner.content.online
        assert isinstance(agent.planner, GroqPlanner)
        assert isinstance(agent.runner.dispatcher, PackageDispatcher)
        assert agent.risk.threshold == 0.96
        assert agent.progress is agent.risk._progress

    def test_browser_dispatch_shares_risk_shield(self, profile):
        agent = build_agent(Settings(dispatch_mode="browser"), profile)
        assert isinstance(agent.runner.dispatcher, BrowserDispatcher)
        assert agent.runner.dispatcher.risk is agent.risk


class TestVerbosity:
    def test_verbose_flag_parses_before_subcommand(self):
        args = build_parser().parse_args(["-v", "status", "--history", "3"])
        assert args.verbose
        assert args.history == 3

    def test_set_level_accepts_names(self):
        root = logging.getLogger()
        previous = root.level
        try:
            set_level("debug")
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(previous)


class TestImportResume:
    def test_parser(self):
        args = build_parser().parse_args(["import-resume", "cv.pdf", "--track-name", "SRE"])
        assert (args.cmd, args.path, args.track_name) == ("import-resume", "cv.pdf", "SRE")

    def test_single_interview_flag(self):
        assert build_parser().parse_args(["single", "https://jobs.example/1", "--interview"]).interview

    @pytest.mark.asyncio
    async def test_creates_profile_with_new_track(self, tmp_path, monkeypatch):
        target = tmp_path / "profile.yaml"
        monkeypatch.setattr(config, "PROFILE_PATH", target)
        monkeypatch.setattr(run_agent, "PROFILE_PATH", target)
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        cv = tmp_path / "cv.txt"
        cv.write_text("Sam Rivera\nsam@example.com\nSkills: Go, Terraform\n", encoding="utf-8")

        code = await cmd_import_resume(build_parser().parse_args(["import-resume", str(cv), "--track-name", "SRE"]))

        assert code == 0
        profile = load_profile(target)
        assert profile.full_name == "Sam Rivera"
        assert profile.email == "sam@example.com"
        assert [t.name for t in profile.resume_tracks] == ["SRE"]
        assert profile.resume_tracks[0].content.skills[:2] == ["Go", "Terraform"]

    @pytest.mark.asyncio
    async def test_missing_file_fails_cleanly(self, tmp_path, monkeypatch):
        target = tmp_path / "profile.yaml"
        monkeypatch.setattr(config, "PROFILE_PATH", target)
        monkeypatch.setattr(run_agent, "PROFILE_PATH", target)
        monkeypatch.delenv("GROQ_API_KEY", raising=False)

        code = await cmd_import_resume(build_parser().parse_args(["import-resume", str(tmp_path / "nope.txt")]))

        assert code == 1
        assert not target.exists()

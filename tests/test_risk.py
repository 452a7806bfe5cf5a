"""Tests for the Risk Shield circuit breaker."""

import random

import pytest

from autojob.errors import SystemLocked
from autojob.events import ProgressLog
from autojob.models import RiskLevel
from autojob.risk import RiskShield

from tests.fakes import FixedRandom, RecordingSleep


class TestRiskCheck:
    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_denial_rate_converges_to_four_percent(self):
        shield = RiskShield(rng=random.Random(1234), sleep=RecordingSleep())
        trials = 20_000
        denied = 0
        for _ in range(trials):
            if not await shield.check("Navigation"):
                denied += 1
        assert abs(denied / trials - 0.04) < 0.006
        assert shield.state.denial_count == denied

    @pytest.mark.asyncio
    async def test_low_roll_passes_without_escalation(self):
        shield = RiskShield(rng=FixedRandom(0.10), sleep=RecordingSleep())
        assert await shield.check("Navigation") is True
        assert shield.level == RiskLevel.LOW
        assert shield.state.denial_count == 0

    @pytest.mark.asyncio
    async def test_high_roll_denies_and_escalates_to_high(self):
        progress = ProgressLog()
        shield = RiskShield(rng=FixedRandom(0.99), sleep=RecordingSleep(), progress=progress)
        assert await shield.check("Navigation", scope="job-1") is False
        assert shield.level == RiskLevel.HIGH
        assert shield.state.denial_count == 1
        assert not shield.locked
        assert any("denied" in e.message for e in progress.events("job-1"))

    @pytest.mark.asyncio
    async def test_check_paces_within_configured_window(self):
        sleep = RecordingSleep()
        shield = RiskShield(rng=FixedRandom(0.5), sleep=sleep, pacing=(1.0, 2.0))
        await shield.check("Navigation")
        assert sleep.delays == [1.5]

    @pytest.mark.asyncio
    async def test_auto_lock_on_high_engages_lock(self):
        shield = RiskShield(rng=FixedRandom(0.99), sleep=RecordingSleep(), auto_lock_on_high=True)
        await shield.check("Navigation")
        assert shield.locked


class TestRiskLock:
    def test_pause_lock_blocks_entry_points(self):
        shield = RiskShield(rng=FixedRandom(0.5))
        shield.engage_lock("operator pause")
        with pytest.raises(SystemLocked) as exc_info:
            shield.ensure_unlocked("start_single")
        assert exc_info.value.entry_point == "start_single"

    def test_release_lock_reopens_entry_points(self):
        shield = RiskShield(rng=FixedRandom(0.5))
        shield.engage_lock()
        shield.release_lock()
        shield.ensure_unlocked("start_bulk")

    def test_override_resets_accumulated_risk(self):
        shield = RiskShield(rng=FixedRandom(0.5))
        shield.record_anomaly("captcha")
        shield.engage_lock()
        shield.override()
        assert not shield.locked
        assert shield.level == RiskLevel.LOW
        assert shield.state.captcha_count == 0
        assert shield.state.ip_reputation == 100


class TestAnomalies:
    def test_single_captcha_is_medium(self):
        shield = RiskShield(rng=FixedRandom(0.5))
        shield.record_anomaly("captcha")
        assert shield.level == RiskLevel.MEDIUM

    def test_repeated_captchas_go_critical(self):
        shield = RiskShield(rng=FixedRandom(0.5))
        for _ in range(3):
            shield.record_anomaly("captcha")
        assert shield.level == RiskLevel.CRITICAL

    def test_dom_change_never_lowers_level(self):
        shield = RiskShield(rng=FixedRandom(0.5))
        for _ in range(3):
            shield.record_anomaly("captcha")
        shield.record_anomaly("dom_change")
        assert shield.level == RiskLevel.CRITICAL
        assert shield.state.dom_changes_detected

    def test_unknown_anomaly_is_ignored(self):
        shield = RiskShield(rng=FixedRandom(0.5))
        shield.record_anomaly("solar_flare")
        assert shield.level == RiskLevel.LOW

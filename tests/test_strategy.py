"""Tests for the strategy controller."""

from datetime import datetime, timedelta, timezone

from autojob.events import ProgressLog
from autojob.models import CoverLetterStyle, Intensity, PlanStatus, StrategyPlan
from autojob.strategy import StrategyController


class TickingClock:
    def __init__(self):
        self.now = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


def _controller():
    clock = TickingClock()
    controller = StrategyController(ProgressLog(), clock)
    controller.adopt(StrategyPlan(goal="Land a backend role", daily_quota=10, target_roles=["Backend Engineer"]))
    return controller


class TestStrategyUpdate:
    def test_empty_update_is_a_no_op(self):
        controller = _controller()
        before = controller.plan.last_update
        assert controller.update({}) is False
        assert controller.plan.last_update == before
        assert controller.plan.daily_quota == 10

    def test_identical_values_do_not_touch_last_update(self):
        controller = _controller()
        before = controller.plan.last_update
        assert controller.update(daily_quota=10) is False
        assert controller.plan.last_update == before

    def test_quota_change_stamps_plan(self):
        controller = _controller()
        before = controller.plan.last_update
        assert controller.update(daily_quota=3) is True
        assert controller.plan.daily_quota == 3
        assert controller.plan.last_update > before

    def test_non_adjustable_fields_are_ignored(self):
        controller = _controller()
        assert controller.update({"goal": "something else"}) is False
        assert controller.plan.goal == "Land a backend role"

    def test_intensity_accepts_plain_strings(self):
        controller = _controller()
        assert controller.update(intensity="Aggressive") is True
        assert controller.plan.intensity == Intensity.AGGRESSIVE

    def test_update_without_plan_returns_false(self):
        controller = StrategyController()
        assert controller.update(daily_quota=5) is False


class TestStrategyLifecycle:
    def test_toggle_pauses_and_resumes(self):
        controller = _controller()
        assert controller.toggle() == PlanStatus.PAUSED
        assert controller.paused
        assert controller.toggle() == PlanStatus.ACTIVE
        assert not controller.paused

    def test_toggle_without_plan(self):
        assert StrategyController().toggle() is None

    def test_adopt_replaces_previous_plan(self):
        controller = _controller()
        controller.toggle()
        plan = controller.adopt(StrategyPlan(goal="Precision hunt", intensity=Intensity.PRECISION))
        assert controller.plan == plan
        assert plan.status == PlanStatus.ACTIVE

    def test_outside_references_cannot_change_the_plan(self):
        controller = StrategyController()
        submitted = StrategyPlan(goal="Steady", daily_quota=10, target_roles=["SRE"])
        adopted = controller.adopt(submitted)

        submitted.daily_quota = 99
        adopted.status = PlanStatus.PAUSED
        controller.plan.target_roles.append("DBA")

        assert controller.plan.daily_quota == 10
        assert controller.plan.target_roles == ["SRE"]
        assert not controller.paused
        assert submitted.last_update == ""

    def test_default_style_follows_intensity(self):
        controller = StrategyController()
        assert controller.default_style == CoverLetterStyle.CHILL_PROFESSIONAL
        controller.adopt(StrategyPlan(goal="Go fast", intensity=Intensity.AGGRESSIVE))
        assert controller.default_style == CoverLetterStyle.RESULTS_DRIVEN

    def test_clear_drops_plan(self):
        controller = _controller()
        controller.clear()
        assert controller.plan is None

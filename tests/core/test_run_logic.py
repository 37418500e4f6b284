"""Timed Run Tracker 테스트"""

from datetime import datetime, timedelta, timezone

import pytest

from questline.core.errors import (
    ActiveRunExistsError,
    RequirementNotMetError,
    RunNotActiveError,
    RunOnCooldownError,
    ValidationError,
)
from questline.core.progression.models import Player
from questline.core.quest.enums import ComparisonOperator
from questline.core.quest.models import BooleanRequirement, NumericRequirement
from questline.core.run.models import ObjectiveSpec, RunRank, RunStatus
from questline.core.run.run_logic import (
    abandon_run,
    check_entry,
    cooldown_ends_at,
    expire_if_overdue,
    start_run,
    submit_objective,
)

NOW = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)


@pytest.fixture()
def player():
    return Player(player_id="p1", level=3)


@pytest.fixture()
def gate(run_definition_factory):
    return run_definition_factory("step_gate", level_required=None)


@pytest.fixture()
def two_step(run_definition_factory):
    return run_definition_factory(
        "cellar",
        objectives=(
            ObjectiveSpec("Push-ups", NumericRequirement("pushups", ComparisonOperator.GTE, 50)),
            ObjectiveSpec("Stretch", BooleanRequirement("stretched")),
        ),
    )


class TestEntry:
    def test_rank_level_requirement(self, gate):
        """E 랭크 기본 입장 레벨은 3"""
        assert gate.required_level == 3
        with pytest.raises(RequirementNotMetError):
            check_entry(Player(player_id="p1", level=2), gate, [], NOW)
        check_entry(Player(player_id="p1", level=3), gate, [], NOW)

    def test_explicit_level_overrides_rank(self, run_definition_factory):
        boss = run_definition_factory("boss", rank=RunRank.S, level_required=1)
        assert boss.required_level == 1

    def test_active_run_blocks_entry(self, player, gate):
        run = start_run(player, gate, NOW, False)
        with pytest.raises(ActiveRunExistsError):
            check_entry(player, gate, [run], NOW)

    def test_prerequisite(self, player, run_definition_factory, gate):
        boss = run_definition_factory("boss", level_required=1, prerequisites=("step_gate",))
        with pytest.raises(RequirementNotMetError) as exc_info:
            check_entry(player, boss, [], NOW)
        assert exc_info.value.details["missing"] == ["step_gate"]

        cleared = start_run(player, gate, NOW, False)
        cleared.status = RunStatus.COMPLETED
        cleared.ended_at = NOW
        check_entry(player, boss, [cleared], NOW + timedelta(hours=1))

    def test_cooldown(self, player, gate):
        run = start_run(player, gate, NOW, False)
        abandon_run(run, NOW + timedelta(minutes=5))
        assert cooldown_ends_at(gate, [run]) == NOW + timedelta(hours=24, minutes=5)
        with pytest.raises(RunOnCooldownError):
            check_entry(player, gate, [run], NOW + timedelta(hours=2))
        check_entry(player, gate, [run], NOW + timedelta(hours=25))

    def test_zero_cooldown(self, player, run_definition_factory):
        quick = run_definition_factory("quick", cooldown_hours=0)
        run = start_run(player, quick, NOW, False)
        abandon_run(run, NOW)
        assert cooldown_ends_at(quick, [run]) is None
        check_entry(player, quick, [run], NOW)


class TestObjectives:
    def test_start_run(self, player, two_step):
        run = start_run(player, two_step, NOW, True)
        assert run.expires_at == NOW + timedelta(minutes=60)
        assert run.debuff_at_entry
        assert [o.label for o in run.objectives] == ["Push-ups", "Stretch"]
        assert run.overall_progress == 0.0

    def test_progress_and_completion(self, player, two_step):
        run = start_run(player, two_step, NOW, False)
        first = submit_objective(run, 0, 25, NOW + timedelta(minutes=10))
        assert first.percent == 50.0
        assert first.overall_progress == 25.0
        assert not first.completed

        submit_objective(run, 0, 60, NOW + timedelta(minutes=20))
        last = submit_objective(run, 1, True, NOW + timedelta(minutes=30))
        assert last.completed
        assert run.status is RunStatus.COMPLETED
        assert run.ended_at == NOW + timedelta(minutes=30)

    def test_cumulative_objective(self, player, two_step):
        run = start_run(player, two_step, NOW, False)
        submit_objective(run, 0, 40, NOW)
        outcome = submit_objective(run, 0, 10, NOW)
        assert outcome.percent == 80.0

    def test_submission_at_expiry_expires(self, player, two_step):
        run = start_run(player, two_step, NOW, False)
        outcome = submit_objective(run, 0, 50, run.expires_at)
        assert outcome.expired
        assert run.status is RunStatus.EXPIRED
        assert run.objectives[0].current_value == 0.0
        assert run.xp_awarded == 0

    def test_bad_index(self, player, two_step):
        run = start_run(player, two_step, NOW, False)
        with pytest.raises(ValidationError):
            submit_objective(run, 5, 10, NOW)

    def test_bad_value_does_not_expire(self, player, two_step):
        run = start_run(player, two_step, NOW, False)
        with pytest.raises(ValidationError):
            submit_objective(run, 1, "yes", NOW + timedelta(hours=2))
        assert run.status is RunStatus.ACTIVE

    def test_terminal_run_rejects(self, player, two_step):
        run = start_run(player, two_step, NOW, False)
        abandon_run(run, NOW)
        with pytest.raises(RunNotActiveError):
            submit_objective(run, 0, 10, NOW)
        with pytest.raises(RunNotActiveError):
            abandon_run(run, NOW)


class TestExpiry:
    def test_expire_if_overdue(self, player, gate):
        run = start_run(player, gate, NOW, False)
        assert not expire_if_overdue(run, NOW + timedelta(minutes=59))
        assert expire_if_overdue(run, NOW + timedelta(minutes=61))
        assert run.status is RunStatus.EXPIRED
        assert run.ended_at == run.expires_at
        assert not expire_if_overdue(run, NOW + timedelta(hours=5))

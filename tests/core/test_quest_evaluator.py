"""Completion Evaluator 테스트: 연산자별 판정, 부분 달성, 마감 해소, 리셋"""

from datetime import date, datetime, time, timezone

import pytest

from questline.core.errors import ConflictError, QuestNotActiveError, ValidationError
from questline.core.quest.enums import ComparisonOperator, QuestStatus
from questline.core.quest.models import (
    BooleanRequirement,
    NumericRequirement,
    PartialCreditPolicy,
    QuestInstance,
    TimeBoundRequirement,
    requirement_from_dict,
    requirement_to_dict,
)
from questline.core.quest.progress_logic import (
    apply_progress,
    evaluate_progress,
    is_partial_eligible,
    reset_instance,
    resolve_at_close,
)

DAY = date(2025, 6, 2)
MORNING = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)


def make_instance(template, **kwargs) -> QuestInstance:
    defaults = {
        "instance_id": "q1",
        "player_id": "p1",
        "template_id": template.template_id,
        "quest_date": DAY,
        "target_value": template.target_value,
    }
    defaults.update(kwargs)
    return QuestInstance(**defaults)


@pytest.fixture()
def steps(template_factory):
    return template_factory(
        "steps",
        partial_policy=PartialCreditPolicy(allowed=True, min_percent=50),
        is_core=True,
    )


def evaluate(instance, template, value, at=MORNING, tz="UTC"):
    return evaluate_progress(instance, template, value, at, tz, 50.0)


class TestNumericOperators:
    def test_gte_partial_progress(self, steps):
        outcome = evaluate(make_instance(steps), steps, 6000)
        assert outcome.status is QuestStatus.ACTIVE
        assert outcome.percent == 60.0
        assert outcome.partial_eligible

    def test_gte_complete(self, steps):
        outcome = evaluate(make_instance(steps), steps, 10000)
        assert outcome.status is QuestStatus.COMPLETED
        assert outcome.percent == 100.0

    def test_cumulative_counter_never_decreases(self, steps):
        instance = make_instance(steps, current_value=6000, completion_percent=60.0)
        outcome = evaluate(instance, steps, 4000)
        assert outcome.current_value == 6000
        assert outcome.percent == 60.0

    def test_lte_overwrites(self, template_factory):
        sugar = template_factory(
            "sugar",
            requirement=NumericRequirement("added_sugar_grams", ComparisonOperator.LTE, 25),
        )
        instance = make_instance(sugar)
        over = evaluate(instance, sugar, 50)
        assert over.status is QuestStatus.ACTIVE
        assert over.percent == 50.0
        apply_progress(instance, over, MORNING)

        under = evaluate(instance, sugar, 20)
        assert under.status is QuestStatus.COMPLETED
        assert under.current_value == 20

    def test_gt_boundary_is_not_met(self, template_factory):
        tpl = template_factory(
            "pushups", requirement=NumericRequirement("pushups", ComparisonOperator.GT, 100)
        )
        outcome = evaluate(make_instance(tpl), tpl, 100)
        assert outcome.status is QuestStatus.ACTIVE
        assert outcome.percent == 99.99

    def test_eq(self, template_factory):
        tpl = template_factory(
            "water", requirement=NumericRequirement("glasses", ComparisonOperator.EQ, 8)
        )
        assert evaluate(make_instance(tpl), tpl, 4).percent == 50.0
        assert evaluate(make_instance(tpl), tpl, 8).status is QuestStatus.COMPLETED

    @pytest.mark.parametrize("bad", [True, -1, float("nan"), float("inf"), "10", None])
    def test_invalid_numeric_values(self, steps, bad):
        with pytest.raises(ValidationError):
            evaluate(make_instance(steps), steps, bad)


class TestBooleanAndTimeBound:
    def test_boolean(self, template_factory):
        tpl = template_factory("protein", requirement=BooleanRequirement("protein_target_hit"))
        assert evaluate(make_instance(tpl), tpl, False).status is QuestStatus.ACTIVE
        assert evaluate(make_instance(tpl), tpl, True).status is QuestStatus.COMPLETED

    @pytest.mark.parametrize("bad", [1, "yes", 0.0])
    def test_boolean_requires_bool(self, template_factory, bad):
        tpl = template_factory("protein", requirement=BooleanRequirement("protein_target_hit"))
        with pytest.raises(ValidationError):
            evaluate(make_instance(tpl), tpl, bad)

    def test_time_bound_before_deadline(self, template_factory):
        tpl = template_factory("wake", requirement=TimeBoundRequirement("routine", time(12, 0)))
        at = datetime(2025, 6, 2, 11, 59, tzinfo=timezone.utc)
        assert evaluate(make_instance(tpl), tpl, True, at).status is QuestStatus.COMPLETED

    def test_time_bound_at_deadline_fails(self, template_factory):
        tpl = template_factory("wake", requirement=TimeBoundRequirement("routine", time(12, 0)))
        at = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)
        outcome = evaluate(make_instance(tpl), tpl, True, at)
        assert outcome.status is QuestStatus.FAILED

    def test_time_bound_deadline_is_local(self, template_factory):
        tpl = template_factory("wake", requirement=TimeBoundRequirement("routine", time(12, 0)))
        # 02:00 UTC = 서울 11:00, 03:00 UTC = 서울 12:00
        early = datetime(2025, 6, 2, 2, 0, tzinfo=timezone.utc)
        late = datetime(2025, 6, 2, 3, 0, tzinfo=timezone.utc)
        assert evaluate(make_instance(tpl), tpl, True, early, "Asia/Seoul").status is QuestStatus.COMPLETED
        assert evaluate(make_instance(tpl), tpl, True, late, "Asia/Seoul").status is QuestStatus.FAILED


class TestActiveGuard:
    @pytest.mark.parametrize(
        "status", [QuestStatus.COMPLETED, QuestStatus.FAILED, QuestStatus.EXPIRED]
    )
    def test_resolved_quest_rejects_progress(self, steps, status):
        with pytest.raises(QuestNotActiveError):
            evaluate(make_instance(steps, status=status), steps, 100)

    def test_apply_progress_sets_completed_at(self, steps):
        instance = make_instance(steps)
        apply_progress(instance, evaluate(instance, steps, 12000), MORNING)
        assert instance.status is QuestStatus.COMPLETED
        assert instance.completed_at == MORNING
        assert instance.is_full_completion


class TestPartialCredit:
    @pytest.mark.parametrize("default_min", [25.0, 50.0, 75.0])
    def test_default_min_percent(self, template_factory, default_min):
        tpl = template_factory("sleep", partial_policy=PartialCreditPolicy(allowed=True))
        assert is_partial_eligible(tpl, default_min, default_min)
        assert not is_partial_eligible(tpl, default_min - 0.01, default_min)

    def test_template_minimum_overrides_default(self, template_factory):
        tpl = template_factory(
            "sleep", partial_policy=PartialCreditPolicy(allowed=True, min_percent=80)
        )
        assert not is_partial_eligible(tpl, 70.0, 50.0)
        assert is_partial_eligible(tpl, 80.0, 50.0)

    def test_not_allowed(self, template_factory):
        tpl = template_factory("strict")
        assert not is_partial_eligible(tpl, 99.0, 50.0)

    def test_zero_percent_never_eligible(self, template_factory):
        tpl = template_factory("any", partial_policy=PartialCreditPolicy(allowed=True, min_percent=0))
        assert not is_partial_eligible(tpl, 0.0, 50.0)


class TestResolveAtClose:
    def test_partial_becomes_completed(self, steps):
        instance = make_instance(steps, current_value=6000, completion_percent=60.0)
        assert resolve_at_close(instance, steps, MORNING) is QuestStatus.COMPLETED
        assert instance.is_partial
        assert instance.completion_percent == 60.0

    def test_below_minimum_fails(self, steps):
        instance = make_instance(steps, current_value=4000, completion_percent=40.0)
        assert resolve_at_close(instance, steps, MORNING) is QuestStatus.FAILED

    def test_auto_close_expires(self, steps):
        instance = make_instance(steps, current_value=4000, completion_percent=40.0)
        assert resolve_at_close(instance, steps, MORNING, auto=True) is QuestStatus.EXPIRED

    def test_auto_close_still_scores_partial(self, steps):
        instance = make_instance(steps, current_value=6000, completion_percent=60.0)
        assert resolve_at_close(instance, steps, MORNING, auto=True) is QuestStatus.COMPLETED

    def test_resolved_instance_untouched(self, steps):
        instance = make_instance(steps, status=QuestStatus.FAILED)
        assert resolve_at_close(instance, steps, MORNING) is QuestStatus.FAILED


class TestReset:
    def test_reset_completed(self, steps):
        instance = make_instance(
            steps,
            status=QuestStatus.COMPLETED,
            current_value=10000,
            completion_percent=100.0,
            completed_at=MORNING,
            xp_awarded=50,
            xp_event_id="xp_1",
        )
        reset_instance(instance)
        assert instance.status is QuestStatus.ACTIVE
        assert instance.current_value == 0.0
        assert instance.completion_percent == 0.0
        assert instance.xp_event_id is None
        assert instance.completed_at is None

    def test_reset_active_conflicts(self, steps):
        with pytest.raises(ConflictError):
            reset_instance(make_instance(steps))


class TestRequirementParsing:
    def test_time_bound_round_trip(self):
        raw = {"type": "time_bound", "metric": "routine", "deadline": "12:00"}
        req = requirement_from_dict(raw)
        assert req == TimeBoundRequirement("routine", time(12, 0))
        assert requirement_to_dict(req) == raw

    def test_default_operator_is_gte(self):
        req = requirement_from_dict({"type": "numeric", "metric": "steps", "threshold": 100})
        assert req.operator is ComparisonOperator.GTE

    @pytest.mark.parametrize(
        "raw",
        [
            {"type": "numeric", "metric": "steps", "threshold": 0},
            {"type": "numeric", "metric": "steps"},
            {"type": "sometimes", "metric": "x"},
            {"metric": "x"},
            {"type": "time_bound", "metric": "x", "deadline": "noon"},
        ],
    )
    def test_invalid(self, raw):
        with pytest.raises(ValidationError):
            requirement_from_dict(raw)

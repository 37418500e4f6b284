"""Quest Instance Factory 테스트"""

from datetime import date

import pytest

from questline.core.errors import QuestAlreadyActiveError, ValidationError
from questline.core.quest.enums import QuestCadence, QuestStatus
from questline.core.quest.factory_logic import (
    activate_template,
    applicable_templates,
    materialize_daily_instances,
    pick_rotating_template,
)

MONDAY = date(2025, 6, 2)
SUNDAY = date(2025, 6, 8)


@pytest.fixture()
def templates(template_factory):
    items = [
        template_factory("steps", is_core=True),
        template_factory("long_run", cadence=QuestCadence.WEEKLY, weekday=6),
        template_factory("mobility", cadence=QuestCadence.ROTATING),
        template_factory("cold_shower", cadence=QuestCadence.ROTATING),
        template_factory("hydration", cadence=QuestCadence.ROTATING),
        template_factory("pushups", cadence=QuestCadence.BONUS),
        template_factory("gate", cadence=QuestCadence.DUNGEON),
        template_factory("retired", is_active=False),
    ]
    return {t.template_id: t for t in items}


def ids(instances):
    return sorted(i.template_id for i in instances)


class TestMaterialize:
    def test_weekday_gets_daily_only(self, templates):
        created = materialize_daily_instances("p1", MONDAY, templates, [])
        assert ids(created) == ["steps"]
        assert created[0].status is QuestStatus.ACTIVE
        assert created[0].quest_date == MONDAY
        assert created[0].target_value == 10000

    def test_weekly_on_its_weekday(self, templates):
        created = materialize_daily_instances("p1", SUNDAY, templates, [])
        assert ids(created) == ["long_run", "steps"]

    def test_rotating_after_unlock(self, templates):
        created = materialize_daily_instances(
            "p1", MONDAY, templates, [], rotating_unlocked=True
        )
        rotating = [i for i in created if templates[i.template_id].cadence is QuestCadence.ROTATING]
        assert len(rotating) == 1

    def test_second_call_is_noop(self, templates):
        first = materialize_daily_instances("p1", MONDAY, templates, [], rotating_unlocked=True)
        again = materialize_daily_instances(
            "p1", MONDAY, templates, first, rotating_unlocked=True
        )
        assert again == []

    def test_bonus_dungeon_and_inactive_not_materialized(self, templates):
        chosen = applicable_templates(templates.values(), "p1", SUNDAY, rotating_unlocked=True)
        chosen_ids = {t.template_id for t in chosen}
        assert "pushups" not in chosen_ids
        assert "gate" not in chosen_ids
        assert "retired" not in chosen_ids


class TestRotatingPick:
    def test_deterministic(self, templates):
        rotating = [t for t in templates.values() if t.cadence is QuestCadence.ROTATING]
        a = pick_rotating_template(rotating, "p1", MONDAY)
        b = pick_rotating_template(list(reversed(rotating)), "p1", MONDAY)
        assert a.template_id == b.template_id

    def test_excludes_previous_pick(self, templates):
        rotating = [t for t in templates.values() if t.cadence is QuestCadence.ROTATING]
        for offset in range(10):
            day = date(2025, 6, 2 + offset)
            previous = pick_rotating_template(rotating, "p1", day).template_id
            assert pick_rotating_template(rotating, "p1", day, previous).template_id != previous

    def test_single_candidate_repeats(self, templates):
        only = [templates["mobility"]]
        assert pick_rotating_template(only, "p1", MONDAY, "mobility").template_id == "mobility"

    def test_empty(self):
        assert pick_rotating_template([], "p1", MONDAY) is None


class TestActivate:
    def test_first_activation(self, templates):
        instance = activate_template("p1", templates["pushups"], MONDAY, [])
        assert instance.activation == 0
        assert instance.status is QuestStatus.ACTIVE

    def test_active_duplicate_rejected(self, templates):
        first = activate_template("p1", templates["pushups"], MONDAY, [])
        with pytest.raises(QuestAlreadyActiveError):
            activate_template("p1", templates["pushups"], MONDAY, [first])

    def test_reactivation_after_resolution(self, templates):
        first = activate_template("p1", templates["pushups"], MONDAY, [])
        first.status = QuestStatus.COMPLETED
        second = activate_template("p1", templates["pushups"], MONDAY, [first])
        assert second.activation == 1
        assert second.instance_id != first.instance_id

    def test_other_day_does_not_count(self, templates):
        first = activate_template("p1", templates["pushups"], MONDAY, [])
        other = activate_template("p1", templates["pushups"], SUNDAY, [first])
        assert other.activation == 0

    def test_timed_run_cadence_rejected(self, templates):
        with pytest.raises(ValidationError):
            activate_template("p1", templates["gate"], MONDAY, [])

    def test_inactive_rejected(self, templates):
        with pytest.raises(ValidationError):
            activate_template("p1", templates["retired"], MONDAY, [])

"""ContentProvider 테스트: JSON 로드, 잘못된 항목 건너뛰기, 시즌"""

import json
from datetime import date
from decimal import Decimal

import pytest

from questline.core.content import JsonContentProvider, StaticContentProvider, Season
from questline.core.errors import ValidationError
from questline.core.quest.enums import QuestCadence
from questline.core.run.models import RunKind, RunRank
from questline.main import BUNDLED_CONTENT


class TestBundledContent:
    def test_loads_everything(self):
        content = JsonContentProvider()
        assert content.load_from_json(BUNDLED_CONTENT) == 16
        assert len(content.templates()) == 11
        assert len(content.run_definitions()) == 4

    def test_core_daily_templates(self):
        content = JsonContentProvider()
        content.load_from_json(BUNDLED_CONTENT)
        steps = content.get_template("daily_steps")
        assert steps.is_core
        assert steps.cadence is QuestCadence.DAILY
        assert steps.partial_policy.allowed
        assert steps.target_value == 10000

    def test_boss_definition(self):
        content = JsonContentProvider()
        content.load_from_json(BUNDLED_CONTENT)
        boss = content.get_run_definition("boss_iron_warden")
        assert boss.kind is RunKind.BOSS
        assert boss.rank is RunRank.B
        assert boss.required_level == 15
        assert boss.xp_multiplier == Decimal("2.5")
        assert boss.prerequisites == ("d_rank_iron_cellar",)


class TestInvalidEntries:
    def write(self, tmp_path, payload) -> str:
        path = tmp_path / "content.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return str(path)

    def test_bad_entries_skipped(self, tmp_path):
        path = self.write(
            tmp_path,
            {
                "templates": [
                    {
                        "template_id": "ok",
                        "name": "Ok",
                        "category": "movement",
                        "cadence": "daily",
                        "requirement": {"type": "boolean", "metric": "done"},
                        "base_xp": 10,
                        "stat": "agility",
                    },
                    {
                        "template_id": "weekly_without_day",
                        "name": "Broken",
                        "category": "movement",
                        "cadence": "weekly",
                        "requirement": {"type": "boolean", "metric": "done"},
                        "base_xp": 10,
                        "stat": "agility",
                    },
                    {
                        "template_id": "bad_requirement",
                        "name": "Broken",
                        "category": "movement",
                        "cadence": "daily",
                        "requirement": {"type": "numeric", "metric": "x", "threshold": -1},
                        "base_xp": 10,
                        "stat": "agility",
                    },
                ],
                "run_definitions": [
                    {
                        "definition_id": "empty",
                        "name": "No objectives",
                        "kind": "dungeon",
                        "rank": "E",
                        "duration_minutes": 30,
                        "base_xp": 10,
                        "objectives": [],
                    }
                ],
                "seasons": [
                    {
                        "season_id": "backwards",
                        "name": "Backwards",
                        "starts_on": "2025-06-30",
                        "ends_on": "2025-06-01",
                        "xp_multiplier": "1.1",
                    }
                ],
            },
        )
        content = JsonContentProvider()
        assert content.load_from_json(path) == 1
        assert [t.template_id for t in content.templates()] == ["ok"]
        assert content.run_definitions() == []
        assert content.seasons() == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError):
            JsonContentProvider().load_from_json(tmp_path / "nope.json")


class TestSeasons:
    def test_season_for(self):
        season = Season(
            season_id="summer",
            name="Summer",
            starts_on=date(2025, 6, 1),
            ends_on=date(2025, 8, 31),
            xp_multiplier=Decimal("1.2"),
        )
        content = StaticContentProvider(seasons=[season])
        assert content.season_for(date(2025, 6, 1)) == season
        assert content.season_for(date(2025, 8, 31)) == season
        assert content.season_for(date(2025, 9, 1)) is None

    def test_lookup_unknown_ids(self):
        content = StaticContentProvider()
        assert content.get_template("nope") is None
        assert content.get_run_definition("nope") is None

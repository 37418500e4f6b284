"""콘텐츠 제공자 — 퀘스트 템플릿, 런 정의, 시즌

엔진 로직은 ContentProvider 인터페이스만 본다.
콘텐츠 교체(JSON 파일, DB 등)는 엔진 코드를 건드리지 않는다.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from questline.core.errors import ValidationError
from questline.core.quest.enums import QuestCadence, QuestCategory, StatType
from questline.core.quest.models import (
    PartialCreditPolicy,
    QuestTemplate,
    requirement_from_dict,
)
from questline.core.run.models import ObjectiveSpec, RunDefinition, RunKind, RunRank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Season:
    season_id: str
    name: str
    starts_on: date
    ends_on: date
    xp_multiplier: Decimal

    def contains(self, day: date) -> bool:
        return self.starts_on <= day <= self.ends_on


class ContentProvider(ABC):
    @abstractmethod
    def templates(self) -> list[QuestTemplate]: ...

    @abstractmethod
    def run_definitions(self) -> list[RunDefinition]: ...

    @abstractmethod
    def seasons(self) -> list[Season]: ...

    def get_template(self, template_id: str) -> Optional[QuestTemplate]:
        for template in self.templates():
            if template.template_id == template_id:
                return template
        return None

    def get_run_definition(self, definition_id: str) -> Optional[RunDefinition]:
        for definition in self.run_definitions():
            if definition.definition_id == definition_id:
                return definition
        return None

    def season_for(self, day: date) -> Optional[Season]:
        for season in self.seasons():
            if season.contains(day):
                return season
        return None


# === JSON 파싱 ===


def template_from_dict(raw: dict[str, Any]) -> QuestTemplate:
    partial = raw.get("partial_policy") or {}
    weekday = raw.get("weekday")
    template = QuestTemplate(
        template_id=raw["template_id"],
        name=raw["name"],
        description=raw.get("description", ""),
        category=QuestCategory(raw["category"]),
        cadence=QuestCadence(raw["cadence"]),
        requirement=requirement_from_dict(raw["requirement"]),
        base_xp=int(raw["base_xp"]),
        stat=StatType(raw["stat"]),
        stat_bonus=int(raw.get("stat_bonus", 0)),
        partial_policy=PartialCreditPolicy(
            allowed=bool(partial.get("allowed", False)),
            min_percent=partial.get("min_percent"),
        ),
        is_core=bool(raw.get("is_core", False)),
        weekday=int(weekday) if weekday is not None else None,
        is_active=bool(raw.get("is_active", True)),
    )
    if template.base_xp < 0:
        raise ValueError("base_xp must not be negative")
    if template.cadence is QuestCadence.WEEKLY and template.weekday not in range(7):
        raise ValueError("weekly templates need a weekday in 0..6")
    return template


def run_definition_from_dict(raw: dict[str, Any]) -> RunDefinition:
    objectives = tuple(
        ObjectiveSpec(label=o["label"], requirement=requirement_from_dict(o["requirement"]))
        for o in raw["objectives"]
    )
    if not objectives:
        raise ValueError("run definitions need at least one objective")
    return RunDefinition(
        definition_id=raw["definition_id"],
        name=raw["name"],
        description=raw.get("description", ""),
        kind=RunKind(raw["kind"]),
        rank=RunRank(raw["rank"]),
        duration_minutes=int(raw["duration_minutes"]),
        base_xp=int(raw["base_xp"]),
        xp_multiplier=Decimal(str(raw.get("xp_multiplier", "1.0"))),
        title_reward=raw.get("title_reward"),
        level_required=raw.get("level_required"),
        prerequisites=tuple(raw.get("prerequisites", [])),
        cooldown_hours=int(raw.get("cooldown_hours", 24)),
        objectives=objectives,
    )


def season_from_dict(raw: dict[str, Any]) -> Season:
    season = Season(
        season_id=raw["season_id"],
        name=raw["name"],
        starts_on=date.fromisoformat(raw["starts_on"]),
        ends_on=date.fromisoformat(raw["ends_on"]),
        xp_multiplier=Decimal(str(raw["xp_multiplier"])),
    )
    if season.ends_on < season.starts_on:
        raise ValueError("season ends before it starts")
    return season


class StaticContentProvider(ContentProvider):
    """메모리 내 콘텐츠 (테스트/임베딩용)"""

    def __init__(
        self,
        templates: Optional[list[QuestTemplate]] = None,
        run_definitions: Optional[list[RunDefinition]] = None,
        seasons: Optional[list[Season]] = None,
    ) -> None:
        self._templates: dict[str, QuestTemplate] = {
            t.template_id: t for t in templates or []
        }
        self._runs: dict[str, RunDefinition] = {
            d.definition_id: d for d in run_definitions or []
        }
        self._seasons: list[Season] = list(seasons or [])

    def templates(self) -> list[QuestTemplate]:
        return list(self._templates.values())

    def run_definitions(self) -> list[RunDefinition]:
        return list(self._runs.values())

    def seasons(self) -> list[Season]:
        return list(self._seasons)

    def get_template(self, template_id: str) -> Optional[QuestTemplate]:
        return self._templates.get(template_id)

    def get_run_definition(self, definition_id: str) -> Optional[RunDefinition]:
        return self._runs.get(definition_id)


class JsonContentProvider(StaticContentProvider):
    """content.json 로드. 잘못된 항목은 경고 후 건너뛴다."""

    def load_from_json(self, path: str | Path) -> int:
        """반환: 로드된 항목 수 (템플릿 + 런 정의 + 시즌)"""
        path = Path(path)
        if not path.exists():
            raise ValidationError(f"Content file not found: {path}", {"path": str(path)})
        with path.open("r", encoding="utf-8") as f:
            raw: dict[str, list[dict]] = json.load(f)

        count = 0
        for entry in raw.get("templates", []):
            try:
                template = template_from_dict(entry)
                self._templates[template.template_id] = template
                count += 1
            except (KeyError, ValueError, ValidationError) as e:
                logger.warning(
                    "Failed to load template %s: %s", entry.get("template_id", "?"), e
                )

        for entry in raw.get("run_definitions", []):
            try:
                definition = run_definition_from_dict(entry)
                self._runs[definition.definition_id] = definition
                count += 1
            except (KeyError, ValueError, ValidationError) as e:
                logger.warning(
                    "Failed to load run definition %s: %s",
                    entry.get("definition_id", "?"),
                    e,
                )

        for entry in raw.get("seasons", []):
            try:
                self._seasons.append(season_from_dict(entry))
                count += 1
            except (KeyError, ValueError) as e:
                logger.warning(
                    "Failed to load season %s: %s", entry.get("season_id", "?"), e
                )

        logger.info("Loaded %d content entries from %s", count, path)
        return count

"""Shared test fixtures."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from questline.core.clock import FixedClock
from questline.core.content import StaticContentProvider
from questline.core.engine_config import EngineConfig
from questline.core.event_bus import EventBus, GameEvent
from questline.core.quest.enums import (
    ComparisonOperator,
    QuestCadence,
    QuestCategory,
    StatType,
)
from questline.core.quest.models import (
    BooleanRequirement,
    NumericRequirement,
    PartialCreditPolicy,
    QuestTemplate,
    TimeBoundRequirement,
)
from questline.core.run.models import ObjectiveSpec, RunDefinition, RunKind, RunRank
from questline.db.database import make_engine, make_session_factory
from questline.db.models import Base
from questline.db.repository import sync_templates
from questline.main import create_app
from questline.services.day_service import DayService
from questline.services.player_service import PlayerService
from questline.services.quest_service import QuestService
from questline.services.run_service import RunService
from questline.services.transaction import TransactionRunner

# 2025-06-02는 월요일 (주말 배율 없음)
MONDAY_MORNING = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)


def make_template(template_id: str = "steps", **kwargs: Any) -> QuestTemplate:
    defaults: dict[str, Any] = {
        "template_id": template_id,
        "name": template_id.replace("_", " ").title(),
        "category": QuestCategory.MOVEMENT,
        "cadence": QuestCadence.DAILY,
        "requirement": NumericRequirement("steps", ComparisonOperator.GTE, 10000),
        "base_xp": 50,
        "stat": StatType.AGILITY,
    }
    defaults.update(kwargs)
    return QuestTemplate(**defaults)


def make_run_definition(definition_id: str = "step_gate", **kwargs: Any) -> RunDefinition:
    defaults: dict[str, Any] = {
        "definition_id": definition_id,
        "name": definition_id.replace("_", " ").title(),
        "kind": RunKind.DUNGEON,
        "rank": RunRank.E,
        "duration_minutes": 60,
        "base_xp": 50,
        "xp_multiplier": Decimal("1.5"),
        "level_required": 1,
        "objectives": (
            ObjectiveSpec(
                "Steps", NumericRequirement("steps", ComparisonOperator.GTE, 3000)
            ),
        ),
    }
    defaults.update(kwargs)
    return RunDefinition(**defaults)


def default_templates() -> list[QuestTemplate]:
    """코어 3개 + 마감 시각 퀘스트 1개 + 보너스 1개"""
    return [
        make_template(
            "steps",
            stat_bonus=1,
            partial_policy=PartialCreditPolicy(allowed=True, min_percent=50),
            is_core=True,
        ),
        make_template(
            "protein",
            category=QuestCategory.NUTRITION,
            requirement=BooleanRequirement("protein_target_hit"),
            base_xp=40,
            stat=StatType.VITALITY,
            is_core=True,
        ),
        make_template(
            "sugar",
            category=QuestCategory.NUTRITION,
            requirement=NumericRequirement("added_sugar_grams", ComparisonOperator.LTE, 25),
            base_xp=30,
            stat=StatType.DISCIPLINE,
            is_core=True,
        ),
        make_template(
            "wake",
            category=QuestCategory.DISCIPLINE,
            requirement=TimeBoundRequirement(
                "morning_routine_done", datetime.strptime("12:00", "%H:%M").time()
            ),
            base_xp=25,
            stat=StatType.DISCIPLINE,
        ),
        make_template(
            "pushups",
            category=QuestCategory.STRENGTH,
            cadence=QuestCadence.BONUS,
            requirement=NumericRequirement("pushups", ComparisonOperator.GTE, 100),
            base_xp=40,
            stat=StatType.STRENGTH,
        ),
    ]


def default_run_definitions() -> list[RunDefinition]:
    return [
        make_run_definition("step_gate", title_reward="Gate Walker"),
        make_run_definition("quick_gate", cooldown_hours=0),
        make_run_definition(
            "iron_boss",
            kind=RunKind.BOSS,
            rank=RunRank.C,
            level_required=None,
            prerequisites=("step_gate",),
        ),
    ]


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(MONDAY_MORNING)


@pytest.fixture()
def content() -> StaticContentProvider:
    return StaticContentProvider(
        templates=default_templates(), run_definitions=default_run_definitions()
    )


@pytest.fixture()
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture()
def session_factory() -> sessionmaker[Session]:
    """In-memory SQLite (StaticPool) shared by every session of one test."""
    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    factory = make_session_factory(engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def events(event_bus: EventBus) -> list[GameEvent]:
    """발행된 모든 이벤트를 기록"""
    received: list[GameEvent] = []
    original = event_bus.emit

    def recording_emit(event: GameEvent) -> None:
        received.append(event)
        original(event)

    event_bus.emit = recording_emit  # type: ignore[method-assign]
    return received


@pytest.fixture()
def runner(session_factory, content) -> TransactionRunner:
    with session_factory.begin() as session:
        sync_templates(session, content.templates())
    return TransactionRunner(session_factory)


@pytest.fixture()
def services(runner, event_bus, content, engine_config, clock):
    """(player, quest, day, run) 서비스 묶음"""
    return (
        PlayerService(runner, event_bus, engine_config, clock),
        QuestService(runner, event_bus, content, engine_config, clock),
        DayService(runner, event_bus, content, engine_config, clock),
        RunService(runner, event_bus, content, engine_config, clock),
    )


@pytest.fixture()
def player_id(services) -> str:
    player_service = services[0]
    player_service.create_player("p1", "UTC")
    return "p1"


@pytest.fixture()
def client(session_factory, content, clock, engine_config) -> TestClient:
    """FastAPI TestClient wired to an in-memory SQLite database."""
    app = create_app(
        session_factory=session_factory,
        content=content,
        clock=clock,
        engine_config=engine_config,
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db_session(session_factory) -> Session:
    """Raw database session for direct DB assertions."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def template_factory():
    return make_template


@pytest.fixture()
def run_definition_factory():
    return make_run_definition


@pytest.fixture()
def quest_ids(services):
    """template_id → 그날 첫 인스턴스 ID (첫 조회 시 전개)"""
    quest_service = services[1]

    def lookup(player_id: str, day=None) -> dict[str, str]:
        _, views = quest_service.get_quests(player_id, day)
        return {
            v.template.template_id: v.instance.instance_id
            for v in views
            if v.instance.activation == 0
        }

    return lookup

"""Timed Run 모델 — 던전/보스 정의와 진행 중인 시도"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from questline.core.quest.models import Requirement


class RunKind(str, Enum):
    DUNGEON = "dungeon"
    BOSS = "boss"


class RunRank(str, Enum):
    E = "E"
    D = "D"
    C = "C"
    B = "B"
    A = "A"
    S = "S"


class RunStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"
    ABANDONED = "abandoned"


TERMINAL_RUN_STATUSES = frozenset(
    {RunStatus.COMPLETED, RunStatus.EXPIRED, RunStatus.ABANDONED}
)

# 랭크별 기본 입장 레벨
RANK_LEVEL_REQUIREMENTS: dict[RunRank, int] = {
    RunRank.E: 3,
    RunRank.D: 6,
    RunRank.C: 10,
    RunRank.B: 15,
    RunRank.A: 20,
    RunRank.S: 25,
}


@dataclass(frozen=True)
class ObjectiveSpec:
    label: str
    requirement: Requirement


@dataclass(frozen=True)
class RunDefinition:
    """콘텐츠에서 로드되는 던전/보스 정의"""

    definition_id: str
    name: str
    kind: RunKind
    rank: RunRank
    duration_minutes: int
    base_xp: int
    objectives: tuple[ObjectiveSpec, ...]
    xp_multiplier: Decimal = Decimal("1.0")
    title_reward: Optional[str] = None
    level_required: Optional[int] = None
    prerequisites: tuple[str, ...] = ()
    cooldown_hours: int = 24
    description: str = ""

    @property
    def required_level(self) -> int:
        if self.level_required is not None:
            return self.level_required
        return RANK_LEVEL_REQUIREMENTS[self.rank]


@dataclass
class RunObjective:
    label: str
    requirement: Requirement
    current_value: float = 0.0
    percent: float = 0.0

    @property
    def done(self) -> bool:
        return self.percent >= 100.0


@dataclass
class TimedRun:
    run_id: str
    player_id: str
    definition_id: str
    kind: RunKind
    rank: RunRank
    started_at: datetime
    expires_at: datetime
    objectives: list[RunObjective] = field(default_factory=list)
    status: RunStatus = RunStatus.ACTIVE
    ended_at: Optional[datetime] = None
    xp_awarded: Optional[int] = None
    debuff_at_entry: bool = False

    @property
    def overall_progress(self) -> float:
        """목표 평균 퍼센트 (저장하지 않고 매번 계산)"""
        if not self.objectives:
            return 0.0
        return round(sum(o.percent for o in self.objectives) / len(self.objectives), 2)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RUN_STATUSES


@dataclass(frozen=True)
class ObjectiveOutcome:
    """submit_objective() 결과. expired면 제출은 반영되지 않았다."""

    run_id: str
    index: int
    percent: float
    overall_progress: float
    completed: bool = False
    expired: bool = False

"""퀘스트 관련 열거형"""

from enum import Enum


class QuestCategory(str, Enum):
    MOVEMENT = "movement"
    STRENGTH = "strength"
    RECOVERY = "recovery"
    NUTRITION = "nutrition"
    DISCIPLINE = "discipline"


class QuestCadence(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    ROTATING = "rotating"
    BONUS = "bonus"
    DUNGEON = "dungeon"
    BOSS = "boss"


class QuestStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"


class StatType(str, Enum):
    STRENGTH = "strength"
    AGILITY = "agility"
    VITALITY = "vitality"
    DISCIPLINE = "discipline"


class RequirementType(str, Enum):
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    TIME_BOUND = "time_bound"


class ComparisonOperator(str, Enum):
    GTE = "gte"
    GT = "gt"
    LTE = "lte"
    LT = "lt"
    EQ = "eq"


# 누적 카운터(걸음 수, 운동 분)로 취급되는 연산자: 진행도가 줄지 않는다
CUMULATIVE_OPERATORS = frozenset({ComparisonOperator.GTE, ComparisonOperator.GT})

TERMINAL_STATUSES = frozenset(
    {QuestStatus.COMPLETED, QuestStatus.FAILED, QuestStatus.EXPIRED}
)

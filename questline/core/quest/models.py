"""퀘스트 도메인 모델 (DB 무관)"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Optional, Union

from questline.core.errors import ValidationError
from questline.core.quest.enums import (
    ComparisonOperator,
    QuestCadence,
    QuestCategory,
    QuestStatus,
    RequirementType,
    StatType,
)


@dataclass(frozen=True)
class NumericRequirement:
    """metric <operator> threshold"""

    metric: str
    operator: ComparisonOperator
    threshold: float

    @property
    def kind(self) -> RequirementType:
        return RequirementType.NUMERIC

    @property
    def target(self) -> float:
        return self.threshold


@dataclass(frozen=True)
class BooleanRequirement:
    """명시적 True 제출이 필요"""

    metric: str

    @property
    def kind(self) -> RequirementType:
        return RequirementType.BOOLEAN

    @property
    def target(self) -> float:
        return 1.0


@dataclass(frozen=True)
class TimeBoundRequirement:
    """로컬 deadline 이전의 True 제출이 필요 (예: 정오 전 기상 루틴)"""

    metric: str
    deadline: time

    @property
    def kind(self) -> RequirementType:
        return RequirementType.TIME_BOUND

    @property
    def target(self) -> float:
        return 1.0


Requirement = Union[NumericRequirement, BooleanRequirement, TimeBoundRequirement]


def requirement_from_dict(raw: dict[str, Any]) -> Requirement:
    """content JSON / DB JSON → Requirement"""
    try:
        kind = RequirementType(raw["type"])
        if kind is RequirementType.NUMERIC:
            threshold = float(raw["threshold"])
            if threshold <= 0:
                raise ValueError("threshold must be positive")
            return NumericRequirement(
                metric=raw["metric"],
                operator=ComparisonOperator(raw.get("operator", "gte")),
                threshold=threshold,
            )
        if kind is RequirementType.BOOLEAN:
            return BooleanRequirement(metric=raw["metric"])
        return TimeBoundRequirement(
            metric=raw["metric"], deadline=time.fromisoformat(raw["deadline"])
        )
    except (KeyError, ValueError, TypeError) as e:
        raise ValidationError(f"Invalid requirement: {e}", {"requirement": raw})


def requirement_to_dict(req: Requirement) -> dict[str, Any]:
    if isinstance(req, NumericRequirement):
        return {
            "type": req.kind.value,
            "metric": req.metric,
            "operator": req.operator.value,
            "threshold": req.threshold,
        }
    if isinstance(req, TimeBoundRequirement):
        return {
            "type": req.kind.value,
            "metric": req.metric,
            "deadline": req.deadline.isoformat(timespec="minutes"),
        }
    return {"type": req.kind.value, "metric": req.metric}


@dataclass(frozen=True)
class PartialCreditPolicy:
    """부분 달성 정책. min_percent가 None이면 엔진 기본값 사용."""

    allowed: bool = False
    min_percent: Optional[float] = None

    def minimum(self, default: float) -> float:
        return self.min_percent if self.min_percent is not None else default


@dataclass(frozen=True)
class QuestTemplate:
    """퀘스트 템플릿. 콘텐츠 설정으로 생성되며 런타임에 바뀌지 않는다."""

    template_id: str
    name: str
    category: QuestCategory
    cadence: QuestCadence
    requirement: Requirement
    base_xp: int
    stat: StatType
    stat_bonus: int = 0
    partial_policy: PartialCreditPolicy = field(default_factory=PartialCreditPolicy)
    is_core: bool = False
    description: str = ""
    weekday: Optional[int] = None  # weekly cadence: 0=월요일
    is_active: bool = True

    @property
    def target_value(self) -> float:
        return self.requirement.target


@dataclass
class QuestInstance:
    """플레이어 1명 + 로컬 날짜 1개에 묶인 템플릿"""

    instance_id: str
    player_id: str
    template_id: str
    quest_date: date
    activation: int = 0
    status: QuestStatus = QuestStatus.ACTIVE
    current_value: float = 0.0
    target_value: float = 1.0
    completion_percent: float = 0.0
    completed_at: Optional[datetime] = None
    xp_awarded: Optional[int] = None
    xp_event_id: Optional[str] = None
    reconciled: bool = False

    @property
    def is_partial(self) -> bool:
        return (
            self.status is QuestStatus.COMPLETED and self.completion_percent < 100.0
        )

    @property
    def is_full_completion(self) -> bool:
        return (
            self.status is QuestStatus.COMPLETED and self.completion_percent >= 100.0
        )


@dataclass(frozen=True)
class ProgressOutcome:
    """Completion Evaluator 판정 결과"""

    status: QuestStatus
    percent: float
    current_value: float
    partial_eligible: bool = False

    @property
    def resolved(self) -> bool:
        return self.status is not QuestStatus.ACTIVE

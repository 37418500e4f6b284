"""Completion Evaluator — 진행도 제출 판정, 마감 시 해소, 리셋

순수 로직. DB 접근 없음. 결과는 ProgressOutcome으로 돌려주고
인스턴스에 반영하는 것은 apply_progress()가 담당한다.
"""

import logging
import math
from datetime import datetime
from typing import Any, Union

from questline.core.clock import to_local
from questline.core.errors import ConflictError, QuestNotActiveError, ValidationError
from questline.core.quest.enums import (
    CUMULATIVE_OPERATORS,
    ComparisonOperator,
    QuestStatus,
)
from questline.core.quest.models import (
    BooleanRequirement,
    NumericRequirement,
    ProgressOutcome,
    QuestInstance,
    QuestTemplate,
    Requirement,
    TimeBoundRequirement,
)

logger = logging.getLogger(__name__)

# 미달성 상태에서 표시 가능한 최대 퍼센트 (gt/lt 경계값 동률)
MAX_UNMET_PERCENT = 99.99


def coerce_submission(requirement: Requirement, value: Any) -> Union[float, bool]:
    """제출값 검증. 수치형은 float, boolean/time_bound는 bool.

    Raises:
        ValidationError: 타입 불일치, 음수, NaN/inf
    """
    if isinstance(requirement, NumericRequirement):
        # bool은 int의 하위 타입이므로 먼저 거른다
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(
                f"Numeric value required for metric '{requirement.metric}'",
                {"value": repr(value)},
            )
        number = float(value)
        if math.isnan(number) or math.isinf(number):
            raise ValidationError("Value must be a finite number", {"value": repr(value)})
        if number < 0:
            raise ValidationError("Value must not be negative", {"value": number})
        return number

    if not isinstance(value, bool):
        raise ValidationError(
            f"Boolean value required for metric '{requirement.metric}'",
            {"value": repr(value)},
        )
    return value


def numeric_percent(requirement: NumericRequirement, value: float) -> float:
    """연산자별 달성률 (0~100)"""
    threshold = requirement.threshold
    op = requirement.operator

    if op is ComparisonOperator.GTE:
        met = value >= threshold
    elif op is ComparisonOperator.GT:
        met = value > threshold
    elif op is ComparisonOperator.LTE:
        met = value <= threshold
    elif op is ComparisonOperator.LT:
        met = value < threshold
    else:
        met = math.isclose(value, threshold)

    if met:
        return 100.0

    if op in CUMULATIVE_OPERATORS:
        raw = value / threshold * 100
    elif op is ComparisonOperator.EQ:
        raw = min(value, threshold) / max(value, threshold) * 100
    else:
        # lte/lt 초과분: value >= threshold > 0
        raw = threshold / value * 100

    return round(min(raw, MAX_UNMET_PERCENT), 2)


def is_partial_eligible(
    template: QuestTemplate, percent: float, default_min_percent: float
) -> bool:
    policy = template.partial_policy
    if not policy.allowed or percent <= 0:
        return False
    return percent >= policy.minimum(default_min_percent)


def evaluate_progress(
    instance: QuestInstance,
    template: QuestTemplate,
    value: Any,
    at: datetime,
    tz_name: str | None,
    default_min_percent: float = 50.0,
) -> ProgressOutcome:
    """진행도 제출 1건 판정.

    - 누적 카운터(gte/gt)는 기존 값보다 줄지 않는다
    - lte/lt/eq, boolean은 덮어쓴다
    - time_bound는 로컬 마감 시각 이후 제출이면 FAILED

    Raises:
        QuestNotActiveError: ACTIVE가 아닌 인스턴스
        ValidationError: 잘못된 제출값
    """
    if instance.status is not QuestStatus.ACTIVE:
        raise QuestNotActiveError(
            f"Quest {instance.instance_id} is {instance.status.value}",
            {"quest_id": instance.instance_id, "status": instance.status.value},
        )

    requirement = template.requirement
    submitted = coerce_submission(requirement, value)

    if isinstance(requirement, NumericRequirement):
        current = float(submitted)
        if requirement.operator in CUMULATIVE_OPERATORS:
            current = max(instance.current_value, current)
        percent = numeric_percent(requirement, current)

    elif isinstance(requirement, TimeBoundRequirement):
        local = to_local(at, tz_name)
        deadline = datetime.combine(
            instance.quest_date, requirement.deadline, tzinfo=local.tzinfo
        )
        if submitted and local >= deadline:
            logger.info(
                "Late submission for %s (deadline %s)",
                instance.instance_id,
                requirement.deadline,
            )
            return ProgressOutcome(
                status=QuestStatus.FAILED, percent=0.0, current_value=0.0
            )
        current = 1.0 if submitted else 0.0
        percent = 100.0 if submitted else 0.0

    else:
        assert isinstance(requirement, BooleanRequirement)
        current = 1.0 if submitted else 0.0
        percent = 100.0 if submitted else 0.0

    if percent >= 100.0:
        return ProgressOutcome(
            status=QuestStatus.COMPLETED, percent=100.0, current_value=current
        )

    return ProgressOutcome(
        status=QuestStatus.ACTIVE,
        percent=percent,
        current_value=current,
        partial_eligible=is_partial_eligible(template, percent, default_min_percent),
    )


def apply_progress(
    instance: QuestInstance, outcome: ProgressOutcome, at: datetime
) -> None:
    instance.current_value = outcome.current_value
    instance.completion_percent = outcome.percent
    instance.status = outcome.status
    if outcome.status is QuestStatus.COMPLETED:
        instance.completed_at = at


def resolve_at_close(
    instance: QuestInstance,
    template: QuestTemplate,
    at: datetime,
    default_min_percent: float = 50.0,
    auto: bool = False,
) -> QuestStatus:
    """하루 마감 시 남은 ACTIVE 인스턴스 해소.

    부분 달성 자격이 있으면 마지막 퍼센트로 COMPLETED(부분),
    아니면 FAILED. 자동 마감(auto)이면 EXPIRED.
    """
    if instance.status is not QuestStatus.ACTIVE:
        return instance.status

    if is_partial_eligible(template, instance.completion_percent, default_min_percent):
        instance.status = QuestStatus.COMPLETED
        instance.completed_at = at
    else:
        instance.status = QuestStatus.EXPIRED if auto else QuestStatus.FAILED
    return instance.status


def reset_instance(instance: QuestInstance) -> None:
    """COMPLETED 인스턴스를 진행도 0의 ACTIVE로 되돌린다. XP 취소는 호출측 책임."""
    if instance.status is not QuestStatus.COMPLETED:
        raise ConflictError(
            f"Only completed quests can be reset (status={instance.status.value})",
            {"quest_id": instance.instance_id},
        )
    instance.status = QuestStatus.ACTIVE
    instance.current_value = 0.0
    instance.completion_percent = 0.0
    instance.completed_at = None
    instance.xp_awarded = None
    instance.xp_event_id = None
    instance.reconciled = False

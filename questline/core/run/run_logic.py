"""Timed Run Tracker — 입장 조건, 목표 진행, 만료

만료는 백그라운드 타이머 없이 접근/쓰기 시점에 판정한다.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from questline.core.clock import ensure_utc
from questline.core.errors import (
    ActiveRunExistsError,
    RequirementNotMetError,
    RunNotActiveError,
    RunOnCooldownError,
    ValidationError,
)
from questline.core.progression.models import Player
from questline.core.quest.enums import CUMULATIVE_OPERATORS
from questline.core.quest.models import NumericRequirement
from questline.core.quest.progress_logic import coerce_submission, numeric_percent
from questline.core.run.models import (
    ObjectiveOutcome,
    RunDefinition,
    RunObjective,
    RunStatus,
    TimedRun,
)

logger = logging.getLogger(__name__)


def new_run_id() -> str:
    return f"run_{uuid.uuid4().hex[:12]}"


def is_overdue(run: TimedRun, now: datetime) -> bool:
    return ensure_utc(now) >= ensure_utc(run.expires_at)


def expire_if_overdue(run: TimedRun, now: datetime) -> bool:
    """ACTIVE인데 시간이 지났으면 EXPIRED로 전환. 전환했으면 True."""
    if run.status is not RunStatus.ACTIVE or not is_overdue(run, now):
        return False
    run.status = RunStatus.EXPIRED
    run.ended_at = ensure_utc(run.expires_at)
    run.xp_awarded = 0
    logger.info("Run expired: %s (%s)", run.run_id, run.definition_id)
    return True


def cleared_definitions(runs: Iterable[TimedRun]) -> set[str]:
    return {r.definition_id for r in runs if r.status is RunStatus.COMPLETED}


def cooldown_ends_at(
    definition: RunDefinition, history: Iterable[TimedRun]
) -> Optional[datetime]:
    """같은 정의의 마지막 종료 시도 + cooldown_hours"""
    ended = [
        ensure_utc(r.ended_at)
        for r in history
        if r.definition_id == definition.definition_id
        and r.is_terminal
        and r.ended_at is not None
    ]
    if not ended or definition.cooldown_hours <= 0:
        return None
    return max(ended) + timedelta(hours=definition.cooldown_hours)


def check_entry(
    player: Player,
    definition: RunDefinition,
    history: Sequence[TimedRun],
    now: datetime,
) -> None:
    """입장 가능 여부 검사. 만료 처리는 호출 전에 끝나 있어야 한다.

    Raises:
        ActiveRunExistsError: 진행 중인 시도가 있음
        RequirementNotMetError: 레벨 / 선행 클리어 미충족
        RunOnCooldownError: 재도전 대기 중
    """
    active = [r for r in history if not r.is_terminal]
    if active:
        raise ActiveRunExistsError(
            f"Run {active[0].run_id} is still active",
            {"run_id": active[0].run_id, "definition_id": active[0].definition_id},
        )

    if player.level < definition.required_level:
        raise RequirementNotMetError(
            f"Level {definition.required_level} required",
            {"required_level": definition.required_level, "level": player.level},
        )

    missing = [p for p in definition.prerequisites if p not in cleared_definitions(history)]
    if missing:
        raise RequirementNotMetError(
            "Prerequisite runs not cleared", {"missing": missing}
        )

    ends_at = cooldown_ends_at(definition, history)
    if ends_at is not None and ensure_utc(now) < ends_at:
        raise RunOnCooldownError(
            f"{definition.name} is on cooldown",
            {"cooldown_ends_at": ends_at.isoformat()},
        )


def start_run(
    player: Player, definition: RunDefinition, now: datetime, debuff_active: bool
) -> TimedRun:
    started = ensure_utc(now)
    return TimedRun(
        run_id=new_run_id(),
        player_id=player.player_id,
        definition_id=definition.definition_id,
        kind=definition.kind,
        rank=definition.rank,
        started_at=started,
        expires_at=started + timedelta(minutes=definition.duration_minutes),
        objectives=[
            RunObjective(label=objective.label, requirement=objective.requirement)
            for objective in definition.objectives
        ],
        debuff_at_entry=debuff_active,
    )


def _ensure_active(run: TimedRun) -> None:
    if run.status is not RunStatus.ACTIVE:
        raise RunNotActiveError(
            f"Run {run.run_id} is {run.status.value}",
            {"run_id": run.run_id, "status": run.status.value},
        )


def submit_objective(
    run: TimedRun, index: int, value: object, now: datetime
) -> ObjectiveOutcome:
    """목표 1개 진행도 제출. 쓰기 시점에 만료를 다시 확인한다.

    만료된 경우 run을 EXPIRED로 바꾸고 expired=True를 돌려준다
    (호출측이 저장 후 RunExpiredError로 거절).
    """
    _ensure_active(run)
    if index < 0 or index >= len(run.objectives):
        raise ValidationError(
            f"Objective index out of range: {index}",
            {"index": index, "count": len(run.objectives)},
        )

    objective = run.objectives[index]
    submitted = coerce_submission(objective.requirement, value)

    if expire_if_overdue(run, now):
        return ObjectiveOutcome(
            run_id=run.run_id,
            index=index,
            percent=objective.percent,
            overall_progress=run.overall_progress,
            expired=True,
        )

    requirement = objective.requirement
    if isinstance(requirement, NumericRequirement):
        current = float(submitted)
        if requirement.operator in CUMULATIVE_OPERATORS:
            current = max(objective.current_value, current)
        percent = numeric_percent(requirement, current)
    else:
        # boolean / time_bound 목표는 run 기한이 곧 마감
        current = 1.0 if submitted else 0.0
        percent = 100.0 if submitted else 0.0

    objective.current_value = current
    objective.percent = percent

    completed = all(o.done for o in run.objectives)
    if completed:
        run.status = RunStatus.COMPLETED
        run.ended_at = ensure_utc(now)
        logger.info("Run completed: %s (%s)", run.run_id, run.definition_id)

    return ObjectiveOutcome(
        run_id=run.run_id,
        index=index,
        percent=percent,
        overall_progress=run.overall_progress,
        completed=completed,
    )


def abandon_run(run: TimedRun, now: datetime) -> None:
    _ensure_active(run)
    run.status = RunStatus.ABANDONED
    run.ended_at = ensure_utc(now)
    run.xp_awarded = 0
    logger.info("Run abandoned: %s (%s)", run.run_id, run.definition_id)

"""Day state / reconciliation / close endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from questline.api.deps import (
    build_award_info,
    build_quest_info,
    get_day_service,
)
from questline.api.schemas import (
    DayStatusResponse,
    DaySummaryResponse,
    ErrorResponse,
    ProgressRequest,
    ProgressResponse,
)
from questline.core.logging import get_logger
from questline.services.day_service import DayService
from questline.services.quest_service import QuestView

logger = get_logger(__name__)

router = APIRouter(
    prefix="/players/{player_id}/day",
    tags=["day"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)


@router.get("/status", response_model=DayStatusResponse)
def day_status(
    player_id: str,
    day: Optional[date] = Query(None, alias="date"),
    service: DayService = Depends(get_day_service),
) -> DayStatusResponse:
    """
    하루 상태 조회

    phase, 정산 필요 여부, 자정까지 남은 분, 미해결 퀘스트를 반환합니다.
    """
    status = service.day_status(player_id, day)
    return DayStatusResponse(
        player_id=status.player_id,
        record_date=status.record_date,
        phase=status.phase.value,
        reconciliation_required=status.reconciliation_required,
        minutes_to_midnight=status.minutes_to_midnight,
        pending=[build_quest_info(v) for v in status.pending],
        closed=status.closed,
        xp_earned=status.xp_earned,
    )


@router.post("/reconciliation/{quest_id}", response_model=ProgressResponse)
def submit_reconciliation(
    player_id: str,
    quest_id: str,
    request: ProgressRequest,
    service: DayService = Depends(get_day_service),
) -> ProgressResponse:
    """저녁 정산: 미해결 퀘스트 1개를 다시 평가 (항목당 1회)"""
    result = service.submit_reconciliation(player_id, quest_id, request.value)
    return ProgressResponse(
        quest=build_quest_info(QuestView(instance=result.instance, template=result.template)),
        partial_eligible=result.outcome.partial_eligible,
        award=build_award_info(result.award),
    )


@router.post("/close", response_model=DaySummaryResponse)
def close_day(
    player_id: str,
    day: Optional[date] = Query(None, alias="date"),
    service: DayService = Depends(get_day_service),
) -> DaySummaryResponse:
    """
    하루 마감

    night phase에서만 가능합니다. 두 번째 호출은 409를 반환합니다.
    """
    summary = service.close_day(player_id, day)
    logger.info(
        "Day closed via API: %s %s (streak %d)",
        player_id,
        summary.record_date,
        summary.streak_after,
    )
    return DaySummaryResponse(
        player_id=summary.player_id,
        record_date=summary.record_date,
        completed=summary.completed,
        partial=summary.partial,
        failed=summary.failed,
        expired=summary.expired,
        qualified=summary.qualified,
        perfect=summary.perfect,
        streak_before=summary.streak_before,
        streak_after=summary.streak_after,
        xp_earned=summary.xp_earned,
        level_ups=summary.level_ups,
        tokens_earned=summary.tokens_earned,
        recovery_available=summary.recovery_available,
        debuff_applied=summary.debuff_applied,
        auto_closed=summary.auto_closed,
    )

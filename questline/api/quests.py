"""Quest API endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from questline.api.deps import build_award_info, build_quest_info, get_quest_service
from questline.api.schemas import (
    ActivateRequest,
    ErrorResponse,
    ProgressRequest,
    ProgressResponse,
    QuestListResponse,
    QuestResponse,
)
from questline.services.quest_service import QuestService, QuestView

router = APIRouter(
    prefix="/players/{player_id}/quests",
    tags=["quests"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)


@router.get("", response_model=QuestListResponse)
def list_quests(
    player_id: str,
    day: Optional[date] = Query(None, alias="date"),
    service: QuestService = Depends(get_quest_service),
) -> QuestListResponse:
    """
    날짜별 퀘스트 조회

    처음 조회하는 날짜면 템플릿에서 인스턴스를 전개합니다.
    """
    record_date, views = service.get_quests(player_id, day)
    return QuestListResponse(
        player_id=player_id,
        record_date=record_date,
        quests=[build_quest_info(v) for v in views],
    )


@router.post(
    "/activate",
    response_model=QuestResponse,
    responses={400: {"model": ErrorResponse}},
)
def activate_quest(
    player_id: str,
    request: ActivateRequest,
    service: QuestService = Depends(get_quest_service),
) -> QuestResponse:
    """on-demand 퀘스트(BONUS 등) 활성화"""
    view = service.activate(player_id, request.template_id, request.quest_date)
    return QuestResponse(quest=build_quest_info(view))


@router.post(
    "/{quest_id}/progress",
    response_model=ProgressResponse,
    responses={400: {"model": ErrorResponse}},
)
def submit_progress(
    player_id: str,
    quest_id: str,
    request: ProgressRequest,
    service: QuestService = Depends(get_quest_service),
) -> ProgressResponse:
    """
    진행도 제출

    완료되면 같은 트랜잭션에서 XP가 지급됩니다.
    """
    result = service.submit_progress(player_id, quest_id, request.value)
    return ProgressResponse(
        quest=build_quest_info(QuestView(instance=result.instance, template=result.template)),
        partial_eligible=result.outcome.partial_eligible,
        award=build_award_info(result.award),
    )


@router.post("/{quest_id}/reset", response_model=QuestResponse)
def reset_quest(
    player_id: str,
    quest_id: str,
    service: QuestService = Depends(get_quest_service),
) -> QuestResponse:
    """완료한 퀘스트를 되돌리고 지급된 XP를 취소"""
    view = service.reset_quest(player_id, quest_id)
    return QuestResponse(quest=build_quest_info(view))

"""Dungeon / boss timed run endpoints."""

from fastapi import APIRouter, Depends

from questline.api.deps import build_award_info, build_run_info, get_run_service
from questline.api.schemas import (
    DungeonInfo,
    DungeonListResponse,
    ErrorResponse,
    ObjectiveResponse,
    ProgressRequest,
    RunHistoryResponse,
    RunResponse,
)
from questline.services.run_service import RunService

router = APIRouter(
    prefix="/players/{player_id}",
    tags=["runs"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)


@router.get("/dungeons", response_model=DungeonListResponse)
def list_dungeons(
    player_id: str,
    service: RunService = Depends(get_run_service),
) -> DungeonListResponse:
    """던전/보스 목록과 입장 가능 여부"""
    dungeons = []
    for item in service.list_dungeons(player_id):
        d = item.definition
        dungeons.append(
            DungeonInfo(
                definition_id=d.definition_id,
                name=d.name,
                description=d.description,
                kind=d.kind.value,
                rank=d.rank.value,
                duration_minutes=d.duration_minutes,
                base_xp=d.base_xp,
                xp_multiplier=str(d.xp_multiplier),
                level_required=d.required_level,
                title_reward=d.title_reward,
                unlocked=item.unlocked,
                reason=item.reason,
                cooldown_ends_at=item.cooldown_ends_at,
            )
        )
    return DungeonListResponse(dungeons=dungeons)


@router.post(
    "/dungeons/{definition_id}/enter",
    response_model=RunResponse,
    responses={403: {"model": ErrorResponse}},
)
def enter_dungeon(
    player_id: str,
    definition_id: str,
    service: RunService = Depends(get_run_service),
) -> RunResponse:
    """
    던전/보스 입장

    진행 중인 run이 있으면 409, 잠금 조건 미충족이면 403.
    """
    run = service.enter(player_id, definition_id)
    return RunResponse(run=build_run_info(run))


@router.get("/runs", response_model=RunHistoryResponse)
def run_history(
    player_id: str,
    service: RunService = Depends(get_run_service),
) -> RunHistoryResponse:
    return RunHistoryResponse(runs=[build_run_info(r) for r in service.run_history(player_id)])


@router.post(
    "/runs/{run_id}/objectives/{index}",
    response_model=ObjectiveResponse,
    responses={400: {"model": ErrorResponse}},
)
def submit_objective(
    player_id: str,
    run_id: str,
    index: int,
    request: ProgressRequest,
    service: RunService = Depends(get_run_service),
) -> ObjectiveResponse:
    """목표 진행도 제출. 기한이 지났으면 run이 만료되고 409."""
    result = service.submit_objective(player_id, run_id, index, request.value)
    return ObjectiveResponse(
        run=build_run_info(result.run),
        completed=result.outcome.completed,
        award=build_award_info(result.award),
        title_awarded=result.title_awarded,
    )


@router.post("/runs/{run_id}/abandon", response_model=RunResponse)
def abandon_run(
    player_id: str,
    run_id: str,
    service: RunService = Depends(get_run_service),
) -> RunResponse:
    run = service.abandon(player_id, run_id)
    return RunResponse(run=build_run_info(run))

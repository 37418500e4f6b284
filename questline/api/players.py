"""Player profile / streak recovery / XP ledger / leaderboard endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from questline.api.deps import build_award_info, build_xp_event_info, get_player_service
from questline.api.schemas import (
    AdjustXPRequest,
    AwardInfo,
    CreatePlayerRequest,
    ErrorResponse,
    HardModeRequest,
    LeaderboardEntryInfo,
    LeaderboardResponse,
    PlayerResponse,
    StatsInfo,
    StreakInfo,
    XPTimelineResponse,
)
from questline.services.player_service import PlayerProfile, PlayerService

router = APIRouter(
    tags=["players"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)


def _build_player_response(profile: PlayerProfile) -> PlayerResponse:
    """PlayerProfile을 PlayerResponse로 변환"""
    p = profile.player
    return PlayerResponse(
        player_id=p.player_id,
        timezone=p.timezone,
        level=p.level,
        current_xp=p.current_xp,
        total_xp=p.total_xp,
        xp_to_next=profile.xp_to_next,
        stats=StatsInfo(
            strength=p.strength,
            agility=p.agility,
            vitality=p.vitality,
            discipline=p.discipline,
        ),
        streak=StreakInfo(
            current=p.current_streak,
            longest=p.longest_streak,
            perfect=p.perfect_streak,
            tier=profile.streak_tier,
            grace_tokens=p.grace_tokens,
            recovery_available=profile.recovery_available,
            recovery_expires_at=profile.recovery_expires_at,
        ),
        hard_mode=p.hard_mode,
        debuff_active=profile.debuff_active,
        titles=list(p.titles),
    )


@router.post(
    "/players",
    response_model=PlayerResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
)
def create_player(
    request: CreatePlayerRequest,
    service: PlayerService = Depends(get_player_service),
) -> PlayerResponse:
    """플레이어 생성 (타임존은 IANA 이름)"""
    profile = service.create_player(request.player_id, request.timezone)
    return _build_player_response(profile)


@router.get("/players/{player_id}", response_model=PlayerResponse)
def get_player(
    player_id: str,
    service: PlayerService = Depends(get_player_service),
) -> PlayerResponse:
    return _build_player_response(service.get_player(player_id))


@router.post("/players/{player_id}/streak/recover", response_model=PlayerResponse)
def recover_streak(
    player_id: str,
    service: PlayerService = Depends(get_player_service),
) -> PlayerResponse:
    """
    연속 기록 복구

    유예 토큰 1개를 써서 끊긴 연속 기록을 되살립니다. 창이 닫혔으면 409.
    """
    return _build_player_response(service.recover_streak(player_id))


@router.post(
    "/players/{player_id}/hard-mode",
    response_model=PlayerResponse,
    responses={403: {"model": ErrorResponse}},
)
def set_hard_mode(
    player_id: str,
    request: HardModeRequest,
    service: PlayerService = Depends(get_player_service),
) -> PlayerResponse:
    return _build_player_response(service.set_hard_mode(player_id, request.enabled))


@router.get("/players/{player_id}/xp-events", response_model=XPTimelineResponse)
def xp_timeline(
    player_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    service: PlayerService = Depends(get_player_service),
) -> XPTimelineResponse:
    """XP 원장 (생성 순서) + 해시 체인 검증 결과"""
    events = service.xp_timeline(player_id, limit)
    return XPTimelineResponse(
        player_id=player_id,
        chain_valid=service.verify_ledger(player_id),
        events=[build_xp_event_info(e) for e in events],
    )


@router.post(
    "/players/{player_id}/xp-adjustments",
    response_model=AwardInfo,
    responses={400: {"model": ErrorResponse}},
)
def adjust_xp(
    player_id: str,
    request: AdjustXPRequest,
    service: PlayerService = Depends(get_player_service),
) -> AwardInfo:
    """수동 XP 조정 (배율 없음)"""
    return build_award_info(service.adjust_xp(player_id, request.amount, request.reason))


@router.get("/leaderboard", response_model=LeaderboardResponse)
def leaderboard(
    limit: int = Query(10, ge=1, le=100),
    service: PlayerService = Depends(get_player_service),
) -> LeaderboardResponse:
    entries = service.leaderboard(limit)
    return LeaderboardResponse(
        entries=[
            LeaderboardEntryInfo(
                rank=e.rank,
                player_id=e.player_id,
                level=e.level,
                total_xp=e.total_xp,
                current_streak=e.current_streak,
            )
            for e in entries
        ]
    )

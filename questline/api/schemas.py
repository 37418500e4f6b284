"""API request/response schemas."""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# === Request Schemas ===


class CreatePlayerRequest(BaseModel):
    """플레이어 생성 요청"""

    player_id: str = Field(..., min_length=1, max_length=50, description="플레이어 ID")
    timezone: Optional[str] = Field(None, description="IANA 타임존 (기본값: 설정)")


class ProgressRequest(BaseModel):
    """진행도 제출. 값 검증은 엔진이 한다 (숫자 / bool)."""

    value: Any = Field(..., description="측정값 또는 true/false")


class ActivateRequest(BaseModel):
    template_id: str = Field(..., min_length=1)
    quest_date: Optional[date] = None


class HardModeRequest(BaseModel):
    enabled: bool


class AdjustXPRequest(BaseModel):
    amount: int = Field(..., description="양수/음수 XP")
    reason: str = Field(..., min_length=1, max_length=200)


# === Response Schemas ===


class QuestInfo(BaseModel):
    """퀘스트 인스턴스 + 템플릿 요약"""

    quest_id: str
    template_id: str
    name: str
    category: str
    cadence: str
    is_core: bool
    quest_date: date
    activation: int
    status: str
    current_value: float
    target_value: float
    completion_percent: float
    partial: bool
    reconciled: bool
    xp_awarded: Optional[int] = None
    completed_at: Optional[datetime] = None


class QuestListResponse(BaseModel):
    success: bool = True
    player_id: str
    record_date: date
    quests: list[QuestInfo] = []


class ModifierInfo(BaseModel):
    name: str
    multiplier: str


class XPEventInfo(BaseModel):
    event_id: str
    source: str
    source_id: Optional[str] = None
    base_amount: str
    modifiers: list[ModifierInfo] = []
    final_amount: int
    level_before: int
    level_after: int
    total_before: int
    total_after: int
    stat: Optional[str] = None
    stat_delta: int = 0
    reverses_event_id: Optional[str] = None
    description: str = ""
    created_at: datetime


class AwardInfo(BaseModel):
    event: XPEventInfo
    crossed_levels: list[int] = []


class ProgressResponse(BaseModel):
    success: bool = True
    quest: QuestInfo
    partial_eligible: bool = False
    award: Optional[AwardInfo] = None


class QuestResponse(BaseModel):
    success: bool = True
    quest: QuestInfo


class DayStatusResponse(BaseModel):
    success: bool = True
    player_id: str
    record_date: date
    phase: str
    reconciliation_required: bool
    minutes_to_midnight: int
    pending: list[QuestInfo] = []
    closed: bool
    xp_earned: int


class DaySummaryResponse(BaseModel):
    success: bool = True
    player_id: str
    record_date: date
    completed: int
    partial: int
    failed: int
    expired: int
    qualified: bool
    perfect: bool
    streak_before: int
    streak_after: int
    xp_earned: int
    level_ups: list[int] = []
    tokens_earned: int = 0
    recovery_available: bool = False
    debuff_applied: bool = False
    auto_closed: bool = False


class StatsInfo(BaseModel):
    strength: int
    agility: int
    vitality: int
    discipline: int


class StreakInfo(BaseModel):
    current: int
    longest: int
    perfect: int
    tier: str
    grace_tokens: int
    recovery_available: bool
    recovery_expires_at: Optional[datetime] = None


class PlayerResponse(BaseModel):
    """플레이어 프로필"""

    success: bool = True
    player_id: str
    timezone: str
    level: int
    current_xp: int
    total_xp: int
    xp_to_next: Optional[int] = None
    stats: StatsInfo
    streak: StreakInfo
    hard_mode: bool
    debuff_active: bool
    titles: list[str] = []


class XPTimelineResponse(BaseModel):
    success: bool = True
    player_id: str
    chain_valid: bool
    events: list[XPEventInfo] = []


class ObjectiveInfo(BaseModel):
    label: str
    current_value: float
    percent: float


class RunInfo(BaseModel):
    run_id: str
    definition_id: str
    kind: str
    rank: str
    status: str
    started_at: datetime
    expires_at: datetime
    ended_at: Optional[datetime] = None
    overall_progress: float
    objectives: list[ObjectiveInfo] = []
    xp_awarded: Optional[int] = None
    debuff_at_entry: bool = False


class RunResponse(BaseModel):
    success: bool = True
    run: RunInfo


class ObjectiveResponse(BaseModel):
    success: bool = True
    run: RunInfo
    completed: bool
    award: Optional[AwardInfo] = None
    title_awarded: Optional[str] = None


class RunHistoryResponse(BaseModel):
    success: bool = True
    runs: list[RunInfo] = []


class DungeonInfo(BaseModel):
    definition_id: str
    name: str
    description: str = ""
    kind: str
    rank: str
    duration_minutes: int
    base_xp: int
    xp_multiplier: str
    level_required: int
    title_reward: Optional[str] = None
    unlocked: bool
    reason: Optional[str] = None
    cooldown_ends_at: Optional[datetime] = None


class DungeonListResponse(BaseModel):
    success: bool = True
    dungeons: list[DungeonInfo] = []


class LeaderboardEntryInfo(BaseModel):
    rank: int
    player_id: str
    level: int
    total_xp: int
    current_streak: int


class LeaderboardResponse(BaseModel):
    success: bool = True
    entries: list[LeaderboardEntryInfo] = []


class ErrorResponse(BaseModel):
    """에러 응답"""

    success: bool = False
    error: str
    detail: Optional[str] = None
    details: dict[str, Any] = {}

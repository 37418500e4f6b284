"""진행 원장 모델 — Player, XPEvent"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from questline.core.quest.enums import StatType


class XPSource(str, Enum):
    QUEST_COMPLETION = "quest_completion"
    STREAK_BONUS = "streak_bonus"
    RUN_REWARD = "run_reward"
    MANUAL_ADJUSTMENT = "manual_adjustment"


@dataclass
class Player:
    """플레이어 진행 상태"""

    player_id: str
    timezone: str = "UTC"
    level: int = 1
    current_xp: int = 0  # 현재 레벨 안에서의 XP
    total_xp: int = 0

    strength: int = 0
    agility: int = 0
    vitality: int = 0
    discipline: int = 0

    current_streak: int = 0
    longest_streak: int = 0
    perfect_streak: int = 0
    grace_tokens: int = 0
    last_streak_date: Optional[date] = None
    broken_streak: int = 0
    recovery_expires_at: Optional[datetime] = None
    debuff_until: Optional[datetime] = None

    hard_mode: bool = False
    titles: list[str] = field(default_factory=list)
    days_closed: int = 0
    created_at: Optional[datetime] = None

    def get_stat(self, stat: StatType) -> int:
        return getattr(self, stat.value)

    def add_stat(self, stat: StatType, delta: int) -> None:
        setattr(self, stat.value, max(0, self.get_stat(stat) + delta))

    def award_title(self, title: str) -> bool:
        """칭호 추가. 이미 있으면 False."""
        if title in self.titles:
            return False
        self.titles.append(title)
        return True


@dataclass(frozen=True)
class AppliedModifier:
    name: str
    multiplier: Decimal


@dataclass(frozen=True)
class XPEvent:
    """XP 변동 1건. 추가만 가능 (수정/삭제 없음)."""

    event_id: str
    player_id: str
    source: XPSource
    source_id: Optional[str]
    base_amount: Decimal
    modifiers: tuple[AppliedModifier, ...]
    final_amount: int
    level_before: int
    level_after: int
    total_before: int
    total_after: int
    created_at: datetime
    previous_hash: str
    hash: str
    stat: Optional[StatType] = None
    stat_delta: int = 0
    reverses_event_id: Optional[str] = None
    description: str = ""

    @property
    def is_reversal(self) -> bool:
        return self.reverses_event_id is not None


@dataclass(frozen=True)
class AwardResult:
    event: XPEvent
    crossed_levels: list[int] = field(default_factory=list)

    @property
    def leveled_up(self) -> bool:
        return bool(self.crossed_levels)

    @property
    def leveled_down(self) -> bool:
        return self.event.level_after < self.event.level_before

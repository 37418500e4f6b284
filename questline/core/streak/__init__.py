"""연속 기록 / 유예 토큰 Core 패키지"""

from questline.core.streak.streak_logic import (
    StreakOutcome,
    can_recover,
    completed_fraction,
    day_qualifies,
    is_debuffed,
    is_perfect_day,
    missed_core_count,
    recompute_streak,
    recover_streak,
    recovery_deadline,
)

__all__ = [
    "StreakOutcome",
    "day_qualifies",
    "completed_fraction",
    "is_perfect_day",
    "missed_core_count",
    "is_debuffed",
    "recompute_streak",
    "can_recover",
    "recovery_deadline",
    "recover_streak",
]

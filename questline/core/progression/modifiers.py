"""XP 배율(modifier) 누적

적용 순서는 MODIFIER_ORDER로 고정. Decimal로 순서대로 곱하고
마지막에 한 번만 내림한다.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_FLOOR, Decimal
from typing import Optional, Sequence

from questline.core.clock import is_weekend
from questline.core.engine_config import EngineConfig
from questline.core.progression.models import AppliedModifier

MODIFIER_ORDER: tuple[str, ...] = (
    "streak_bonus",
    "weekend_bonus",
    "seasonal_bonus",
    "hard_mode",
    "run_multiplier",
    "debuff_penalty",
)

# (최소 연속 일수, 배율), 높은 구간부터
STREAK_BONUS_TIERS: tuple[tuple[int, Decimal], ...] = (
    (30, Decimal("1.25")),
    (14, Decimal("1.15")),
    (7, Decimal("1.10")),
)

ONE = Decimal("1")


def streak_multiplier(streak_days: int) -> Decimal:
    for min_days, multiplier in STREAK_BONUS_TIERS:
        if streak_days >= min_days:
            return multiplier
    return ONE


def streak_tier(streak_days: int) -> str:
    names = ("gold", "silver", "bronze")
    for name, (min_days, _) in zip(names, STREAK_BONUS_TIERS):
        if streak_days >= min_days:
            return name
    return "none"


@dataclass(frozen=True)
class ModifierContext:
    """배율 판정에 필요한 스냅샷"""

    streak_days: int = 0
    quest_date: Optional[date] = None
    hard_mode: bool = False
    season_multiplier: Optional[Decimal] = None
    run_multiplier: Optional[Decimal] = None
    debuff_active: bool = False


def collect_modifiers(
    ctx: ModifierContext, config: EngineConfig
) -> list[AppliedModifier]:
    """활성 배율만 MODIFIER_ORDER 순으로 모은다 (배율 1은 생략)"""
    candidates: dict[str, Decimal] = {}

    if config.streak_bonus_enabled:
        candidates["streak_bonus"] = streak_multiplier(ctx.streak_days)
    if config.weekend_bonus_enabled and ctx.quest_date and is_weekend(ctx.quest_date):
        candidates["weekend_bonus"] = config.weekend_multiplier
    if config.seasonal_bonus_enabled and ctx.season_multiplier is not None:
        candidates["seasonal_bonus"] = ctx.season_multiplier
    if config.hard_mode_enabled and ctx.hard_mode:
        candidates["hard_mode"] = config.hard_mode_multiplier
    if ctx.run_multiplier is not None:
        candidates["run_multiplier"] = ctx.run_multiplier
    if config.debuff_enabled and ctx.debuff_active:
        candidates["debuff_penalty"] = config.debuff_multiplier

    return [
        AppliedModifier(name=name, multiplier=candidates[name])
        for name in MODIFIER_ORDER
        if name in candidates and candidates[name] != ONE
    ]


def apply_modifiers(base_amount: Decimal, modifiers: Sequence[AppliedModifier]) -> int:
    amount = Decimal(base_amount)
    for modifier in modifiers:
        amount *= modifier.multiplier
    return int(amount.to_integral_value(rounding=ROUND_FLOOR))

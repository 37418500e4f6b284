"""Streak & Grace Manager

하루 마감 시 연속 기록 재계산, 유예 토큰 적립/소모, 복구 창, 디버프.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Sequence

from questline.core.clock import end_of_day, ensure_utc
from questline.core.engine_config import EngineConfig
from questline.core.errors import InvariantViolation, RecoveryUnavailableError
from questline.core.progression.models import Player
from questline.core.quest.enums import QuestStatus
from questline.core.quest.models import QuestInstance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakOutcome:
    """recompute_streak() 결과"""

    record_date: date
    qualified: bool
    perfect: bool
    streak_before: int
    streak_after: int
    broken: bool = False
    gap_days: int = 0
    recovery_opened: bool = False
    tokens_earned: int = 0
    debuff_applied: bool = False


def completed_fraction(core_instances: Sequence[QuestInstance]) -> float:
    if not core_instances:
        return 0.0
    done = sum(1 for i in core_instances if i.status is QuestStatus.COMPLETED)
    return done / len(core_instances)


def day_qualifies(core_instances: Sequence[QuestInstance], threshold: float) -> bool:
    """COMPLETED(부분 포함) 비율 >= threshold. 코어 퀘스트가 없으면 미달."""
    if not core_instances:
        return False
    return completed_fraction(core_instances) >= threshold


def is_perfect_day(core_instances: Sequence[QuestInstance]) -> bool:
    return bool(core_instances) and all(i.is_full_completion for i in core_instances)


def missed_core_count(core_instances: Sequence[QuestInstance]) -> int:
    return sum(1 for i in core_instances if i.status is not QuestStatus.COMPLETED)


def is_debuffed(player: Player, now: datetime) -> bool:
    return player.debuff_until is not None and ensure_utc(now) < ensure_utc(
        player.debuff_until
    )


def _clear_recovery(player: Player) -> None:
    player.broken_streak = 0
    player.recovery_expires_at = None


def recompute_streak(
    player: Player,
    record_date: date,
    core_instances: Sequence[QuestInstance],
    closed_at: datetime,
    config: EngineConfig,
) -> StreakOutcome:
    """마감된 하루를 연속 기록에 반영.

    Raises:
        InvariantViolation: 이미 반영된 날짜 (같거나 이전 날짜)
    """
    last = player.last_streak_date
    if last is not None and record_date <= last:
        raise InvariantViolation(
            f"Streak already includes {record_date} (last={last})",
            {"player_id": player.player_id, "date": record_date.isoformat()},
        )

    closed_at = ensure_utc(closed_at)
    streak_before = player.current_streak
    broken = False
    gap_days = 0

    # 만료된 복구 창 정리
    if player.recovery_expires_at is not None and closed_at >= ensure_utc(
        player.recovery_expires_at
    ):
        _clear_recovery(player)

    # 기록이 없는 날이 끼어 있으면 복구 없이 끊긴다
    if last is not None and (record_date - last).days > 1:
        gap_days = (record_date - last).days - 1
        if player.current_streak > 0:
            broken = True
            logger.info(
                "Streak gap for %s: %d missing days, streak %d lost",
                player.player_id,
                gap_days,
                player.current_streak,
            )
        player.current_streak = 0
        player.perfect_streak = 0
        _clear_recovery(player)

    qualified = day_qualifies(core_instances, config.qualifying_threshold)
    perfect = qualified and is_perfect_day(core_instances)
    recovery_opened = False
    tokens_earned = 0

    if qualified:
        player.current_streak += 1
        player.longest_streak = max(player.longest_streak, player.current_streak)
        player.perfect_streak = player.perfect_streak + 1 if perfect else 0
        if (
            player.current_streak % config.grace_token_earn_days == 0
            and player.grace_tokens < config.max_grace_tokens
        ):
            player.grace_tokens += 1
            tokens_earned = 1
    else:
        player.perfect_streak = 0
        if player.current_streak > 0:
            broken = True
            player.broken_streak = player.current_streak
            if player.grace_tokens > 0:
                window_end = record_date + timedelta(days=config.recovery_window_days)
                player.recovery_expires_at = end_of_day(window_end, player.timezone)
                recovery_opened = True
            else:
                _clear_recovery(player)
            logger.info(
                "Streak broken for %s on %s (was %d, recovery=%s)",
                player.player_id,
                record_date,
                player.current_streak,
                recovery_opened,
            )
        elif player.broken_streak > 0:
            # 복구 전에 다시 미달하면 이전 끊김은 복구할 수 없다
            logger.info(
                "Pending recovery for %s cancelled by miss on %s",
                player.player_id,
                record_date,
            )
            _clear_recovery(player)
        player.current_streak = 0

    debuff_applied = False
    if missed_core_count(core_instances) >= config.debuff_min_missed_core:
        player.debuff_until = closed_at + timedelta(hours=config.debuff_hours)
        debuff_applied = True

    player.last_streak_date = record_date
    player.days_closed += 1

    return StreakOutcome(
        record_date=record_date,
        qualified=qualified,
        perfect=perfect,
        streak_before=streak_before,
        streak_after=player.current_streak,
        broken=broken,
        gap_days=gap_days,
        recovery_opened=recovery_opened,
        tokens_earned=tokens_earned,
        debuff_applied=debuff_applied,
    )


def can_recover(player: Player, now: datetime) -> bool:
    return (
        player.broken_streak > 0
        and player.grace_tokens > 0
        and player.recovery_expires_at is not None
        and ensure_utc(now) < ensure_utc(player.recovery_expires_at)
    )


def recovery_deadline(player: Player) -> Optional[datetime]:
    if player.broken_streak <= 0 or player.recovery_expires_at is None:
        return None
    return ensure_utc(player.recovery_expires_at)


def recover_streak(player: Player, now: datetime) -> int:
    """토큰 1개로 끊긴 연속 기록 복원 (이후 쌓인 날 포함). 1회성.

    Returns:
        복원된 현재 연속 일수

    Raises:
        RecoveryUnavailableError: 대기 중인 끊김 없음 / 창 만료 / 토큰 없음
    """
    if not can_recover(player, now):
        reason = "no pending break"
        if player.broken_streak > 0 and player.grace_tokens <= 0:
            reason = "no grace tokens"
        elif player.broken_streak > 0:
            reason = "recovery window closed"
        raise RecoveryUnavailableError(
            f"Streak recovery unavailable: {reason}",
            {"player_id": player.player_id, "reason": reason},
        )

    player.grace_tokens -= 1
    player.current_streak = player.broken_streak + player.current_streak
    player.longest_streak = max(player.longest_streak, player.current_streak)
    _clear_recovery(player)
    logger.info(
        "Streak recovered for %s: %d (tokens left %d)",
        player.player_id,
        player.current_streak,
        player.grace_tokens,
    )
    return player.current_streak

"""Progression Ledger — XP 지급, 취소, 수동 조정, 해시 체인

규칙:
- XPEvent는 추가만 한다. 취소도 새 이벤트로 기록
- 총 XP는 0 아래로 내려가지 않는다
- 플레이어별 이벤트는 SHA-256 해시 체인으로 연결 (previous_hash → hash)
"""

import hashlib
import json
import logging
import math
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from questline.core.clock import ensure_utc
from questline.core.engine_config import EngineConfig
from questline.core.errors import AlreadyReversedError, InvariantViolation, ValidationError
from questline.core.progression.level_curve import LevelCurve
from questline.core.progression.models import (
    AppliedModifier,
    AwardResult,
    Player,
    XPEvent,
    XPSource,
)
from questline.core.progression.modifiers import apply_modifiers
from questline.core.quest.enums import QuestStatus, StatType
from questline.core.quest.models import QuestInstance, QuestTemplate

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64
CENT = Decimal("0.01")


def new_event_id() -> str:
    return f"xp_{uuid.uuid4().hex[:12]}"


def quantize_amount(value: Decimal | float | int) -> Decimal:
    return Decimal(str(value)).quantize(CENT)


def base_amount_for(
    template: QuestTemplate, percent: float, config: EngineConfig
) -> Decimal:
    """base_xp + stat_bonus * scale, 부분 달성은 퍼센트에 비례"""
    base = Decimal(template.base_xp) + Decimal(template.stat_bonus) * Decimal(
        str(config.stat_bonus_xp_scale)
    )
    ratio = min(Decimal(str(percent)), Decimal(100)) / Decimal(100)
    return quantize_amount(base * ratio)


def stat_delta_for(template: QuestTemplate, percent: float) -> int:
    return math.floor(template.stat_bonus * min(percent, 100.0) / 100)


# === 해시 체인 ===


def _hash_payload(event_fields: dict) -> str:
    return json.dumps(event_fields, sort_keys=True, separators=(",", ":"))


def compute_event_hash(
    *,
    event_id: str,
    player_id: str,
    source: XPSource,
    source_id: Optional[str],
    base_amount: Decimal,
    modifiers: Sequence[AppliedModifier],
    final_amount: int,
    total_before: int,
    total_after: int,
    level_before: int,
    level_after: int,
    stat: Optional[StatType],
    stat_delta: int,
    reverses_event_id: Optional[str],
    created_at: datetime,
    previous_hash: str,
) -> str:
    payload = _hash_payload(
        {
            "event_id": event_id,
            "player_id": player_id,
            "source": source.value,
            "source_id": source_id,
            "base_amount": str(quantize_amount(base_amount)),
            "modifiers": [[m.name, str(m.multiplier)] for m in modifiers],
            "final_amount": final_amount,
            "total_before": total_before,
            "total_after": total_after,
            "level_before": level_before,
            "level_after": level_after,
            "stat": stat.value if stat else None,
            "stat_delta": stat_delta,
            "reverses_event_id": reverses_event_id,
            "created_at": ensure_utc(created_at).isoformat(),
            "previous_hash": previous_hash,
        }
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def event_hash(event: XPEvent) -> str:
    return compute_event_hash(
        event_id=event.event_id,
        player_id=event.player_id,
        source=event.source,
        source_id=event.source_id,
        base_amount=event.base_amount,
        modifiers=event.modifiers,
        final_amount=event.final_amount,
        total_before=event.total_before,
        total_after=event.total_after,
        level_before=event.level_before,
        level_after=event.level_after,
        stat=event.stat,
        stat_delta=event.stat_delta,
        reverses_event_id=event.reverses_event_id,
        created_at=event.created_at,
        previous_hash=event.previous_hash,
    )


def verify_chain(events: Iterable[XPEvent]) -> bool:
    """생성 순서대로 정렬된 이벤트의 해시 체인 검증"""
    expected_previous = GENESIS_HASH
    for event in events:
        if event.previous_hash != expected_previous:
            logger.error("XP chain link broken at %s", event.event_id)
            return False
        if event_hash(event) != event.hash:
            logger.error("XP event hash mismatch at %s", event.event_id)
            return False
        expected_previous = event.hash
    return True


# === 원장 기록 ===


def _record(
    player: Player,
    *,
    source: XPSource,
    source_id: Optional[str],
    base_amount: Decimal,
    modifiers: Sequence[AppliedModifier],
    final_amount: int,
    curve: LevelCurve,
    previous_hash: Optional[str],
    at: datetime,
    stat: Optional[StatType] = None,
    stat_delta: int = 0,
    reverses_event_id: Optional[str] = None,
    description: str = "",
) -> AwardResult:
    """이벤트 1건 기록 + 플레이어 총 XP/레벨/스탯 갱신"""
    total_before = player.total_xp
    level_before = player.level
    total_after = max(0, total_before + final_amount)
    level_after = curve.level_for(total_after)

    event_id = new_event_id()
    prev = previous_hash or GENESIS_HASH
    created_at = ensure_utc(at)
    mods = tuple(modifiers)
    digest = compute_event_hash(
        event_id=event_id,
        player_id=player.player_id,
        source=source,
        source_id=source_id,
        base_amount=base_amount,
        modifiers=mods,
        final_amount=final_amount,
        total_before=total_before,
        total_after=total_after,
        level_before=level_before,
        level_after=level_after,
        stat=stat,
        stat_delta=stat_delta,
        reverses_event_id=reverses_event_id,
        created_at=created_at,
        previous_hash=prev,
    )
    event = XPEvent(
        event_id=event_id,
        player_id=player.player_id,
        source=source,
        source_id=source_id,
        base_amount=quantize_amount(base_amount),
        modifiers=mods,
        final_amount=final_amount,
        level_before=level_before,
        level_after=level_after,
        total_before=total_before,
        total_after=total_after,
        created_at=created_at,
        previous_hash=prev,
        hash=digest,
        stat=stat,
        stat_delta=stat_delta,
        reverses_event_id=reverses_event_id,
        description=description,
    )

    player.total_xp = total_after
    player.level = level_after
    player.current_xp = curve.xp_into_level(total_after)
    if stat is not None and stat_delta:
        player.add_stat(stat, stat_delta)

    crossed = curve.crossed_levels(total_before, total_after)
    if crossed:
        logger.info(
            "Player %s leveled up %d -> %d", player.player_id, level_before, level_after
        )
    elif level_after < level_before:
        logger.info(
            "Player %s level down %d -> %d", player.player_id, level_before, level_after
        )
    return AwardResult(event=event, crossed_levels=crossed)


def award_xp(
    player: Player,
    source: XPSource,
    source_id: Optional[str],
    base_amount: Decimal,
    modifiers: Sequence[AppliedModifier],
    curve: LevelCurve,
    previous_hash: Optional[str],
    at: datetime,
    stat: Optional[StatType] = None,
    stat_delta: int = 0,
    description: str = "",
) -> AwardResult:
    if base_amount < 0:
        raise ValidationError("Award base amount must not be negative")
    final_amount = apply_modifiers(base_amount, modifiers)
    return _record(
        player,
        source=source,
        source_id=source_id,
        base_amount=base_amount,
        modifiers=modifiers,
        final_amount=final_amount,
        curve=curve,
        previous_hash=previous_hash,
        at=at,
        stat=stat,
        stat_delta=stat_delta,
        description=description,
    )


def award_for_instance(
    player: Player,
    instance: QuestInstance,
    template: QuestTemplate,
    modifiers: Sequence[AppliedModifier],
    config: EngineConfig,
    curve: LevelCurve,
    previous_hash: Optional[str],
    at: datetime,
) -> AwardResult:
    """COMPLETED 인스턴스 1건에 대한 지급. 결과를 인스턴스에 기록한다.

    Raises:
        InvariantViolation: 미완료 또는 이미 지급된 인스턴스
    """
    if instance.status is not QuestStatus.COMPLETED:
        raise InvariantViolation(
            f"Cannot award unresolved quest {instance.instance_id}",
            {"quest_id": instance.instance_id, "status": instance.status.value},
        )
    if instance.xp_event_id is not None:
        raise InvariantViolation(
            f"Quest {instance.instance_id} was already awarded",
            {"quest_id": instance.instance_id, "event_id": instance.xp_event_id},
        )

    percent = instance.completion_percent
    result = award_xp(
        player,
        XPSource.QUEST_COMPLETION,
        instance.instance_id,
        base_amount_for(template, percent, config),
        modifiers,
        curve,
        previous_hash,
        at,
        stat=template.stat,
        stat_delta=stat_delta_for(template, percent),
        description=template.name,
    )
    instance.xp_awarded = result.event.final_amount
    instance.xp_event_id = result.event.event_id
    return result


def reverse_xp(
    player: Player,
    event: XPEvent,
    reversed_ids: Iterable[str],
    curve: LevelCurve,
    previous_hash: Optional[str],
    at: datetime,
) -> AwardResult:
    """원 이벤트의 반대 부호 이벤트 기록. 원본은 수정하지 않는다.

    Raises:
        AlreadyReversedError: 이미 취소된 이벤트
        ValidationError: 취소 이벤트를 다시 취소하려는 경우
    """
    if event.player_id != player.player_id:
        raise InvariantViolation(
            "XP event belongs to another player",
            {"event_id": event.event_id, "player_id": player.player_id},
        )
    if event.is_reversal:
        raise ValidationError(
            "A reversal event cannot be reversed", {"event_id": event.event_id}
        )
    if event.event_id in set(reversed_ids):
        raise AlreadyReversedError(
            f"XP event {event.event_id} was already reversed",
            {"event_id": event.event_id},
        )

    return _record(
        player,
        source=event.source,
        source_id=event.source_id,
        base_amount=-event.base_amount,
        modifiers=tuple(reversed(event.modifiers)),
        final_amount=-event.final_amount,
        curve=curve,
        previous_hash=previous_hash,
        at=at,
        stat=event.stat,
        stat_delta=-event.stat_delta,
        reverses_event_id=event.event_id,
        description=f"reversal of {event.event_id}",
    )


def adjust_xp(
    player: Player,
    amount: int,
    reason: str,
    curve: LevelCurve,
    previous_hash: Optional[str],
    at: datetime,
) -> AwardResult:
    """수동 조정. 배율 없음, 음수 가능 (총 XP는 0에서 멈춘다)."""
    if amount == 0:
        raise ValidationError("Adjustment amount must not be zero")
    if not reason.strip():
        raise ValidationError("Adjustment reason is required")
    return _record(
        player,
        source=XPSource.MANUAL_ADJUSTMENT,
        source_id=None,
        base_amount=Decimal(amount),
        modifiers=(),
        final_amount=amount,
        curve=curve,
        previous_hash=previous_hash,
        at=at,
        description=reason,
    )

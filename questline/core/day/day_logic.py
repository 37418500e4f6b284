"""Day State Machine & Reconciliation

morning → midday → afternoon → evening → night → closed
phase는 접근 시점의 로컬 시각으로 계산하며 되돌아가지 않는다.
closed는 close_day()로만 진입한다.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

from questline.core.clock import DayPhase, later_phase, phase_at, phase_index
from questline.core.errors import (
    AlreadyReconciledError,
    DayAlreadyClosedError,
    DayNotClosableError,
    QuestNotActiveError,
    ReconciliationClosedError,
)
from questline.core.quest.enums import QuestStatus
from questline.core.quest.models import QuestInstance

logger = logging.getLogger(__name__)


@dataclass
class DayRecord:
    """(player_id, record_date)당 1개"""

    player_id: str
    record_date: date
    phase: DayPhase = DayPhase.MORNING
    reconciliation_items: list[str] = field(default_factory=list)
    closed: bool = False
    closed_at: Optional[datetime] = None
    qualified: Optional[bool] = None
    perfect: Optional[bool] = None
    auto_closed: bool = False
    xp_earned: int = 0


@dataclass(frozen=True)
class DaySummary:
    """하루 마감 결과 요약"""

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
    level_ups: list[int] = field(default_factory=list)
    tokens_earned: int = 0
    recovery_available: bool = False
    debuff_applied: bool = False
    auto_closed: bool = False


def refresh_phase(record: DayRecord, now: datetime, tz_name: str | None) -> DayPhase:
    """현재 시각 기준으로 phase 전진. 뒤로 가지 않는다."""
    if record.closed:
        record.phase = DayPhase.CLOSED
        return record.phase
    record.phase = later_phase(record.phase, phase_at(record.record_date, now, tz_name))
    return record.phase


def pending_items(instances: Iterable[QuestInstance]) -> list[QuestInstance]:
    return [i for i in instances if i.status is QuestStatus.ACTIVE]


def reconciliation_open(record: DayRecord) -> bool:
    return not record.closed and phase_index(record.phase) >= phase_index(
        DayPhase.EVENING
    )


def reconciliation_required(
    record: DayRecord, instances: Iterable[QuestInstance]
) -> bool:
    return reconciliation_open(record) and bool(pending_items(instances))


def sync_reconciliation_items(
    record: DayRecord, instances: Iterable[QuestInstance]
) -> list[str]:
    """evening 이후 미해결 인스턴스 ID 목록 갱신"""
    if reconciliation_open(record):
        record.reconciliation_items = [i.instance_id for i in pending_items(instances)]
    else:
        record.reconciliation_items = []
    return record.reconciliation_items


def ensure_reconcilable(record: DayRecord, instance: QuestInstance) -> None:
    """Raises:
    DayAlreadyClosedError / ReconciliationClosedError /
    AlreadyReconciledError / QuestNotActiveError
    """
    if record.closed:
        raise DayAlreadyClosedError(record.player_id, record.record_date.isoformat())
    if not reconciliation_open(record):
        raise ReconciliationClosedError(
            f"Reconciliation opens in the evening (phase={record.phase.value})",
            {"phase": record.phase.value},
        )
    if instance.reconciled:
        raise AlreadyReconciledError(
            f"Quest {instance.instance_id} was already reconciled",
            {"quest_id": instance.instance_id},
        )
    if instance.status is not QuestStatus.ACTIVE:
        raise QuestNotActiveError(
            f"Quest {instance.instance_id} is already {instance.status.value}",
            {"quest_id": instance.instance_id, "status": instance.status.value},
        )


def ensure_closable(record: DayRecord) -> None:
    if record.closed:
        raise DayAlreadyClosedError(record.player_id, record.record_date.isoformat())
    if record.phase is not DayPhase.NIGHT:
        raise DayNotClosableError(
            f"Day can only be closed at night (phase={record.phase.value})",
            {"phase": record.phase.value, "date": record.record_date.isoformat()},
        )


def mark_closed(
    record: DayRecord,
    at: datetime,
    qualified: bool,
    perfect: bool,
    xp_earned: int,
    auto: bool = False,
) -> None:
    record.phase = DayPhase.CLOSED
    record.closed = True
    record.closed_at = at
    record.qualified = qualified
    record.perfect = perfect
    record.xp_earned = xp_earned
    record.auto_closed = auto
    record.reconciliation_items = []
    logger.info(
        "Day closed: %s %s (qualified=%s, auto=%s)",
        record.player_id,
        record.record_date,
        qualified,
        auto,
    )


def count_outcomes(instances: Iterable[QuestInstance]) -> dict[str, int]:
    counts = {"completed": 0, "partial": 0, "failed": 0, "expired": 0}
    for inst in instances:
        if inst.is_partial:
            counts["partial"] += 1
        elif inst.status is QuestStatus.COMPLETED:
            counts["completed"] += 1
        elif inst.status is QuestStatus.FAILED:
            counts["failed"] += 1
        elif inst.status is QuestStatus.EXPIRED:
            counts["expired"] += 1
    return counts

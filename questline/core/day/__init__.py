"""하루 상태 기계 Core 패키지"""

from questline.core.day.day_logic import (
    DayRecord,
    DaySummary,
    count_outcomes,
    ensure_closable,
    ensure_reconcilable,
    mark_closed,
    pending_items,
    reconciliation_open,
    reconciliation_required,
    refresh_phase,
    sync_reconciliation_items,
)

__all__ = [
    "DayRecord",
    "DaySummary",
    "refresh_phase",
    "pending_items",
    "reconciliation_open",
    "reconciliation_required",
    "sync_reconciliation_items",
    "ensure_reconcilable",
    "ensure_closable",
    "mark_closed",
    "count_outcomes",
]

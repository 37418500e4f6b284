"""Timed Run(던전/보스) Core 패키지"""

from questline.core.run.models import (
    RANK_LEVEL_REQUIREMENTS,
    TERMINAL_RUN_STATUSES,
    ObjectiveOutcome,
    ObjectiveSpec,
    RunDefinition,
    RunKind,
    RunObjective,
    RunRank,
    RunStatus,
    TimedRun,
)
from questline.core.run.run_logic import (
    abandon_run,
    check_entry,
    cleared_definitions,
    cooldown_ends_at,
    expire_if_overdue,
    is_overdue,
    start_run,
    submit_objective,
)

__all__ = [
    # models
    "RunKind",
    "RunRank",
    "RunStatus",
    "TERMINAL_RUN_STATUSES",
    "RANK_LEVEL_REQUIREMENTS",
    "ObjectiveSpec",
    "RunDefinition",
    "RunObjective",
    "TimedRun",
    "ObjectiveOutcome",
    # logic
    "is_overdue",
    "expire_if_overdue",
    "cleared_definitions",
    "cooldown_ends_at",
    "check_entry",
    "start_run",
    "submit_objective",
    "abandon_run",
]

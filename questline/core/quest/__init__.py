"""퀘스트 시스템 Core 패키지"""

from questline.core.quest.enums import (
    CUMULATIVE_OPERATORS,
    TERMINAL_STATUSES,
    ComparisonOperator,
    QuestCadence,
    QuestCategory,
    QuestStatus,
    RequirementType,
    StatType,
)
from questline.core.quest.factory_logic import (
    activate_template,
    applicable_templates,
    materialize_daily_instances,
    pick_rotating_template,
)
from questline.core.quest.models import (
    BooleanRequirement,
    NumericRequirement,
    PartialCreditPolicy,
    ProgressOutcome,
    QuestInstance,
    QuestTemplate,
    Requirement,
    TimeBoundRequirement,
    requirement_from_dict,
    requirement_to_dict,
)
from questline.core.quest.progress_logic import (
    apply_progress,
    coerce_submission,
    evaluate_progress,
    is_partial_eligible,
    reset_instance,
    resolve_at_close,
)

__all__ = [
    # enums
    "QuestCategory",
    "QuestCadence",
    "QuestStatus",
    "StatType",
    "RequirementType",
    "ComparisonOperator",
    "CUMULATIVE_OPERATORS",
    "TERMINAL_STATUSES",
    # models
    "NumericRequirement",
    "BooleanRequirement",
    "TimeBoundRequirement",
    "Requirement",
    "PartialCreditPolicy",
    "QuestTemplate",
    "QuestInstance",
    "ProgressOutcome",
    "requirement_from_dict",
    "requirement_to_dict",
    # factory
    "applicable_templates",
    "pick_rotating_template",
    "materialize_daily_instances",
    "activate_template",
    # evaluator
    "coerce_submission",
    "evaluate_progress",
    "apply_progress",
    "is_partial_eligible",
    "resolve_at_close",
    "reset_instance",
]

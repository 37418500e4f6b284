"""진행 원장 Core 패키지 (XP, 배율, 레벨 곡선)"""

from questline.core.progression.ledger_logic import (
    GENESIS_HASH,
    adjust_xp,
    award_for_instance,
    award_xp,
    base_amount_for,
    event_hash,
    reverse_xp,
    stat_delta_for,
    verify_chain,
)
from questline.core.progression.level_curve import (
    LevelCurve,
    PowerLevelCurve,
    TableLevelCurve,
)
from questline.core.progression.models import (
    AppliedModifier,
    AwardResult,
    Player,
    XPEvent,
    XPSource,
)
from questline.core.progression.modifiers import (
    MODIFIER_ORDER,
    STREAK_BONUS_TIERS,
    ModifierContext,
    apply_modifiers,
    collect_modifiers,
    streak_multiplier,
    streak_tier,
)

__all__ = [
    # models
    "Player",
    "XPEvent",
    "XPSource",
    "AppliedModifier",
    "AwardResult",
    # level curve
    "LevelCurve",
    "PowerLevelCurve",
    "TableLevelCurve",
    # modifiers
    "MODIFIER_ORDER",
    "STREAK_BONUS_TIERS",
    "ModifierContext",
    "collect_modifiers",
    "apply_modifiers",
    "streak_multiplier",
    "streak_tier",
    # ledger
    "GENESIS_HASH",
    "award_xp",
    "award_for_instance",
    "reverse_xp",
    "adjust_xp",
    "base_amount_for",
    "stat_delta_for",
    "event_hash",
    "verify_chain",
]

"""이벤트 유형 상수

서비스가 커밋 이후 발행하는 마일스톤 이벤트.
"""


class EventTypes:
    """이벤트 유형 문자열 상수"""

    # quest
    QUEST_MATERIALIZED = "quest_materialized"
    QUEST_PROGRESSED = "quest_progressed"
    QUEST_COMPLETED = "quest_completed"
    QUEST_FAILED = "quest_failed"
    QUEST_RESET = "quest_reset"

    # progression
    XP_AWARDED = "xp_awarded"
    XP_REVERSED = "xp_reversed"
    LEVEL_UP = "level_up"
    LEVEL_DOWN = "level_down"

    # streak
    STREAK_EXTENDED = "streak_extended"
    STREAK_BROKEN = "streak_broken"
    STREAK_RECOVERED = "streak_recovered"
    GRACE_TOKEN_EARNED = "grace_token_earned"
    DEBUFF_APPLIED = "debuff_applied"

    # day
    RECONCILIATION_SUBMITTED = "reconciliation_submitted"
    DAY_CLOSED = "day_closed"

    # timed runs
    RUN_ENTERED = "run_entered"
    RUN_OBJECTIVE_PROGRESSED = "run_objective_progressed"
    RUN_COMPLETED = "run_completed"
    RUN_EXPIRED = "run_expired"
    RUN_ABANDONED = "run_abandoned"
    TITLE_AWARDED = "title_awarded"

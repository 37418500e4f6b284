"""Core dataclass <-> ORM row mapping.

``*_to_core`` builds a detached dataclass; ``apply_*`` writes a dataclass back
onto an existing row so SQLAlchemy tracks the update (and the player version).
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from questline.core.clock import DayPhase, ensure_utc
from questline.core.day.day_logic import DayRecord
from questline.core.progression.ledger_logic import quantize_amount
from questline.core.progression.models import (
    AppliedModifier,
    Player,
    XPEvent,
    XPSource,
)
from questline.core.quest.enums import (
    QuestCadence,
    QuestCategory,
    QuestStatus,
    StatType,
)
from questline.core.quest.models import (
    PartialCreditPolicy,
    QuestInstance,
    QuestTemplate,
    requirement_from_dict,
    requirement_to_dict,
)
from questline.core.run.models import (
    RunKind,
    RunObjective,
    RunRank,
    RunStatus,
    TimedRun,
)
from questline.db.models import (
    DayRecordModel,
    PlayerModel,
    QuestInstanceModel,
    QuestTemplateModel,
    TimedRunModel,
    XPEventModel,
)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value) if value is not None else None


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite DateTime 컬럼은 naive UTC로 저장"""
    if value is None:
        return None
    return ensure_utc(value).replace(tzinfo=None)


# === Player ===


def player_to_core(orm: PlayerModel) -> Player:
    return Player(
        player_id=orm.player_id,
        timezone=orm.timezone,
        level=orm.level,
        current_xp=orm.current_xp,
        total_xp=orm.total_xp,
        strength=orm.strength,
        agility=orm.agility,
        vitality=orm.vitality,
        discipline=orm.discipline,
        current_streak=orm.current_streak,
        longest_streak=orm.longest_streak,
        perfect_streak=orm.perfect_streak,
        grace_tokens=orm.grace_tokens,
        last_streak_date=orm.last_streak_date,
        broken_streak=orm.broken_streak,
        recovery_expires_at=_utc(orm.recovery_expires_at),
        debuff_until=_utc(orm.debuff_until),
        hard_mode=orm.hard_mode,
        titles=list(orm.titles or []),
        days_closed=orm.days_closed,
        created_at=_utc(orm.created_at),
    )


def player_to_orm(core: Player) -> PlayerModel:
    orm = PlayerModel(
        player_id=core.player_id,
        created_at=naive_utc(core.created_at or datetime.now(timezone.utc)),
    )
    apply_player(orm, core)
    return orm


def apply_player(orm: PlayerModel, core: Player) -> None:
    orm.timezone = core.timezone
    orm.level = core.level
    orm.current_xp = core.current_xp
    orm.total_xp = core.total_xp
    orm.strength = core.strength
    orm.agility = core.agility
    orm.vitality = core.vitality
    orm.discipline = core.discipline
    orm.current_streak = core.current_streak
    orm.longest_streak = core.longest_streak
    orm.perfect_streak = core.perfect_streak
    orm.grace_tokens = core.grace_tokens
    orm.last_streak_date = core.last_streak_date
    orm.broken_streak = core.broken_streak
    orm.recovery_expires_at = naive_utc(core.recovery_expires_at)
    orm.debuff_until = naive_utc(core.debuff_until)
    orm.hard_mode = core.hard_mode
    orm.titles = list(core.titles)
    orm.days_closed = core.days_closed


# === QuestTemplate ===


def template_to_core(orm: QuestTemplateModel) -> QuestTemplate:
    return QuestTemplate(
        template_id=orm.template_id,
        name=orm.name,
        description=orm.description,
        category=QuestCategory(orm.category),
        cadence=QuestCadence(orm.cadence),
        requirement=requirement_from_dict(orm.requirement),
        base_xp=orm.base_xp,
        stat=StatType(orm.stat),
        stat_bonus=orm.stat_bonus,
        partial_policy=PartialCreditPolicy(
            allowed=orm.partial_allowed, min_percent=orm.partial_min_percent
        ),
        is_core=orm.is_core,
        weekday=orm.weekday,
        is_active=orm.is_active,
    )


def apply_template(orm: QuestTemplateModel, core: QuestTemplate) -> None:
    orm.name = core.name
    orm.description = core.description
    orm.category = core.category.value
    orm.cadence = core.cadence.value
    orm.requirement = requirement_to_dict(core.requirement)
    orm.base_xp = core.base_xp
    orm.stat = core.stat.value
    orm.stat_bonus = core.stat_bonus
    orm.partial_allowed = core.partial_policy.allowed
    orm.partial_min_percent = core.partial_policy.min_percent
    orm.is_core = core.is_core
    orm.weekday = core.weekday
    orm.is_active = core.is_active


def template_to_orm(core: QuestTemplate) -> QuestTemplateModel:
    orm = QuestTemplateModel(template_id=core.template_id)
    apply_template(orm, core)
    return orm


# === QuestInstance ===


def instance_to_core(orm: QuestInstanceModel) -> QuestInstance:
    return QuestInstance(
        instance_id=orm.instance_id,
        player_id=orm.player_id,
        template_id=orm.template_id,
        quest_date=orm.quest_date,
        activation=orm.activation,
        status=QuestStatus(orm.status),
        current_value=orm.current_value,
        target_value=orm.target_value,
        completion_percent=orm.completion_percent,
        completed_at=_utc(orm.completed_at),
        xp_awarded=orm.xp_awarded,
        xp_event_id=orm.xp_event_id,
        reconciled=orm.reconciled,
    )


def apply_instance(orm: QuestInstanceModel, core: QuestInstance) -> None:
    orm.status = core.status.value
    orm.current_value = core.current_value
    orm.target_value = core.target_value
    orm.completion_percent = core.completion_percent
    orm.completed_at = naive_utc(core.completed_at)
    orm.xp_awarded = core.xp_awarded
    orm.xp_event_id = core.xp_event_id
    orm.reconciled = core.reconciled


def instance_to_orm(core: QuestInstance) -> QuestInstanceModel:
    orm = QuestInstanceModel(
        instance_id=core.instance_id,
        player_id=core.player_id,
        template_id=core.template_id,
        quest_date=core.quest_date,
        activation=core.activation,
    )
    apply_instance(orm, core)
    return orm


# === XPEvent ===


def xp_event_to_core(orm: XPEventModel) -> XPEvent:
    return XPEvent(
        event_id=orm.event_id,
        player_id=orm.player_id,
        source=XPSource(orm.source),
        source_id=orm.source_id,
        base_amount=quantize_amount(orm.base_amount),
        modifiers=tuple(
            AppliedModifier(name=m["name"], multiplier=Decimal(m["multiplier"]))
            for m in orm.modifiers or []
        ),
        final_amount=orm.final_amount,
        level_before=orm.level_before,
        level_after=orm.level_after,
        total_before=orm.total_before,
        total_after=orm.total_after,
        created_at=ensure_utc(orm.created_at),
        previous_hash=orm.previous_hash,
        hash=orm.hash,
        stat=StatType(orm.stat) if orm.stat else None,
        stat_delta=orm.stat_delta,
        reverses_event_id=orm.reverses_event_id,
        description=orm.description,
    )


def xp_event_to_orm(core: XPEvent, sequence: int) -> XPEventModel:
    return XPEventModel(
        event_id=core.event_id,
        player_id=core.player_id,
        sequence=sequence,
        source=core.source.value,
        source_id=core.source_id,
        base_amount=float(core.base_amount),
        modifiers=[
            {"name": m.name, "multiplier": str(m.multiplier)} for m in core.modifiers
        ],
        final_amount=core.final_amount,
        level_before=core.level_before,
        level_after=core.level_after,
        total_before=core.total_before,
        total_after=core.total_after,
        stat=core.stat.value if core.stat else None,
        stat_delta=core.stat_delta,
        reverses_event_id=core.reverses_event_id,
        description=core.description,
        created_at=naive_utc(core.created_at),
        previous_hash=core.previous_hash,
        hash=core.hash,
    )


# === DayRecord ===


def day_record_to_core(orm: DayRecordModel) -> DayRecord:
    return DayRecord(
        player_id=orm.player_id,
        record_date=orm.record_date,
        phase=DayPhase(orm.phase),
        reconciliation_items=list(orm.reconciliation_items or []),
        closed=orm.closed,
        closed_at=_utc(orm.closed_at),
        qualified=orm.qualified,
        perfect=orm.perfect,
        auto_closed=orm.auto_closed,
        xp_earned=orm.xp_earned,
    )


def apply_day_record(orm: DayRecordModel, core: DayRecord) -> None:
    orm.phase = core.phase.value
    orm.reconciliation_items = list(core.reconciliation_items)
    orm.closed = core.closed
    orm.closed_at = naive_utc(core.closed_at)
    orm.qualified = core.qualified
    orm.perfect = core.perfect
    orm.auto_closed = core.auto_closed
    orm.xp_earned = core.xp_earned


# === TimedRun ===


def run_to_core(orm: TimedRunModel) -> TimedRun:
    return TimedRun(
        run_id=orm.run_id,
        player_id=orm.player_id,
        definition_id=orm.definition_id,
        kind=RunKind(orm.kind),
        rank=RunRank(orm.rank),
        started_at=ensure_utc(orm.started_at),
        expires_at=ensure_utc(orm.expires_at),
        objectives=[
            RunObjective(
                label=o["label"],
                requirement=requirement_from_dict(o["requirement"]),
                current_value=float(o.get("current_value", 0.0)),
                percent=float(o.get("percent", 0.0)),
            )
            for o in orm.objectives or []
        ],
        status=RunStatus(orm.status),
        ended_at=_utc(orm.ended_at),
        xp_awarded=orm.xp_awarded,
        debuff_at_entry=orm.debuff_at_entry,
    )


def apply_run(orm: TimedRunModel, core: TimedRun) -> None:
    orm.objectives = [
        {
            "label": o.label,
            "requirement": requirement_to_dict(o.requirement),
            "current_value": o.current_value,
            "percent": o.percent,
        }
        for o in core.objectives
    ]
    orm.status = core.status.value
    orm.ended_at = naive_utc(core.ended_at)
    orm.xp_awarded = core.xp_awarded


def run_to_orm(core: TimedRun) -> TimedRunModel:
    orm = TimedRunModel(
        run_id=core.run_id,
        player_id=core.player_id,
        definition_id=core.definition_id,
        kind=core.kind.value,
        rank=core.rank.value,
        started_at=naive_utc(core.started_at),
        expires_at=naive_utc(core.expires_at),
        debuff_at_entry=core.debuff_at_entry,
    )
    apply_run(orm, core)
    return orm

"""SQLAlchemy declarative models.

Dates are local calendar dates (Date columns), instants are stored as UTC.
"""

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON


class Base(DeclarativeBase):
    """Base class for all database models."""


class PlayerModel(Base):
    """Player progression state. ``version`` guards against lost updates."""

    __tablename__ = "players"

    player_id: Mapped[str] = mapped_column(String, primary_key=True)
    timezone: Mapped[str] = mapped_column(String, nullable=False, default="UTC")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    strength: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    agility: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vitality: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discipline: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    perfect_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    grace_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_streak_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    broken_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    recovery_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    debuff_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    hard_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    titles: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    days_closed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class QuestTemplateModel(Base):
    """Quest templates synced from content at startup."""

    __tablename__ = "quest_templates"

    template_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String, nullable=False)
    cadence: Mapped[str] = mapped_column(String, nullable=False)
    requirement: Mapped[dict] = mapped_column(JSON, nullable=False)
    base_xp: Mapped[int] = mapped_column(Integer, nullable=False)
    stat: Mapped[str] = mapped_column(String, nullable=False)
    stat_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    partial_allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    partial_min_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_core: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    weekday: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class QuestInstanceModel(Base):
    """A template bound to one player and one local date."""

    __tablename__ = "quest_instances"
    __table_args__ = (
        UniqueConstraint(
            "player_id",
            "template_id",
            "quest_date",
            "activation",
            name="uq_quest_instance_activation",
        ),
        Index("idx_quest_instances_player_date", "player_id", "quest_date"),
    )

    instance_id: Mapped[str] = mapped_column(String, primary_key=True)
    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False
    )
    template_id: Mapped[str] = mapped_column(
        String, ForeignKey("quest_templates.template_id"), nullable=False
    )
    quest_date: Mapped[date] = mapped_column(Date, nullable=False)
    activation: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    current_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    target_value: Mapped[float] = mapped_column(Float, nullable=False)
    completion_percent: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    xp_awarded: Mapped[int | None] = mapped_column(Integer, nullable=True)
    xp_event_id: Mapped[str | None] = mapped_column(String, nullable=True)
    reconciled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class XPEventModel(Base):
    """Append-only XP ledger. ``sequence`` orders one player's hash chain."""

    __tablename__ = "xp_events"
    __table_args__ = (
        UniqueConstraint("player_id", "sequence", name="uq_xp_event_sequence"),
        Index("idx_xp_events_player_created", "player_id", "created_at"),
    )

    event_id: Mapped[str] = mapped_column(String, primary_key=True)
    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False)
    source_id: Mapped[str | None] = mapped_column(String, nullable=True)
    base_amount: Mapped[float] = mapped_column(Float, nullable=False)
    modifiers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    final_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    level_before: Mapped[int] = mapped_column(Integer, nullable=False)
    level_after: Mapped[int] = mapped_column(Integer, nullable=False)
    total_before: Mapped[int] = mapped_column(Integer, nullable=False)
    total_after: Mapped[int] = mapped_column(Integer, nullable=False)
    stat: Mapped[str | None] = mapped_column(String, nullable=True)
    stat_delta: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reverses_event_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("xp_events.event_id"), nullable=True, unique=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    previous_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)


class DayRecordModel(Base):
    """One calendar day of one player."""

    __tablename__ = "day_records"
    __table_args__ = (
        UniqueConstraint("player_id", "record_date", name="uq_day_record"),
        Index("idx_day_records_open", "closed", "record_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False
    )
    record_date: Mapped[date] = mapped_column(Date, nullable=False)
    phase: Mapped[str] = mapped_column(String, nullable=False, default="morning")
    reconciliation_items: Mapped[list] = mapped_column(
        JSON, nullable=False, default=list
    )
    closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    qualified: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    perfect: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    auto_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TimedRunModel(Base):
    """Dungeon / boss attempt. At most one active row per player."""

    __tablename__ = "timed_runs"
    __table_args__ = (
        Index(
            "uq_timed_runs_one_active",
            "player_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        Index("idx_timed_runs_status_expires", "status", "expires_at"),
    )

    run_id: Mapped[str] = mapped_column(String, primary_key=True)
    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False
    )
    definition_id: Mapped[str] = mapped_column(String, nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    rank: Mapped[str] = mapped_column(String, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    objectives: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    ended_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    xp_awarded: Mapped[int | None] = mapped_column(Integer, nullable=True)
    debuff_at_entry: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

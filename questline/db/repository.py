"""Query helpers shared by the services.

All functions take an open ``Session``; transactions are owned by the caller.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from questline.core.errors import InvariantViolation, NotFoundError
from questline.core.progression.ledger_logic import GENESIS_HASH
from questline.core.progression.models import XPEvent
from questline.core.quest.enums import QuestCadence
from questline.core.quest.models import QuestTemplate
from questline.db.mappers import (
    apply_template,
    naive_utc,
    template_to_core,
    template_to_orm,
    xp_event_to_orm,
)
from questline.db.models import (
    DayRecordModel,
    PlayerModel,
    QuestInstanceModel,
    QuestTemplateModel,
    TimedRunModel,
    XPEventModel,
)

logger = logging.getLogger(__name__)


# === Player ===


def get_player_row(session: Session, player_id: str) -> Optional[PlayerModel]:
    return session.get(PlayerModel, player_id)


def load_player_for_update(session: Session, player_id: str) -> PlayerModel:
    """Row-lock the player for the rest of the transaction."""
    stmt = (
        select(PlayerModel)
        .where(PlayerModel.player_id == player_id)
        .with_for_update()
    )
    row = session.execute(stmt).scalar_one_or_none()
    if row is None:
        raise NotFoundError("Player", player_id)
    return row


def top_players(session: Session, limit: int) -> list[PlayerModel]:
    stmt = (
        select(PlayerModel)
        .order_by(PlayerModel.total_xp.desc(), PlayerModel.created_at.asc())
        .limit(limit)
    )
    return list(session.execute(stmt).scalars())


def all_player_ids(session: Session) -> list[str]:
    return list(session.execute(select(PlayerModel.player_id)).scalars())


# === Templates ===


def sync_templates(session: Session, templates: Iterable[QuestTemplate]) -> int:
    """Upsert content templates. Templates missing from content are deactivated."""
    existing = {
        row.template_id: row for row in session.execute(select(QuestTemplateModel)).scalars()
    }
    seen: set[str] = set()
    count = 0
    for template in templates:
        seen.add(template.template_id)
        row = existing.get(template.template_id)
        if row is None:
            session.add(template_to_orm(template))
        else:
            apply_template(row, template)
        count += 1
    for template_id, row in existing.items():
        if template_id not in seen and row.is_active:
            row.is_active = False
            logger.info("Deactivated template no longer in content: %s", template_id)
    return count


def load_templates(session: Session) -> dict[str, QuestTemplate]:
    rows = session.execute(select(QuestTemplateModel)).scalars()
    return {row.template_id: template_to_core(row) for row in rows}


# === Quest instances ===


def instances_for_date(
    session: Session, player_id: str, day: date
) -> list[QuestInstanceModel]:
    stmt = (
        select(QuestInstanceModel)
        .where(
            QuestInstanceModel.player_id == player_id,
            QuestInstanceModel.quest_date == day,
        )
        .order_by(QuestInstanceModel.template_id, QuestInstanceModel.activation)
    )
    return list(session.execute(stmt).scalars())


def get_instance_row(
    session: Session, player_id: str, instance_id: str
) -> QuestInstanceModel:
    row = session.get(QuestInstanceModel, instance_id)
    if row is None or row.player_id != player_id:
        raise NotFoundError("Quest", instance_id)
    return row


def previous_rotating_pick(
    session: Session, player_id: str, day: date
) -> Optional[str]:
    """Template id of the rotating quest materialized the day before."""
    stmt = (
        select(QuestInstanceModel.template_id)
        .join(
            QuestTemplateModel,
            QuestTemplateModel.template_id == QuestInstanceModel.template_id,
        )
        .where(
            QuestInstanceModel.player_id == player_id,
            QuestInstanceModel.quest_date == day - timedelta(days=1),
            QuestTemplateModel.cadence == QuestCadence.ROTATING.value,
        )
        .limit(1)
    )
    return session.execute(stmt).scalar_one_or_none()


# === Day records ===


def get_day_record_row(
    session: Session, player_id: str, day: date
) -> Optional[DayRecordModel]:
    stmt = select(DayRecordModel).where(
        DayRecordModel.player_id == player_id,
        DayRecordModel.record_date == day,
    )
    return session.execute(stmt).scalar_one_or_none()


def get_or_create_day_record(
    session: Session, player_id: str, day: date
) -> DayRecordModel:
    row = get_day_record_row(session, player_id, day)
    if row is None:
        row = DayRecordModel(
            player_id=player_id,
            record_date=day,
            phase="morning",
            reconciliation_items=[],
            closed=False,
            auto_closed=False,
            xp_earned=0,
        )
        session.add(row)
        session.flush()
    return row


def open_records_before(session: Session, cutoff: date) -> list[DayRecordModel]:
    """Open records whose date is before ``cutoff`` (in any timezone)."""
    stmt = (
        select(DayRecordModel)
        .where(DayRecordModel.closed.is_(False), DayRecordModel.record_date < cutoff)
        .order_by(DayRecordModel.player_id, DayRecordModel.record_date)
    )
    return list(session.execute(stmt).scalars())


def open_record_dates(session: Session, player_id: str, before: date) -> list[date]:
    stmt = (
        select(DayRecordModel.record_date)
        .where(
            DayRecordModel.player_id == player_id,
            DayRecordModel.closed.is_(False),
            DayRecordModel.record_date < before,
        )
        .order_by(DayRecordModel.record_date)
    )
    return list(session.execute(stmt).scalars())


# === XP ledger ===


def xp_event_rows(
    session: Session, player_id: str, limit: Optional[int] = None
) -> list[XPEventModel]:
    stmt = (
        select(XPEventModel)
        .where(XPEventModel.player_id == player_id)
        .order_by(XPEventModel.sequence)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.execute(stmt).scalars())


def get_xp_event_row(session: Session, event_id: str) -> XPEventModel:
    row = session.get(XPEventModel, event_id)
    if row is None:
        raise NotFoundError("XPEvent", event_id)
    return row


def reversed_event_ids(session: Session, player_id: str) -> set[str]:
    stmt = select(XPEventModel.reverses_event_id).where(
        XPEventModel.player_id == player_id,
        XPEventModel.reverses_event_id.is_not(None),
    )
    return set(session.execute(stmt).scalars())


class XPLedgerWriter:
    """Appends events to one player's chain inside the current transaction."""

    def __init__(self, session: Session, player_id: str) -> None:
        self._session = session
        self.player_id = player_id
        stmt = (
            select(XPEventModel.sequence, XPEventModel.hash)
            .where(XPEventModel.player_id == player_id)
            .order_by(XPEventModel.sequence.desc())
            .limit(1)
        )
        last = session.execute(stmt).first()
        self._sequence = last.sequence if last else 0
        self._previous_hash = last.hash if last else GENESIS_HASH
        self.appended: list[XPEvent] = []

    @property
    def previous_hash(self) -> str:
        return self._previous_hash

    def append(self, event: XPEvent) -> XPEventModel:
        if event.previous_hash != self._previous_hash:
            raise InvariantViolation(
                f"XP event {event.event_id} does not extend the chain head",
                {"player_id": self.player_id, "event_id": event.event_id},
            )
        self._sequence += 1
        row = xp_event_to_orm(event, self._sequence)
        self._session.add(row)
        self._previous_hash = event.hash
        self.appended.append(event)
        return row

    @property
    def total_awarded(self) -> int:
        return sum(e.final_amount for e in self.appended)


# === Timed runs ===


def runs_for_player(session: Session, player_id: str) -> list[TimedRunModel]:
    stmt = (
        select(TimedRunModel)
        .where(TimedRunModel.player_id == player_id)
        .order_by(TimedRunModel.started_at.desc())
    )
    return list(session.execute(stmt).scalars())


def get_run_row(session: Session, player_id: str, run_id: str) -> TimedRunModel:
    row = session.get(TimedRunModel, run_id)
    if row is None or row.player_id != player_id:
        raise NotFoundError("Run", run_id)
    return row


def overdue_run_owners(session: Session, now: datetime) -> list[str]:
    stmt = (
        select(TimedRunModel.player_id)
        .where(
            TimedRunModel.status == "active",
            TimedRunModel.expires_at <= naive_utc(now),
        )
        .distinct()
    )
    return list(session.execute(stmt).scalars())


def count_rows(session: Session, model: type) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar_one()

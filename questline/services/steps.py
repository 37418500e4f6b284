"""서비스 공용 단계: 하루 작업 공간, XP 지급, 이벤트 변환

Service → Service 호출은 금지이므로 여러 서비스가 쓰는 DB+Core 조합은
여기에 함수로 둔다. 모든 함수는 호출측 트랜잭션 안에서 실행된다.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from questline.core.content import ContentProvider
from questline.core.day.day_logic import DayRecord, refresh_phase, sync_reconciliation_items
from questline.core.engine_config import EngineConfig
from questline.core.errors import (
    DayAlreadyClosedError,
    InvariantViolation,
    NotFoundError,
    ValidationError,
)
from questline.core.event_bus import GameEvent
from questline.core.event_types import EventTypes
from questline.core.progression.ledger_logic import award_for_instance
from questline.core.progression.level_curve import LevelCurve
from questline.core.progression.models import AwardResult, Player
from questline.core.progression.modifiers import ModifierContext, collect_modifiers
from questline.core.quest.factory_logic import materialize_daily_instances
from questline.core.quest.models import QuestInstance, QuestTemplate
from questline.core.streak.streak_logic import is_debuffed
from questline.db.mappers import (
    apply_day_record,
    apply_instance,
    day_record_to_core,
    instance_to_core,
    instance_to_orm,
)
from questline.db.models import DayRecordModel, QuestInstanceModel
from questline.db.repository import (
    XPLedgerWriter,
    get_day_record_row,
    get_or_create_day_record,
    instances_for_date,
    previous_rotating_pick,
)

logger = logging.getLogger(__name__)


def ensure_not_future(day: date, today: date) -> None:
    if day > today:
        raise ValidationError(
            f"Date {day} is in the future", {"date": day.isoformat(), "today": today.isoformat()}
        )


def require_template(templates: dict[str, QuestTemplate], template_id: str) -> QuestTemplate:
    template = templates.get(template_id)
    if template is None:
        raise NotFoundError("QuestTemplate", template_id)
    return template


class DayWorkspace:
    """한 플레이어의 하루(DayRecord + 인스턴스)를 트랜잭션 안에서 다룬다.

    core 객체를 수정한 뒤 save()로 행에 반영한다.
    """

    def __init__(self, session: Session, player: Player, day: date) -> None:
        self._session = session
        self.player_id = player.player_id
        self.day = day
        row = get_day_record_row(session, player.player_id, day)
        if row is None:
            # 연속 기록에 이미 반영된 구간(기록 없는 날 포함)은 다시 열 수 없다
            if player.last_streak_date is not None and day <= player.last_streak_date:
                raise DayAlreadyClosedError(player.player_id, day.isoformat())
            row = get_or_create_day_record(session, player.player_id, day)
        self.record_row: DayRecordModel = row
        self.record: DayRecord = day_record_to_core(self.record_row)
        self._rows: dict[str, QuestInstanceModel] = {
            row.instance_id: row
            for row in instances_for_date(session, player.player_id, day)
        }
        self.instances: dict[str, QuestInstance] = {
            iid: instance_to_core(row) for iid, row in self._rows.items()
        }

    def materialize(
        self,
        player: Player,
        templates: dict[str, QuestTemplate],
        config: EngineConfig,
    ) -> list[QuestInstance]:
        """첫 접근 시 인스턴스 전개. 마감된 날은 건드리지 않는다."""
        if self.record.closed:
            return []
        created = materialize_daily_instances(
            player.player_id,
            self.day,
            templates,
            self.instances.values(),
            rotating_unlocked=player.days_closed >= config.rotating_unlock_days,
            previous_rotating_pick=previous_rotating_pick(
                self._session, player.player_id, self.day
            ),
        )
        for instance in created:
            self.add(instance)
        return created

    def add(self, instance: QuestInstance) -> None:
        row = instance_to_orm(instance)
        self._session.add(row)
        self._rows[instance.instance_id] = row
        self.instances[instance.instance_id] = instance

    def get(self, instance_id: str) -> QuestInstance:
        instance = self.instances.get(instance_id)
        if instance is None:
            raise NotFoundError("Quest", instance_id)
        return instance

    def ordered(self) -> list[QuestInstance]:
        return sorted(
            self.instances.values(), key=lambda i: (i.template_id, i.activation)
        )

    def core_instances(self, templates: dict[str, QuestTemplate]) -> list[QuestInstance]:
        """하루 판정 대상 코어 퀘스트 (재활성화분 제외)"""
        return [
            inst
            for inst in self.ordered()
            if inst.activation == 0
            and inst.template_id in templates
            and templates[inst.template_id].is_core
        ]

    def refresh(self, now: datetime, tz_name: str | None) -> None:
        refresh_phase(self.record, now, tz_name)
        sync_reconciliation_items(self.record, self.instances.values())

    def day_xp(self) -> int:
        return sum(i.xp_awarded or 0 for i in self.instances.values())

    def save(self) -> None:
        for instance_id, instance in self.instances.items():
            apply_instance(self._rows[instance_id], instance)
        apply_day_record(self.record_row, self.record)
        self._session.flush()


def modifier_context(
    player: Player,
    quest_date: date,
    content: ContentProvider,
    now: datetime,
    run_multiplier: Optional[Decimal] = None,
) -> ModifierContext:
    season = content.season_for(quest_date)
    return ModifierContext(
        streak_days=player.current_streak,
        quest_date=quest_date,
        hard_mode=player.hard_mode,
        season_multiplier=season.xp_multiplier if season else None,
        run_multiplier=run_multiplier,
        debuff_active=is_debuffed(player, now),
    )


def award_instance(
    writer: XPLedgerWriter,
    player: Player,
    instance: QuestInstance,
    template: QuestTemplate,
    content: ContentProvider,
    config: EngineConfig,
    curve: LevelCurve,
    now: datetime,
) -> AwardResult:
    if instance.player_id != player.player_id:
        raise InvariantViolation(
            "Quest belongs to another player",
            {"quest_id": instance.instance_id, "player_id": player.player_id},
        )
    modifiers = collect_modifiers(
        modifier_context(player, instance.quest_date, content, now), config
    )
    result = award_for_instance(
        player,
        instance,
        template,
        modifiers,
        config,
        curve,
        writer.previous_hash,
        now,
    )
    writer.append(result.event)
    return result


def award_events(result: AwardResult, source: str) -> list[GameEvent]:
    """XP 지급/취소 결과 → 발행할 이벤트 목록"""
    event = result.event
    events = [
        GameEvent(
            event_type=EventTypes.XP_REVERSED if event.is_reversal else EventTypes.XP_AWARDED,
            data={
                "player_id": event.player_id,
                "event_id": event.event_id,
                "amount": event.final_amount,
            },
            source=source,
        )
    ]
    for level in result.crossed_levels:
        events.append(
            GameEvent(
                event_type=EventTypes.LEVEL_UP,
                data={"player_id": event.player_id, "level": level},
                source=source,
            )
        )
    if result.leveled_down:
        events.append(
            GameEvent(
                event_type=EventTypes.LEVEL_DOWN,
                data={
                    "player_id": event.player_id,
                    "from_level": event.level_before,
                    "to_level": event.level_after,
                },
                source=source,
            )
        )
    return events


def quest_event(event_type: str, instance: QuestInstance, source: str) -> GameEvent:
    return GameEvent(
        event_type=event_type,
        data={
            "player_id": instance.player_id,
            "quest_id": instance.instance_id,
            "template_id": instance.template_id,
            "percent": instance.completion_percent,
        },
        source=source,
    )

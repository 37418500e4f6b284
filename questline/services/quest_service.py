"""퀘스트 Service — 인스턴스 전개, 진행도 제출, 리셋, on-demand 활성화

Service → Core, Service → DB 허용. Service → Service 금지, EventBus 경유.
이벤트는 커밋 이후에만 발행한다.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from questline.core.clock import Clock, SystemClock, local_date
from questline.core.content import ContentProvider
from questline.core.engine_config import EngineConfig
from questline.core.errors import DayAlreadyClosedError, InvariantViolation
from questline.core.event_bus import EventBus, GameEvent
from questline.core.event_types import EventTypes
from questline.core.progression.ledger_logic import reverse_xp
from questline.core.progression.level_curve import LevelCurve, PowerLevelCurve
from questline.core.progression.models import AwardResult
from questline.core.quest.enums import QuestStatus
from questline.core.quest.factory_logic import activate_template
from questline.core.quest.models import ProgressOutcome, QuestInstance, QuestTemplate
from questline.core.quest.progress_logic import (
    apply_progress,
    evaluate_progress,
    reset_instance,
)
from questline.db.mappers import apply_player, player_to_core, xp_event_to_core
from questline.db.repository import (
    XPLedgerWriter,
    get_instance_row,
    get_xp_event_row,
    load_player_for_update,
    load_templates,
    reversed_event_ids,
)
from questline.services.steps import (
    DayWorkspace,
    award_events,
    award_instance,
    ensure_not_future,
    quest_event,
    require_template,
)
from questline.services.transaction import TransactionRunner

logger = logging.getLogger(__name__)

SOURCE = "quest_service"


@dataclass(frozen=True)
class QuestView:
    instance: QuestInstance
    template: QuestTemplate


@dataclass(frozen=True)
class ProgressResult:
    instance: QuestInstance
    template: QuestTemplate
    outcome: ProgressOutcome
    award: Optional[AwardResult] = None


class QuestService:
    """퀘스트 조회/진행/리셋/활성화"""

    def __init__(
        self,
        runner: TransactionRunner,
        event_bus: EventBus,
        content: ContentProvider,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        curve: LevelCurve | None = None,
    ):
        self._runner = runner
        self._bus = event_bus
        self._content = content
        self._config = config or EngineConfig()
        self._clock = clock or SystemClock()
        self._curve = curve or PowerLevelCurve(
            self._config.level_base_xp, self._config.level_exponent
        )

    # === 조회 (첫 접근 시 전개) ===

    def get_quests(
        self, player_id: str, day: date | None = None
    ) -> tuple[date, list[QuestView]]:
        now = self._clock.now()
        events: list[GameEvent] = []

        with self._runner.for_player(player_id) as session:
            player = player_to_core(load_player_for_update(session, player_id))
            today = local_date(now, player.timezone)
            day = day or today
            ensure_not_future(day, today)

            templates = load_templates(session)
            ws = DayWorkspace(session, player, day)
            created = ws.materialize(player, templates, self._config)
            ws.refresh(now, player.timezone)
            ws.save()

            views = [
                QuestView(instance=inst, template=templates[inst.template_id])
                for inst in ws.ordered()
            ]
            events.extend(
                quest_event(EventTypes.QUEST_MATERIALIZED, inst, SOURCE)
                for inst in created
            )

        self._bus.emit_all(events)
        return day, views

    # === 진행도 제출 ===

    def submit_progress(
        self, player_id: str, quest_id: str, value: Any
    ) -> ProgressResult:
        """진행도 제출 1건. 완료되면 같은 트랜잭션에서 XP 지급.

        Raises:
            NotFoundError: 알 수 없는 퀘스트/플레이어
            DayAlreadyClosedError: 마감된 날의 퀘스트
            QuestNotActiveError: 이미 해소된 퀘스트
            ValidationError: 잘못된 제출값
        """
        now = self._clock.now()
        events: list[GameEvent] = []

        with self._runner.for_player(player_id) as session:
            player_row = load_player_for_update(session, player_id)
            player = player_to_core(player_row)
            instance_row = get_instance_row(session, player_id, quest_id)
            templates = load_templates(session)
            template = require_template(templates, instance_row.template_id)

            ws = DayWorkspace(session, player, instance_row.quest_date)
            if ws.record.closed:
                raise DayAlreadyClosedError(player_id, ws.day.isoformat())
            instance = ws.get(quest_id)

            outcome = evaluate_progress(
                instance,
                template,
                value,
                now,
                player.timezone,
                self._config.default_partial_min_percent,
            )
            apply_progress(instance, outcome, now)

            award = None
            if outcome.status is QuestStatus.COMPLETED:
                writer = XPLedgerWriter(session, player_id)
                award = award_instance(
                    writer, player, instance, template,
                    self._content, self._config, self._curve, now,
                )
                apply_player(player_row, player)
                events.append(quest_event(EventTypes.QUEST_COMPLETED, instance, SOURCE))
                events.extend(award_events(award, SOURCE))
            elif outcome.status is QuestStatus.FAILED:
                events.append(quest_event(EventTypes.QUEST_FAILED, instance, SOURCE))
            else:
                events.append(quest_event(EventTypes.QUEST_PROGRESSED, instance, SOURCE))

            ws.refresh(now, player.timezone)
            ws.save()

        logger.info(
            "Progress %s/%s -> %s (%.2f%%)",
            player_id,
            quest_id,
            outcome.status.value,
            outcome.percent,
        )
        self._bus.emit_all(events)
        return ProgressResult(instance=instance, template=template, outcome=outcome, award=award)

    # === 리셋 ===

    def reset_quest(self, player_id: str, quest_id: str) -> QuestView:
        """COMPLETED 퀘스트를 ACTIVE(진행도 0)로 되돌리고 XP 이벤트를 취소."""
        now = self._clock.now()
        events: list[GameEvent] = []

        with self._runner.for_player(player_id) as session:
            player_row = load_player_for_update(session, player_id)
            player = player_to_core(player_row)
            instance_row = get_instance_row(session, player_id, quest_id)
            templates = load_templates(session)
            template = require_template(templates, instance_row.template_id)

            ws = DayWorkspace(session, player, instance_row.quest_date)
            if ws.record.closed:
                raise DayAlreadyClosedError(player_id, ws.day.isoformat())
            instance = ws.get(quest_id)
            event_id = instance.xp_event_id

            reset_instance(instance)

            if event_id is not None:
                original = xp_event_to_core(get_xp_event_row(session, event_id))
                if original.source_id != instance.instance_id:
                    raise InvariantViolation(
                        "XP event does not belong to the quest",
                        {"quest_id": quest_id, "event_id": event_id},
                    )
                writer = XPLedgerWriter(session, player_id)
                reversal = reverse_xp(
                    player,
                    original,
                    reversed_event_ids(session, player_id),
                    self._curve,
                    writer.previous_hash,
                    now,
                )
                writer.append(reversal.event)
                apply_player(player_row, player)
                events.extend(award_events(reversal, SOURCE))

            ws.refresh(now, player.timezone)
            ws.save()
            events.append(quest_event(EventTypes.QUEST_RESET, instance, SOURCE))

        logger.info("Quest reset: %s/%s", player_id, quest_id)
        self._bus.emit_all(events)
        return QuestView(instance=instance, template=template)

    # === on-demand 활성화 ===

    def activate(
        self, player_id: str, template_id: str, day: date | None = None
    ) -> QuestView:
        """BONUS 등 on-demand 템플릿 활성화. 해소된 인스턴스만 있으면 재활성화."""
        now = self._clock.now()

        with self._runner.for_player(player_id) as session:
            player = player_to_core(load_player_for_update(session, player_id))
            today = local_date(now, player.timezone)
            day = day or today
            ensure_not_future(day, today)

            templates = load_templates(session)
            template = require_template(templates, template_id)

            ws = DayWorkspace(session, player, day)
            if ws.record.closed:
                raise DayAlreadyClosedError(player_id, day.isoformat())
            ws.materialize(player, templates, self._config)

            instance = activate_template(player_id, template, day, ws.instances.values())
            ws.add(instance)
            ws.refresh(now, player.timezone)
            ws.save()

        logger.info(
            "Activated %s for %s on %s (activation %d)",
            template_id,
            player_id,
            day,
            instance.activation,
        )
        self._bus.emit_all([quest_event(EventTypes.QUEST_MATERIALIZED, instance, SOURCE)])
        return QuestView(instance=instance, template=template)

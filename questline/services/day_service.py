"""하루 Service — 상태 조회, 저녁 정산, 하루 마감, 방치된 날 자동 마감

close_day의 해소, XP 지급, 연속 기록 재계산, 마감 표시는
하나의 트랜잭션으로 커밋되거나 전부 롤백된다.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from questline.core.clock import (
    Clock,
    DayPhase,
    SystemClock,
    local_date,
    minutes_to_midnight,
)
from questline.core.content import ContentProvider
from questline.core.day.day_logic import (
    DaySummary,
    count_outcomes,
    ensure_closable,
    ensure_reconcilable,
    mark_closed,
    pending_items,
    reconciliation_required,
)
from questline.core.engine_config import EngineConfig
from questline.core.errors import DayAlreadyClosedError
from questline.core.event_bus import EventBus, GameEvent
from questline.core.event_types import EventTypes
from questline.core.progression.level_curve import LevelCurve, PowerLevelCurve
from questline.core.progression.models import Player
from questline.core.quest.enums import QuestStatus
from questline.core.quest.models import QuestTemplate
from questline.core.quest.progress_logic import (
    apply_progress,
    evaluate_progress,
    resolve_at_close,
)
from questline.core.streak.streak_logic import (
    StreakOutcome,
    can_recover,
    recompute_streak,
)
from questline.db.mappers import apply_player, player_to_core
from questline.db.models import PlayerModel
from questline.db.repository import (
    XPLedgerWriter,
    get_instance_row,
    load_player_for_update,
    load_templates,
    open_record_dates,
    open_records_before,
)
from questline.services.quest_service import ProgressResult, QuestView
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

SOURCE = "day_service"


@dataclass(frozen=True)
class DayStatus:
    player_id: str
    record_date: date
    phase: DayPhase
    reconciliation_required: bool
    minutes_to_midnight: int
    pending: list[QuestView] = field(default_factory=list)
    closed: bool = False
    xp_earned: int = 0


class DayService:
    """하루 상태 기계 + 정산 + 마감"""

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

    # === 상태 조회 ===

    def day_status(self, player_id: str, day: date | None = None) -> DayStatus:
        """하루 상태 조회.

        조회지만 쓰기 트랜잭션과 플레이어 락 안에서 실행한다. 빠진 퀘스트
        인스턴스를 생성하고 단계(phase)를 갱신해 기록하므로, 같은 날짜에 대한
        동시 생성이 중복 인스턴스를 만들지 않도록 직렬화가 필요하다.
        """
        now = self._clock.now()

        with self._runner.for_player(player_id) as session:
            player = player_to_core(load_player_for_update(session, player_id))
            today = local_date(now, player.timezone)
            day = day or today
            ensure_not_future(day, today)

            templates = load_templates(session)
            ws = DayWorkspace(session, player, day)
            ws.materialize(player, templates, self._config)
            ws.refresh(now, player.timezone)
            ws.save()

            record = ws.record
            pending = [
                QuestView(instance=inst, template=templates[inst.template_id])
                for inst in pending_items(ws.ordered())
            ]
            required = reconciliation_required(record, ws.instances.values())

        remaining = minutes_to_midnight(now, player.timezone) if day == today else 0
        return DayStatus(
            player_id=player_id,
            record_date=day,
            phase=record.phase,
            reconciliation_required=required,
            minutes_to_midnight=remaining,
            pending=pending,
            closed=record.closed,
            xp_earned=ws.day_xp(),
        )

    # === 저녁 정산 ===

    def submit_reconciliation(
        self, player_id: str, quest_id: str, value: Any
    ) -> ProgressResult:
        """미해결 항목 1개에 대해 평가를 다시 실행. 항목당 1회.

        Raises:
            ReconciliationClosedError: evening 이전
            DayAlreadyClosedError: 마감 이후
            AlreadyReconciledError / QuestNotActiveError
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
            ws.refresh(now, player.timezone)
            instance = ws.get(quest_id)
            ensure_reconcilable(ws.record, instance)

            outcome = evaluate_progress(
                instance,
                template,
                value,
                now,
                player.timezone,
                self._config.default_partial_min_percent,
            )
            apply_progress(instance, outcome, now)
            instance.reconciled = True

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

            ws.refresh(now, player.timezone)
            ws.save()
            events.append(
                GameEvent(
                    event_type=EventTypes.RECONCILIATION_SUBMITTED,
                    data={"player_id": player_id, "quest_id": quest_id},
                    source=SOURCE,
                )
            )

        self._bus.emit_all(events)
        return ProgressResult(instance=instance, template=template, outcome=outcome, award=award)

    # === 마감 ===

    def close_day(self, player_id: str, day: date | None = None) -> DaySummary:
        """하루 마감 (night phase에서만). 두 번째 호출은 부작용 없이 충돌.

        이전 날짜에 열린 기록이 남아 있으면 먼저 자동 마감한다
        (연속 기록은 날짜 순서대로만 반영된다).
        """
        now = self._clock.now()
        events: list[GameEvent] = []

        with self._runner.for_player(player_id) as session:
            player_row = load_player_for_update(session, player_id)
            player = player_to_core(player_row)
            today = local_date(now, player.timezone)
            day = day or today
            ensure_not_future(day, today)
            templates = load_templates(session)

            ws = DayWorkspace(session, player, day)
            if ws.record.closed:
                raise DayAlreadyClosedError(player_id, day.isoformat())
            ws.refresh(now, player.timezone)
            ensure_closable(ws.record)

            for earlier in open_record_dates(session, player_id, before=day):
                self._close(
                    session, player, DayWorkspace(session, player, earlier),
                    templates, now, auto=True, events=events,
                )

            summary = self._close(
                session, player, ws, templates, now, auto=False, events=events
            )
            apply_player(player_row, player)

        self._bus.emit_all(events)
        return summary

    def _close(
        self,
        session: Session,
        player: Player,
        ws: DayWorkspace,
        templates: dict[str, QuestTemplate],
        now: datetime,
        auto: bool,
        events: list[GameEvent],
    ) -> DaySummary:
        """해소 → XP → 연속 기록 → 마감 표시. 호출측 트랜잭션 안에서 실행."""
        ws.materialize(player, templates, self._config)
        writer = XPLedgerWriter(session, player.player_id)
        level_ups: list[int] = []

        for instance in ws.ordered():
            if instance.status is not QuestStatus.ACTIVE:
                continue
            template = require_template(templates, instance.template_id)
            status = resolve_at_close(
                instance,
                template,
                now,
                self._config.default_partial_min_percent,
                auto=auto,
            )
            if status is QuestStatus.COMPLETED:
                award = award_instance(
                    writer, player, instance, template,
                    self._content, self._config, self._curve, now,
                )
                level_ups.extend(award.crossed_levels)
                events.append(quest_event(EventTypes.QUEST_COMPLETED, instance, SOURCE))
                events.extend(award_events(award, SOURCE))
            else:
                events.append(quest_event(EventTypes.QUEST_FAILED, instance, SOURCE))

        outcome = recompute_streak(
            player, ws.day, ws.core_instances(templates), now, self._config
        )
        mark_closed(
            ws.record,
            now,
            qualified=outcome.qualified,
            perfect=outcome.perfect,
            xp_earned=ws.day_xp(),
            auto=auto,
        )
        ws.save()

        events.extend(self._streak_events(player, outcome, ws.day))
        events.append(
            GameEvent(
                event_type=EventTypes.DAY_CLOSED,
                data={
                    "player_id": player.player_id,
                    "date": ws.day.isoformat(),
                    "qualified": outcome.qualified,
                    "auto": auto,
                },
                source=SOURCE,
            )
        )

        counts = count_outcomes(ws.instances.values())
        return DaySummary(
            player_id=player.player_id,
            record_date=ws.day,
            completed=counts["completed"],
            partial=counts["partial"],
            failed=counts["failed"],
            expired=counts["expired"],
            qualified=outcome.qualified,
            perfect=outcome.perfect,
            streak_before=outcome.streak_before,
            streak_after=outcome.streak_after,
            xp_earned=ws.record.xp_earned,
            level_ups=level_ups,
            tokens_earned=outcome.tokens_earned,
            recovery_available=can_recover(player, now),
            debuff_applied=outcome.debuff_applied,
            auto_closed=auto,
        )

    def _streak_events(
        self, player: Player, outcome: StreakOutcome, day: date
    ) -> list[GameEvent]:
        base = {"player_id": player.player_id, "date": day.isoformat()}
        events: list[GameEvent] = []
        if outcome.qualified:
            events.append(
                GameEvent(
                    event_type=EventTypes.STREAK_EXTENDED,
                    data={**base, "streak": outcome.streak_after},
                    source=SOURCE,
                )
            )
        if outcome.broken:
            events.append(
                GameEvent(
                    event_type=EventTypes.STREAK_BROKEN,
                    data={
                        **base,
                        "lost": outcome.streak_before,
                        "recoverable": outcome.recovery_opened,
                    },
                    source=SOURCE,
                )
            )
        if outcome.tokens_earned:
            events.append(
                GameEvent(
                    event_type=EventTypes.GRACE_TOKEN_EARNED,
                    data={**base, "tokens": player.grace_tokens},
                    source=SOURCE,
                )
            )
        if outcome.debuff_applied:
            events.append(
                GameEvent(
                    event_type=EventTypes.DEBUFF_APPLIED,
                    data={**base, "until": player.debuff_until.isoformat()},
                    source=SOURCE,
                )
            )
        return events

    # === 방치된 날 자동 마감 ===

    def sweep_abandoned_days(self, now: Optional[datetime] = None) -> list[DaySummary]:
        """로컬 날짜가 지난 열린 기록을 자동 마감 (부분 달성 채점, 나머지 EXPIRED)."""
        now = now or self._clock.now()
        with self._runner.read_only() as session:
            # 가장 이른 타임존(UTC+14)에서도 내일이 아닌 날짜만 후보
            candidates = open_records_before(session, local_date(now, "Pacific/Kiritimati"))
            owners = sorted({row.player_id for row in candidates})

        summaries: list[DaySummary] = []
        for player_id in owners:
            summaries.extend(self._sweep_player(player_id, now))

        if summaries:
            logger.info("Sweep auto-closed %d day(s)", len(summaries))
        return summaries

    def _sweep_player(self, player_id: str, now: datetime) -> list[DaySummary]:
        events: list[GameEvent] = []
        summaries: list[DaySummary] = []

        with self._runner.for_player(player_id) as session:
            player_row: PlayerModel = load_player_for_update(session, player_id)
            player = player_to_core(player_row)
            today = local_date(now, player.timezone)
            templates = load_templates(session)

            for day in open_record_dates(session, player_id, before=today):
                ws = DayWorkspace(session, player, day)
                summaries.append(
                    self._close(session, player, ws, templates, now, auto=True, events=events)
                )
            if summaries:
                apply_player(player_row, player)

        self._bus.emit_all(events)
        return summaries

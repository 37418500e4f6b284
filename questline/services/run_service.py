"""Timed Run Service — 던전/보스 입장, 목표 진행, 포기, 만료 정리

만료는 접근/쓰기 시점에 판정한다. 기한이 지난 제출은 run을 EXPIRED로
커밋한 뒤 RunExpiredError로 거절한다.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from questline.core.clock import Clock, SystemClock, ensure_utc, local_date
from questline.core.content import ContentProvider
from questline.core.engine_config import EngineConfig
from questline.core.errors import NotFoundError, QuestlineError, RunExpiredError
from questline.core.event_bus import EventBus, GameEvent
from questline.core.event_types import EventTypes
from questline.core.progression.ledger_logic import award_xp
from questline.core.progression.level_curve import LevelCurve, PowerLevelCurve
from questline.core.progression.models import AwardResult, Player, XPSource
from questline.core.progression.modifiers import collect_modifiers
from questline.core.run.models import ObjectiveOutcome, RunDefinition, TimedRun
from questline.core.run.run_logic import (
    abandon_run,
    check_entry,
    cooldown_ends_at,
    expire_if_overdue,
    start_run,
    submit_objective,
)
from questline.core.streak.streak_logic import is_debuffed
from questline.db.mappers import apply_player, apply_run, player_to_core, run_to_core, run_to_orm
from questline.db.models import TimedRunModel
from questline.db.repository import (
    XPLedgerWriter,
    get_player_row,
    get_run_row,
    load_player_for_update,
    overdue_run_owners,
    runs_for_player,
)
from questline.services.steps import award_events, modifier_context
from questline.services.transaction import TransactionRunner

logger = logging.getLogger(__name__)

SOURCE = "run_service"


@dataclass(frozen=True)
class DungeonAvailability:
    definition: RunDefinition
    unlocked: bool
    reason: Optional[str] = None
    cooldown_ends_at: Optional[datetime] = None


@dataclass(frozen=True)
class ObjectiveResult:
    run: TimedRun
    outcome: ObjectiveOutcome
    award: Optional[AwardResult] = None
    title_awarded: Optional[str] = None


class RunService:
    """던전/보스 timed run"""

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

    def _definition(self, definition_id: str) -> RunDefinition:
        definition = self._content.get_run_definition(definition_id)
        if definition is None:
            raise NotFoundError("RunDefinition", definition_id)
        return definition

    def _expire_overdue(
        self, session: Session, rows: list[TimedRunModel], now: datetime
    ) -> tuple[list[TimedRun], list[GameEvent]]:
        """플레이어 run 목록을 core로 변환하며 기한 지난 ACTIVE를 EXPIRED로 반영"""
        runs: list[TimedRun] = []
        events: list[GameEvent] = []
        for row in rows:
            run = run_to_core(row)
            if expire_if_overdue(run, now):
                apply_run(row, run)
                events.append(self._run_event(EventTypes.RUN_EXPIRED, run))
            runs.append(run)
        if events:
            session.flush()
        return runs, events

    def _run_event(self, event_type: str, run: TimedRun, **extra: Any) -> GameEvent:
        return GameEvent(
            event_type=event_type,
            data={
                "player_id": run.player_id,
                "run_id": run.run_id,
                "definition_id": run.definition_id,
                **extra,
            },
            source=SOURCE,
        )

    # === 조회 ===

    def list_dungeons(self, player_id: str) -> list[DungeonAvailability]:
        """정의별 입장 가능 여부 (읽기 전용, 직렬화하지 않음)"""
        now = self._clock.now()
        with self._runner.read_only() as session:
            row = get_player_row(session, player_id)
            if row is None:
                raise NotFoundError("Player", player_id)
            player = player_to_core(row)
            history = [run_to_core(r) for r in runs_for_player(session, player_id)]

        for run in history:
            expire_if_overdue(run, now)

        result: list[DungeonAvailability] = []
        for definition in self._content.run_definitions():
            try:
                check_entry(player, definition, history, now)
                result.append(DungeonAvailability(definition=definition, unlocked=True))
            except QuestlineError as e:
                result.append(
                    DungeonAvailability(
                        definition=definition,
                        unlocked=False,
                        reason=e.code,
                        cooldown_ends_at=cooldown_ends_at(definition, history),
                    )
                )
        return result

    def run_history(self, player_id: str) -> list[TimedRun]:
        now = self._clock.now()
        with self._runner.read_only() as session:
            if get_player_row(session, player_id) is None:
                raise NotFoundError("Player", player_id)
            runs = [run_to_core(r) for r in runs_for_player(session, player_id)]
        for run in runs:
            expire_if_overdue(run, now)
        return runs

    # === 입장 ===

    def enter(self, player_id: str, definition_id: str) -> TimedRun:
        """Raises:
        ActiveRunExistsError: 진행 중 run 존재 (만료분은 먼저 정리)
        RequirementNotMetError: 레벨/선행 클리어 미충족
        RunOnCooldownError: 재도전 대기
        """
        now = self._clock.now()
        definition = self._definition(definition_id)

        with self._runner.for_player(player_id) as session:
            player = player_to_core(load_player_for_update(session, player_id))
            runs, events = self._expire_overdue(
                session, runs_for_player(session, player_id), now
            )
            check_entry(player, definition, runs, now)

            run = start_run(player, definition, now, is_debuffed(player, now))
            session.add(run_to_orm(run))

        logger.info(
            "Run entered: %s %s (%s, expires %s)",
            player_id,
            definition_id,
            run.run_id,
            run.expires_at.isoformat(),
        )
        events.append(self._run_event(EventTypes.RUN_ENTERED, run))
        self._bus.emit_all(events)
        return run

    # === 목표 진행 ===

    def submit_objective(
        self, player_id: str, run_id: str, index: int, value: Any
    ) -> ObjectiveResult:
        now = self._clock.now()
        events: list[GameEvent] = []
        award = None
        title = None

        with self._runner.for_player(player_id) as session:
            player_row = load_player_for_update(session, player_id)
            player = player_to_core(player_row)
            row = get_run_row(session, player_id, run_id)
            run = run_to_core(row)

            outcome = submit_objective(run, index, value, now)
            apply_run(row, run)

            if outcome.expired:
                events.append(self._run_event(EventTypes.RUN_EXPIRED, run))
            else:
                events.append(
                    self._run_event(
                        EventTypes.RUN_OBJECTIVE_PROGRESSED,
                        run,
                        index=index,
                        percent=outcome.percent,
                    )
                )
                if outcome.completed:
                    definition = self._definition(run.definition_id)
                    writer = XPLedgerWriter(session, player_id)
                    award = self._award_run(writer, player, run, definition, now)
                    run.xp_awarded = award.event.final_amount
                    apply_run(row, run)
                    events.append(
                        self._run_event(
                            EventTypes.RUN_COMPLETED, run, xp=run.xp_awarded
                        )
                    )
                    events.extend(award_events(award, SOURCE))
                    if definition.title_reward and player.award_title(
                        definition.title_reward
                    ):
                        title = definition.title_reward
                        events.append(
                            GameEvent(
                                event_type=EventTypes.TITLE_AWARDED,
                                data={"player_id": player_id, "title": title},
                                source=SOURCE,
                            )
                        )
                    apply_player(player_row, player)

        self._bus.emit_all(events)
        if outcome.expired:
            raise RunExpiredError(
                f"Run {run_id} expired at {run.expires_at.isoformat()}",
                {"run_id": run_id, "expires_at": run.expires_at.isoformat()},
            )
        return ObjectiveResult(run=run, outcome=outcome, award=award, title_awarded=title)

    def _award_run(
        self,
        writer: XPLedgerWriter,
        player: Player,
        run: TimedRun,
        definition: RunDefinition,
        now: datetime,
    ) -> AwardResult:
        """run 보상. 입장 시 디버프였으면 랭크 배율 미적용."""
        run_multiplier = None if run.debuff_at_entry else definition.xp_multiplier
        ctx = modifier_context(
            player,
            local_date(now, player.timezone),
            self._content,
            now,
            run_multiplier=run_multiplier,
        )
        result = award_xp(
            player,
            XPSource.RUN_REWARD,
            run.run_id,
            Decimal(definition.base_xp),
            collect_modifiers(ctx, self._config),
            self._curve,
            writer.previous_hash,
            now,
            description=definition.name,
        )
        writer.append(result.event)
        return result

    # === 포기 ===

    def abandon(self, player_id: str, run_id: str) -> TimedRun:
        now = self._clock.now()
        events: list[GameEvent] = []
        expired = False

        with self._runner.for_player(player_id) as session:
            load_player_for_update(session, player_id)
            row = get_run_row(session, player_id, run_id)
            run = run_to_core(row)
            if expire_if_overdue(run, now):
                expired = True
                events.append(self._run_event(EventTypes.RUN_EXPIRED, run))
            else:
                abandon_run(run, now)
                events.append(self._run_event(EventTypes.RUN_ABANDONED, run))
            apply_run(row, run)

        self._bus.emit_all(events)
        if expired:
            raise RunExpiredError(
                f"Run {run_id} already expired",
                {"run_id": run_id, "expires_at": ensure_utc(run.expires_at).isoformat()},
            )
        return run

    # === 만료 정리 (sweep) ===

    def expire_overdue(self, now: Optional[datetime] = None) -> int:
        now = now or self._clock.now()
        with self._runner.read_only() as session:
            owners = overdue_run_owners(session, now)

        expired = 0
        for player_id in owners:
            with self._runner.for_player(player_id) as session:
                _, events = self._expire_overdue(
                    session, runs_for_player(session, player_id), now
                )
            expired += len(events)
            self._bus.emit_all(events)

        if expired:
            logger.info("Expired %d overdue run(s)", expired)
        return expired

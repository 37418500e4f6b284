"""플레이어 Service: 생성, 프로필, 연속 기록 복구, 하드 모드, XP 원장 조회"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from questline.core.clock import Clock, SystemClock, is_valid_timezone
from questline.core.engine_config import EngineConfig
from questline.core.errors import (
    NotFoundError,
    PlayerExistsError,
    RequirementNotMetError,
    ValidationError,
)
from questline.core.event_bus import EventBus, GameEvent
from questline.core.event_types import EventTypes
from questline.core.progression.ledger_logic import adjust_xp, verify_chain
from questline.core.progression.level_curve import LevelCurve, PowerLevelCurve
from questline.core.progression.models import AwardResult, Player, XPEvent
from questline.core.progression.modifiers import streak_tier
from questline.core.streak.streak_logic import (
    can_recover,
    is_debuffed,
    recover_streak,
    recovery_deadline,
)
from questline.db.mappers import apply_player, player_to_core, player_to_orm, xp_event_to_core
from questline.db.repository import (
    XPLedgerWriter,
    get_player_row,
    load_player_for_update,
    top_players,
    xp_event_rows,
)
from questline.services.steps import award_events
from questline.services.transaction import TransactionRunner

logger = logging.getLogger(__name__)

SOURCE = "player_service"


@dataclass(frozen=True)
class PlayerProfile:
    player: Player
    xp_to_next: Optional[int]
    streak_tier: str
    recovery_available: bool
    recovery_expires_at: Optional[datetime]
    debuff_active: bool


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    player_id: str
    level: int
    total_xp: int
    current_streak: int


class PlayerService:
    def __init__(
        self,
        runner: TransactionRunner,
        event_bus: EventBus,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        curve: LevelCurve | None = None,
        default_timezone: str = "UTC",
    ):
        self._runner = runner
        self._bus = event_bus
        self._config = config or EngineConfig()
        self._clock = clock or SystemClock()
        self._curve = curve or PowerLevelCurve(
            self._config.level_base_xp, self._config.level_exponent
        )
        self._default_timezone = default_timezone

    def _profile(self, player: Player, now: datetime) -> PlayerProfile:
        return PlayerProfile(
            player=player,
            xp_to_next=self._curve.xp_to_next(player.total_xp),
            streak_tier=streak_tier(player.current_streak),
            recovery_available=can_recover(player, now),
            recovery_expires_at=recovery_deadline(player),
            debuff_active=is_debuffed(player, now),
        )

    # === 생성 / 조회 ===

    def create_player(
        self, player_id: str, timezone: Optional[str] = None
    ) -> PlayerProfile:
        """Raises:
        ValidationError: 빈 ID, 알 수 없는 IANA 타임존
        PlayerExistsError: 이미 있는 ID
        """
        player_id = player_id.strip()
        if not player_id:
            raise ValidationError("player_id is required")
        timezone = timezone or self._default_timezone
        if not is_valid_timezone(timezone):
            raise ValidationError(
                f"Unknown timezone: {timezone}", {"timezone": timezone}
            )

        now = self._clock.now()
        player = Player(player_id=player_id, timezone=timezone, created_at=now)
        with self._runner.for_player(player_id) as session:
            if get_player_row(session, player_id) is not None:
                raise PlayerExistsError(
                    f"Player '{player_id}' already exists", {"player_id": player_id}
                )
            session.add(player_to_orm(player))

        logger.info("Player created: %s (%s)", player_id, timezone)
        return self._profile(player, now)

    def get_player(self, player_id: str) -> PlayerProfile:
        with self._runner.read_only() as session:
            row = get_player_row(session, player_id)
            if row is None:
                raise NotFoundError("Player", player_id)
            player = player_to_core(row)
        return self._profile(player, self._clock.now())

    # === 연속 기록 복구 ===

    def recover_streak(self, player_id: str) -> PlayerProfile:
        """유예 토큰 1개로 끊긴 연속 기록 복원.

        Raises:
            RecoveryUnavailableError: 대기 중인 끊김 없음 / 창 만료 / 토큰 없음
        """
        now = self._clock.now()
        with self._runner.for_player(player_id) as session:
            row = load_player_for_update(session, player_id)
            player = player_to_core(row)
            restored = recover_streak(player, now)
            apply_player(row, player)

        self._bus.emit_all(
            [
                GameEvent(
                    event_type=EventTypes.STREAK_RECOVERED,
                    data={
                        "player_id": player_id,
                        "streak": restored,
                        "tokens": player.grace_tokens,
                    },
                    source=SOURCE,
                )
            ]
        )
        return self._profile(player, now)

    # === 하드 모드 ===

    def set_hard_mode(self, player_id: str, enabled: bool) -> PlayerProfile:
        now = self._clock.now()
        with self._runner.for_player(player_id) as session:
            row = load_player_for_update(session, player_id)
            player = player_to_core(row)
            unlock = self._config.hard_mode_unlock_level
            if enabled and player.level < unlock:
                raise RequirementNotMetError(
                    f"Hard mode unlocks at level {unlock}",
                    {"required_level": unlock, "level": player.level},
                )
            player.hard_mode = enabled
            apply_player(row, player)

        logger.info("Hard mode %s for %s", "on" if enabled else "off", player_id)
        return self._profile(player, now)

    # === XP 원장 ===

    def xp_timeline(self, player_id: str, limit: Optional[int] = None) -> list[XPEvent]:
        """생성 순서대로의 XP 이벤트"""
        with self._runner.read_only() as session:
            if get_player_row(session, player_id) is None:
                raise NotFoundError("Player", player_id)
            return [xp_event_to_core(r) for r in xp_event_rows(session, player_id, limit)]

    def verify_ledger(self, player_id: str) -> bool:
        events = self.xp_timeline(player_id)
        ok = verify_chain(events)
        if not ok:
            logger.error("XP ledger verification failed for %s", player_id)
        return ok

    def adjust_xp(self, player_id: str, amount: int, reason: str) -> AwardResult:
        now = self._clock.now()
        with self._runner.for_player(player_id) as session:
            row = load_player_for_update(session, player_id)
            player = player_to_core(row)
            writer = XPLedgerWriter(session, player_id)
            result = adjust_xp(
                player, amount, reason, self._curve, writer.previous_hash, now
            )
            writer.append(result.event)
            apply_player(row, player)

        logger.info("Manual XP adjustment for %s: %+d (%s)", player_id, amount, reason)
        self._bus.emit_all(award_events(result, SOURCE))
        return result

    # === 리더보드 ===

    def leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        if limit <= 0:
            raise ValidationError("limit must be positive", {"limit": limit})
        with self._runner.read_only() as session:
            rows = top_players(session, limit)
            return [
                LeaderboardEntry(
                    rank=i,
                    player_id=row.player_id,
                    level=row.level,
                    total_xp=row.total_xp,
                    current_streak=row.current_streak,
                )
                for i, row in enumerate(rows, start=1)
            ]

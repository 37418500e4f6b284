"""MilestoneLogger - 마일스톤 이벤트를 운영 로그로 남기는 구독자

EventBus 구독 (level_up, streak_broken, streak_recovered,
grace_token_earned, debuff_applied, title_awarded, day_closed, run_expired)
"""

from typing import Callable, Dict

from questline.core.event_bus import EventBus, GameEvent
from questline.core.event_types import EventTypes
from questline.core.logging import get_logger

logger = get_logger(__name__)


class MilestoneLogger:
    def __init__(self, event_bus: EventBus) -> None:
        self._bus = event_bus
        self._handlers: Dict[str, Callable[[GameEvent], None]] = {
            EventTypes.LEVEL_UP: self._on_level_up,
            EventTypes.STREAK_BROKEN: self._on_streak_broken,
            EventTypes.STREAK_RECOVERED: self._on_streak_recovered,
            EventTypes.GRACE_TOKEN_EARNED: self._on_grace_token,
            EventTypes.DEBUFF_APPLIED: self._on_debuff,
            EventTypes.TITLE_AWARDED: self._on_title,
            EventTypes.DAY_CLOSED: self._on_day_closed,
            EventTypes.RUN_EXPIRED: self._on_run_expired,
        }
        self._attached = False

    def attach(self) -> None:
        """EventBus 구독. 두 번 호출해도 한 번만 등록."""
        if self._attached:
            return
        for event_type, handler in self._handlers.items():
            self._bus.subscribe(event_type, handler)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        for event_type, handler in self._handlers.items():
            self._bus.unsubscribe(event_type, handler)
        self._attached = False

    # === 핸들러 ===

    def _on_level_up(self, event: GameEvent) -> None:
        logger.info("Player %s reached level %s", event.data["player_id"], event.data["level"])

    def _on_streak_broken(self, event: GameEvent) -> None:
        logger.info(
            "Player %s lost a %s-day streak (recoverable=%s)",
            event.data["player_id"],
            event.data["lost"],
            event.data["recoverable"],
        )

    def _on_streak_recovered(self, event: GameEvent) -> None:
        logger.info(
            "Player %s recovered streak %s (%s tokens left)",
            event.data["player_id"],
            event.data["streak"],
            event.data["tokens"],
        )

    def _on_grace_token(self, event: GameEvent) -> None:
        logger.info(
            "Player %s earned a grace token (now %s)",
            event.data["player_id"],
            event.data["tokens"],
        )

    def _on_debuff(self, event: GameEvent) -> None:
        logger.info("Player %s debuffed until %s", event.data["player_id"], event.data["until"])

    def _on_title(self, event: GameEvent) -> None:
        logger.info("Player %s earned title %r", event.data["player_id"], event.data["title"])

    def _on_day_closed(self, event: GameEvent) -> None:
        logger.info(
            "Day %s closed for %s (qualified=%s, auto=%s)",
            event.data["date"],
            event.data["player_id"],
            event.data["qualified"],
            event.data["auto"],
        )

    def _on_run_expired(self, event: GameEvent) -> None:
        logger.info("Run %s expired for %s", event.data["run_id"], event.data["player_id"])

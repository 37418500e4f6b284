"""EventBus - 엔진 → 소비자(알림, 마일스톤 메시지) 이벤트 통신

규칙:
- 이벤트는 식별자(ID)와 작은 값만 전달한다
- 전파 깊이 최대 MAX_DEPTH 단계
- 한 작업 안에서 동일 이벤트(같은 source, type, data) 중복 발행 금지
- 핸들러 예외는 로그만 남기고 엔진 상태에 영향을 주지 않는다
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Set

from questline.core.logging import get_logger

logger = get_logger(__name__)

MAX_DEPTH = 5  # 한 작업 내 이벤트 전파 최대 깊이


@dataclass
class GameEvent:
    """이벤트 데이터 컨테이너

    Args:
        event_type: 이벤트 유형 (예: "level_up", "day_closed")
        data: 이벤트 데이터 (ID 위주, 무거운 객체 금지)
        source: 발행한 서비스 이름
    """

    event_type: str
    data: Dict[str, Any]
    source: str

    # 내부 추적용 (외부에서 설정하지 않음)
    _depth: int = field(default=0, repr=False)

    @property
    def dedupe_key(self) -> str:
        payload = ",".join(f"{k}={self.data[k]}" for k in sorted(self.data))
        return f"{self.source}:{self.event_type}:{payload}"


EventHandler = Callable[[GameEvent], None]


class EventBus:
    """동기식 이벤트 버스

    사용 패턴:
        bus = EventBus()
        bus.subscribe(EventTypes.LEVEL_UP, notifier.on_level_up)
        bus.emit(GameEvent(event_type=EventTypes.LEVEL_UP, data={"player_id": "p1", "level": 5}, source="progression"))
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._current_depth: int = 0
        self._emitted_in_chain: Set[str] = set()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """이벤트 구독 등록"""
        self._handlers[event_type].append(handler)
        logger.debug("EventBus subscribe: %s -> %s", event_type, handler.__qualname__)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """이벤트 구독 해제"""
        try:
            self._handlers[event_type].remove(handler)
        except ValueError:
            logger.warning(
                "EventBus handler not registered: %s -> %s",
                event_type,
                handler.__qualname__,
            )

    def emit(self, event: GameEvent) -> None:
        """이벤트 발행. 등록된 핸들러를 동기 호출.

        안전장치:
        1. 전파 깊이 MAX_DEPTH 초과 시 무시
        2. 같은 작업 안에서 동일 이벤트 중복 발행 시 무시
        """
        if self._current_depth >= MAX_DEPTH:
            logger.warning(
                "EventBus depth exceeded (%d): %s:%s dropped",
                MAX_DEPTH,
                event.source,
                event.event_type,
            )
            return

        key = event.dedupe_key
        if key in self._emitted_in_chain:
            logger.warning("EventBus duplicate event blocked: %s", key)
            return

        self._emitted_in_chain.add(key)
        event._depth = self._current_depth

        handlers = list(self._handlers.get(event.event_type, []))
        if not handlers:
            logger.debug("EventBus: no subscribers for %s", event.event_type)
            return

        self._current_depth += 1
        try:
            for handler in handlers:
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        "EventBus handler error: %s (event=%s)",
                        handler.__qualname__,
                        event.event_type,
                    )
        finally:
            self._current_depth -= 1

    def emit_all(self, events: List[GameEvent]) -> None:
        """커밋 이후 모아 둔 이벤트를 순서대로 발행하고 추적을 초기화."""
        try:
            for event in events:
                self.emit(event)
        finally:
            self.reset_chain()

    def reset_chain(self) -> None:
        """작업 종료 시 호출. 중복 추적 초기화."""
        self._emitted_in_chain.clear()
        self._current_depth = 0

    def clear(self) -> None:
        """모든 구독 해제 (테스트용)"""
        self._handlers.clear()
        self.reset_chain()

    @property
    def handler_count(self) -> int:
        """등록된 총 핸들러 수"""
        return sum(len(h) for h in self._handlers.values())

"""MilestoneLogger 테스트: 구독/해제, 로그 메시지"""

import logging
from datetime import datetime, timezone

import pytest

from questline.core.event_bus import EventBus, GameEvent
from questline.core.event_types import EventTypes
from questline.services.milestone_log import MilestoneLogger

LOGGER = "questline.services.milestone_log"


@pytest.fixture()
def milestones(event_bus):
    subscriber = MilestoneLogger(event_bus)
    subscriber.attach()
    yield subscriber
    subscriber.detach()


class TestSubscription:
    def test_attach_is_idempotent(self):
        bus = EventBus()
        subscriber = MilestoneLogger(bus)
        subscriber.attach()
        count = bus.handler_count
        subscriber.attach()
        assert bus.handler_count == count > 0

    def test_detach_removes_handlers(self):
        bus = EventBus()
        subscriber = MilestoneLogger(bus)
        subscriber.attach()
        subscriber.detach()
        assert bus.handler_count == 0


class TestMessages:
    def test_level_up(self, caplog):
        bus = EventBus()
        MilestoneLogger(bus).attach()
        caplog.set_level(logging.INFO, logger=LOGGER)
        bus.emit(
            GameEvent(
                event_type=EventTypes.LEVEL_UP,
                data={"player_id": "p1", "level": 5},
                source="test",
            )
        )
        assert "Player p1 reached level 5" in caplog.text

    def test_day_close_milestones(self, milestones, services, player_id, clock, caplog):
        caplog.set_level(logging.INFO, logger=LOGGER)
        clock.set(datetime(2025, 6, 2, 22, 30, tzinfo=timezone.utc))
        services[2].close_day(player_id)

        assert "Day 2025-06-02 closed for p1 (qualified=False, auto=False)" in caplog.text
        assert "Player p1 debuffed until" in caplog.text

    def test_app_attaches_subscriber(self, client):
        bus = client.app.state.event_bus
        assert client.app.state.milestones is not None
        assert bus.handler_count > 0

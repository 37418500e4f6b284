"""PlayerService 통합 테스트"""

import pytest
from sqlalchemy import update

from questline.core.errors import (
    NotFoundError,
    PlayerExistsError,
    RecoveryUnavailableError,
    RequirementNotMetError,
    ValidationError,
)
from questline.core.event_types import EventTypes
from questline.core.progression.level_curve import PowerLevelCurve
from questline.db.models import XPEventModel


@pytest.fixture()
def player_service(services):
    return services[0]


class TestCreate:
    def test_new_player(self, player_service):
        profile = player_service.create_player("hunter", "Asia/Seoul")
        assert profile.player.level == 1
        assert profile.player.timezone == "Asia/Seoul"
        assert profile.xp_to_next == 100
        assert profile.streak_tier == "none"
        assert not profile.recovery_available
        assert not profile.debuff_active

    def test_default_timezone(self, player_service):
        assert player_service.create_player("hunter").player.timezone == "UTC"

    def test_duplicate(self, player_service, player_id):
        with pytest.raises(PlayerExistsError):
            player_service.create_player(player_id)

    @pytest.mark.parametrize("pid, tz", [("  ", "UTC"), ("hunter", "Mars/Olympus")])
    def test_invalid_input(self, player_service, pid, tz):
        with pytest.raises(ValidationError):
            player_service.create_player(pid, tz)

    def test_unknown_player(self, player_service):
        with pytest.raises(NotFoundError):
            player_service.get_player("ghost")


class TestLedger:
    def test_adjust_levels_up(self, player_service, player_id, events):
        result = player_service.adjust_xp(player_id, 150, "migration")
        assert result.crossed_levels == [2]
        profile = player_service.get_player(player_id)
        assert profile.player.level == 2
        assert profile.player.current_xp == 50
        assert EventTypes.LEVEL_UP in [e.event_type for e in events]

    def test_adjust_rejects_zero(self, player_service, player_id):
        with pytest.raises(ValidationError):
            player_service.adjust_xp(player_id, 0, "nothing")

    def test_tampering_detected(self, player_service, player_id, db_session):
        player_service.adjust_xp(player_id, 150, "migration")
        player_service.adjust_xp(player_id, 20, "bonus")
        assert player_service.verify_ledger(player_id)

        db_session.execute(
            update(XPEventModel)
            .where(XPEventModel.player_id == player_id, XPEventModel.sequence == 1)
            .values(final_amount=999)
        )
        db_session.commit()
        assert not player_service.verify_ledger(player_id)

    def test_timeline_limit(self, player_service, player_id):
        for amount in (10, 20, 30):
            player_service.adjust_xp(player_id, amount, "seed")
        timeline = player_service.xp_timeline(player_id, limit=2)
        assert [e.final_amount for e in timeline] == [10, 20]

    def test_timeline_unknown_player(self, player_service):
        with pytest.raises(NotFoundError):
            player_service.xp_timeline("ghost")


class TestHardMode:
    def test_locked_below_unlock_level(self, player_service, player_id):
        with pytest.raises(RequirementNotMetError):
            player_service.set_hard_mode(player_id, True)

    def test_hard_mode_multiplier(self, services, player_id, quest_ids, engine_config):
        player_service, quest_service, _, _ = services
        curve = PowerLevelCurve(engine_config.level_base_xp, engine_config.level_exponent)
        player_service.adjust_xp(player_id, curve.threshold(25), "veteran import")

        profile = player_service.set_hard_mode(player_id, True)
        assert profile.player.hard_mode

        ids = quest_ids(player_id)
        result = quest_service.submit_progress(player_id, ids["steps"], 10000)
        assert result.award.event.final_amount == 75

    def test_disable_is_always_allowed(self, player_service, player_id):
        assert not player_service.set_hard_mode(player_id, False).player.hard_mode


class TestLeaderboard:
    def test_ordering(self, player_service, player_id):
        player_service.create_player("p2")
        player_service.create_player("p3")
        player_service.adjust_xp("p2", 300, "seed")
        player_service.adjust_xp(player_id, 100, "seed")

        board = player_service.leaderboard(limit=2)
        assert [(e.rank, e.player_id) for e in board] == [(1, "p2"), (2, player_id)]
        assert board[0].level == 2

    def test_invalid_limit(self, player_service):
        with pytest.raises(ValidationError):
            player_service.leaderboard(limit=0)


class TestRecovery:
    def test_nothing_to_recover(self, player_service, player_id):
        with pytest.raises(RecoveryUnavailableError) as exc_info:
            player_service.recover_streak(player_id)
        assert exc_info.value.details["reason"] == "no pending break"

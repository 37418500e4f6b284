"""Streak & Grace Manager 테스트"""

from datetime import date, datetime, timedelta, timezone

import pytest

from questline.core.engine_config import EngineConfig
from questline.core.errors import InvariantViolation, RecoveryUnavailableError
from questline.core.progression.models import Player
from questline.core.quest.enums import QuestStatus
from questline.core.quest.models import QuestInstance
from questline.core.streak.streak_logic import (
    can_recover,
    day_qualifies,
    is_debuffed,
    recompute_streak,
    recover_streak,
    recovery_deadline,
)

MONDAY = date(2025, 6, 2)
CONFIG = EngineConfig()


def night(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, 22, 30, tzinfo=timezone.utc)


def core(*statuses, partial=()):
    """statuses: 'c' 완료, 'p' 부분, 'f' 실패"""
    result = []
    for i, s in enumerate(statuses):
        status = QuestStatus.FAILED if s == "f" else QuestStatus.COMPLETED
        percent = 60.0 if s == "p" else (100.0 if s == "c" else 0.0)
        result.append(
            QuestInstance(
                instance_id=f"q{i}",
                player_id="p1",
                template_id=f"t{i}",
                quest_date=MONDAY,
                status=status,
                completion_percent=percent,
            )
        )
    return result


def close(player, day, instances, config=CONFIG):
    return recompute_streak(player, day, instances, night(day), config)


class TestQualification:
    @pytest.mark.parametrize(
        "threshold, four_of_five, three_of_five",
        [(0.6, True, True), (0.8, True, False), (1.0, False, False)],
    )
    def test_threshold(self, threshold, four_of_five, three_of_five):
        assert day_qualifies(core("c", "c", "c", "c", "f"), threshold) is four_of_five
        assert day_qualifies(core("c", "c", "c", "f", "f"), threshold) is three_of_five

    def test_configured_threshold_drives_streak(self):
        player = Player(player_id="p1")
        strict = EngineConfig(qualifying_threshold=1.0)
        outcome = close(player, MONDAY, core("c", "c", "c", "c", "f"), config=strict)
        assert not outcome.qualified
        assert player.current_streak == 0

    def test_no_core_quests_never_qualify(self):
        assert not day_qualifies([], 0.8)

    def test_perfect_day(self):
        player = Player(player_id="p1")
        outcome = close(player, MONDAY, core("c", "c", "c"))
        assert outcome.qualified and outcome.perfect
        assert player.current_streak == 1
        assert player.longest_streak == 1
        assert player.perfect_streak == 1
        assert player.last_streak_date == MONDAY
        assert player.days_closed == 1

    def test_four_of_five_qualifies_but_not_perfect(self):
        player = Player(player_id="p1", perfect_streak=3)
        outcome = close(player, MONDAY, core("c", "c", "c", "c", "f"))
        assert outcome.qualified
        assert not outcome.perfect
        assert player.perfect_streak == 0

    def test_partial_counts_toward_qualification_only(self):
        player = Player(player_id="p1")
        outcome = close(player, MONDAY, core("c", "c", "p"))
        assert outcome.qualified
        assert not outcome.perfect


class TestGraceTokens:
    def test_token_every_seven_days(self):
        player = Player(player_id="p1", current_streak=6, last_streak_date=MONDAY - timedelta(days=1))
        outcome = close(player, MONDAY, core("c", "c", "c"))
        assert outcome.tokens_earned == 1
        assert player.grace_tokens == 1

    def test_token_cap(self):
        player = Player(
            player_id="p1",
            current_streak=13,
            grace_tokens=3,
            last_streak_date=MONDAY - timedelta(days=1),
        )
        outcome = close(player, MONDAY, core("c", "c", "c"))
        assert outcome.tokens_earned == 0
        assert player.grace_tokens == 3


class TestBreak:
    def test_break_with_token_opens_recovery(self):
        player = Player(
            player_id="p1",
            current_streak=5,
            grace_tokens=1,
            last_streak_date=MONDAY - timedelta(days=1),
        )
        outcome = close(player, MONDAY, core("c", "f", "f"))
        assert outcome.broken
        assert outcome.recovery_opened
        assert player.current_streak == 0
        assert player.broken_streak == 5
        # 다음 날 로컬 하루가 끝날 때까지
        assert recovery_deadline(player) == datetime(2025, 6, 4, 0, 0, tzinfo=timezone.utc)

    def test_break_without_token(self):
        player = Player(player_id="p1", current_streak=5, last_streak_date=MONDAY - timedelta(days=1))
        outcome = close(player, MONDAY, core("f", "f", "c"))
        assert outcome.broken
        assert not outcome.recovery_opened
        assert player.broken_streak == 0
        assert not can_recover(player, night(MONDAY))

    def test_gap_resets_streak(self):
        player = Player(
            player_id="p1",
            current_streak=4,
            grace_tokens=1,
            last_streak_date=MONDAY - timedelta(days=3),
        )
        outcome = close(player, MONDAY, core("c", "c", "c"))
        assert outcome.gap_days == 2
        assert outcome.broken
        assert player.current_streak == 1
        assert player.broken_streak == 0

    def test_already_included_date_is_invariant_violation(self):
        player = Player(player_id="p1", last_streak_date=MONDAY)
        with pytest.raises(InvariantViolation):
            close(player, MONDAY, core("c"))


class TestDebuff:
    def test_two_missed_core_applies_debuff(self):
        player = Player(player_id="p1")
        outcome = close(player, MONDAY, core("c", "f", "f"))
        assert outcome.debuff_applied
        assert player.debuff_until == night(MONDAY) + timedelta(hours=24)
        assert is_debuffed(player, night(MONDAY) + timedelta(hours=23))
        assert not is_debuffed(player, night(MONDAY) + timedelta(hours=24))

    def test_single_miss_no_debuff(self):
        player = Player(player_id="p1")
        outcome = close(player, MONDAY, core("c", "c", "f"))
        assert not outcome.debuff_applied
        assert player.debuff_until is None


class TestRecovery:
    def broken_player(self):
        player = Player(
            player_id="p1",
            current_streak=5,
            longest_streak=5,
            grace_tokens=1,
            last_streak_date=MONDAY - timedelta(days=1),
        )
        close(player, MONDAY, core("f", "f", "f"))
        return player

    def test_recover_restores_streak(self):
        player = self.broken_player()
        restored = recover_streak(player, night(MONDAY) + timedelta(minutes=10))
        assert restored == 5
        assert player.current_streak == 5
        assert player.grace_tokens == 0
        assert player.broken_streak == 0

    def test_recover_includes_days_since_break(self):
        player = self.broken_player()
        tuesday = MONDAY + timedelta(days=1)
        close(player, tuesday, core("c", "c", "c"))
        assert player.current_streak == 1
        assert recover_streak(player, night(tuesday)) == 6
        assert player.longest_streak == 6

    def test_recover_is_one_shot(self):
        player = self.broken_player()
        recover_streak(player, night(MONDAY))
        with pytest.raises(RecoveryUnavailableError):
            recover_streak(player, night(MONDAY))

    def test_second_miss_cancels_recovery(self):
        player = self.broken_player()
        tuesday = MONDAY + timedelta(days=1)
        outcome = close(player, tuesday, core("f", "f", "f"))
        assert not outcome.recovery_opened
        assert player.broken_streak == 0
        assert player.grace_tokens == 1
        assert not can_recover(player, night(tuesday))
        with pytest.raises(RecoveryUnavailableError) as exc_info:
            recover_streak(player, night(tuesday) + timedelta(minutes=30))
        assert exc_info.value.details["reason"] == "no pending break"
        assert player.current_streak == 0

    def test_window_closed(self):
        player = self.broken_player()
        with pytest.raises(RecoveryUnavailableError) as exc_info:
            recover_streak(player, datetime(2025, 6, 4, 0, 0, tzinfo=timezone.utc))
        assert exc_info.value.details["reason"] == "recovery window closed"

    def test_nothing_to_recover(self):
        with pytest.raises(RecoveryUnavailableError) as exc_info:
            recover_streak(Player(player_id="p1", grace_tokens=2), night(MONDAY))
        assert exc_info.value.details["reason"] == "no pending break"

    def test_expired_window_cleared_on_next_close(self):
        player = self.broken_player()
        wednesday = MONDAY + timedelta(days=2)
        player.last_streak_date = wednesday - timedelta(days=1)
        close(player, wednesday, core("c", "c", "c"))
        assert player.broken_streak == 0
        assert player.recovery_expires_at is None

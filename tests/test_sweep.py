"""Tests for the periodic sweep job."""

from datetime import datetime, timezone

from questline.jobs.sweep import SweepResult, run_sweep


def test_sweep_closes_days_and_expires_runs(services, player_id, quest_ids) -> None:
    _, _, day_service, run_service = services
    quest_ids(player_id)
    run_service.enter(player_id, "step_gate")

    result = run_sweep(
        day_service, run_service, now=datetime(2025, 6, 4, 9, 0, tzinfo=timezone.utc)
    )
    assert result == SweepResult(days_closed=1, runs_expired=1)


def test_sweep_with_nothing_to_do(services, player_id) -> None:
    _, _, day_service, run_service = services
    assert run_sweep(day_service, run_service) == SweepResult(days_closed=0, runs_expired=0)

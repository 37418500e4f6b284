"""Periodic sweep: auto-close abandoned days and expire overdue runs.

Correctness never depends on this job (phases and expiry are computed lazily);
it only finalizes records nobody touched. Run it every few minutes via
cron or a systemd timer::

    python -m questline.jobs.sweep
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from questline.config import settings
from questline.core.clock import SystemClock
from questline.core.content import ContentProvider
from questline.core.engine_config import EngineConfig
from questline.core.event_bus import EventBus
from questline.core.logging import get_logger, setup_logging
from questline.db.database import SessionLocal
from questline.db.models import Base
from questline.main import load_content
from questline.services.day_service import DayService
from questline.services.run_service import RunService
from questline.services.transaction import TransactionRunner

logger = get_logger(__name__)


@dataclass(frozen=True)
class SweepResult:
    days_closed: int
    runs_expired: int


def run_sweep(
    day_service: DayService, run_service: RunService, now: Optional[datetime] = None
) -> SweepResult:
    summaries = day_service.sweep_abandoned_days(now)
    expired = run_service.expire_overdue(now)
    return SweepResult(days_closed=len(summaries), runs_expired=expired)


def build_services(content: ContentProvider) -> tuple[DayService, RunService]:
    runner = TransactionRunner(SessionLocal)
    bus = EventBus()
    config = EngineConfig.from_settings(settings)
    clock = SystemClock()
    return (
        DayService(runner, bus, content, config, clock),
        RunService(runner, bus, content, config, clock),
    )


def main() -> None:
    setup_logging(settings.LOG_LEVEL)
    Base.metadata.create_all(bind=SessionLocal.kw["bind"])
    day_service, run_service = build_services(load_content(settings))
    result = run_sweep(day_service, run_service)
    logger.info(
        "Sweep finished: %d day(s) auto-closed, %d run(s) expired",
        result.days_closed,
        result.runs_expired,
    )


if __name__ == "__main__":
    main()

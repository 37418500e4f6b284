"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from sqlalchemy.orm import Session, sessionmaker

from questline.api.day import router as day_router
from questline.api.errors import register_exception_handlers
from questline.api.health import router as health_router
from questline.api.players import router as players_router
from questline.api.quests import router as quests_router
from questline.api.runs import router as runs_router
from questline.config import Settings, settings as default_settings
from questline.core.clock import Clock, SystemClock
from questline.core.content import ContentProvider, JsonContentProvider
from questline.core.engine_config import EngineConfig
from questline.core.event_bus import EventBus
from questline.core.logging import get_logger, setup_logging
from questline.db.database import SessionLocal, make_engine, make_session_factory
from questline.db.models import Base
from questline.db.repository import sync_templates
from questline.services.day_service import DayService
from questline.services.milestone_log import MilestoneLogger
from questline.services.player_service import PlayerService
from questline.services.quest_service import QuestService
from questline.services.run_service import RunService
from questline.services.transaction import TransactionRunner

logger = get_logger(__name__)

BUNDLED_CONTENT = Path(__file__).parent / "data" / "content.json"


def resolve_content_path(configured: str) -> Path:
    """설정 경로가 없으면 패키지에 포함된 content.json 사용"""
    path = Path(configured) if configured else BUNDLED_CONTENT
    if not path.exists():
        logger.warning("Content file %s not found, using bundled content", path)
        return BUNDLED_CONTENT
    return path


def load_content(cfg: Settings) -> JsonContentProvider:
    content = JsonContentProvider()
    content.load_from_json(resolve_content_path(cfg.CONTENT_PATH))
    return content


def create_app(
    cfg: Optional[Settings] = None,
    session_factory: Optional[sessionmaker[Session]] = None,
    content: Optional[ContentProvider] = None,
    clock: Optional[Clock] = None,
    engine_config: Optional[EngineConfig] = None,
) -> FastAPI:
    """앱 팩토리. 테스트는 세션 팩토리/콘텐츠/시계를 주입한다."""
    cfg = cfg or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup and shutdown events."""
        setup_logging(cfg.LOG_LEVEL, sql_echo=cfg.DEBUG)

        factory = session_factory
        if factory is None:
            factory = (
                SessionLocal
                if cfg is default_settings
                else make_session_factory(make_engine(cfg.DATABASE_URL, echo=cfg.DEBUG))
            )

        # DB 테이블 생성
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=factory.kw["bind"])
        logger.info("Database tables created.")

        # 콘텐츠 로드 + 템플릿 동기화
        provider = content or load_content(cfg)
        with factory.begin() as session:
            synced = sync_templates(session, provider.templates())
        logger.info("Quest templates synced: %d", synced)

        event_bus = EventBus()
        milestones = MilestoneLogger(event_bus)
        milestones.attach()
        runner = TransactionRunner(factory)
        config = engine_config or EngineConfig.from_settings(cfg)
        app_clock = clock or SystemClock()

        app.state.session_factory = factory
        app.state.event_bus = event_bus
        app.state.milestones = milestones
        app.state.content = provider
        app.state.quest_service = QuestService(runner, event_bus, provider, config, app_clock)
        app.state.day_service = DayService(runner, event_bus, provider, config, app_clock)
        app.state.run_service = RunService(runner, event_bus, provider, config, app_clock)
        app.state.player_service = PlayerService(
            runner,
            event_bus,
            config,
            app_clock,
            default_timezone=cfg.DEFAULT_TIMEZONE,
        )
        logger.info("Services initialized.")

        yield

        # 종료 시 정리
        logger.info("Shutting down...")
        milestones.detach()
        event_bus.clear()

    app = FastAPI(title="Questline", lifespan=lifespan)
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(players_router)
    app.include_router(quests_router)
    app.include_router(day_router)
    app.include_router(runs_router)
    return app


app = create_app()

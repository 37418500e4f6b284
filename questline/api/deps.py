"""서비스 의존성 주입 + 응답 변환 헬퍼"""

from fastapi import Request

from questline.api.schemas import (
    AwardInfo,
    ModifierInfo,
    ObjectiveInfo,
    QuestInfo,
    RunInfo,
    XPEventInfo,
)
from questline.core.progression.models import AwardResult, XPEvent
from questline.core.run.models import TimedRun
from questline.services.day_service import DayService
from questline.services.player_service import PlayerService
from questline.services.quest_service import QuestService, QuestView
from questline.services.run_service import RunService


def get_quest_service(request: Request) -> QuestService:
    """QuestService 인스턴스 반환 (의존성 주입)"""
    service: QuestService = request.app.state.quest_service
    return service


def get_day_service(request: Request) -> DayService:
    service: DayService = request.app.state.day_service
    return service


def get_run_service(request: Request) -> RunService:
    service: RunService = request.app.state.run_service
    return service


def get_player_service(request: Request) -> PlayerService:
    service: PlayerService = request.app.state.player_service
    return service


# === 변환 ===


def build_quest_info(view: QuestView) -> QuestInfo:
    """QuestView를 QuestInfo로 변환"""
    inst, tmpl = view.instance, view.template
    return QuestInfo(
        quest_id=inst.instance_id,
        template_id=inst.template_id,
        name=tmpl.name,
        category=tmpl.category.value,
        cadence=tmpl.cadence.value,
        is_core=tmpl.is_core,
        quest_date=inst.quest_date,
        activation=inst.activation,
        status=inst.status.value,
        current_value=inst.current_value,
        target_value=inst.target_value,
        completion_percent=inst.completion_percent,
        partial=inst.is_partial,
        reconciled=inst.reconciled,
        xp_awarded=inst.xp_awarded,
        completed_at=inst.completed_at,
    )


def build_xp_event_info(event: XPEvent) -> XPEventInfo:
    return XPEventInfo(
        event_id=event.event_id,
        source=event.source.value,
        source_id=event.source_id,
        base_amount=str(event.base_amount),
        modifiers=[
            ModifierInfo(name=m.name, multiplier=str(m.multiplier))
            for m in event.modifiers
        ],
        final_amount=event.final_amount,
        level_before=event.level_before,
        level_after=event.level_after,
        total_before=event.total_before,
        total_after=event.total_after,
        stat=event.stat.value if event.stat else None,
        stat_delta=event.stat_delta,
        reverses_event_id=event.reverses_event_id,
        description=event.description,
        created_at=event.created_at,
    )


def build_award_info(result: AwardResult | None) -> AwardInfo | None:
    if result is None:
        return None
    return AwardInfo(
        event=build_xp_event_info(result.event),
        crossed_levels=list(result.crossed_levels),
    )


def build_run_info(run: TimedRun) -> RunInfo:
    return RunInfo(
        run_id=run.run_id,
        definition_id=run.definition_id,
        kind=run.kind.value,
        rank=run.rank.value,
        status=run.status.value,
        started_at=run.started_at,
        expires_at=run.expires_at,
        ended_at=run.ended_at,
        overall_progress=run.overall_progress,
        objectives=[
            ObjectiveInfo(label=o.label, current_value=o.current_value, percent=o.percent)
            for o in run.objectives
        ],
        xp_awarded=run.xp_awarded,
        debuff_at_entry=run.debuff_at_entry,
    )

"""Quest Instance Factory — 템플릿 → 날짜별 인스턴스 전개"""

import hashlib
import logging
import uuid
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence

from questline.core.errors import QuestAlreadyActiveError, ValidationError
from questline.core.quest.enums import QuestCadence, QuestStatus
from questline.core.quest.models import QuestInstance, QuestTemplate

logger = logging.getLogger(__name__)

# 자동 전개되지 않는 cadence
ON_DEMAND_CADENCES = frozenset({QuestCadence.BONUS})
NEVER_MATERIALIZED = frozenset({QuestCadence.DUNGEON, QuestCadence.BOSS})


def new_instance_id() -> str:
    return f"quest_{uuid.uuid4().hex[:12]}"


def pick_rotating_template(
    rotating: Sequence[QuestTemplate],
    player_id: str,
    day: date,
    previous_pick: Optional[str] = None,
) -> Optional[QuestTemplate]:
    """(player_id, date) 기반 결정적 선택. 후보가 2개 이상이면 전날 선택은 제외."""
    candidates = sorted(rotating, key=lambda t: t.template_id)
    if len(candidates) > 1 and previous_pick is not None:
        candidates = [t for t in candidates if t.template_id != previous_pick]
    if not candidates:
        return None

    digest = hashlib.sha256(f"{player_id}:{day.isoformat()}".encode()).hexdigest()
    return candidates[int(digest, 16) % len(candidates)]


def applicable_templates(
    templates: Iterable[QuestTemplate],
    player_id: str,
    day: date,
    rotating_unlocked: bool = False,
    previous_rotating_pick: Optional[str] = None,
) -> list[QuestTemplate]:
    """해당 날짜에 자동 전개 대상인 템플릿 목록"""
    result: list[QuestTemplate] = []
    rotating: list[QuestTemplate] = []

    for template in templates:
        if not template.is_active:
            continue
        cadence = template.cadence
        if cadence is QuestCadence.DAILY:
            result.append(template)
        elif cadence is QuestCadence.WEEKLY:
            if template.weekday == day.weekday():
                result.append(template)
        elif cadence is QuestCadence.ROTATING:
            rotating.append(template)
        # BONUS는 on-demand, DUNGEON/BOSS는 timed run 전용

    if rotating_unlocked and rotating:
        pick = pick_rotating_template(rotating, player_id, day, previous_rotating_pick)
        if pick is not None:
            result.append(pick)

    return result


def materialize_daily_instances(
    player_id: str,
    day: date,
    templates: Mapping[str, QuestTemplate],
    existing: Iterable[QuestInstance],
    rotating_unlocked: bool = False,
    previous_rotating_pick: Optional[str] = None,
) -> list[QuestInstance]:
    """아직 전개되지 않은 템플릿만 새 인스턴스로 만든다. 재호출은 no-op.

    Returns:
        새로 만든 인스턴스 목록 (저장은 호출측)
    """
    existing_ids = {inst.template_id for inst in existing}
    has_rotating = any(
        templates[tid].cadence is QuestCadence.ROTATING
        for tid in existing_ids
        if tid in templates
    )

    created: list[QuestInstance] = []
    for template in applicable_templates(
        templates.values(),
        player_id,
        day,
        rotating_unlocked=rotating_unlocked and not has_rotating,
        previous_rotating_pick=previous_rotating_pick,
    ):
        if template.template_id in existing_ids:
            continue
        created.append(
            QuestInstance(
                instance_id=new_instance_id(),
                player_id=player_id,
                template_id=template.template_id,
                quest_date=day,
                target_value=template.target_value,
            )
        )

    if created:
        logger.debug(
            "Materialized %d quests for %s on %s", len(created), player_id, day
        )
    return created


def activate_template(
    player_id: str,
    template: QuestTemplate,
    day: date,
    existing: Iterable[QuestInstance],
) -> QuestInstance:
    """on-demand 활성화. 같은 날 해소된 인스턴스만 있으면 activation + 1.

    Raises:
        ValidationError: 비활성 템플릿 또는 timed run 전용 cadence
        QuestAlreadyActiveError: 같은 날 ACTIVE 인스턴스가 이미 있음
    """
    if not template.is_active:
        raise ValidationError(
            f"Template '{template.template_id}' is not active",
            {"template_id": template.template_id},
        )
    if template.cadence in NEVER_MATERIALIZED:
        raise ValidationError(
            f"Template '{template.template_id}' is only available as a timed run",
            {"template_id": template.template_id, "cadence": template.cadence.value},
        )

    same = [
        inst
        for inst in existing
        if inst.template_id == template.template_id and inst.quest_date == day
    ]
    if any(inst.status is QuestStatus.ACTIVE for inst in same):
        raise QuestAlreadyActiveError(
            f"Template '{template.template_id}' already has an active quest on {day}",
            {"template_id": template.template_id, "date": day.isoformat()},
        )

    activation = max((inst.activation for inst in same), default=-1) + 1
    return QuestInstance(
        instance_id=new_instance_id(),
        player_id=player_id,
        template_id=template.template_id,
        quest_date=day,
        activation=activation,
        target_value=template.target_value,
    )

"""엔진 튜닝 값 묶음

Settings(환경 변수)에서 만들어 서비스에 주입한다.
테스트는 Settings를 건드리지 않고 EngineConfig(...)를 직접 만든다.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class EngineConfig:
    qualifying_threshold: float = 0.8
    default_partial_min_percent: float = 50.0
    rotating_unlock_days: int = 7

    grace_token_earn_days: int = 7
    max_grace_tokens: int = 3
    recovery_window_days: int = 1

    debuff_min_missed_core: int = 2
    debuff_hours: int = 24
    debuff_multiplier: Decimal = Decimal("0.9")

    streak_bonus_enabled: bool = True
    weekend_bonus_enabled: bool = True
    weekend_multiplier: Decimal = Decimal("1.10")
    seasonal_bonus_enabled: bool = True
    hard_mode_enabled: bool = True
    hard_mode_multiplier: Decimal = Decimal("1.5")
    hard_mode_unlock_level: int = 25
    debuff_enabled: bool = True

    level_base_xp: int = 100
    level_exponent: float = 1.5
    stat_bonus_xp_scale: float = 0.0

    @classmethod
    def from_settings(cls, settings: Any) -> EngineConfig:
        """Settings의 같은 이름(대문자) 필드를 읽는다. float 배율은 Decimal로 변환."""
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = getattr(settings, f.name.upper(), None)
            if raw is None:
                continue
            if isinstance(f.default, Decimal):
                raw = Decimal(str(raw))
            values[f.name] = raw
        return cls(**values)

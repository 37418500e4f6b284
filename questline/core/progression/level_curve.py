"""레벨 곡선: 누적 XP → 레벨

threshold(L)은 레벨 L에 도달하는 데 필요한 누적 XP. threshold(1) = 0.
임계값은 반드시 엄격하게 증가한다.
"""

from __future__ import annotations

import bisect
import math
from abc import ABC, abstractmethod
from typing import Sequence

from questline.core.errors import ValidationError

DEFAULT_MAX_LEVEL = 100


class LevelCurve(ABC):
    @property
    @abstractmethod
    def thresholds(self) -> Sequence[int]:
        """index i → 레벨 i+1의 누적 임계값"""

    @property
    def max_level(self) -> int:
        return len(self.thresholds)

    def threshold(self, level: int) -> int:
        if level < 1 or level > self.max_level:
            raise ValidationError(f"Level out of range: {level}", {"level": level})
        return self.thresholds[level - 1]

    def level_for(self, total_xp: int) -> int:
        if total_xp <= 0:
            return 1
        return bisect.bisect_right(self.thresholds, total_xp)

    def xp_into_level(self, total_xp: int) -> int:
        return max(0, total_xp) - self.threshold(self.level_for(total_xp))

    def xp_to_next(self, total_xp: int) -> int | None:
        level = self.level_for(total_xp)
        if level >= self.max_level:
            return None
        return self.threshold(level + 1) - max(0, total_xp)

    def crossed_levels(self, total_before: int, total_after: int) -> list[int]:
        """total_before → total_after 사이에 새로 도달한 레벨 (오름차순)"""
        before = self.level_for(total_before)
        after = self.level_for(total_after)
        return list(range(before + 1, after + 1))


class PowerLevelCurve(LevelCurve):
    """threshold(L) = Σ_{k=1}^{L-1} floor(base · k^exponent)

    기본값(100, 1.5): 레벨 2 = 100, 레벨 3 = 382
    """

    def __init__(
        self,
        base_xp: int = 100,
        exponent: float = 1.5,
        max_level: int = DEFAULT_MAX_LEVEL,
    ) -> None:
        if base_xp <= 0 or exponent <= 0:
            raise ValidationError(
                "Level curve parameters must be positive",
                {"base_xp": base_xp, "exponent": exponent},
            )
        self.base_xp = base_xp
        self.exponent = exponent
        cumulative = [0]
        for k in range(1, max_level):
            cumulative.append(cumulative[-1] + math.floor(base_xp * k**exponent))
        self._thresholds = tuple(cumulative)

    @property
    def thresholds(self) -> Sequence[int]:
        return self._thresholds


class TableLevelCurve(LevelCurve):
    """명시적 임계값 테이블. 첫 값은 0 (레벨 1)."""

    def __init__(self, thresholds: Sequence[int]) -> None:
        values = tuple(int(t) for t in thresholds)
        if not values or values[0] != 0:
            raise ValidationError("Level table must start at 0", {"thresholds": values})
        if any(b <= a for a, b in zip(values, values[1:])):
            raise ValidationError(
                "Level thresholds must be strictly increasing",
                {"thresholds": values},
            )
        self._thresholds = values

    @property
    def thresholds(self) -> Sequence[int]:
        return self._thresholds

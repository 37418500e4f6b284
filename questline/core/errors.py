"""엔진 예외 계층

- ValidationError: 잘못된 입력. 상태 변경 없음 (400)
- NotFoundError: 알 수 없는 ID. ValidationError의 하위 (404)
- RequirementNotMetError: 잠금 조건 미충족 (403)
- ConflictError: 이미 처리됨 / 동시 요청 / 만료 경합 (409)
- InvariantViolation: 원장 손상 징후. 치명적, 반드시 로그 (500)
"""

from __future__ import annotations

from typing import Any, Optional


class QuestlineError(Exception):
    """모든 엔진 예외의 기반 클래스"""

    code: str = "ENGINE_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.message, "details": self.details}


# === Validation ===


class ValidationError(QuestlineError):
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(ValidationError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            f"{resource} '{resource_id}' not found",
            {"resource": resource, "id": resource_id},
        )


class RequirementNotMetError(ValidationError):
    """레벨/선행 클리어 등 잠금 조건 미충족"""

    code = "REQUIREMENT_NOT_MET"
    status_code = 403


# === Conflict ===


class ConflictError(QuestlineError):
    code = "CONFLICT"
    status_code = 409


class DayAlreadyClosedError(ConflictError):
    code = "DAY_ALREADY_CLOSED"

    def __init__(self, player_id: str, record_date: str):
        super().__init__(
            f"Day {record_date} is already closed",
            {"player_id": player_id, "date": record_date},
        )


class DayNotClosableError(ConflictError):
    code = "DAY_NOT_CLOSABLE"


class ReconciliationClosedError(ConflictError):
    code = "RECONCILIATION_NOT_OPEN"


class AlreadyReconciledError(ConflictError):
    code = "ALREADY_RECONCILED"


class QuestNotActiveError(ConflictError):
    code = "QUEST_NOT_ACTIVE"


class QuestAlreadyActiveError(ConflictError):
    code = "QUEST_ALREADY_ACTIVE"


class AlreadyReversedError(ConflictError):
    code = "ALREADY_REVERSED"


class ActiveRunExistsError(ConflictError):
    code = "ACTIVE_RUN_EXISTS"


class RunNotActiveError(ConflictError):
    code = "RUN_NOT_ACTIVE"


class RunExpiredError(RunNotActiveError):
    code = "RUN_EXPIRED"


class RunOnCooldownError(ConflictError):
    code = "RUN_ON_COOLDOWN"


class RecoveryUnavailableError(ConflictError):
    code = "RECOVERY_UNAVAILABLE"


class PlayerExistsError(ConflictError):
    code = "PLAYER_EXISTS"


class ConcurrentModificationError(ConflictError):
    code = "CONCURRENT_MODIFICATION"


# === Invariant ===


class InvariantViolation(QuestlineError):
    """원장 손상을 뜻하는 치명적 오류. 절대 삼키지 않는다."""

    code = "INVARIANT_VIOLATION"
    status_code = 500

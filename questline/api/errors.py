"""Map the engine error taxonomy onto HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from questline.api.schemas import ErrorResponse
from questline.core.errors import InvariantViolation, QuestlineError
from questline.core.logging import get_logger

logger = get_logger(__name__)


def _response(exc: QuestlineError) -> JSONResponse:
    body = ErrorResponse(error=exc.code, detail=exc.message, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


async def questline_error_handler(request: Request, exc: QuestlineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning(
            "%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message
        )
    return _response(exc)


async def invariant_violation_handler(
    request: Request, exc: InvariantViolation
) -> JSONResponse:
    logger.error(
        "Invariant violation on %s %s: %s %s",
        request.method,
        request.url.path,
        exc.message,
        exc.details,
    )
    return _response(exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvariantViolation, invariant_violation_handler)
    app.add_exception_handler(QuestlineError, questline_error_handler)

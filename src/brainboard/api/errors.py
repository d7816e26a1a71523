"""
Error Responses

Maps pipeline exceptions to HTTP responses with a JSON body of the form
``{"detail": "<message>", "error": "<ExceptionClass>"}``.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from brainboard.core.exceptions import (
    BoardBusy,
    DimensionMismatch,
    InsightError,
    MalformedResponse,
    NotFoundError,
    OperationTimeout,
    ProviderError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[InsightError], int] = {
    ProviderError: status.HTTP_502_BAD_GATEWAY,
    MalformedResponse: status.HTTP_502_BAD_GATEWAY,
    DimensionMismatch: status.HTTP_422_UNPROCESSABLE_ENTITY,
    OperationTimeout: status.HTTP_504_GATEWAY_TIMEOUT,
    BoardBusy: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
}


def status_for(exc: InsightError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]  # type: ignore[index]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def insight_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, InsightError)
    code = status_for(exc)
    if code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InsightError, insight_error_handler)

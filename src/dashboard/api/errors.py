"""Error envelope and exception handlers.

Every failure leaves the API as {"error", "message", "code"} with a
sanitised message.
"""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.models import ErrorResponse
from shared.observability import get_logger

from ..reports import ReportsError, sanitize_message

logger = get_logger(__name__)


def error_response(error: str, message: str, status_code: int) -> JSONResponse:
    body = ErrorResponse(error=error, message=sanitize_message(message), code=status_code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def reports_error_handler(request: Request, exc: ReportsError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Report request failed",
        error_code=exc.code,
        report_id=exc.report_id,
        error=sanitize_message(str(exc)),
        http_path=request.url.path,
    )
    return error_response(exc.code, str(exc), exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "query")
        problems.append(f"{location}: {err.get('msg', 'invalid value')}" if location else err.get("msg", ""))
    message = "; ".join(problems) or "invalid request"
    logger.warning("Invalid request parameters", http_path=request.url.path, error=sanitize_message(message))
    return error_response("bad_request", message, status.HTTP_400_BAD_REQUEST)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", http_path=request.url.path)
    return error_response(
        "internal_server_error",
        "internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReportsError, reports_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

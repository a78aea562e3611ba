"""Exception handlers producing ``{ok: false, error}`` bodies."""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from carelog.core.exceptions import AppError, NotFoundError, ValidationError
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)

_ALIASES = {
    "storage_path": "storagePath",
    "source_doc_id": "sourceDocId",
}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


def describe_validation_error(exc: RequestValidationError) -> str:
    """First problem of a request body, phrased for API callers."""
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Invalid JSON body"

    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    field = ".".join(_ALIASES.get(part, part) for part in loc)
    if first.get("type") in ("missing", "string_too_short") and field:
        return f"{field} required"
    if field:
        return f"{field}: {first.get('msg')}"
    return str(first.get("msg") or "Invalid request body")


def status_for(exc: AppError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = describe_validation_error(exc)
    LOGGER.info("Rejected request body", extra={"path": request.url.path, "error": message})
    return error_response(status.HTTP_400_BAD_REQUEST, message)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        LOGGER.error(
            "Request failed",
            exc_info=exc,
            extra={"path": request.url.path, "error": str(exc)},
        )
    return error_response(status_code, str(exc))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.error(
        "Unhandled error",
        exc_info=exc,
        extra={"path": request.url.path, "error": str(exc)},
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or type(exc).__name__)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

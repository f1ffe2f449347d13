"""Error taxonomy and the JSON error envelope.

Learn: Services raise ApiError subclasses and never build HTTP
responses themselves. register_error_handlers() maps every error kind
(ours, Starlette's HTTPException, FastAPI's request validation, lost
database connections) to the same body shape:

    {"success": false, "message": "..."}

Anything else becomes a 500 with a generic message. The stack trace
goes to the log, never to the client.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger()

INTERNAL_ERROR_MESSAGE = "Internal Server Error"


class ApiError(Exception):
    """Base for errors that carry an HTTP status and a caller-safe message."""

    status_code: int = 500
    default_message: str = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = 400
    default_message = "Validation failed"


class AuthenticationError(ApiError):
    """Missing/invalid/expired token or unknown subject. Messages stay generic."""

    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(ApiError):
    """Valid identity, but the role or ownership check failed."""

    status_code = 403
    default_message = "You are not allowed to access this resource"


ForbiddenError = AuthorizationError


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    status_code = 409
    default_message = "Resource already exists"


class UpstreamUnavailable(ApiError):
    """The backing store could not be reached. Never raised for the cache."""

    status_code = 500


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers,
    )


def _format_validation_errors(exc: RequestValidationError) -> str:
    """Flatten pydantic errors into "field: message, field: message"."""
    parts = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "header")]
        msg = err.get("msg", "Invalid value")
        parts.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return ", ".join(parts) or ValidationError.default_message


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request.failed",
        status_code=exc.status_code,
        message=exc.message,
        path=request.url.path,
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    message = exc.message if exc.status_code < 500 else INTERNAL_ERROR_MESSAGE
    return error_response(exc.status_code, message, headers)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route not found: {request.url.path}"
    else:
        message = str(exc.detail)
    return error_response(exc.status_code, message, getattr(exc, "headers", None))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    error = ValidationError(_format_validation_errors(exc))
    logger.info("request.invalid", path=request.url.path, message=error.message)
    return error_response(error.status_code, error.message)


async def store_unavailable_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    """Connection-level database failures. The driver's text stays in the log."""
    logger.error(
        "request.store_unavailable",
        path=request.url.path,
        error_type=type(exc.orig).__name__ if exc.orig is not None else type(exc).__name__,
        exc_info=exc,
    )
    return await api_error_handler(request, UpstreamUnavailable())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request.unhandled_error", path=request.url.path)
    return error_response(500, INTERNAL_ERROR_MESSAGE)


def register_error_handlers(app: FastAPI) -> None:
    """Install the error envelope on an app."""
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(OperationalError, store_unavailable_handler)
    app.add_exception_handler(InterfaceError, store_unavailable_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

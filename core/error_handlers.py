"""Error handlers for FastAPI application.

Renders every failure in the pipeline's response shape:
``{success: false, error, code, statusCode, isRetryable}``.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from core.exceptions import AppException
from core.logger import get_logger
from core.messages import normalize_language, user_message

logger = get_logger("core.error_handlers")


def failure_body(code: str, status_code: int, is_retryable: bool, language: str = "en") -> dict:
    """Build the failure payload for an error code.

    Args:
        code: Stable error code.
        status_code: HTTP status code.
        is_retryable: Whether the client may repeat the request.
        language: Language for the user-facing message.

    Returns:
        Dictionary ready to be serialized as the response body.
    """
    return {
        "success": False,
        "error": user_message(code, language),
        "code": code,
        "statusCode": status_code,
        "isRetryable": is_retryable,
    }


def create_error_response(
    code: str,
    status_code: int = 500,
    is_retryable: bool = True,
    language: str = "en",
) -> JSONResponse:
    """Create a standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content=failure_body(code, status_code, is_retryable, language),
    )


def _request_language(request: Request) -> str:
    return normalize_language(request.headers.get("accept-language"))


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions.

    The exception's own language wins over the Accept-Language header, since
    the orchestrator sets it from the user's preferences.
    """
    logger.warning(
        "Application error %s: %s [%s %s]",
        exc.code,
        exc.message,
        request.method,
        request.url.path
    )
    language = exc.language if exc.language != "en" else _request_language(request)
    return create_error_response(exc.code, exc.status_code, exc.is_retryable, language)


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors raised by FastAPI request parsing."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({"field": field, "message": error["msg"], "type": error["type"]})

    logger.warning(
        "Validation error on %s %s: %s",
        request.method,
        request.url.path,
        errors
    )
    return create_error_response(
        "VALIDATION_ERROR",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        False,
        _request_language(request),
    )


async def sqlalchemy_exception_handler(
    request: Request,
    exc: SQLAlchemyError
) -> JSONResponse:
    """Handle SQLAlchemy database errors."""
    logger.error(
        "Database error on %s %s: %s",
        request.method,
        request.url.path,
        str(exc),
        exc_info=True
    )
    return create_error_response(
        "DATABASE_ERROR",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        True,
        _request_language(request),
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Handle all unhandled exceptions."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        str(exc),
        exc_info=True
    )
    return create_error_response(
        "UNKNOWN_ERROR",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        True,
        _request_language(request),
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered")

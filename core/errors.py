"""
Typed application errors and the handlers that turn them into the JSON
envelope ``{"success": false, "error": <message>, "code": <code>}``.
"""
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.logging_config import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    code: str = "internal_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Invalid input"


class AuthError(AppError):
    code = "auth_error"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class ForbiddenError(AppError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action"


class NotFoundError(AppError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class DomainError(AppError):
    code = "domain_error"
    status_code = status.HTTP_409_CONFLICT
    default_message = "The request violates a business rule"


class InternalError(AppError):
    pass


_HTTP_STATUS_TO_ERROR = {
    status.HTTP_401_UNAUTHORIZED: AuthError,
    status.HTTP_403_FORBIDDEN: ForbiddenError,
    status.HTTP_404_NOT_FOUND: NotFoundError,
    status.HTTP_409_CONFLICT: DomainError,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ValidationError,
}


def error_body(exc: AppError) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": exc.message, "code": exc.code}
    if exc.details:
        body["details"] = exc.details
    return body


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return ValidationError.default_message
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    msg = first.get("msg", ValidationError.default_message)
    return f"{loc}: {msg}" if loc else msg


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        err = ValidationError(_first_validation_message(exc))
        return JSONResponse(status_code=err.status_code, content=error_body(err))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        err_cls = _HTTP_STATUS_TO_ERROR.get(exc.status_code, AppError)
        err = err_cls(str(exc.detail) if exc.detail else None)
        return JSONResponse(status_code=exc.status_code, content=error_body(err))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path, method=request.method)
        err = InternalError()
        return JSONResponse(status_code=err.status_code, content=error_body(err))

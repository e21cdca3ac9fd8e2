from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
import logging
from typing import Iterable, Optional, Sequence, Any

from homekeeper.config import settings
from homekeeper.core.cookies import clear_session_cookies
from homekeeper.core.exception import CustomException, SessionResetException
from homekeeper.schemas.result import Error, Result, ErrorCategory
from homekeeper.security import csrf_tokens_match

logger = logging.getLogger(__name__)

CSRF_PROTECTED_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def create_error_response(error: Error, headers: Optional[dict] = None) -> JSONResponse:
    """Create standardized JSON error response"""
    return JSONResponse(
        status_code=error.status_code,
        content=Result.failure(error).model_dump(),
        headers=headers,
    )


def format_validation_error(errors: Sequence[Any]) -> str:
    """Format validation errors into human-readable message"""
    messages = []
    for error in errors:
        loc = " -> ".join(str(loc) for loc in error.get("loc", []))
        msg = error.get("msg", "Unknown error")
        error_type = error.get("type", "unknown")

        messages.append(f"Error in {loc}: {msg} (type: {error_type})")

    return "; ".join(messages) if messages else "Validation failed"


def infer_category_from_status(status_code: int) -> ErrorCategory:
    """Infer error category from HTTP status code"""
    status_category_map = {
        401: ErrorCategory.AUTHENTICATION,
        403: ErrorCategory.AUTHORIZATION,
        404: ErrorCategory.NOT_FOUND,
        406: ErrorCategory.NOT_ACCEPTABLE,
        409: ErrorCategory.RESOURCE_CONFLICT,
        422: ErrorCategory.VALIDATION,
    }
    if status_code in status_category_map:
        return status_category_map[status_code]
    elif 400 <= status_code < 500:
        return ErrorCategory.BAD_REQUEST
    elif status_code >= 500:
        return ErrorCategory.INTERNAL
    else:
        return ErrorCategory.CUSTOM


async def handle_session_reset(request: Request, ex: SessionResetException) -> Response:
    """205 with no body; every session cookie is cleared."""
    response = Response(status_code=ex.status_code)
    clear_session_cookies(response)
    return response


async def handle_custom_exception(request: Request, ex: CustomException) -> JSONResponse:
    """Handle custom application exceptions"""
    if ex.status_code >= 500:
        logger.error(
            f"{type(ex).__name__} on {request.method} {request.url.path}: {ex.detail}"
        )
    error = Error(message=ex.detail, status_code=ex.status_code, category=ex.category)
    return create_error_response(error, headers=ex.headers)


async def handle_validation_error(
    request: Request,
    ex: ValidationError | RequestValidationError | ResponseValidationError,
) -> JSONResponse:
    """Handle Pydantic validation errors"""
    error = Error(
        message=format_validation_error(ex.errors()),
        status_code=422,
        category=ErrorCategory.VALIDATION,
    )
    return create_error_response(error)


async def handle_http_exception(request: Request, ex: StarletteHTTPException) -> JSONResponse:
    """Handle framework HTTP exceptions (404 for unknown routes, 405, ...)"""
    error = Error(
        message=ex.detail if isinstance(ex.detail, str) else str(ex.detail),
        status_code=ex.status_code,
        category=infer_category_from_status(ex.status_code),
    )
    return create_error_response(error, headers=getattr(ex, "headers", None))


def register_exception_handlers(app: FastAPI) -> None:
    """
    Route every known error type to a Result-envelope response.

    HTTPException subclasses are answered by FastAPI's own exception layer
    before any middleware sees them, so they need handlers here.
    """
    app.add_exception_handler(SessionResetException, handle_session_reset)
    app.add_exception_handler(CustomException, handle_custom_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(ResponseValidationError, handle_validation_error)
    app.add_exception_handler(ValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)


class ExceptionHandlingMiddleware(BaseHTTPMiddleware):
    """
    Last line of defence: anything no exception handler claimed becomes a
    generic 500 Result. Details are logged, never returned.
    """

    def __init__(self, app, log_internal_errors: bool = True):
        super().__init__(app)
        self.log_internal_errors = log_internal_errors

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except Exception as ex:
            return await self._handle_unhandled_exception(ex, request)

    async def _handle_unhandled_exception(
        self, ex: Exception, request: Request
    ) -> JSONResponse:
        """Handle unexpected exceptions"""
        if self.log_internal_errors:
            logger.error(
                f"Unhandled exception on {request.method} {request.url.path}",
                exc_info=ex,
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "client": request.client.host if request.client else None,
                },
            )

        # Don't expose internal error details in production
        error = Error(
            message="An unexpected error occurred. Please try again later.",
            status_code=500,
            category=ErrorCategory.INTERNAL,
        )
        return create_error_response(error)


class CSRFMiddleware(BaseHTTPMiddleware):
    """
    Double-submit check on state-changing requests.

    The anti-forgery cookie must be echoed in the header, whether or not the
    caller is signed in. Safe methods pass through.
    """

    def __init__(
        self,
        app,
        cookie_name: Optional[str] = None,
        header_name: Optional[str] = None,
        protected_methods: Iterable[str] = CSRF_PROTECTED_METHODS,
    ):
        super().__init__(app)
        self.cookie_name = cookie_name or settings.CSRF_COOKIE_NAME
        self.header_name = header_name or settings.CSRF_HEADER_NAME
        self.protected_methods = frozenset(m.upper() for m in protected_methods)

    async def dispatch(self, request: Request, call_next):
        if request.method in self.protected_methods:
            cookie_token = request.cookies.get(self.cookie_name)
            header_token = request.headers.get(self.header_name)
            if not csrf_tokens_match(cookie_token, header_token):
                logger.warning(
                    "CSRF check failed",
                    extra={
                        "path": request.url.path,
                        "method": request.method,
                        "has_cookie": cookie_token is not None,
                        "has_header": header_token is not None,
                    },
                )
                return create_error_response(
                    Error(
                        message="Forbidden",
                        status_code=403,
                        category=ErrorCategory.AUTHORIZATION,
                    )
                )
        return await call_next(request)

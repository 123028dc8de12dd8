"""Custom exceptions and handlers for consistent error responses.

Provides the onboarding error taxonomy, standardized error formatting,
security-safe error messages, and logging for debugging.
"""

import logging
import traceback
from typing import Iterable, Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

STEP_PATH = "/api/onboarding/step/{step}"


class SellerboardException(Exception):
    """Base exception for sellerboard application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class NavigationRedirect(SellerboardException):
    """Caller is not allowed on this step yet; send them to `step`.

    Not a failure: rendered as a 303 to the step's entry point.
    """

    def __init__(self, step: int, reason: str = "Onboarding session required"):
        self.step = step
        super().__init__(
            message=reason,
            status_code=status.HTTP_303_SEE_OTHER,
            error_code="REDIRECT",
        )

    @property
    def location(self) -> str:
        return STEP_PATH.format(step=self.step)


class OnboardingValidationError(SellerboardException):
    """A required field for the active step/branch is missing or malformed."""

    def __init__(self, fields: Iterable[str], message: str | None = None):
        self.fields = sorted(set(fields))
        super().__init__(
            message=message or f"Invalid or missing fields: {', '.join(self.fields)}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_ERROR",
        )


class PersistenceError(SellerboardException):
    """The record store (or session holder) could not complete a write."""

    def __init__(self, message: str = "Could not save onboarding progress. Please try again."):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="PERSISTENCE_ERROR",
        )


class UploadError(Exception):
    """An uploaded file could not be stored.

    Never reaches the client: the step controller treats the file as absent.
    """
    pass


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    """Create standardized error response.

    Format:
    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable error message",
            "details": {...}  // Optional additional details
        }
    }
    """
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
    )


async def navigation_redirect_handler(
    request: Request,
    exc: NavigationRedirect,
) -> RedirectResponse:
    """Send the caller back to the step they are allowed on."""
    logger.info(
        "Redirecting %s %s to step %d: %s",
        request.method,
        request.url.path,
        exc.step,
        exc.message,
    )
    return RedirectResponse(url=exc.location, status_code=status.HTTP_303_SEE_OTHER)


async def onboarding_validation_handler(
    request: Request,
    exc: OnboardingValidationError,
) -> JSONResponse:
    """Report the offending fields; nothing was written."""
    logger.warning(
        f"Onboarding validation error on {request.url.path}: {exc.fields}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details={"fields": exc.fields},
    )


async def sellerboard_exception_handler(
    request: Request,
    exc: SellerboardException,
) -> JSONResponse:
    """Handle custom sellerboard exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Sellerboard exception: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    # Log non-4xx errors
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(
        f"Validation error on {request.url.path}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "errors": exc.errors(),
        },
    )

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    """Handle database operational errors (connection issues, etc.)."""
    logger.error(
        f"Database operational error on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Please try again.",
        error_code="DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.error(
        f"Unhandled exception on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
        exc_info=True,
    )

    # Don't expose internal details
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(NavigationRedirect, navigation_redirect_handler)
    app.add_exception_handler(OnboardingValidationError, onboarding_validation_handler)
    app.add_exception_handler(SellerboardException, sellerboard_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

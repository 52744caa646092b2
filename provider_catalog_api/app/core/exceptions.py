"""
API exception hierarchy and its translation into HTTP responses.

Resource services raise subclasses of :class:`ApiException`; they
travel unchanged to the handlers installed by
``register_exception_handlers``, which render every failure with the
same body::

    {"status": "error", "message": "...", "errorCode": "...",
     "errors": [{"property": "...", "message": "..."}]}

``errors`` is omitted when there is nothing to report.  Unexpected
exceptions are logged with their traceback and rendered as a 500
whose detail is only revealed in the ``dev`` environment.
"""

import logging
import traceback
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


logger = logging.getLogger(__name__)


class ApiException(Exception):
    """Base class for failures that map onto a structured API error."""

    def __init__(
        self,
        message: str = "",
        error_code: str = "",
        errors: Optional[List[Dict[str, Any]]] = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.errors = errors or []
        self.status_code = status_code


class ValidationException(ApiException):
    """One or more request fields violate their constraints."""

    def __init__(self, violations: List[Dict[str, Any]]) -> None:
        super().__init__(
            "Validation failed",
            "VALIDATION_FAILED",
            violations,
            status.HTTP_400_BAD_REQUEST,
        )


class BusinessLogicException(ApiException):
    """The request is well formed but conflicts with existing data."""

    def __init__(
        self,
        message: str,
        error_code: str = "BUSINESS_LOGIC_ERROR",
        errors: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message, error_code, errors, 422)


class ResourceNotFoundException(ApiException):
    """The entity addressed by the request does not exist."""

    def __init__(self, resource: str = "", resource_id: Any = "") -> None:
        message = f"{resource} with id {resource_id} not found" if resource else "Resource not found"
        super().__init__(message, "RESOURCE_NOT_FOUND", [], status.HTTP_404_NOT_FOUND)


def error_response(
    message: str,
    status_code: int,
    error_code: str,
    errors: Optional[List[Dict[str, Any]]] = None,
) -> JSONResponse:
    """Build the JSON error body shared by all handlers."""
    data: Dict[str, Any] = {
        "status": "error",
        "message": message,
        "errorCode": error_code,
    }
    if errors:
        data["errors"] = errors
    return JSONResponse(data, status_code=status_code)


def register_exception_handlers(app: FastAPI, debug: bool = False) -> None:
    """Install the handlers translating exceptions into error responses."""

    @app.exception_handler(ApiException)
    async def handle_api_exception(request: Request, exc: ApiException) -> JSONResponse:
        logger.error(
            "%s %s failed with %s: %s",
            request.method,
            request.url.path,
            exc.error_code,
            exc.message,
        )
        return error_response(exc.message, exc.status_code, exc.error_code, exc.errors)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # The body could not be parsed into the request schema (not JSON,
        # wrong JSON types, bad path parameter).
        errors = []
        for error in exc.errors():
            location = [str(part) for part in error.get("loc", ()) if part not in ("body", "path")]
            errors.append(
                {
                    "property": ".".join(location) or "body",
                    "message": error.get("msg", "Invalid value"),
                }
            )
        logger.error("%s %s rejected: %s", request.method, request.url.path, errors)
        return error_response(
            "Validation failed",
            status.HTTP_400_BAD_REQUEST,
            "VALIDATION_ERROR",
            errors,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return error_response(str(exc.detail), exc.status_code, "HTTP_ERROR")

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        if debug:
            trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            return error_response(
                str(exc),
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "INTERNAL_ERROR",
                [{"property": "trace", "message": trace}],
            )
        return error_response(
            "Internal server error",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
        )

"""
HTTP error mapping for the overlay service.

Every error leaves the service in the same envelope:
{"error": true, "code", "message", "request_id", "details"?}
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from fieldstamp.pdf.errors import InputError
from fieldstamp.utils.logging import get_request_id

logger = logging.getLogger(__name__)


class AppException(HTTPException):
    """Base application exception carrying an error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message)


class ValidationException(AppException):
    """Request body is readable JSON but its content is unusable (bad base64)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(400, "VALIDATION_ERROR", message, details)


class InvalidDocumentException(AppException):
    """Source document rejected before any field was applied."""

    status = 422

    def __init__(self, message: str, reason_code: Optional[str] = None):
        super().__init__(
            self.status,
            "INVALID_DOCUMENT",
            message,
            {"reason": reason_code} if reason_code else None,
        )


class DocumentTooLargeException(InvalidDocumentException):
    """Source document exceeds MAX_DOCUMENT_BYTES."""

    status = 413


def exception_for_input_error(error: InputError) -> InvalidDocumentException:
    """Map an engine InputError onto the HTTP exception that reports it."""
    if error.code == "DOCUMENT_TOO_LARGE":
        return DocumentTooLargeException(error.message, reason_code=error.code)
    return InvalidDocumentException(error.message, reason_code=error.code)


def build_error_response(
    code: str,
    message: str,
    details: Optional[dict] = None,
) -> Dict[str, Any]:
    """Build the error envelope for the current request."""
    body: Dict[str, Any] = {
        "error": True,
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    if details:
        body["details"] = details
    return body


def _error_json(status_code: int, code: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=build_error_response(code, message, details))


def _describe_errors(errors: Sequence[Dict[str, Any]]) -> List[Dict[str, str]]:
    return [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in errors
    ]


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    return _error_json(exc.status_code, exc.code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework errors (404, 405, ...) in the standard envelope."""
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")

    if isinstance(exc.detail, dict):
        code = exc.detail.get("code", "HTTP_ERROR")
        message = exc.detail.get("message", str(exc.detail))
    else:
        code = "HTTP_ERROR"
        message = str(exc.detail)
    return _error_json(exc.status_code, code, message)


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Body schema violations (missing document_base64, short expected_hash, ...)."""
    errors = _describe_errors(exc.errors())
    logger.warning(f"{request.method} {request.url.path} -> 422: {len(errors)} validation error(s)")
    return _error_json(422, "VALIDATION_ERROR", "Request validation failed", {"errors": errors})


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error_json(500, "INTERNAL_ERROR", "An unexpected error occurred")


def register_exception_handlers(app: FastAPI) -> None:
    """Install every handler on the app, most specific first."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

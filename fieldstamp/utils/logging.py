"""
Logging configuration with request and document correlation.

Production emits one JSON object per line for Cloud Logging; everywhere else a
compact human-readable line is used.

Document content never goes to the log stream:
- Field values (text, signature images) are not logged
- Document hashes are logged as fingerprints (sha256[:8]) for correlation
"""
import hashlib
import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


def fingerprint(value: Optional[str], prefix: str = "") -> str:
    """
    Short stable fingerprint of a value, safe to log.

    Example:
        fingerprint("dffd6021bb2b...", "doc_") -> "doc_a1b2c3d4"
    """
    if not value:
        return f"{prefix}none"
    return prefix + hashlib.sha256(value.encode()).hexdigest()[:8]


# Context variables for request correlation
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
document_id_var: ContextVar[Optional[str]] = ContextVar("document_id", default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def set_context(document_id: Optional[str] = None) -> Optional[Token]:
    """
    Attach the document being processed to subsequent log records.

    Args:
        document_id: Document fingerprint (already hashed, safe to log)

    Returns:
        Token for reset_context(), or None when nothing was set
    """
    if document_id:
        return document_id_var.set(document_id)
    return None


def reset_context(token: Optional[Token]) -> None:
    """Restore the document_id that was current before set_context()."""
    if token is not None:
        document_id_var.reset(token)


def clear_context() -> None:
    request_id_var.set(None)
    document_id_var.set(None)


def current_context() -> Dict[str, str]:
    """Correlation values set for the running request, without empty ones."""
    context = {
        "request_id": request_id_var.get(),
        "document_id": document_id_var.get(),
    }
    return {key: value for key, value in context.items() if value}


class CloudLoggingFormatter(logging.Formatter):
    """JSON lines understood by Google Cloud Logging."""

    def format(self, record: logging.LogRecord) -> str:
        context = current_context()
        entry = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "logging.googleapis.com/sourceLocation": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
            **context,
        }
        if "request_id" in context:
            entry["logging.googleapis.com/trace"] = context["request_id"]
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if hasattr(record, "extra_data"):
            entry["data"] = record.extra_data
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """One readable line per record: level, request, document, message."""

    def format(self, record: logging.LogRecord) -> str:
        context = current_context()
        parts = [f"[{record.levelname}]", f"[{context.get('request_id', '-')[:8]}]"]
        if "document_id" in context:
            parts.append(f"[{context['document_id']}]")
        parts.append(record.getMessage())

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(environment: str = "development", level: int = logging.INFO) -> None:
    """
    Replace root handlers with a single stdout handler.
    - production: CloudLoggingFormatter
    - anything else: DevelopmentFormatter
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        CloudLoggingFormatter() if environment == "production" else DevelopmentFormatter()
    )
    root_logger.addHandler(handler)

    # Pillow plugin chatter and the server's own access log (RequestIdMiddleware logs requests)
    for name in ("PIL", "multipart", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Assign a request_id (incoming X-Request-ID or a new UUID), echo it in the
    response header, and log one line per request with status and duration.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        set_request_id(request_id)
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            elapsed_ms = (time.perf_counter() - started) * 1000
            logging.getLogger(__name__).info(
                f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)"
            )
            return response
        finally:
            clear_context()


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)

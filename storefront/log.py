"""Structured logging with a per-request correlation ID.

Usage:
    from storefront.log import get_logger

    logger = get_logger(__name__)
    logger.info("Created PaymentIntent %s", intent_id)
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_ID_HEADER = "X-Correlation-ID"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set the correlation ID for the current request, generating one if absent."""
    cid = correlation_id or str(uuid.uuid4())
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation_id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "no-correlation-id"
        return True


class StructuredFormatter(logging.Formatter):
    """Prefixes every line with the correlation ID for grep/filtering."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or "no-correlation-id"
        return f"[{record.correlation_id}] {super().format(record)}"


def configure_logging(level: str = "INFO") -> None:
    """Install the structured formatter on the root logger.

    Safe to call more than once; the handler is only added the first time.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        StructuredFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with correlation ID support.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    object_id: str | None,
    *,
    result: str,
    payment_intent_id: str | None = None,
    error: str | None = None,
    detail: str | None = None,
    **extra: Any,
) -> None:
    """Log a webhook delivery outcome as a single INFO line with structured context.

    Args:
        logger: Logger instance
        event_type: Stripe event type (e.g. "source.chargeable")
        object_id: ID of the object carried by the event
        result: Outcome (handled, ignored, rejected)
        payment_intent_id: Correlated PaymentIntent, if any
        error: Reason for a rejection
        detail: Human-readable summary of what was done
        **extra: Additional context fields
    """
    context: dict[str, Any] = {
        "event_type": event_type,
        "object_id": object_id,
        "result": result,
    }
    if payment_intent_id:
        context["payment_intent_id"] = payment_intent_id
    if error:
        context["error"] = error
    context.update(extra)

    msg_parts = [f"Webhook event: {event_type} ({object_id})", f"result={result}"]
    if payment_intent_id:
        msg_parts.append(f"payment_intent={payment_intent_id}")
    if error:
        msg_parts.append(f"error={error}")
    if detail:
        msg_parts.append(detail)

    logger.info(" | ".join(msg_parts), extra=context)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Reads or generates X-Correlation-ID and echoes it on the response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = set_correlation_id(request.headers.get(CORRELATION_ID_HEADER))
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            clear_correlation_id()

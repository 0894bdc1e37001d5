"""Structured JSON logging carrying trace, intent and payable identifiers."""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from paygate.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
payment_intent_id_ctx: ContextVar[str] = ContextVar("payment_intent_id", default="")
payable_ctx: ContextVar[str] = ContextVar("payable", default="")

_CONTEXT_VARS: dict[str, ContextVar[str]] = {
    "trace_id": trace_id_ctx,
    "payment_intent_id": payment_intent_id_ctx,
    "payable": payable_ctx,
}

# Client libraries that log full request lines at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore")


class ContextFilter(logging.Filter):
    """Stamp the service name and the bound context fields onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        for field, var in _CONTEXT_VARS.items():
            setattr(record, field, var.get())
        return True


@contextmanager
def bind_context(**fields: str | None):
    """Bind context fields for the enclosed block and restore them afterwards.

    Handlers run on pooled threads, so values must not outlive the request.
    """

    tokens = []
    for field, value in fields.items():
        var = _CONTEXT_VARS[field]
        tokens.append((var, var.set(value or "")))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def configure_logging() -> None:
    """Install the JSON handler on the root logger; called once per process."""

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(
        JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(service_name)s %(trace_id)s "
            "%(payment_intent_id)s %(payable)s %(message)s"
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


logger = logging.getLogger("paygate")

"""Structured JSON logging with request/delivery context fields."""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from passdrop.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
receipt_id_ctx: ContextVar[str] = ContextVar("receipt_id", default="")
chat_id_ctx: ContextVar[str] = ContextVar("chat_id", default="")

_CONTEXT_VARS = {
    "trace_id": trace_id_ctx,
    "receipt_id": receipt_id_ctx,
    "chat_id": chat_id_ctx,
}


@contextmanager
def log_context(**fields):
    """Bind correlation fields for the duration of one payment or command.

    Values are stringified, so raw Discord ids can be passed straight in.
    Unknown field names raise `KeyError` rather than being dropped silently.
    """

    context_vars = [(_CONTEXT_VARS[name], value) for name, value in fields.items()]
    tokens = [(var, var.set(str(value))) for var, value in context_vars]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class ContextFilter(logging.Filter):
    """Inject service and correlation identifiers into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        for name, var in _CONTEXT_VARS.items():
            setattr(record, name, var.get())
        return True


def configure_logging() -> None:
    """Configure root logger once per process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter()
    handler.addFilter(context_filter)
    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(service_name)s %(trace_id)s %(receipt_id)s %(chat_id)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    root.addFilter(context_filter)
    # discord.py logs every gateway heartbeat at INFO.
    logging.getLogger("discord").setLevel(logging.WARNING)


logger = logging.getLogger("passdrop")

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Optional, Union

# Request-scoped values stamped on every log record
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | user=%(user_id)s | %(message)s"


class RequestContextFilter(logging.Filter):
    """Copy the correlation id and user id of the current request onto the record ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "-"
        record.user_id = user_id_var.get() or "-"
        return True


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str, None] = None) -> None:
    """
    Install a single stdout handler on the root logger.

    level defaults to the LOG_LEVEL setting. Calling again replaces the handler
    instead of stacking a second one.
    """
    if level is None:
        from supplychain_api.core.settings import get_app_settings

        level = get_app_settings().LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    # SQL echo is controlled by SQL_ECHO on the engine, not by the root level.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

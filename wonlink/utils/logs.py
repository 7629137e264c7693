"""Logging helpers that tag records with workflow context."""

from __future__ import annotations

import logging
from typing import Any, MutableMapping, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s"


class WorkflowLogger(logging.LoggerAdapter):
    """Attach ``correlation_id`` and ``step`` to every record."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]):
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        step = extra.get("step")
        prefix = f"[{step}] " if step else ""
        return f"{prefix}{msg}", kwargs


def workflow_logger(
    name: str, correlation_id: str, step: Optional[str] = None
) -> WorkflowLogger:
    return WorkflowLogger(
        logging.getLogger(name), {"correlation_id": correlation_id, "step": step}
    )


class _CorrelationDefault(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        return True


_handler: Optional[logging.Handler] = None


def configure_logging(level: str = "INFO") -> None:
    """Send ``wonlink`` log records to stderr at ``level``.

    Safe to call repeatedly; the handler is installed once.
    """
    global _handler
    package_logger = logging.getLogger("wonlink")
    if _handler is None:
        _handler = logging.StreamHandler()
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        _handler.addFilter(_CorrelationDefault())
        package_logger.addHandler(_handler)
    package_logger.setLevel(level.upper())

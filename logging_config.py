"""Logging Configuration and Utilities."""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

_correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)


def new_correlation_id() -> str:
    return str(uuid.uuid4())


def set_correlation_id(value: Optional[str]):
    """Bind a correlation id to the current context; returns a reset token."""
    return _correlation_id.set(value)


def reset_correlation_id(token) -> None:
    _correlation_id.reset(token)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


class CorrelationFilter(logging.Filter):
    def filter(self, record):
        record.correlation_id = (get_correlation_id() or 'N/A')[:8]
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_data = {
            'timestamp': datetime.now(tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'correlation_id': getattr(record, 'correlation_id', 'N/A'),
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(level: str = 'INFO', json_output: bool = False) -> None:
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        if getattr(handler, '_loan_service_handler', False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler._loan_service_handler = True
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)-5s | [%(correlation_id)s] | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
    handler.addFilter(CorrelationFilter())
    root.addHandler(handler)

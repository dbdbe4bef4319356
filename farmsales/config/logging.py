# farmsales/config/logging.py
import functools
import json
import logging
import logging.config
import os
import time
from datetime import datetime, timezone
from typing import Dict, Any

from .settings import get_settings

settings = get_settings()

# Loggers whose records also go to the audit trail
AUDIT_LOGGERS = (
    "farmsales.services.order_service",
    "farmsales.services.payment_ledger",
    "farmsales.services.return_processor",
)

_LEVEL_COLORS = {
    logging.DEBUG: '\033[36m',
    logging.INFO: '\033[32m',
    logging.WARNING: '\033[33m',
    logging.ERROR: '\033[31m',
    logging.CRITICAL: '\033[35m',
}
_RESET = '\033[0m'


class ColoredFormatter(logging.Formatter):
    """Console formatter that tints the level name."""

    def format(self, record):
        original = record.levelname
        record.levelname = f"{_LEVEL_COLORS.get(record.levelno, _RESET)}{original}{_RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JSONFormatter(logging.Formatter):
    """One JSON object per line, carrying the order/receipt context passed via ``extra``."""

    CONTEXT_FIELDS = ('request_id', 'user_id', 'role', 'order_id', 'receipt_no', 'duration')

    def format(self, record):
        entry = {
            'ts': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'msg': record.getMessage(),
            'where': f"{record.module}:{record.lineno}",
        }
        entry.update({f: getattr(record, f) for f in self.CONTEXT_FIELDS if hasattr(record, f)})
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _rotating(log_dir: str, filename: str, level: str, formatter: str,
              max_mb: int = 10, backups: int = 5) -> Dict[str, Any]:
    return {
        'class': 'logging.handlers.RotatingFileHandler',
        'level': level,
        'formatter': formatter,
        'filename': os.path.join(log_dir, filename),
        'maxBytes': max_mb * 1024 * 1024,
        'backupCount': backups,
        'encoding': 'utf8',
        'delay': True,
    }


def build_logging_config(log_dir: str = None) -> Dict[str, Any]:
    """dictConfig for the service: console, app/error files, API access and the audit trail."""
    log_dir = log_dir or settings.LOG_DIR
    domain_level = 'DEBUG' if settings.DEBUG else 'INFO'
    line_format = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

    loggers = {
        '': {'handlers': ['console', 'app_file'], 'level': settings.LOG_LEVEL},
        'farmsales': {
            'handlers': ['console', 'app_file', 'error_file'],
            'level': domain_level,
            'propagate': False,
        },
        'api': {'handlers': ['console', 'api_file'], 'level': 'INFO', 'propagate': False},
        'security': {
            'handlers': ['console', 'error_file', 'audit_file'],
            'level': 'WARNING',
            'propagate': False,
        },
        'uvicorn.access': {'handlers': ['api_file'], 'level': 'INFO', 'propagate': False},
        'sqlalchemy.engine': {
            'handlers': ['app_file'],
            'level': 'INFO' if settings.DATABASE_ECHO else 'WARNING',
            'propagate': False,
        },
    }
    for name in AUDIT_LOGGERS:
        # propagates to 'farmsales' as well
        loggers[name] = {'handlers': ['audit_file'], 'level': 'INFO'}

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {'format': line_format, 'datefmt': '%Y-%m-%d %H:%M:%S'},
            'detailed': {
                'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d %(funcName)s(): %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S',
            },
            'colored': {'()': ColoredFormatter, 'format': line_format, 'datefmt': '%H:%M:%S'},
            'json': {'()': JSONFormatter},
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'level': domain_level,
                'formatter': 'colored' if settings.DEBUG else 'standard',
                'stream': 'ext://sys.stdout',
            },
            'app_file': _rotating(log_dir, 'app.log', 'INFO', 'detailed'),
            'error_file': _rotating(log_dir, 'error.log', 'ERROR', 'detailed'),
            'api_file': _rotating(log_dir, 'api.log', 'INFO', 'json', max_mb=20, backups=7),
            'audit_file': _rotating(log_dir, 'audit.log', 'INFO', 'json', max_mb=20, backups=30),
        },
        'loggers': loggers,
    }


def setup_logging(log_dir: str = None):
    log_dir = log_dir or settings.LOG_DIR
    os.makedirs(log_dir, exist_ok=True)
    logging.config.dictConfig(build_logging_config(log_dir))
    logging.getLogger("multipart").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_api_request(request_id: str, method: str, path: str, user_id: str = None):
    extra = {'request_id': request_id}
    if user_id:
        extra['user_id'] = user_id
    get_logger("api").info(f"{method} {path}", extra=extra)


def log_api_response(request_id: str, status_code: int, duration: float):
    get_logger("api").info(
        f"Response: {status_code} ({duration:.3f}s)", extra={'request_id': request_id, 'duration': duration}
    )


def log_security_event(event_type: str, user_id: str = None, details: str = None, role: str = None):
    """Security-relevant events (bypasses, refused actions) go to the security logger and the audit trail."""
    extra = {k: v for k, v in (('user_id', user_id), ('role', role)) if v}
    message = f"Security Event: {event_type}"
    if details:
        message += f" - {details}"
    get_logger("security").warning(message, extra=extra)


def log_performance(logger_name: str = "farmsales.performance"):
    """Log how long the wrapped call took (DEBUG), or how long it ran before failing (WARNING)."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(logger_name)
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.warning(f"{func.__qualname__} failed after {time.perf_counter() - started:.3f}s: {e}")
                raise
            logger.debug(f"{func.__qualname__} completed in {time.perf_counter() - started:.3f}s")
            return result
        return wrapper
    return decorator


__all__ = [
    "setup_logging",
    "build_logging_config",
    "get_logger",
    "log_api_request",
    "log_api_response",
    "log_security_event",
    "log_performance",
]

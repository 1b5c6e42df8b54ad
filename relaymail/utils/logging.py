"""Logging utility for relaymail

Everything logs below the ``relaymail`` logger. ``get_logger`` is safe to
call at import time; handlers only appear once ``init_logging`` runs.
Structured context travels on ``record.context`` and is written by the JSON
file handler.
"""

import json
import logging
import re
import time
from datetime import datetime, timezone
from functools import wraps
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

from rich.logging import RichHandler

ROOT_LOGGER_NAME = "relaymail"
LOG_FILE_NAME = "relaymail.log"
REDACTED = "[REDACTED]"


## Formatting and Context


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ContextAdapter(logging.LoggerAdapter):
    """Stamp fixed key/value pairs onto every record as ``record.context``.

    Context given at the call site with ``extra={"context": {...}}`` is merged
    over the adapter's own.
    """

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["context"] = {**self.extra, **extra.get("context", {})}
        kwargs["extra"] = extra
        return msg, kwargs


## Log Masking


class SensitiveDataMasker:
    """Redacts credentials and shortens email addresses in log output."""

    SECRET_ASSIGNMENT = re.compile(
        r'((?:password|passwd|secret|token|authorization)["\']?\s*[:=]\s*["\']?)'
        r'([^"\'}\s]+)',
        re.IGNORECASE,
    )
    EMAIL = re.compile(r"([a-zA-Z0-9._%+-]+)@([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")

    SENSITIVE_FIELDS = frozenset(
        {"password", "passwd", "secret", "token", "authorization", "credential"}
    )

    def mask_string(self, text: str) -> str:
        if not text:
            return text
        text = self.SECRET_ASSIGNMENT.sub(lambda m: m.group(1) + REDACTED, text)
        return self.EMAIL.sub(self._mask_email, text)

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of ``data`` with sensitive keys redacted, recursively."""

        masked = {}
        for key, value in data.items():
            if str(key).lower() in self.SENSITIVE_FIELDS:
                masked[key] = REDACTED
            elif isinstance(value, dict):
                masked[key] = self.mask_dict(value)
            elif isinstance(value, str):
                masked[key] = self.mask_string(value)
            else:
                masked[key] = value
        return masked

    @staticmethod
    def _mask_email(match: re.Match) -> str:
        # "alice@example.com" -> "a***@e***"
        return f"{match.group(1)[0]}***@{match.group(2)[0]}***"


class SensitiveDataFilter(logging.Filter):
    """Masks the message and the context of every record it sees."""

    def __init__(self):
        super().__init__()
        self.masker = SensitiveDataMasker()

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.masker.mask_string(record.msg)

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            record.context = self.masker.mask_dict(context)

        return True


## Main Log Manager


class LogManager:
    """Installs relaymail's console and optional JSON file handlers."""

    def __init__(
        self,
        log_level: str = "INFO",
        console_level: str = "WARNING",
        log_dir: Optional[Path] = None,
        max_file_size: int = 5_242_880,
        backup_count: int = 5,
    ):
        self.log_level = _parse_level(log_level)
        self.console_level = _parse_level(console_level)
        self.log_dir = Path(log_dir) if log_dir else None
        self.max_file_size = max_file_size
        self.backup_count = backup_count
        self.root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.root_logger.setLevel(self.log_level)
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        """Replace any existing handlers; the file handler only with a log_dir."""

        from .errors import FileSystemError

        sensitive_filter = SensitiveDataFilter()

        self.root_logger.handlers.clear()

        console_handler = RichHandler(
            show_time=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
        console_handler.setLevel(self.console_level)
        console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        console_handler.addFilter(sensitive_filter)
        self.root_logger.addHandler(console_handler)

        if self.log_dir is None:
            return

        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                self.log_dir / LOG_FILE_NAME,
                maxBytes=self.max_file_size,
                backupCount=self.backup_count,
                encoding="utf-8",
            )
        except OSError as e:
            raise FileSystemError(
                f"Failed to create log file in {self.log_dir}: {str(e)}"
            ) from e

        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(sensitive_filter)
        self.root_logger.addHandler(file_handler)


def _parse_level(level: str) -> int:
    """Translate a level name such as "debug" into its logging constant."""

    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Invalid logging level: {level}")
    return value


def _named_logger(name: Optional[str]) -> logging.Logger:
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


## Decorators for Logging


def log_call(func):
    """Trace entry, exit and duration of ``func`` at DEBUG.

    Failures are traced too and re-raised untouched; reporting them is the
    caller's business.
    """

    logger = _named_logger(func.__module__)
    name = func.__qualname__

    @wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug(f"-> {name}")
        started = time.perf_counter()

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed = time.perf_counter() - started
            logger.debug(f"<- {name} failed after {elapsed:.3f}s: {e}")
            raise

        logger.debug(f"<- {name} ({time.perf_counter() - started:.3f}s)")
        return result

    return wrapper


## Module-level Helpers


def init_logging(
    log_level: str = "INFO",
    console_level: str = "WARNING",
    log_dir: Optional[Path] = None,
    **options,
) -> LogManager:
    """Configure the relaymail logger tree and return the LogManager.

    Calling it again replaces the previous handlers, so the CLI can
    reconfigure after loading the config file.
    """

    return LogManager(log_level, console_level, log_dir, **options)


def get_logger(
    name: Optional[str] = None, **context
) -> logging.Logger | ContextAdapter:
    """Logger below ``relaymail``, wrapped in a ContextAdapter when context is given.

    Never installs handlers. Until init_logging() runs, records propagate to
    whatever the host application configured.
    """

    logger = _named_logger(name)
    if context:
        return ContextAdapter(logger, context)
    return logger

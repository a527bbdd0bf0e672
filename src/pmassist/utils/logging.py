"""Logging setup for the assistant service.

Every record carries the id of the chat request being handled and the
user it was made for, so one turn can be followed through the dialogue
loop, the dispatcher and the confirmation gate. The ids are bound with
:func:`request_scope` and read back by :class:`RequestContextFilter`.
"""

from __future__ import annotations

import contextvars
import logging
import logging.handlers
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from ..services.settings import Settings

__all__ = [
    "LOG_FORMAT",
    "RequestContextFilter",
    "configure_from_settings",
    "current_request_id",
    "get_log_path",
    "request_scope",
    "setup_logging",
]

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | req=%(request_id)s user=%(user_id)s | %(name)s | %(message)s"
_NO_REQUEST = "-"
_DEFAULT_LOG_DIR = Path.home() / ".pmassist" / "logs"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")

_REQUEST_ID: contextvars.ContextVar[str] = contextvars.ContextVar("pmassist_request_id", default=_NO_REQUEST)
_USER_ID: contextvars.ContextVar[str] = contextvars.ContextVar("pmassist_user_id", default=_NO_REQUEST)

_CONFIGURED = False
_LOG_PATH: Path | None = None


# -----------------------------------------------------------------------------
# Request context
# -----------------------------------------------------------------------------


@contextmanager
def request_scope(request_id: str, user_id: str | None = None) -> Iterator[None]:
    """Tag every record logged inside the block with ``request_id``.

    Tasks started inside the block (``asyncio.gather`` in the dispatcher)
    inherit the ids.
    """
    request_token = _REQUEST_ID.set(request_id or _NO_REQUEST)
    user_token = _USER_ID.set(user_id or _NO_REQUEST)
    try:
        yield
    finally:
        _USER_ID.reset(user_token)
        _REQUEST_ID.reset(request_token)


def current_request_id() -> str | None:
    value = _REQUEST_ID.get()
    return None if value == _NO_REQUEST else value


class RequestContextFilter(logging.Filter):
    """Adds ``request_id`` and ``user_id`` attributes to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _REQUEST_ID.get()
        if not hasattr(record, "user_id"):
            record.user_id = _USER_ID.get()
        return True


# -----------------------------------------------------------------------------
# Handlers
# -----------------------------------------------------------------------------


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Send records to a rotating ``pmassist.log`` and, optionally, stderr.

    Calling it again is a no-op unless ``force`` is set.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    target_dir = Path(log_dir or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / "pmassist.log"

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    context_filter = RequestContextFilter()

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    quiet_level = max(level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def configure_from_settings(settings: "Settings", *, force: bool = False) -> Path:
    """Configure logging from ``log_dir``, ``log_to_console`` and ``debug_logging``.

    Production never logs at DEBUG.
    """
    debug = settings.debug_logging and not settings.is_production
    return setup_logging(
        logging.DEBUG if debug else logging.INFO,
        log_dir=settings.log_dir,
        console=settings.log_to_console,
        force=force,
    )


def get_log_path() -> Path | None:
    return _LOG_PATH

"""Structured logging for the API and the thread engine.

structlog renders every event once per handler: coloured key/value lines on
the console in development, JSON everywhere else. Records from the stdlib
(uvicorn, cassandra-driver, httpx) pass through the same processor chain so
they carry the request context too.

Two things never reach a log line verbatim: credentials (masked) and comment
bodies (cut to a short preview).
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor

from src.core.context import get_context


if TYPE_CHECKING:
    from src.config.settings import Settings


SENSITIVE_KEYS = frozenset(
    {"password", "secret", "token", "api_key", "authorization", "credentials"}
)
BODY_KEYS = frozenset({"body", "comment_body"})
BODY_PREVIEW_CHARS = 40

NOISY_LOGGERS = ("uvicorn.access", "uvicorn.error", "cassandra", "httpx", "httpcore")


def _level(name: str) -> int:
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def add_request_context(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Stamp request_id, viewer_id, trace_id and correlation_id when set."""
    for key, value in get_context().items():
        event_dict.setdefault(key, value)
    return event_dict


def app_info(settings: "Settings") -> Processor:
    stamp = {
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }

    def processor(
        logger: logging.Logger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.update(stamp)
        return event_dict

    return processor


def mask_value(key: str, value: Any) -> Any:
    """Hide credentials, keeping two characters at each end of long values."""
    if isinstance(value, dict):
        return {k: mask_value(k, v) for k, v in value.items()}
    if not isinstance(value, str):
        return value

    lowered = key.lower()
    if any(s in lowered for s in SENSITIVE_KEYS):
        if len(value) > 4:
            return f"{value[:2]}{'*' * (len(value) - 4)}{value[-2:]}"
        return "***"
    if lowered in BODY_KEYS and len(value) > BODY_PREVIEW_CHARS:
        return f"{value[:BODY_PREVIEW_CHARS]}... ({len(value)} chars)"
    return value


def scrub_event(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    return {k: mask_value(k, v) for k, v in event_dict.items()}


def shared_processors(settings: "Settings") -> list[Processor]:
    """Chain for structlog events and foreign stdlib records alike."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_request_context,
        app_info(settings),
        scrub_event,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.log_include_caller_info:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
        )
    return processors


def _handler(
    handler: logging.Handler, level: str, renderer: Processor, chain: list[Processor]
) -> logging.Handler:
    handler.setLevel(_level(level))
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=chain)
    )
    return handler


def log_files(settings: "Settings") -> dict[str, str]:
    """File name to minimum level: everything, plus an errors-only file."""
    return {
        f"{settings.app_name}.log": settings.log_level,
        f"{settings.app_name}.error.log": "ERROR",
    }


def configure_structlog(
    settings: "Settings",
    log_dir: Path | str | None = None,
    file_output: bool = True,
) -> None:
    """Install handlers on the root logger and configure structlog.

    Args:
        settings: Application settings.
        log_dir: Directory for rotating JSON files. Defaults to ``settings.log_dir``.
        file_output: Off for tests and for the thread engine embedded in a client.
    """
    chain = shared_processors(settings)
    if settings.log_format == "json":
        console_renderer: Processor = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(
            colors=True, exception_formatter=structlog.dev.plain_traceback
        )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(_level(settings.log_level))
    root.addHandler(
        _handler(logging.StreamHandler(sys.stdout), settings.log_level, console_renderer, chain)
    )

    if file_output:
        directory = Path(log_dir or settings.log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        for file_name, level in log_files(settings).items():
            rotating = RotatingFileHandler(
                filename=str(directory / file_name),
                maxBytes=settings.log_file_max_bytes,
                backupCount=settings.log_file_backup_count,
                encoding="utf-8",
            )
            root.addHandler(
                _handler(rotating, level, structlog.processors.JSONRenderer(), chain)
            )

    structlog.configure(
        processors=[*chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)

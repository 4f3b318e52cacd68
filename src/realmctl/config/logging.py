"""structlog setup for processes embedding realmctl.

stdlib loggers under ``realmctl.*`` and structlog loggers share one
stderr handler. Output is console-rendered by default, or one JSON object
per line with ``log_json``. Context bound with
``structlog.contextvars.bound_contextvars`` (the service layer binds ``op``
and ``realm``) is merged into every record.

Credential-bearing keys are masked before rendering.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from realmctl.config.settings import RealmSettings

# Loggers that stay at WARNING even in verbose mode.
QUIET_LOGGERS = ("pluggy",)

SECRET_KEYS = frozenset({"password", "new_password", "client-key", "client_key", "key"})
MASK = "***"


def mask_secrets(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """structlog processor replacing credential values with a mask."""
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = MASK
    return event_dict


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        mask_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_json: bool, stream: IO[str]) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=stream.isatty())


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    stream: IO[str] | None = None,
) -> None:
    """Route realmctl and structlog output to *stream* (stderr by default).

    Calling it again replaces the previous configuration.

    Args:
        verbose: Let ``realmctl.*`` debug records through.
        log_json: Render JSON lines instead of console output.
        stream: Destination text stream.
    """
    out = stream if stream is not None else sys.stderr
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(out)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json, out),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("realmctl").setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_from_settings(settings: RealmSettings, *, stream: IO[str] | None = None) -> None:
    configure_logging(verbose=settings.verbose, log_json=settings.log_json, stream=stream)

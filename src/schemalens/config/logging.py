"""structlog configuration for schemalens.

Everything goes to stderr so stdout stays clean for ``--json`` results.
Human mode uses structlog's console renderer; ``--log-json`` writes one
JSON object per line.

FK review decisions go to the ``schemalens.audit`` logger at INFO. They
are shown in JSON mode, where they form a machine-readable review trail,
and otherwise only with --verbose.
"""

from __future__ import annotations

import logging
import sys

import structlog

AUDIT_LOGGER = "schemalens.audit"

# Third-party loggers pinned regardless of --verbose; httpx logs every
# request at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")

_SHARED_PROCESSORS: tuple[structlog.types.Processor, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.UnicodeDecoder(),
)


def _renderer(log_json: bool) -> structlog.types.Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _stderr_handler(log_json: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=list(_SHARED_PROCESSORS),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json),
            ],
        )
    )
    return handler


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Route structlog and stdlib logging through one stderr handler.

    Safe to call repeatedly; each call replaces the previous handler.

    Args:
        verbose: ``schemalens`` loggers at DEBUG instead of WARNING.
        log_json: JSON lines instead of the console renderer.
    """
    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_stderr_handler(log_json))
    root.setLevel(logging.WARNING)

    level = logging.DEBUG if verbose else logging.WARNING
    logging.getLogger("schemalens").setLevel(level)
    # NOTSET defers to the "schemalens" level above.
    logging.getLogger(AUDIT_LOGGER).setLevel(
        min(level, logging.INFO) if log_json else logging.NOTSET
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

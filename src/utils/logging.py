"""structlog configuration for the service, the CLI and the weekly job.

One processor chain is shared by structlog loggers and by the standard
``logging`` root handler, so third-party output (uvicorn, httpx, openai)
is rendered the same way as ours. Production (``APP_ENV=production`` or
``json_output=True``) gets one JSON object per line; everything else gets
the coloured console renderer.

Per-user values such as ``user_id`` are attached with
:func:`bind_run_context` and picked up by ``merge_contextvars``.
"""

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Install the processor chain and route stdlib logging through it.

    *log_level* filters both structlog and the root logger. Returns a
    ready logger for callers that want one immediately.
    """
    app_env = os.environ.get("APP_ENV", "development")
    use_json = json_output or app_env == "production"

    # contextvars must run first so bound user_id reaches every event.
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(stdout_handler)
    root.setLevel(log_level.upper())

    # httpx logs every request line at INFO; keep it at WARNING so discovery
    # runs are readable.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger tagged with *name*; falls back to default config."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)


@contextmanager
def bind_run_context(**values: Any) -> Iterator[None]:
    """Bind *values* into structlog contextvars for the duration of a block.

    Used by the discovery pipeline and the weekly job so every line logged
    while processing one user carries ``user_id``.
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield

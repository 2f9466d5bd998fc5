"""structlog configuration for RAG Studio.

One processor chain is shared by structlog's own loggers and by the
stdlib ``logging`` bridge, so lines from httpx, openai and chromadb are
rendered exactly like ours.  The final renderer is a coloured console
renderer unless ``APP_ENV=production`` (or ``json_output=True``), in which
case every line is a JSON object.

Logs go to stderr; stdout belongs to CLI reports.

A wizard run binds its ``run_id`` with :func:`bind_run_context`; every line
emitted while that run is active carries it.
"""

import logging
import os
import sys

import structlog

# Third-party loggers that are chatty at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "chromadb", "aiosqlite")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _renderer(use_json: bool) -> structlog.types.Processor:
    if use_json:
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _bridge_stdlib(
    level: int,
    chain: list[structlog.types.Processor],
    renderer: structlog.types.Processor,
) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *chain, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Set up structlog and the stdlib bridge; safe to call more than once.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR).
        json_output: Render JSON regardless of ``APP_ENV``.

    Returns:
        The root structlog logger.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"

    chain = _shared_processors()
    renderer = _renderer(use_json)
    structlog.configure(
        processors=[*chain, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    _bridge_stdlib(level, chain, renderer)
    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger bound to *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)


def bind_run_context(run_id: str, **extra: str) -> None:
    """Attach *run_id* (and *extra*) to every following log line."""
    structlog.contextvars.bind_contextvars(run_id=run_id, **extra)


def clear_run_context() -> None:
    """Remove everything bound by :func:`bind_run_context`."""
    structlog.contextvars.clear_contextvars()

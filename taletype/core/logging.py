"""
Structured logging configuration using structlog.

Every record carries the subsystem that wrote it (`component`: engine,
services, llm, api) and, once a game has started, the play-through it
belongs to (`game_generation`, bound by the session engine). Output goes to
the console (pretty in debug, JSON otherwise) and to one file per process
run under logs/, with older runs culled.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from taletype.core.config import settings

LOG_FILE_PREFIX = "taletype_"


def add_component(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag a record with its subsystem, taken from the logger name.

    `taletype.engine.quest_ledger` becomes `engine`; loggers outside the
    package keep their name.
    """
    name = event_dict.get("logger", "")
    parts = name.split(".")
    if len(parts) > 1 and parts[0] == "taletype":
        event_dict.setdefault("component", parts[1])
    elif name:
        event_dict.setdefault("component", name)
    return event_dict


def _run_log_path(logs_dir: Path, keep: int) -> Path:
    """Cull older run logs and return the path for this run's file.

    Args:
        logs_dir: Directory containing log files
        keep: Total run logs to retain, counting the new one
    """
    logs_dir.mkdir(parents=True, exist_ok=True)

    old_runs = sorted(
        logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    for stale in old_runs[max(keep - 1, 0) :]:
        stale.unlink(missing_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return logs_dir / f"{LOG_FILE_PREFIX}{timestamp}.log"


def _renderer_chain(debug: bool) -> List[Processor]:
    chain: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_component,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]
    if debug:
        chain.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        chain += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return chain


def _route_stdlib_output(log_file: Path, level: int) -> None:
    """Point the root logger at the console and this run's file only."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    for handler in (logging.StreamHandler(), logging.FileHandler(log_file, mode="w")):
        handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(handler)


def configure_logging(log_runs_to_keep: int = 5, logs_dir: Path = Path("logs")) -> None:
    """Configure structlog for the application.

    Call this once at application startup, before any logging. Safe to call
    again (tests do); handlers from the previous call are replaced.

    Args:
        log_runs_to_keep: Number of recent run logs to retain (default: 5)
        logs_dir: Directory for log files
    """
    level = logging.DEBUG if settings.debug else logging.INFO
    log_file = _run_log_path(logs_dir, keep=log_runs_to_keep)
    _route_stdlib_output(log_file, level)

    structlog.configure(
        processors=_renderer_chain(settings.debug),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structlog logger; pass the module's __name__."""
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """
    Bind context variables that will be included in all subsequent logs.

        bind_context(game_generation=3, request_id=request_id)
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables (end of an HTTP request)."""
    structlog.contextvars.clear_contextvars()

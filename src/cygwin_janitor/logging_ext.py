"""!
@brief Structured logging helpers for Cygwin Janitor.
@details Two named loggers are configured per run. The human channel writes
colour-coded, leveled messages to the console (and optionally a rotating text
file). The machine channel emits one JSON object per event and is only
persisted when a log directory or ``--json`` is requested; otherwise events are
discarded.
"""
from __future__ import annotations

import datetime as _dt
import json
import logging
import sys
import uuid
from logging import handlers
from pathlib import Path
from typing import Dict, List, Mapping, TextIO, Tuple

from . import version

HUMAN_LOGGER_NAME = "cygwin_janitor.human"
"""!
@brief Logger name for operator-facing console output.
"""

MACHINE_LOGGER_NAME = "cygwin_janitor.machine"
"""!
@brief Logger name for JSONL events.
"""

_STANDARD_RECORD_KEYS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "channel", "taskName"}

_LEVEL_COLORS: Dict[int, str] = {
    logging.DEBUG: "\033[90m",
    logging.INFO: "\033[0m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}

_RESET = "\033[0m"

_RUN_METADATA: Dict[str, object] | None = None


class _ChannelFilter(logging.Filter):
    """!
    @brief Stamp a fixed ``channel`` attribute on every record.
    """

    def __init__(self, channel: str) -> None:
        super().__init__()
        self._channel = channel

    def filter(self, record: logging.LogRecord) -> bool:
        record.channel = self._channel
        return True


class _ConsoleFormatter(logging.Formatter):
    """!
    @brief Prefix console lines with a severity tag and optional ANSI colour.
    """

    def __init__(self, *, use_color: bool) -> None:
        super().__init__("%(message)s")
        self._use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if record.levelno >= logging.WARNING:
            text = f"[{record.levelname}] {text}"
        if not self._use_color:
            return text
        color = _LEVEL_COLORS.get(record.levelno, "")
        return f"{color}{text}{_RESET}" if color else text


class _JsonLineFormatter(logging.Formatter):
    """!
    @brief Format records as single-line JSON objects.
    @details Standard metadata (timestamp, level, logger, message) is merged
    with any ``extra`` attributes supplied by the caller. Values that are not
    JSON serializable fall back to their ``repr``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - concise override
        moment = _dt.datetime.fromtimestamp(record.created, tz=_dt.timezone.utc)
        payload: Dict[str, object] = {
            "timestamp": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "channel": getattr(record, "channel", "machine"),
        }
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_KEYS:
                payload[key] = value
        return json.dumps(payload, ensure_ascii=False, default=repr)


def _reset_logger(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for flt in list(logger.filters):
        logger.removeFilter(flt)
    logger.propagate = False


def setup_logging(
    log_dir: Path | None = None,
    *,
    level: int = logging.INFO,
    json_to_stdout: bool = False,
    use_color: bool = True,
    stream: TextIO | None = None,
) -> Tuple[logging.Logger, logging.Logger]:
    """!
    @brief Configure the human and machine loggers for one run.
    @param log_dir Optional directory receiving ``cygwin-janitor.log`` and
    ``cygwin-janitor.jsonl`` rotating files. Console only when ``None``.
    @param level Threshold for the human console channel.
    @param json_to_stdout Mirror machine events to stdout.
    @param use_color Emit ANSI colour codes on the console.
    @param stream Console stream override, defaults to :data:`sys.stdout`.
    @returns Tuple of ``(human_logger, machine_logger)``.
    """

    human_logger = logging.getLogger(HUMAN_LOGGER_NAME)
    machine_logger = logging.getLogger(MACHINE_LOGGER_NAME)
    _reset_logger(human_logger)
    _reset_logger(machine_logger)
    human_logger.setLevel(logging.DEBUG)
    machine_logger.setLevel(logging.INFO)

    console = logging.StreamHandler(stream=stream or sys.stdout)
    console.setLevel(level)
    console.setFormatter(_ConsoleFormatter(use_color=use_color))
    human_logger.addHandler(console)

    machine_handlers: List[logging.Handler] = []
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        human_file = handlers.RotatingFileHandler(
            log_dir / "cygwin-janitor.log",
            maxBytes=1_048_576,
            backupCount=5,
            encoding="utf-8",
        )
        human_file.setLevel(logging.DEBUG)
        human_file.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-8s [%(channel)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        human_logger.addHandler(human_file)
        machine_handlers.append(
            handlers.RotatingFileHandler(
                log_dir / "cygwin-janitor.jsonl",
                maxBytes=1_048_576,
                backupCount=5,
                encoding="utf-8",
            )
        )
    if json_to_stdout:
        machine_handlers.append(logging.StreamHandler(stream=sys.stdout))
    if not machine_handlers:
        machine_handlers.append(logging.NullHandler())

    json_formatter = _JsonLineFormatter()
    for handler in machine_handlers:
        handler.setFormatter(json_formatter)
        machine_logger.addHandler(handler)

    human_logger.addFilter(_ChannelFilter("human"))
    machine_logger.addFilter(_ChannelFilter("machine"))

    _emit_run_metadata(human_logger, machine_logger, log_dir)
    return human_logger, machine_logger


def get_human_logger() -> logging.Logger:
    """!
    @brief Retrieve the operator-facing logger.
    """

    return logging.getLogger(HUMAN_LOGGER_NAME)


def get_machine_logger() -> logging.Logger:
    """!
    @brief Retrieve the structured event logger.
    """

    return logging.getLogger(MACHINE_LOGGER_NAME)


def get_run_metadata() -> Mapping[str, object] | None:
    """!
    @brief Return the metadata recorded by the most recent :func:`setup_logging`.
    @details Contains ``run_id`` (UUID4 hex), an ISO-8601 UTC ``timestamp``,
    and version identifiers.
    """

    return dict(_RUN_METADATA) if _RUN_METADATA is not None else None


def _emit_run_metadata(
    human_logger: logging.Logger, machine_logger: logging.Logger, log_dir: Path | None
) -> None:
    global _RUN_METADATA

    moment = _dt.datetime.now(tz=_dt.timezone.utc)
    _RUN_METADATA = {
        "run_id": uuid.uuid4().hex,
        "timestamp": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "version": version.__version__,
        "build": version.__build__,
        "python": sys.version.split()[0],
        "logdir": str(log_dir) if log_dir is not None else None,
    }

    human_logger.debug(
        "Cygwin Janitor %s (%s) starting, run %s",
        version.__version__,
        version.__build__,
        _RUN_METADATA["run_id"],
    )
    if log_dir is not None:
        human_logger.info("Logs directory: %s", log_dir)
    machine_logger.info("run_start", extra={"event": "run_start", "run": dict(_RUN_METADATA)})


__all__ = [
    "HUMAN_LOGGER_NAME",
    "MACHINE_LOGGER_NAME",
    "get_human_logger",
    "get_machine_logger",
    "get_run_metadata",
    "setup_logging",
]

"""Logging helpers.

Console output is coloured through rich; the same lines go, uncoloured, to
the session log file so the file survives the process as the run's record.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from rich.console import Console
from rich.text import Text

if TYPE_CHECKING:
    from ..config import LoggingConfig
    from ..orchestrator.models import DeploymentSession

PACKAGE_LOGGER = "container_deployer"

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_LEVEL_STYLES = {
    logging.DEBUG: ("·", "dim"),
    logging.INFO: ("ℹ", "blue"),
    SUCCESS: ("✓", "green"),
    logging.WARNING: ("⚠", "yellow"),
    logging.ERROR: ("✗", "red"),
    logging.CRITICAL: ("✗", "bold red"),
}


def log_success(logger: logging.Logger, message: str, *args: object) -> None:
    logger.log(SUCCESS, message, *args)


def _prefix_for(levelno: int) -> str:
    if levelno == logging.WARNING:
        return "WARNING: "
    if levelno >= logging.ERROR:
        return "ERROR: "
    return ""


class SessionFormatter(logging.Formatter):
    """Formats records as `<icon> [timestamp] message` like the console."""

    def format(self, record: logging.LogRecord) -> str:
        icon, _ = _LEVEL_STYLES.get(record.levelno, ("•", ""))
        stamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{icon} [{stamp}] {_prefix_for(record.levelno)}{message}"


class RichConsoleHandler(logging.Handler):
    """Writes log records to a rich console with a per-level coloured icon."""

    def __init__(self, console: Optional[Console] = None, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self.console = console or Console(highlight=False)
        self.setFormatter(SessionFormatter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            _, style = _LEVEL_STYLES.get(record.levelno, ("•", ""))
            line = self.format(record)
            icon, _, rest = line.partition(" ")
            text = Text()
            text.append(icon, style=style)
            text.append(" ")
            text.append(rest)
            self.console.print(text)
        except Exception:
            self.handleError(record)


def configure_session_logging(
    config: "LoggingConfig",
    session: "DeploymentSession",
    *,
    console: Optional[Console] = None,
) -> List[logging.Handler]:
    """Attach console and file handlers for one run to the package logger."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(logging.INFO)
    package_logger.propagate = False

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    if console is None:
        console = Console(highlight=False, no_color=not config.use_color)
    console_handler = RichConsoleHandler(console)

    session.log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(session.log_path, mode="a", encoding="utf-8")
    file_handler.setFormatter(SessionFormatter())

    package_logger.addHandler(console_handler)
    package_logger.addHandler(file_handler)
    return [console_handler, file_handler]


def close_session_logging(handlers: List[logging.Handler]) -> None:
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in handlers:
        package_logger.removeHandler(handler)
        handler.close()

"""Shared utilities: logging helpers and the execution log sink."""

from __future__ import annotations

import logging
import re
import sys
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import NoReturn, Optional

import click
from rich.console import Console, RenderableType

SUCCESS_PREFIX = "\033[92;1m✔\033[0m "
ERROR_PREFIX = "\033[31m✘\033[0m "
INFO_PREFIX = "\033[94;1mi\033[0m "
WARNING_PREFIX = "○ "
DEBUG_PREFIX = "\033[95m◆\033[0m "
BOLD = "\033[1m"
RESET = "\033[0m"

DRY_RUN_PREFIX = "[DRY RUN] "

_LOGGER = logging.getLogger("version_bumper")

console = Console(stderr=True)


def configure_logging(debug: bool = False) -> logging.Logger:
    """Configure the shared logger used across the CLI."""
    level = logging.DEBUG if debug else logging.INFO
    _LOGGER.setLevel(level)
    while _LOGGER.handlers:
        handler = _LOGGER.handlers.pop()
        handler.close()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(level)
    _LOGGER.addHandler(handler)
    _LOGGER.propagate = False
    return _LOGGER


def _log(prefix: str, message: str, level: int) -> None:
    for line in message.splitlines() or [""]:
        _LOGGER.log(level, f"{prefix}{line}" if line else prefix.rstrip())


def log_info(message: str) -> None:
    """Log an informational message with the standardized prefix."""
    _log(INFO_PREFIX, message, logging.INFO)


def log_success(message: str) -> None:
    """Log a success message with the standardized prefix."""
    _log(SUCCESS_PREFIX, message, logging.INFO)


def log_error(message: str) -> None:
    """Log an error message with the standardized prefix."""
    _log(ERROR_PREFIX, message, logging.ERROR)


def log_warning(message: str) -> None:
    """Log a warning message with the standardized prefix."""
    _log(WARNING_PREFIX, message, logging.WARNING)


def log_debug(message: str) -> None:
    """Log a debug message with the standardized prefix."""
    _log(DEBUG_PREFIX, message, logging.DEBUG)


def abort_on_user_interrupt(exc: BaseException | None = None) -> NoReturn:
    """Log a standardized cancellation message and exit the command."""

    log_error("operation cancelled by user (Ctrl+C).")
    raise click.exceptions.Exit(130) from exc


def format_bold(text: str) -> str:
    """Return text wrapped in ANSI bold styling."""
    return f"{BOLD}{text}{RESET}"


def render_to_text(renderable: RenderableType) -> str:
    """Return the string representation of a Rich renderable."""
    with console.capture() as capture:
        console.print(renderable)
    return capture.get()


def emit_output(content: str, *, newline: bool = True) -> None:
    """Emit raw command output to stdout for machine consumption."""
    click.echo(content, nl=newline, err=False)


@dataclass
class ExecutionLog:
    """Collects the human-readable log of one run.

    Every recorded message is forwarded to the shared logger and kept so the
    full log can be attached to the pull request body afterwards. In dry-run
    mode each line carries a ``[DRY RUN]`` prefix.
    """

    dry_run: bool = False
    lines: list[str] = field(default_factory=list)

    def record(self, message: str) -> None:
        prefix = DRY_RUN_PREFIX if self.dry_run else ""
        for line in message.split("\n"):
            formatted = f"{prefix}{line}"
            log_info(formatted)
            self.lines.append(formatted)

    def text(self) -> str:
        return "\n".join(self.lines)


def coerce_datetime(value: object) -> Optional[datetime]:
    """Return a UTC-aware datetime object for ISO-like inputs, preserving None.

    Accepts datetime objects, date objects (converted to midnight UTC),
    and ISO-formatted strings including a trailing ``Z``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    text = str(value).strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        pass
    try:
        d = date.fromisoformat(text[:10])
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    except ValueError:
        return None


def format_date(value: Optional[datetime]) -> str:
    """Render a publication timestamp as an ISO date."""
    if value is None:
        return "unknown date"
    return value.date().isoformat()


def slugify_branch(value: str) -> str:
    """Turn a branch name candidate into a flat, slash-free name."""
    return value.replace("/", "-")


def extract_excerpt(text: str) -> str:
    """Return the first paragraph of a Markdown body as a single line."""
    stripped = text.strip()
    if not stripped:
        return ""
    first_paragraph, *_ = re.split(r"\n\s*\n", stripped, maxsplit=1)
    collapsed = re.sub(r"\s*\n\s*", " ", first_paragraph.strip())
    return collapsed.strip()

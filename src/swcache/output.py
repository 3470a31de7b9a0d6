"""Terminal output for the swcache CLI.

Response bodies, store listings and config dumps are *data* and go to
stdout, so ``swcache fetch /api/me > me.json`` captures only the body.
Status lines (``HTTP 200 OK (cache)``), warnings and errors go to stderr.

The output format is ``rich`` on a colour terminal and ``plain`` (tab
separated) otherwise; ``json`` is always explicit. ``NO_COLOR`` and
``TERM=dumb`` count as "no colour".

:func:`~swcache.app.main_callback` builds one :class:`OutputManager` per
invocation and installs it with :func:`set_output`; commands call the
module-level helpers. Library modules only log, and
:meth:`OutputManager.install_logging` sends those records to stderr.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


# Prefix and Rich style of each diagnostic level.
_LEVELS = {
    "info": ("", None),
    "success": ("", "green"),
    "warning": ("Warning: ", "yellow"),
    "error": ("Error: ", "bold red"),
    "debug": ("[debug] ", "dim"),
}


class OutputManager:
    """Writes data to stdout and diagnostics to stderr in one format.

    Args:
        format: Requested format; ``AUTO`` resolves against the terminal.
        no_color: Force colour off.
        quiet: Drop ``info`` and ``success`` lines. Warnings and errors
            are always shown.
        verbose: Show ``debug`` lines and library logs below warning level.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        if format == OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format
        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    def install_logging(self) -> None:
        """Route the ``swcache`` logger to stderr."""
        logger = logging.getLogger("swcache")
        logger.handlers.clear()
        logger.addHandler(RichHandler(console=self._stderr, show_path=False, markup=False))
        logger.setLevel(logging.DEBUG if self._verbose else logging.WARNING)
        logger.propagate = False

    # stdout

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: Any) -> None:
        """Print a decoded response body (or any JSON-able value)."""
        if isinstance(data, str) and self._format != OutputFormat.RICH:
            self.print_data(data)
        elif self._format == OutputFormat.JSON:
            self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        elif isinstance(data, (dict, list)):
            text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
            self._stdout.print(Syntax(text, "json", theme="monokai", word_wrap=True))
        else:
            self._stdout.print(str(data), markup=False)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))
            return
        if self._format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
            return
        table = Table(title=title, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # stderr

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic("info", message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic("success", message)

    def warning(self, message: str) -> None:
        self._diagnostic("warning", message)

    def error(self, message: str) -> None:
        self._diagnostic("error", message)

    def debug(self, message: str) -> None:
        if self._verbose:
            self._diagnostic("debug", message)

    def _diagnostic(self, level: str, message: str) -> None:
        prefix, style = _LEVELS[level]
        if self._no_color:
            print(prefix + message, file=sys.stderr, flush=True)
        else:
            self._stderr.print(prefix + message, style=style, markup=False)


def _plain_lines(data: Any) -> list[str]:
    """Tab-separated lines: ``key<TAB>value`` for objects, one row per list item."""
    if isinstance(data, dict):
        return [f"{key}\t{value}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(str(v) for v in item.values()) if isinstance(item, dict) else str(item)
            for item in data
        ]
    return [str(data)]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """The installed manager, or a default one created on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)

"""Rich-based logging helpers shared by the library and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, replace

from rich.console import Console
from rich.theme import Theme
from rich.traceback import install

install(show_locals=False)

_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "debug": "dim",
    }
)

# stdout carries result payloads, stderr carries log chatter.
# Highlighting is off so SQL text and values are printed without injected styles.
_stdout_console = Console(theme=_THEME, highlight=False)
_stderr_console = Console(stderr=True, theme=_THEME, highlight=False)


@dataclass(frozen=True, slots=True)
class Logger:
    """Lightweight logger facade backed by Rich consoles.

    ``scope`` prefixes every message (``[server:main] ...``) so output from
    several servers sharing one process stays attributable.
    """

    verbose: bool = False
    scope: str | None = None

    @property
    def console(self) -> Console:
        return _stdout_console

    def child(self, scope: str) -> Logger:
        """Return a logger with ``scope`` appended to the current prefix."""
        combined = f"{self.scope}:{scope}" if self.scope else scope
        return replace(self, scope=combined)

    def _format(self, message: str) -> str:
        return f"[{self.scope}] {message}" if self.scope else message

    def info(self, message: str) -> None:
        _stderr_console.print(self._format(message), style="info", markup=False)

    def success(self, message: str) -> None:
        _stderr_console.print(self._format(message), style="success", markup=False)

    def warning(self, message: str) -> None:
        _stderr_console.print(self._format(message), style="warning", markup=False)

    def error(self, message: str) -> None:
        _stderr_console.print(self._format(message), style="error", markup=False)

    def debug(self, message: str) -> None:
        if self.verbose:
            _stderr_console.print(self._format(message), style="debug", markup=False)


def get_logger(verbose: bool = False, scope: str | None = None) -> Logger:
    """Return a configured Logger instance."""
    return Logger(verbose=verbose, scope=scope)

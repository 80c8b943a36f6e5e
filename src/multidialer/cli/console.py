"""CLI console helpers.

Two Rich-backed proxies:

* :data:`console` — status lines, prompts, errors (stderr),
* :data:`out` — the banner and command help (stdout).

A fresh :class:`rich.console.Console` is created per call so output
always follows the current ``sys.stdout``/``sys.stderr`` (pytest's
capture swaps them between tests).
"""

from __future__ import annotations

import sys
from typing import Any

from rich.console import Console


def get_rich_console(*, stderr: bool = True) -> Console:
    """Create a Rich console targeting stderr (default) or stdout."""
    return Console(stderr=stderr, highlight=False, soft_wrap=True)


class _ConsoleProxy:
    """Minimal ``print``-compatible proxy over a Rich console."""

    def __init__(self, *, stderr: bool) -> None:
        self._stderr = stderr

    @property
    def is_terminal(self) -> bool:
        stream = sys.stderr if self._stderr else sys.stdout
        return stream.isatty()

    def print(self, *objects: Any, end: str = "\n") -> None:
        rich_console = get_rich_console(stderr=self._stderr)
        rich_console.print(*objects, end=end)

    def clear(self) -> None:
        get_rich_console(stderr=self._stderr).clear()


console = _ConsoleProxy(stderr=True)
out = _ConsoleProxy(stderr=False)

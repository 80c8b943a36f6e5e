"""Character-at-a-time command line editor.

The terminal is in non-canonical mode, so the reader sees each
keystroke as it is typed and assembles command lines itself:

* ``\\n`` runs the buffered command,
* ``?`` shows the command help immediately,
* ``\\r`` is ignored so CRLF scripts work,
* everything else is appended to the bounded command buffer.

A command that outgrows the buffer is reported once and the rest of its
physical line is thrown away, so its tail is never run as a command of
its own.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

import structlog
from rich.markup import escape

from multidialer.cli.console import console
from multidialer.cli.help_text import print_command_help
from multidialer.core.buffer import CommandBuffer
from multidialer.core.protocols import KeySource
from multidialer.exceptions import CommandTooLongError, InputCancelledError
from multidialer.infra.cancellation import CancellationToken

logger = structlog.get_logger(__name__)

PROMPT: str = ">"

LineHandler = Callable[[str], bool]
"""Runs one command line; returns ``True`` when the session should quit."""


class ReaderExit(Enum):
    """Why :meth:`InputReader.run` returned."""

    QUIT = "quit"
    END_OF_INPUT = "end_of_input"
    CANCELLED = "cancelled"


class InputReader:
    """Assemble keystrokes from *source* into command lines for *handler*."""

    def __init__(
        self,
        source: KeySource,
        handler: LineHandler,
        *,
        token: CancellationToken | None = None,
        buffer: CommandBuffer | None = None,
        show_help: Callable[[], None] = print_command_help,
    ) -> None:
        self._source = source
        self._handler = handler
        self._token = token
        self._buffer = buffer if buffer is not None else CommandBuffer()
        self._show_help = show_help
        self._discarding = False

    def run(self) -> ReaderExit:
        """Read and execute commands until quit, end of input or cancellation.

        Raises
        ------
        InputReadError
            When the key source fails at the OS level.
        """
        self._reset()
        while True:
            if self._token is not None and self._token.cancelled:
                return ReaderExit.CANCELLED
            try:
                key = self._source.read_key()
            except InputCancelledError:
                return ReaderExit.CANCELLED

            if key is None:
                if len(self._buffer):
                    logger.debug("unterminated_command_dropped", text=str(self._buffer))
                return ReaderExit.END_OF_INPUT

            if self._feed(key):
                return ReaderExit.QUIT

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _feed(self, key: str) -> bool:
        if self._discarding:
            if key == "\n":
                self._reset()
            return False

        if key == "\n":
            line = self._buffer.take()
            if self._handler(line):
                return True
            self._reset()
        elif key == "\r":
            pass
        elif key == "?":
            self._show_help()
            self._reset()
        else:
            try:
                self._buffer.append(key)
            except CommandTooLongError as exc:
                console.print(f"[red]{escape(str(exc))}[/red]")
                self._discarding = True
        return False

    def _reset(self) -> None:
        self._buffer.clear()
        self._discarding = False
        console.print(PROMPT, end="")

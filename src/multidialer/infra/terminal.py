"""Terminal mode switching for the interactive session.

:class:`TerminalMode` snapshots the terminal attributes of a file
descriptor, turns canonical (line-buffered) input off so keystrokes
arrive one at a time, and later restores the snapshot.

Restoring writes the snapshot back rather than toggling flags, and it
happens at most once; it may be called concurrently from the main loop
and from the controller's disconnect handler.  When the descriptor is
not a terminal (input redirected from a script) both operations are
no-ops.
"""

from __future__ import annotations

import os
import threading
from typing import Any

import structlog

from multidialer.exceptions import TerminalSetupError

try:
    import termios
except ModuleNotFoundError:  # pragma: no cover - non-POSIX platforms
    termios = None  # type: ignore[assignment]

logger = structlog.get_logger(__name__)

_LFLAG = 3


class TerminalMode:
    """Unbuffered-input mode for the terminal on *fd*.

    Parameters
    ----------
    fd:
        File descriptor of the controlling terminal (normally stdin).
    echo:
        Keep local echo so the operator sees what they type.
    """

    def __init__(self, fd: int, *, echo: bool = True) -> None:
        self._fd = fd
        self._echo = echo
        self._snapshot: list[Any] | None = None
        self._lock = threading.Lock()
        self._restored = False

    @property
    def active(self) -> bool:
        """Whether a snapshot is held and has not been restored yet."""
        return self._snapshot is not None and not self._restored

    def enter(self) -> None:
        """Snapshot the current attributes and switch to unbuffered input.

        Raises
        ------
        TerminalSetupError
            When the attributes cannot be read or applied.
        """
        if termios is None or not os.isatty(self._fd):
            logger.debug("terminal_not_a_tty", fd=self._fd)
            return

        try:
            original = termios.tcgetattr(self._fd)
            raw = termios.tcgetattr(self._fd)
            raw[_LFLAG] &= ~termios.ICANON
            if not self._echo:
                raw[_LFLAG] &= ~termios.ECHO
            termios.tcsetattr(self._fd, termios.TCSANOW, raw)
        except termios.error as exc:
            raise TerminalSetupError(
                f"Failed to configure terminal: {exc}",
                hint="Run from an interactive terminal or redirect a script into stdin.",
            ) from exc

        with self._lock:
            self._snapshot = original
            self._restored = False
        logger.debug("terminal_unbuffered", fd=self._fd, echo=self._echo)

    def restore(self) -> bool:
        """Write the snapshot back.  Returns ``True`` only the first time."""
        with self._lock:
            if self._snapshot is None or self._restored:
                return False
            self._restored = True
            snapshot = self._snapshot

        try:
            termios.tcsetattr(self._fd, termios.TCSANOW, snapshot)
        except termios.error as exc:
            logger.warning("terminal_restore_failed", fd=self._fd, error=str(exc))
            return False
        logger.debug("terminal_restored", fd=self._fd)
        return True

    def __enter__(self) -> TerminalMode:
        self.enter()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.restore()

"""Keystroke source over a raw stdin file descriptor.

Waits on stdin (and the session's cancellation pipe) with no timeout,
then hands out decoded characters one at a time.  Works the same for an
interactive terminal and for a script redirected into stdin.

Rules
-----
* No ``print()``.
* ``OSError`` is re-raised as :class:`~multidialer.exceptions.InputReadError`.
"""

from __future__ import annotations

import codecs
import errno
import os
import select
from collections import deque

from multidialer.exceptions import InputCancelledError, InputReadError
from multidialer.infra.cancellation import CancellationToken

_READ_SIZE = 4096


class StdinKeySource:
    """Blocking character source reading from *fd*.

    Parameters
    ----------
    fd:
        The input file descriptor (normally ``sys.stdin.fileno()``).
    token:
        Optional cancellation token; when it fires, a pending
        :meth:`read_key` raises :class:`InputCancelledError`.
    encoding:
        Input encoding; undecodable bytes become U+FFFD.
    """

    def __init__(
        self,
        fd: int,
        token: CancellationToken | None = None,
        *,
        encoding: str = "utf-8",
    ) -> None:
        self._fd = fd
        self._token = token
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending: deque[str] = deque()
        self._eof = False

    def read_key(self) -> str | None:
        """Return the next character, or ``None`` at end of input.

        Raises
        ------
        InputCancelledError
            When the cancellation token fires while waiting.
        InputReadError
            When the underlying read fails.
        """
        while not self._pending:
            if self._eof:
                return None
            self._fill()
        return self._pending.popleft()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fill(self) -> None:
        self._wait_readable()
        try:
            chunk = os.read(self._fd, _READ_SIZE)
        except InterruptedError:
            return
        except OSError as exc:
            if exc.errno == errno.EAGAIN:
                return
            raise InputReadError(f"Failed to read input: {exc}") from exc

        if not chunk:
            self._eof = True
            self._pending.extend(self._decoder.decode(b"", final=True))
            return
        self._pending.extend(self._decoder.decode(chunk))

    def _wait_readable(self) -> None:
        watched = [self._fd]
        if self._token is not None:
            if self._token.cancelled:
                raise InputCancelledError("Session cancelled")
            watched.append(self._token.wakeup_fd)

        try:
            readable, _, _ = select.select(watched, [], [])
        except OSError as exc:
            raise InputReadError(f"Failed to wait for input: {exc}") from exc

        if self._token is not None and (
            self._token.cancelled or self._token.wakeup_fd in readable
        ):
            raise InputCancelledError("Session cancelled")

"""Cooperative cancellation for the interactive session.

A :class:`CancellationToken` is a one-shot flag plus a self-pipe.  The
flag is checked at the top of every reader iteration; the pipe's read
end is watched next to stdin so a blocked keystroke wait wakes up as
soon as the token fires.  :meth:`CancellationToken.cancel` only sets an
attribute and writes one byte, so it is safe to call from a signal
handler or from the controller's listener thread.
"""

from __future__ import annotations

import os
import select
import time
from enum import Enum


class CancelReason(Enum):
    """Why the session is being torn down early."""

    INTERRUPTED = "interrupted"
    DISCONNECTED = "disconnected"


class CancellationToken:
    """One-shot, thread- and signal-safe cancellation flag."""

    def __init__(self) -> None:
        self._reason: CancelReason | None = None
        self._read_fd, self._write_fd = os.pipe()
        os.set_blocking(self._write_fd, False)
        self._closed = False

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> CancelReason | None:
        return self._reason

    @property
    def wakeup_fd(self) -> int:
        """File descriptor that becomes readable once the token fires."""
        return self._read_fd

    def cancel(self, reason: CancelReason) -> bool:
        """Fire the token.  Returns ``False`` if it had already fired."""
        if self._reason is not None:
            return False
        self._reason = reason
        if not self._closed:
            try:
                os.write(self._write_fd, b"\0")
            except OSError:
                # The flag is already set; the byte only wakes a waiter.
                pass
        return True

    def wait(self, timeout: float) -> bool:
        """Block for up to *timeout* seconds, returning early if the token fires.

        Returns :attr:`cancelled`.  Used as the session's ``s``/``ms`` sleep.
        """
        if self._reason is not None:
            return True
        if self._closed:
            time.sleep(timeout)
        else:
            select.select([self._read_fd], [], [], timeout)
        return self.cancelled

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        os.close(self._read_fd)
        os.close(self._write_fd)

    def __enter__(self) -> CancellationToken:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

"""Bounded command buffer used while assembling keystrokes."""

from __future__ import annotations

from multidialer.exceptions import CommandTooLongError

MAX_COMMAND_LENGTH: int = 63


class CommandBuffer:
    """Growable character buffer with an explicit length limit.

    Overflowing the limit clears the buffer and raises
    :class:`CommandTooLongError`; partial commands are never executed.
    """

    def __init__(self, limit: int = MAX_COMMAND_LENGTH) -> None:
        if limit < 1:
            raise ValueError("limit must be positive")
        self._limit = limit
        self._chars: list[str] = []

    @property
    def limit(self) -> int:
        return self._limit

    def __len__(self) -> int:
        return len(self._chars)

    def __str__(self) -> str:
        return "".join(self._chars)

    def append(self, char: str) -> None:
        if len(self._chars) >= self._limit:
            self.clear()
            raise CommandTooLongError("Command too long")
        self._chars.append(char)

    def take(self) -> str:
        """Return the buffered text and reset the buffer."""
        text = str(self)
        self.clear()
        return text

    def clear(self) -> None:
        self._chars.clear()

"""Line registry — the fixed-size table of line state.

Pure data plus invariants; no I/O.  A registry instance is owned by a
single session and handed explicitly to the dispatcher.

Invariants
----------
* A line's ``channel`` is only set while the line is off-hook.
* Slots ``1..capacity`` always exist; nothing is ever removed.
"""

from __future__ import annotations

from collections.abc import Iterator

from multidialer.core.models import MAX_LINES, Line
from multidialer.exceptions import InvalidSelectorError, LineStateError


class LineRegistry:
    """Table of :class:`Line` records, addressed ``1..capacity``."""

    def __init__(self, capacity: int = MAX_LINES) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._lines: dict[int, Line] = {n: Line(id=n) for n in range(1, capacity + 1)}

    @property
    def capacity(self) -> int:
        return self._capacity

    def __iter__(self) -> Iterator[Line]:
        return iter(self._lines[n] for n in sorted(self._lines))

    def __len__(self) -> int:
        return self._capacity

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, line_id: int) -> Line:
        """Return the line in slot *line_id*."""
        try:
            return self._lines[line_id]
        except KeyError:
            raise InvalidSelectorError(
                f"Line number must be between 1 and {self._capacity}",
            ) from None

    def require_off_hook(self, line_id: int) -> Line:
        """Return line *line_id*, rejecting it if it is on-hook."""
        line = self.get(line_id)
        if not line.off_hook:
            raise LineStateError(f"Can't do this action on on-hook line {line_id}")
        return line

    def off_hook_lines(self) -> Iterator[Line]:
        """Yield every off-hook line in ascending id order."""
        return (line for line in self if line.off_hook)

    def held_channels(self) -> set[str]:
        """Return the channel handles currently owned by any line."""
        return {line.channel for line in self if line.off_hook and line.channel}

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_off_hook(self, line_id: int, channel: str | None = None) -> Line:
        line = self.get(line_id)
        line.off_hook = True
        line.channel = channel
        return line

    def assign_channel(self, line_id: int, channel: str) -> Line:
        line = self.get(line_id)
        if not line.off_hook:
            raise LineStateError(
                f"Cannot attach channel {channel} to on-hook line {line_id}",
            )
        line.channel = channel
        return line

    def mark_on_hook(self, line_id: int) -> Line:
        line = self.get(line_id)
        line.off_hook = False
        line.channel = None
        return line

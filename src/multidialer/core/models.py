"""Domain models for multidialer.

Value objects are **frozen** dataclasses.  :class:`Line` is the one
mutable record: it is owned by :class:`~multidialer.core.registry.LineRegistry`
and only ever changed through it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

MAX_LINES: int = 9
"""Number of addressable lines; slots are numbered ``1..MAX_LINES``."""

NORMAL_CLEARING: int = 16
"""Q.850 cause code sent with every hangup."""


# ---------------------------------------------------------------------------
# Line naming
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class LinePlan:
    """How line numbers map onto endpoints of the switch under test.

    Line ``n`` originates ``<technology>/<plar_code>@<peer_prefix><n>``
    and is connected locally to ``context``/``extension`` (which should
    answer and wait).  The resulting channel is named after the device
    ``<technology>/<peer_prefix><n>``.
    """

    technology: str = "PJSIP"
    peer_prefix: str = "autotest"
    plar_code: str = "01"
    context: str = "idle"
    extension: str = "9999"
    priority: int = 1
    hangup_cause: int = NORMAL_CLEARING

    def device_name(self, line_id: int) -> str:
        """Return the local device name for *line_id*, e.g. ``PJSIP/autotest1``."""
        return f"{self.technology}/{self.peer_prefix}{line_id}"

    def dial_target(self, line_id: int) -> str:
        """Return the originate target for *line_id*, e.g. ``PJSIP/01@autotest1``."""
        return f"{self.technology}/{self.plar_code}@{self.peer_prefix}{line_id}"


# ---------------------------------------------------------------------------
# Line state
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class Line:
    """State of a single line slot."""

    id: int
    off_hook: bool = False
    channel: str | None = None
    """Remote channel handle; only meaningful while :attr:`off_hook` is set."""


# ---------------------------------------------------------------------------
# Tokenized commands
# ---------------------------------------------------------------------------

class Verb(str, Enum):
    """Closed set of command verbs produced by the tokenizer."""

    ORIGINATE = "o"
    HANGUP = "h"
    FLASH = "f"
    DIAL = "d"
    ANSWER = "a"
    SLEEP = "s"
    SLEEP_MS = "ms"
    HANGUP_ALL = "k"
    QUIT = "q"
    UNKNOWN = "unknown"


LINE_VERBS: frozenset[Verb] = frozenset(
    {Verb.ORIGINATE, Verb.HANGUP, Verb.FLASH, Verb.DIAL, Verb.ANSWER},
)


@dataclass(frozen=True, slots=True)
class Command:
    """A single tokenized command line."""

    selector: int | None
    """Line number ``1..MAX_LINES``, or ``None`` for a global command."""

    verb: Verb

    argument: str = ""
    """Text after the verb (for ``UNKNOWN``, the unrecognised text)."""

    text: str = ""
    """The command as typed, minus any comment."""

    @property
    def is_line_command(self) -> bool:
        return self.selector is not None


# ---------------------------------------------------------------------------
# Controller results
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ControllerResponse:
    """Outcome of a single control request."""

    success: bool
    message: str = ""
    fields: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ChannelInfo:
    """One active channel as reported by the switch."""

    channel_id: str
    attributes: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Dispatch results
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class StatusLine:
    """One line of operator feedback."""

    text: str
    ok: bool = True


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """What a dispatched command reports back to the session."""

    messages: tuple[StatusLine, ...] = ()
    quit: bool = False

    @classmethod
    def ok(cls, text: str = "OK") -> DispatchResult:
        return cls(messages=(StatusLine(text),))

    @property
    def failed(self) -> bool:
        return any(not message.ok for message in self.messages)

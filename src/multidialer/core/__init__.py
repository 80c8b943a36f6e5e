"""Core / service layer — command grammar, line state and dispatch.

Rules
-----
* No ``print()`` calls.
* No terminal or network I/O.
* No imports from ``cli`` or ``infra``.
* The switch is reached only through the
  :class:`~multidialer.core.protocols.LineController` protocol.
"""

from multidialer.core.buffer import CommandBuffer
from multidialer.core.dispatcher import CommandDispatcher, resolve_channel
from multidialer.core.models import (
    ChannelInfo,
    Command,
    ControllerResponse,
    DispatchResult,
    Line,
    LinePlan,
    StatusLine,
    Verb,
)
from multidialer.core.protocols import KeySource, LineController
from multidialer.core.registry import LineRegistry
from multidialer.core.tokenizer import tokenize

__all__: list[str] = [
    "ChannelInfo",
    "Command",
    "CommandBuffer",
    "CommandDispatcher",
    "ControllerResponse",
    "DispatchResult",
    "KeySource",
    "Line",
    "LineController",
    "LinePlan",
    "LineRegistry",
    "StatusLine",
    "Verb",
    "resolve_channel",
    "tokenize",
]

"""Protocols (interfaces) consumed by the core layer.

These define the contracts that infrastructure adapters must satisfy.
Core code depends ONLY on these protocols — never on concrete
implementations — so the dispatcher can be driven by a scripted fake
in tests and by the AMI adapter in production.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from multidialer.core.models import ChannelInfo, ControllerResponse

EventCallback = Callable[[dict[str, Any]], None]
DisconnectCallback = Callable[[], None]


class LineController(Protocol):
    """Contract for the control channel to the switch under test.

    Request methods block until the switch answers.  A response with
    ``success=False`` means the switch rejected the request; if no
    response can be obtained at all (link down, connection lost while
    waiting) implementations raise
    :class:`~multidialer.exceptions.ControllerUnavailableError`.
    """

    def connect(
        self,
        host: str,
        port: int,
        *,
        on_event: EventCallback | None = None,
        on_disconnect: DisconnectCallback | None = None,
    ) -> None:
        """Open the control channel.

        *on_event* receives unsolicited notifications; *on_disconnect*
        fires once, from a background thread, if the switch drops the
        session.

        Raises
        ------
        ControllerConnectionError
            When the switch cannot be reached.
        """
        ...  # pragma: no cover

    def login(self, username: str, password: str) -> None:
        """Authenticate the session.

        Raises
        ------
        ControllerLoginError
            When the credentials are rejected.
        """
        ...  # pragma: no cover

    def originate(
        self,
        endpoint: str,
        target: str,
        context: str,
        extension: str,
        priority: int,
    ) -> ControllerResponse:
        """Ask the switch to place a call from *endpoint* toward *target*,
        connecting it locally to *context*/*extension*/*priority*."""
        ...  # pragma: no cover

    def list_active_channels(self) -> list[ChannelInfo]:
        """Return the switch's active channels in the order it reports them."""
        ...  # pragma: no cover

    def send_hangup(self, channel: str, cause: int) -> ControllerResponse:
        """Terminate *channel* with the given Q.850 *cause*."""
        ...  # pragma: no cover

    def send_flash(self, channel: str) -> ControllerResponse:
        """Send a hook flash on *channel*."""
        ...  # pragma: no cover

    def play_digit(self, channel: str, digit: str) -> ControllerResponse:
        """Play a single DTMF *digit* on *channel*."""
        ...  # pragma: no cover

    def disconnect(self) -> None:
        """Close the session.  Best effort; never raises."""
        ...  # pragma: no cover


class KeySource(Protocol):
    """Contract for a keystroke stream (terminal or redirected script)."""

    def read_key(self) -> str | None:
        """Block until the next character arrives; ``None`` at end of input.

        Raises :class:`~multidialer.exceptions.InputCancelledError` if the
        session is cancelled while waiting and
        :class:`~multidialer.exceptions.InputReadError` on I/O failure.
        """
        ...  # pragma: no cover

"""Shared pytest fixtures and fakes for the multidialer test suite.

Guidelines
----------
* No network access: the AMI client is driven over ``socket.socketpair()``.
* No real terminal: ``termios`` is patched.
* Core tests must be pure; the switch is the scripted
  :class:`FakeLineController`.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from typing import Any

import pytest

from multidialer.core.dispatcher import CommandDispatcher
from multidialer.core.models import ChannelInfo, ControllerResponse, LinePlan
from multidialer.core.registry import LineRegistry
from multidialer.exceptions import InputCancelledError
from multidialer.utils.log import configure_logging


@pytest.fixture(autouse=True, scope="session")
def _quiet_logging() -> None:
    configure_logging(0)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("MULTIDIALER_"):
            monkeypatch.delenv(name)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeLineController:
    """Scripted stand-in for the switch.

    Every request succeeds unless a failure was queued with :meth:`fail`.
    A successful originate creates a channel ``<endpoint>-<seq>`` (unless
    ``auto_channels`` is off) which a successful hangup removes again.
    """

    def __init__(self, channels: Iterable[str] = (), *, auto_channels: bool = True) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.channels: list[str] = list(channels)
        self.auto_channels = auto_channels
        self.login_error: Exception | None = None
        self.on_disconnect: Callable[[], None] | None = None
        self.connected = False
        self._failures: dict[str, list[Any]] = {}
        self._seq = 0

    # -- scripting -------------------------------------------------------

    def fail(self, operation: str, result: Any = "Rejected", *, times: int = 1) -> None:
        """Queue *times* failures for *operation*.

        *result* is either a message (a ``success=False`` response) or an
        exception instance to raise.
        """
        self._failures.setdefault(operation, []).extend([result] * times)

    def calls_to(self, operation: str) -> list[tuple[Any, ...]]:
        return [call[1:] for call in self.calls if call[0] == operation]

    @property
    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    def _outcome(self, operation: str) -> ControllerResponse:
        queued = self._failures.get(operation)
        if queued:
            result = queued.pop(0)
            if isinstance(result, BaseException):
                raise result
            return ControllerResponse(success=False, message=str(result))
        return ControllerResponse(success=True, message="Success")

    # -- LineController --------------------------------------------------

    def connect(
        self,
        host: str,
        port: int = 5038,
        *,
        on_event: Callable[[dict[str, Any]], None] | None = None,
        on_disconnect: Callable[[], None] | None = None,
    ) -> None:
        self.calls.append(("connect", host, port))
        self.on_disconnect = on_disconnect
        self.connected = True

    def login(self, username: str, password: str) -> None:
        self.calls.append(("login", username, password))
        if self.login_error is not None:
            raise self.login_error

    def originate(
        self,
        endpoint: str,
        target: str,
        context: str,
        extension: str,
        priority: int,
    ) -> ControllerResponse:
        self.calls.append(("originate", endpoint, target, context, extension, priority))
        response = self._outcome("originate")
        if response.success and self.auto_channels:
            self._seq += 1
            self.channels.append(f"{endpoint}-{self._seq:08x}")
        return response

    def list_active_channels(self) -> list[ChannelInfo]:
        self.calls.append(("list_active_channels",))
        self._outcome("list_active_channels")
        return [ChannelInfo(channel_id=name) for name in self.channels]

    def send_hangup(self, channel: str, cause: int) -> ControllerResponse:
        self.calls.append(("send_hangup", channel, cause))
        response = self._outcome("send_hangup")
        if response.success and channel in self.channels:
            self.channels.remove(channel)
        return response

    def send_flash(self, channel: str) -> ControllerResponse:
        self.calls.append(("send_flash", channel))
        return self._outcome("send_flash")

    def play_digit(self, channel: str, digit: str) -> ControllerResponse:
        self.calls.append(("play_digit", channel, digit))
        return self._outcome("play_digit")

    def disconnect(self) -> None:
        self.calls.append(("disconnect",))
        self.connected = False


class ScriptedKeySource:
    """Key source that replays *text* one character at a time.

    *hooks* maps a character index to a callable run just before that
    character is handed out (e.g. to fire a cancellation token).  After
    the script, ``None`` (end of input) is returned, or
    :class:`InputCancelledError` when *cancel_at_end* is set.
    """

    def __init__(
        self,
        text: str,
        *,
        hooks: dict[int, Callable[[], None]] | None = None,
        cancel_at_end: bool = False,
    ) -> None:
        self._text = text
        self._pos = 0
        self._hooks = hooks or {}
        self._cancel_at_end = cancel_at_end
        self.reads = 0

    def read_key(self) -> str | None:
        self.reads += 1
        hook = self._hooks.pop(self._pos, None)
        if hook is not None:
            hook()
        if self._pos >= len(self._text):
            if self._cancel_at_end:
                raise InputCancelledError("Session cancelled")
            return None
        key = self._text[self._pos]
        self._pos += 1
        return key


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def controller() -> FakeLineController:
    return FakeLineController()


@pytest.fixture()
def registry() -> LineRegistry:
    return LineRegistry()


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def dispatcher(
    controller: FakeLineController,
    registry: LineRegistry,
    sleeps: list[float],
) -> CommandDispatcher:
    return CommandDispatcher(controller, registry, LinePlan(), sleep=sleeps.append)


"""Minimal synchronous Asterisk Manager Interface (AMI) client.

Wire format
-----------
After the ``Asterisk Call Manager/<version>`` banner, both directions
exchange messages made of ``Key: Value`` lines terminated by an empty
line (``\\r\\n`` line endings).  Every action carries a unique
``ActionID`` which the switch echoes in its response and in any list
events the action produces.

Threading
---------
One daemon listener thread owns the read side of the socket.  It routes
responses (and list events, for actions that produce them) to the
waiting caller by ``ActionID`` and hands every other event to the
``on_event`` callback.  When the connection drops it fails all pending
requests and fires ``on_disconnect`` once, unless the client closed the
connection itself.

Rules
-----
* This module is the **only** place that touches the AMI socket.
* Socket errors are re-raised as
  :class:`~multidialer.exceptions.ControllerConnectionError` (at
  connect time) or
  :class:`~multidialer.exceptions.ControllerUnavailableError`.
* No request timeouts: a caller waits until the switch answers or the
  connection is lost.
"""

from __future__ import annotations

import itertools
import socket
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, BinaryIO

import structlog

from multidialer.exceptions import ControllerConnectionError, ControllerUnavailableError

logger = structlog.get_logger(__name__)

AMI_DEFAULT_PORT: int = 5038
BANNER_PREFIX: str = "Asterisk Call Manager"

_REDACTED_KEYS = frozenset({"secret", "key"})


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class AmiMessage:
    """A single AMI message (response or event)."""

    fields: dict[str, str] = field(default_factory=dict)

    def get(self, key: str, default: str = "") -> str:
        """Case-insensitive field lookup."""
        wanted = key.lower()
        for name, value in self.fields.items():
            if name.lower() == wanted:
                return value
        return default

    @property
    def is_response(self) -> bool:
        return bool(self.get("Response"))

    @property
    def is_event(self) -> bool:
        return bool(self.get("Event"))

    @property
    def success(self) -> bool:
        return self.get("Response").lower() == "success"

    @property
    def action_id(self) -> str:
        return self.get("ActionID")

    @property
    def message(self) -> str:
        return self.get("Message")


@dataclass(frozen=True, slots=True)
class AmiResponse:
    """A response together with the list events it announced."""

    response: AmiMessage
    events: tuple[AmiMessage, ...] = ()

    @property
    def success(self) -> bool:
        return self.response.success

    @property
    def message(self) -> str:
        return self.response.message


def parse_message(lines: list[str]) -> AmiMessage:
    """Build an :class:`AmiMessage` from its ``Key: Value`` lines.

    The first occurrence of a key wins.  Lines without a colon (command
    output) are collected under ``Output``.
    """
    fields: dict[str, str] = {}
    output: list[str] = []
    for line in lines:
        key, sep, value = line.partition(":")
        if not sep:
            output.append(line)
            continue
        fields.setdefault(key.strip(), value.strip())
    if output:
        fields.setdefault("Output", "\n".join(output))
    return AmiMessage(fields)


def format_action(
    action: str,
    action_id: str,
    fields: Mapping[str, Any] | None = None,
) -> bytes:
    """Serialise an action into its wire representation."""
    lines = [f"Action: {action}", f"ActionID: {action_id}"]
    for key, value in (fields or {}).items():
        lines.append(f"{key}: {value}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def _loggable(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key: ("***" if key.lower() in _REDACTED_KEYS else value)
        for key, value in fields.items()
    }


# ---------------------------------------------------------------------------
# Pending request bookkeeping
# ---------------------------------------------------------------------------

class _PendingAction:
    def __init__(self, action: str, collect_events: bool) -> None:
        self.action = action
        self.collect_events = collect_events
        self.response: AmiMessage | None = None
        self.events: list[AmiMessage] = []
        self.lost = False
        self.done = threading.Event()


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class AmiClient:
    """Blocking request/response client with a background event listener.

    Parameters
    ----------
    on_event:
        Called (from the listener thread) with the fields of every
        unsolicited event.
    on_disconnect:
        Called once (from the listener thread) if the switch drops the
        connection.
    connect_timeout:
        Seconds allowed for the TCP connect and the banner.
    """

    def __init__(
        self,
        *,
        on_event: Callable[[dict[str, Any]], None] | None = None,
        on_disconnect: Callable[[], None] | None = None,
        connect_timeout: float = 10.0,
    ) -> None:
        self._on_event = on_event
        self._on_disconnect = on_disconnect
        self._connect_timeout = connect_timeout
        self._sock: socket.socket | None = None
        self._reader: BinaryIO | None = None
        self._listener: threading.Thread | None = None
        self._pending: dict[str, _PendingAction] = {}
        self._lock = threading.Lock()
        self._send_lock = threading.Lock()
        self._ids = itertools.count(1)
        self._closing = False
        self._connected = False
        self.banner: str = ""

    @property
    def connected(self) -> bool:
        return self._connected

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self, host: str, port: int = AMI_DEFAULT_PORT) -> str:
        """Open a TCP connection to *host*:*port* and start listening.

        Returns the banner announced by the switch.

        Raises
        ------
        ControllerConnectionError
            When the switch cannot be reached or does not speak AMI.
        """
        try:
            sock = socket.create_connection((host, port), timeout=self._connect_timeout)
        except OSError as exc:
            raise ControllerConnectionError(
                f"Failed to connect to AMI (host: {host}, port: {port}): {exc}",
                hint="Check that Asterisk is running and manager.conf enables AMI.",
            ) from exc
        return self.attach(sock)

    def attach(self, sock: socket.socket) -> str:
        """Take over an already-connected socket (used by :meth:`connect`)."""
        self._sock = sock
        self._reader = sock.makefile("rb")
        try:
            raw = self._reader.readline()
        except OSError as exc:
            self._teardown_socket()
            raise ControllerConnectionError(f"Failed to read AMI banner: {exc}") from exc

        banner = raw.decode("utf-8", errors="replace").strip()
        if not banner.startswith(BANNER_PREFIX):
            self._teardown_socket()
            raise ControllerConnectionError(
                f"Unexpected greeting from manager interface: {banner!r}",
            )

        sock.settimeout(None)
        self.banner = banner
        self._closing = False
        self._connected = True
        self._listener = threading.Thread(
            target=self._listen, name="ami-listener", daemon=True,
        )
        self._listener.start()
        logger.info("ami_connected", banner=banner)
        return banner

    def close(self) -> None:
        """Log off and close the connection.  Never raises."""
        if self._sock is None:
            return
        self._closing = True
        if self._connected:
            try:
                with self._send_lock:
                    self._sock.sendall(format_action("Logoff", self._next_id()))
            except OSError as exc:
                logger.debug("ami_logoff_failed", error=str(exc))
        self._teardown_socket()
        listener = self._listener
        if listener is not None and listener is not threading.current_thread():
            listener.join(timeout=1.0)
        logger.info("ami_closed")

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def send_action(
        self,
        action: str,
        fields: Mapping[str, Any] | None = None,
        *,
        collect_events: bool = False,
    ) -> AmiResponse:
        """Send *action* and block until it is answered.

        With *collect_events*, list events carrying the same ``ActionID``
        are gathered until the ``EventList: Complete`` marker arrives.

        Raises
        ------
        ControllerUnavailableError
            When not connected, or the connection is lost before the
            response arrives.
        """
        if not self._connected or self._sock is None:
            raise ControllerUnavailableError(
                f"No response to {action}: not connected to the manager interface",
            )

        action_id = self._next_id()
        pending = _PendingAction(action, collect_events)
        with self._lock:
            self._pending[action_id] = pending
            if not self._connected:
                # The listener already gave up and will not release us.
                pending.lost = True
                pending.done.set()
        try:
            payload = format_action(action, action_id, fields)
            logger.debug(
                "ami_send", action=action, action_id=action_id, fields=_loggable(fields or {}),
            )
            try:
                with self._send_lock:
                    self._sock.sendall(payload)
            except OSError as exc:
                raise ControllerUnavailableError(f"Failed to send {action}: {exc}") from exc

            pending.done.wait()
        finally:
            with self._lock:
                self._pending.pop(action_id, None)

        if pending.lost or pending.response is None:
            raise ControllerUnavailableError(f"No response to {action}")
        return AmiResponse(pending.response, tuple(pending.events))

    # ------------------------------------------------------------------
    # Listener thread
    # ------------------------------------------------------------------

    def _listen(self) -> None:
        reader = self._reader
        lines: list[str] = []
        try:
            while reader is not None:
                raw = reader.readline()
                if not raw:
                    break
                line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                if line:
                    lines.append(line)
                    continue
                if lines:
                    self._route(parse_message(lines))
                    lines = []
        except (OSError, ValueError) as exc:
            # ValueError: the file object was closed under us by close().
            if not self._closing:
                logger.warning("ami_read_failed", error=str(exc))
        finally:
            self._connection_lost()

    def _route(self, message: AmiMessage) -> None:
        logger.debug("ami_recv", fields=_loggable(message.fields))
        with self._lock:
            pending = self._pending.get(message.action_id) if message.action_id else None

        if pending is not None and message.is_response:
            pending.response = message
            announces_list = message.get("EventList").lower() == "start"
            if not (pending.collect_events and message.success and announces_list):
                pending.done.set()
            return

        if pending is not None and pending.collect_events and message.is_event:
            if message.get("EventList").lower() == "complete":
                pending.done.set()
            else:
                pending.events.append(message)
            return

        if message.is_event and self._on_event is not None:
            try:
                self._on_event(dict(message.fields))
            except Exception as exc:  # noqa: BLE001
                logger.warning("ami_event_callback_failed", error=str(exc))

    def _connection_lost(self) -> None:
        self._connected = False
        with self._lock:
            stranded = list(self._pending.values())
        for pending in stranded:
            pending.lost = True
            pending.done.set()

        if self._closing:
            return
        logger.warning("ami_disconnected", pending=len(stranded))
        if self._on_disconnect is not None:
            self._on_disconnect()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _next_id(self) -> str:
        return f"multidialer-{next(self._ids)}"

    def _teardown_socket(self) -> None:
        self._connected = False
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()
        reader, self._reader = self._reader, None
        if reader is not None:
            try:
                reader.close()
            except (OSError, ValueError):
                pass

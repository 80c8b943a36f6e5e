"""AMI-backed implementation of :class:`~multidialer.core.protocols.LineController`.

Maps each line operation onto one manager action:

=====================  ==========================================
Operation              AMI action
=====================  ==========================================
``login``              ``Login`` (``Events: off``)
``originate``          ``Originate`` (synchronous)
``list_active_...``    ``CoreShowChannels`` + ``CoreShowChannel``
``send_hangup``        ``Hangup``
``send_flash``         ``SendFlash``
``play_digit``         ``PlayDTMF`` (one digit per action)
``disconnect``         ``Logoff``
=====================  ==========================================
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from multidialer.core.models import ChannelInfo, ControllerResponse
from multidialer.core.protocols import DisconnectCallback, EventCallback
from multidialer.exceptions import (
    ControllerLoginError,
    ControllerRequestError,
    ControllerUnavailableError,
)
from multidialer.infra.ami_client import AMI_DEFAULT_PORT, AmiClient, AmiResponse

logger = structlog.get_logger(__name__)

ClientFactory = Callable[..., AmiClient]


def _to_response(response: AmiResponse) -> ControllerResponse:
    return ControllerResponse(
        success=response.success,
        message=response.message,
        fields=dict(response.response.fields),
    )


class AmiLineController:
    """Concrete :class:`LineController` speaking AMI.

    Usage::

        controller = AmiLineController()
        controller.connect("127.0.0.1", 5038, on_disconnect=session.handle_disconnect)
        controller.login("dialer", "secret")

    This class satisfies the protocol structurally — no explicit
    inheritance required.
    """

    def __init__(self, client_factory: ClientFactory = AmiClient) -> None:
        self._client_factory = client_factory
        self._client: AmiClient | None = None

    @property
    def client(self) -> AmiClient | None:
        return self._client

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def connect(
        self,
        host: str,
        port: int = AMI_DEFAULT_PORT,
        *,
        on_event: EventCallback | None = None,
        on_disconnect: DisconnectCallback | None = None,
    ) -> None:
        client = self._client_factory(on_event=on_event, on_disconnect=on_disconnect)
        client.connect(host, port)
        self._client = client

    def login(self, username: str, password: str) -> None:
        try:
            response = self._send(
                "Login", {"Username": username, "Secret": password, "Events": "off"},
            )
        except ControllerRequestError as exc:
            raise ControllerLoginError(
                f"Failed to log in with username {username}",
                hint=str(exc),
            ) from exc
        if not response.success:
            raise ControllerLoginError(
                f"Failed to log in with username {username}",
                hint=response.message or None,
            )
        logger.info("ami_logged_in", username=username)

    def disconnect(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            client.close()

    # ------------------------------------------------------------------
    # Line operations
    # ------------------------------------------------------------------

    def originate(
        self,
        endpoint: str,
        target: str,
        context: str,
        extension: str,
        priority: int,
    ) -> ControllerResponse:
        logger.debug("originate", endpoint=endpoint, target=target)
        response = self._send(
            "Originate",
            {
                "Channel": target,
                "Context": context,
                "Exten": extension,
                "Priority": priority,
            },
        )
        return _to_response(response)

    def list_active_channels(self) -> list[ChannelInfo]:
        response = self._send("CoreShowChannels", collect_events=True)
        if not response.success:
            raise ControllerRequestError(
                "Failed to show channels",
                hint=response.message or None,
            )
        return [
            ChannelInfo(channel_id=event.get("Channel"), attributes=dict(event.fields))
            for event in response.events
            if event.get("Channel")
        ]

    def send_hangup(self, channel: str, cause: int) -> ControllerResponse:
        return _to_response(self._send("Hangup", {"Channel": channel, "Cause": cause}))

    def send_flash(self, channel: str) -> ControllerResponse:
        return _to_response(self._send("SendFlash", {"Channel": channel}))

    def play_digit(self, channel: str, digit: str) -> ControllerResponse:
        return _to_response(self._send("PlayDTMF", {"Channel": channel, "Digit": digit}))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _send(
        self,
        action: str,
        fields: dict[str, Any] | None = None,
        *,
        collect_events: bool = False,
    ) -> AmiResponse:
        if self._client is None:
            raise ControllerUnavailableError(
                f"No response to {action}: not connected to the manager interface",
            )
        return self._client.send_action(action, fields, collect_events=collect_events)

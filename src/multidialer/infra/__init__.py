"""Infrastructure layer — external system integration.

This layer wraps all interaction with the Asterisk Manager Interface,
the terminal, stdin and the local Asterisk configuration.  Every raw
OS or socket exception is caught here and re-raised as a
:class:`~multidialer.exceptions.MultidialerError` subclass.

Rules
-----
* No imports from ``cli``.
* No user-facing output (no ``print()``, no Rich rendering).
* Must expose clean, typed interfaces consumed by the core and CLI layers.
"""

from multidialer.infra.ami_client import AmiClient, AmiMessage, AmiResponse
from multidialer.infra.ami_line_controller import AmiLineController
from multidialer.infra.cancellation import CancellationToken, CancelReason
from multidialer.infra.keyboard import StdinKeySource
from multidialer.infra.manager_conf import detect_manager_password
from multidialer.infra.terminal import TerminalMode

__all__: list[str] = [
    "AmiClient",
    "AmiLineController",
    "AmiMessage",
    "AmiResponse",
    "CancelReason",
    "CancellationToken",
    "StdinKeySource",
    "TerminalMode",
    "detect_manager_password",
]

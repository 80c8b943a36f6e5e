"""Custom exception hierarchy for multidialer.

All exceptions that cross layer boundaries must inherit from
:class:`MultidialerError`.  Raw socket, termios and YAML exceptions
must NEVER propagate beyond the infrastructure layer — they are caught
there and re-raised as a typed subclass defined here.

Hierarchy
---------
MultidialerError
├── ConfigurationError
│   └── PasswordDetectionError
├── ControllerConnectionError
├── ControllerLoginError
├── TerminalSetupError
├── InputReadError
├── InputCancelledError
└── CommandError
    ├── InvalidSelectorError
    ├── UnknownCommandError
    ├── CommandTooLongError
    ├── InvalidArgumentError
    ├── NotSupportedError
    ├── LineStateError
    ├── ChannelResolutionError
    └── ControllerRequestError
        └── ControllerUnavailableError

:class:`SessionInterrupted` deliberately sits outside the hierarchy.
"""

from __future__ import annotations


class MultidialerError(Exception):
    """Base exception for all multidialer errors.

    Every operator-visible error condition maps to a subclass of this
    exception so that the CLI can render a clean message without
    leaking internal stack traces.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Startup ---------------------------------------------------------------

class ConfigurationError(MultidialerError):
    """Raised when configuration is missing, malformed or inconsistent."""


class PasswordDetectionError(ConfigurationError):
    """Raised when the manager password cannot be read from manager.conf."""


class ControllerConnectionError(MultidialerError):
    """Raised when the control channel to the switch cannot be opened."""


class ControllerLoginError(MultidialerError):
    """Raised when the switch rejects the supplied credentials."""


class TerminalSetupError(MultidialerError):
    """Raised when the terminal cannot be switched to unbuffered mode."""


# --- Input -----------------------------------------------------------------

class InputReadError(MultidialerError):
    """Raised when reading keystrokes fails at the OS level."""


class InputCancelledError(MultidialerError):
    """Raised by a key source when the session was cancelled while waiting."""


# --- Per-command (non-fatal) -----------------------------------------------

class CommandError(MultidialerError):
    """A single command failed; the session carries on."""


class InvalidSelectorError(CommandError):
    """Raised when a line selector is outside the valid range."""


class UnknownCommandError(CommandError):
    """Raised for a verb that matches neither the line nor global table."""


class CommandTooLongError(CommandError):
    """Raised when the command buffer overflows."""


class InvalidArgumentError(CommandError):
    """Raised when a verb's argument tail cannot be interpreted."""


class NotSupportedError(CommandError):
    """Raised for verbs or dial types that are reserved but not implemented."""


class LineStateError(CommandError):
    """Raised when an operation is not legal in the line's hook state."""


class ChannelResolutionError(CommandError):
    """Raised when the channel created for a line cannot be identified."""


class ControllerRequestError(CommandError):
    """Raised when the switch rejects (or never answers) a control request."""


class ControllerUnavailableError(ControllerRequestError):
    """Raised when a request cannot be sent because the link is down."""


# --- Signals ---------------------------------------------------------------

class SessionInterrupted(BaseException):
    """Raised from a signal handler to abandon a command that is in flight.

    Derives from :class:`BaseException` so that ``except Exception``
    blocks between the handler and the session loop cannot swallow it.
    """

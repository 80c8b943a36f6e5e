"""Command dispatcher — executes tokenized commands against the switch.

The dispatcher maps each :class:`~multidialer.core.models.Verb` to
exactly one handler, checks hook-state preconditions against the
:class:`~multidialer.core.registry.LineRegistry`, issues the matching
:class:`~multidialer.core.protocols.LineController` request and updates
the registry from the outcome.

Guarantees
----------
* No ``print()`` — results are returned as
  :class:`~multidialer.core.models.DispatchResult` and failures raised as
  :class:`~multidialer.exceptions.CommandError` subclasses.
* A failed request never marks a line on-hook; a failed originate never
  marks it off-hook.
* Only :class:`~multidialer.exceptions.MultidialerError` subclasses escape
  a controller call.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from typing import Any

import structlog

from multidialer.core.models import (
    LINE_VERBS,
    ChannelInfo,
    Command,
    DispatchResult,
    LinePlan,
    StatusLine,
    Verb,
)
from multidialer.core.protocols import LineController
from multidialer.core.registry import LineRegistry
from multidialer.exceptions import (
    ChannelResolutionError,
    ControllerRequestError,
    InvalidArgumentError,
    LineStateError,
    MultidialerError,
    NotSupportedError,
    UnknownCommandError,
)

logger = structlog.get_logger(__name__)

DTMF_DIGITS: frozenset[str] = frozenset("0123456789*#ABCDabcd")

_Handler = Callable[[Command], DispatchResult]


def resolve_channel(
    device_name: str,
    channels: Sequence[ChannelInfo],
    *,
    exclude: Iterable[str] = (),
) -> str | None:
    """Pick the channel belonging to *device_name*.

    Channel names are ``<device>-<sequence>``, so only ids starting with
    ``device_name + "-"`` qualify (``PJSIP/autotest1`` must not claim
    ``PJSIP/autotest10-…``).  Channels listed in *exclude* (already owned
    by another line) are skipped; the first remaining candidate wins.
    """
    prefix = f"{device_name}-"
    taken = set(exclude)
    for info in channels:
        if info.channel_id.startswith(prefix) and info.channel_id not in taken:
            return info.channel_id
    return None


class CommandDispatcher:
    """Executes commands for one session.

    Parameters
    ----------
    controller:
        Any object satisfying the :class:`LineController` protocol.
    registry:
        The session's line table.
    plan:
        Line naming and dialplan destination.
    sleep:
        Blocking sleep used by ``s``/``ms``.  The session passes
        :meth:`CancellationToken.wait` so a signal or disconnect cuts the
        pause short; its return value is ignored.
    """

    def __init__(
        self,
        controller: LineController,
        registry: LineRegistry,
        plan: LinePlan | None = None,
        *,
        sleep: Callable[[float], object] = time.sleep,
    ) -> None:
        self._controller = controller
        self._registry = registry
        self._plan = plan or LinePlan()
        self._sleep = sleep
        self._handlers: dict[Verb, _Handler] = {
            Verb.ORIGINATE: self._originate,
            Verb.HANGUP: self._hangup,
            Verb.FLASH: self._flash,
            Verb.DIAL: self._dial,
            Verb.ANSWER: self._answer,
            Verb.SLEEP: self._sleep_seconds,
            Verb.SLEEP_MS: self._sleep_milliseconds,
            Verb.HANGUP_ALL: self._hangup_all,
            Verb.QUIT: self._quit,
            Verb.UNKNOWN: self._unknown,
        }
        missing = set(Verb) - set(self._handlers)
        if missing:
            names = ", ".join(sorted(verb.name for verb in missing))
            raise TypeError(f"No dispatcher handler for verb(s): {names}")

    @property
    def registry(self) -> LineRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def dispatch(self, command: Command) -> DispatchResult:
        """Execute *command*.

        Raises
        ------
        CommandError
            When the command is malformed, illegal in the line's current
            state, or rejected by the switch.
        """
        logger.debug(
            "dispatch",
            verb=command.verb.name,
            line=command.selector,
            argument=command.argument,
        )
        scoped_correctly = command.is_line_command == (command.verb in LINE_VERBS)
        if command.verb is not Verb.UNKNOWN and not scoped_correctly:
            return self._unknown(command)
        return self._handlers[command.verb](command)

    def hang_up_all(self) -> DispatchResult:
        """Hang up every off-hook line in ascending id order.

        A failure on one line is reported and the remaining lines are
        still attempted.
        """
        messages: list[StatusLine] = []
        for line in list(self._registry.off_hook_lines()):
            try:
                self._release(line.id)
            except MultidialerError as exc:
                logger.warning("hangup_all_line_failed", line=line.id, error=str(exc))
                messages.append(StatusLine(str(exc), ok=False))
            else:
                messages.append(StatusLine(f"Hung up line {line.id}"))
        return DispatchResult(messages=tuple(messages))

    # ------------------------------------------------------------------
    # Line verbs
    # ------------------------------------------------------------------

    def _originate(self, command: Command) -> DispatchResult:
        n = self._selector(command)
        line = self._registry.get(n)
        if line.off_hook:
            raise LineStateError(f"Line {n} is already off hook")

        device = self._plan.device_name(n)
        response = self._call(
            self._controller.originate,
            device,
            self._plan.dial_target(n),
            self._plan.context,
            self._plan.extension,
            self._plan.priority,
        )
        if not response.success:
            raise ControllerRequestError(
                f"Failed to go off hook on line {n}",
                hint=response.message or None,
            )

        self._registry.mark_off_hook(n)
        logger.info("line_off_hook", line=n, device=device)
        self._resolve(n)
        return DispatchResult.ok()

    def _hangup(self, command: Command) -> DispatchResult:
        n = self._selector(command)
        self._release(n)
        return DispatchResult.ok()

    def _flash(self, command: Command) -> DispatchResult:
        n = self._selector(command)
        channel = self._active_channel(n)
        response = self._call(self._controller.send_flash, channel)
        if not response.success:
            raise ControllerRequestError(
                f"Failed to send flash on line {n}",
                hint=response.message or None,
            )
        return DispatchResult.ok()

    def _dial(self, command: Command) -> DispatchResult:
        n = self._selector(command)
        self._registry.require_off_hook(n)

        dial_type = command.argument[:1].lower()
        if dial_type == "p":
            raise NotSupportedError("Dial pulse not yet supported")
        if dial_type != "t":
            raise InvalidArgumentError(f"Invalid dial type '{command.argument[:1]}'")

        digits = "".join(command.argument[1:].split())
        if not digits:
            raise InvalidArgumentError("No digits to dial")
        invalid = [digit for digit in digits if digit not in DTMF_DIGITS]
        if invalid:
            raise InvalidArgumentError(f"Invalid DTMF digit '{invalid[0]}'")

        channel = self._active_channel(n)
        # Digits are sent back to back; the channel queues them.
        for digit in digits:
            response = self._call(self._controller.play_digit, channel, digit)
            if not response.success:
                raise ControllerRequestError(
                    f"Failed to dial digit '{digit}' on line {n}",
                    hint=response.message or None,
                )
        return DispatchResult.ok()

    def _answer(self, command: Command) -> DispatchResult:
        self._selector(command)
        raise NotSupportedError("Answer is not implemented yet")

    # ------------------------------------------------------------------
    # Global verbs
    # ------------------------------------------------------------------

    def _sleep_seconds(self, command: Command) -> DispatchResult:
        return self._pause(command, _parse_duration(command.argument))

    def _sleep_milliseconds(self, command: Command) -> DispatchResult:
        return self._pause(command, _parse_duration(command.argument) / 1000)

    def _pause(self, command: Command, seconds: float) -> DispatchResult:
        try:
            self._sleep(seconds)
        except (OverflowError, ValueError) as exc:
            # The platform clock cannot represent durations this long.
            raise InvalidArgumentError(
                f"Invalid sleep duration '{command.argument.strip()}'",
                hint=str(exc),
            ) from exc
        return DispatchResult()

    def _hangup_all(self, command: Command) -> DispatchResult:
        return self.hang_up_all()

    def _quit(self, command: Command) -> DispatchResult:
        return DispatchResult(quit=True)

    def _unknown(self, command: Command) -> DispatchResult:
        if command.is_line_command:
            raise UnknownCommandError(f"Unknown line command '{command.argument[:1]}'")
        raise UnknownCommandError(f"Unknown global command '{command.text}'")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _selector(command: Command) -> int:
        if command.selector is None:
            raise UnknownCommandError(f"Unknown global command '{command.text}'")
        return command.selector

    def _release(self, n: int) -> None:
        channel = self._active_channel(n)
        response = self._call(self._controller.send_hangup, channel, self._plan.hangup_cause)
        if not response.success:
            raise ControllerRequestError(
                f"Failed to go on hook on line {n}",
                hint=response.message or None,
            )
        self._registry.mark_on_hook(n)
        logger.info("line_on_hook", line=n, channel=channel)

    def _active_channel(self, n: int) -> str:
        """Return the channel of off-hook line *n*, resolving it if unknown."""
        line = self._registry.require_off_hook(n)
        if line.channel:
            return line.channel
        return self._resolve(n)

    def _resolve(self, n: int) -> str:
        device = self._plan.device_name(n)
        channels = self._call(self._controller.list_active_channels)
        others = self._registry.held_channels() - {self._registry.get(n).channel}
        channel = resolve_channel(device, channels, exclude=others)
        if channel is None:
            logger.warning("channel_not_found", line=n, device=device, active=len(channels))
            raise ChannelResolutionError(f"Failed to find channel for {device}")
        self._registry.assign_channel(n, channel)
        logger.debug("channel_resolved", line=n, channel=channel)
        return channel

    @staticmethod
    def _call(request: Callable[..., Any], *args: Any) -> Any:
        """Invoke a controller request, mapping stray exceptions."""
        try:
            return request(*args)
        except MultidialerError:
            raise
        except Exception as exc:
            raise ControllerRequestError(
                f"Unexpected controller error: {exc}",
            ) from exc


def _parse_duration(argument: str) -> int:
    text = argument.strip()
    if not text.isdecimal():
        raise InvalidArgumentError(f"Invalid sleep duration '{text}'")
    return int(text)


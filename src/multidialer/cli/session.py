"""Interactive session — terminal, signals, the reader loop and teardown.

Lifecycle::

    UNINITIALIZED ──enter()──▶ TERMINAL_RAW ──▶ RUNNING ──▶ TEARDOWN ──▶ EXITED

Every way out of ``RUNNING`` (``q``, end of input, a signal, the switch
dropping the connection, an input failure) goes through
:meth:`Session.teardown`, which runs exactly once:

1. restore the terminal snapshot,
2. hang up every off-hook line (ascending, failures reported),
3. close the controller session,
4. put the previous signal handlers back.
"""

from __future__ import annotations

import signal
import threading
from enum import Enum
from types import FrameType
from typing import Any

import structlog
from rich.markup import escape

from multidialer.cli import exit_codes
from multidialer.cli.console import console
from multidialer.cli.reader import InputReader, ReaderExit
from multidialer.core.dispatcher import CommandDispatcher
from multidialer.core.models import DispatchResult, StatusLine
from multidialer.core.protocols import KeySource, LineController
from multidialer.core.registry import LineRegistry
from multidialer.core.tokenizer import tokenize
from multidialer.exceptions import (
    CommandError,
    InputReadError,
    MultidialerError,
    SessionInterrupted,
)
from multidialer.infra.cancellation import CancellationToken, CancelReason
from multidialer.infra.terminal import TerminalMode

logger = structlog.get_logger(__name__)

HANDLED_SIGNALS: tuple[signal.Signals, ...] = tuple(
    sig
    for sig in (
        getattr(signal, "SIGINT", None),
        getattr(signal, "SIGTERM", None),
        getattr(signal, "SIGHUP", None),
    )
    if sig is not None
)


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    TERMINAL_RAW = "terminal_raw"
    RUNNING = "running"
    TEARDOWN = "teardown"
    EXITED = "exited"


class Session:
    """One operator session against a connected, logged-in controller.

    Parameters
    ----------
    controller:
        The control channel; closed during teardown.
    dispatcher:
        Executes tokenized commands; its registry is the session's line
        table.
    terminal:
        Terminal mode switcher for stdin.
    source:
        Keystroke source (normally :class:`~multidialer.infra.keyboard.StdinKeySource`
        sharing *token*).
    token:
        Fired by signals and by the disconnect callback.
    install_signals:
        Install SIGINT/SIGTERM/SIGHUP handlers for the duration of
        :meth:`run`.  Only possible from the main thread.
    """

    def __init__(
        self,
        controller: LineController,
        dispatcher: CommandDispatcher,
        terminal: TerminalMode,
        source: KeySource,
        token: CancellationToken,
        *,
        install_signals: bool = True,
    ) -> None:
        self._controller = controller
        self._dispatcher = dispatcher
        self._terminal = terminal
        self._source = source
        self._token = token
        self._install_signals = install_signals
        self._previous_handlers: dict[int, Any] = {}
        self._state = SessionState.UNINITIALIZED
        self._busy = False
        self._teardown_lock = threading.Lock()
        self._torn_down = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def registry(self) -> LineRegistry:
        return self._dispatcher.registry

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self) -> int:
        """Run the session to completion and return the process exit code.

        Raises
        ------
        TerminalSetupError
            When the terminal cannot be switched to unbuffered input
            (teardown has still run).
        """
        try:
            exit_code = self._run_reader()
        except SessionInterrupted:
            exit_code = self._exit_code_for(ReaderExit.CANCELLED)
        finally:
            self._finish()
        logger.info("session_exited", exit_code=exit_code)
        return exit_code

    def _run_reader(self) -> int:
        self._terminal.enter()
        self._state = SessionState.TERMINAL_RAW
        if self._install_signals:
            self._install_signal_handlers()

        self._state = SessionState.RUNNING
        reader = InputReader(self._source, self._execute_line, token=self._token)
        try:
            outcome = reader.run()
        except InputReadError as exc:
            console.print()
            _print_error(exc)
            return exit_codes.GENERAL_ERROR
        logger.debug("reader_finished", outcome=outcome.value)
        return self._exit_code_for(outcome)

    def _exit_code_for(self, outcome: ReaderExit) -> int:
        if outcome is not ReaderExit.CANCELLED:
            return exit_codes.SUCCESS
        if self._token.reason is CancelReason.DISCONNECTED:
            return exit_codes.CONTROLLER_DISCONNECTED
        return exit_codes.KEYBOARD_INTERRUPT

    def _execute_line(self, line: str) -> bool:
        """Tokenize and dispatch one command line.  Returns ``True`` to quit."""
        try:
            command = tokenize(line, max_lines=self.registry.capacity)
        except CommandError as exc:
            _print_error(exc)
            return False
        if command is None:
            return False

        self._busy = True
        try:
            result = self._dispatcher.dispatch(command)
        except CommandError as exc:
            logger.debug("command_failed", command=command.text, error=str(exc))
            _print_error(exc)
            return False
        finally:
            self._busy = False

        _print_result(result)
        return result.quit

    # ------------------------------------------------------------------
    # Asynchronous exits
    # ------------------------------------------------------------------

    def handle_disconnect(self) -> None:
        """Disconnect callback for the controller (runs on its listener thread)."""
        self._terminal.restore()
        console.print("\n[bold red]AMI was forcibly disconnected, exiting[/bold red]")
        self._token.cancel(CancelReason.DISCONNECTED)

    def _on_signal(self, signum: int, frame: FrameType | None) -> None:
        logger.info("signal_received", signal=signal.Signals(signum).name)
        self._token.cancel(CancelReason.INTERRUPTED)
        if self._busy:
            raise SessionInterrupted(signum)

    def _install_signal_handlers(self) -> None:
        for sig in HANDLED_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, self._on_signal)

    def _restore_signal_handlers(self) -> None:
        handlers, self._previous_handlers = self._previous_handlers, {}
        for sig, handler in handlers.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def teardown(self) -> None:
        """Release everything the session holds.  Runs at most once.

        A signal arriving while the lines are being hung up raises
        :class:`SessionInterrupted` out of the hang-up step: the remaining
        lines stay off hook, but the controller is still closed and the
        handlers restored.  This lets the operator leave a session whose
        switch has stopped answering.
        """
        with self._teardown_lock:
            if self._torn_down:
                return
            self._torn_down = True

        self._state = SessionState.TEARDOWN
        self._terminal.restore()
        console.print()
        if self._token.reason is CancelReason.INTERRUPTED:
            console.print("[yellow]multidialer exiting...[/yellow]")

        try:
            self._busy = True
            try:
                result = self._dispatcher.hang_up_all()
            finally:
                self._busy = False
            _print_result(result)
        finally:
            self._controller.disconnect()
            self._restore_signal_handlers()
            self._state = SessionState.EXITED

    def _finish(self) -> None:
        try:
            self.teardown()
        except SessionInterrupted:
            # A second signal while hanging up; the controller is closed anyway.
            logger.warning("teardown_interrupted")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _print_status(status: StatusLine) -> None:
    colour = "green" if status.ok else "red"
    console.print(f"[{colour}]{escape(status.text)}[/{colour}]")


def _print_result(result: DispatchResult) -> None:
    for status in result.messages:
        _print_status(status)


def _print_error(exc: MultidialerError) -> None:
    console.print(f"[red]{escape(str(exc))}[/red]")
    if exc.hint:
        console.print(f"[yellow]Hint:[/yellow] {escape(exc.hint)}")

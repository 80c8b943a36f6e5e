"""CLI application entry point for multidialer.

This module is the **sole error boundary** for the entire application.
It catches :class:`~multidialer.exceptions.MultidialerError`,
``KeyboardInterrupt`` and any unexpected ``Exception``, rendering
operator-friendly messages via Rich and returning well-defined exit
codes.

Architecture notes
------------------
* No command logic lives here — it wires configuration, the AMI
  controller and the session together and hands over to
  :class:`~multidialer.cli.session.Session`.
* This module is the only place that translates between the domain
  world and the OS process exit code.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable

from rich.markup import escape

from multidialer.cli import exit_codes
from multidialer.cli.console import console, out
from multidialer.config import AppConfig, ManagerConfig, load_config
from multidialer.core.dispatcher import CommandDispatcher
from multidialer.core.protocols import LineController
from multidialer.core.registry import LineRegistry
from multidialer.exceptions import ConfigurationError, MultidialerError
from multidialer.infra.ami_line_controller import AmiLineController
from multidialer.infra.cancellation import CancellationToken
from multidialer.infra.keyboard import StdinKeySource
from multidialer.infra.manager_conf import detect_manager_password
from multidialer.infra.terminal import TerminalMode
from multidialer.utils.log import configure_logging
from multidialer.version import __version__

ControllerFactory = Callable[[], LineController]

_EPILOG = (
    "Use it interactively, or feed it commands from a script file by "
    "redirecting the file to stdin.  Press ? at the prompt for the "
    "command reference."
)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Construct the argument parser.

    ``-h`` is handled by hand so that ``-?`` can be an alias for it.
    """
    parser = argparse.ArgumentParser(
        prog="multidialer",
        description="Interactive multi-line dialer for Asterisk over AMI.",
        epilog=_EPILOG,
        add_help=False,
    )
    parser.add_argument(
        "-h",
        "-?",
        dest="help",
        action="store_true",
        help="Show this help and exit.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-d",
        dest="debug",
        action="count",
        default=0,
        help="Increase log verbosity (-d info, -dd debug incl. AMI traffic).",
    )
    parser.add_argument(
        "-l",
        dest="host",
        metavar="HOST",
        default=None,
        help="Asterisk AMI hostname. Default is localhost (127.0.0.1).",
    )
    parser.add_argument(
        "-u",
        dest="username",
        metavar="USER",
        default=None,
        help="Asterisk AMI username.",
    )
    parser.add_argument(
        "-p",
        dest="password",
        metavar="PASSWORD",
        default=None,
        help=(
            "Asterisk AMI password. Autodetected from manager.conf for "
            "local connections if omitted."
        ),
    )
    parser.add_argument(
        "-c",
        dest="config",
        metavar="FILE",
        default=None,
        help="YAML configuration file (default: $MULTIDIALER_CONFIG).",
    )
    parser.add_argument(
        "--doctor",
        action="store_true",
        help="Run environment diagnostics and exit.",
    )
    return parser


# ---------------------------------------------------------------------------
# Startup steps
# ---------------------------------------------------------------------------

def _resolve_password(manager: ManagerConfig) -> str:
    if manager.password is not None:
        return manager.password
    if manager.is_loopback and manager.username:
        return detect_manager_password(manager.username, manager.manager_conf)
    raise ConfigurationError(
        "No password provided (use -p flag)",
        hint="Autodetection from manager.conf only works for local connections.",
    )


def _print_banner() -> None:
    if out.is_terminal:
        out.clear()
    out.print("[bold]*** multidialer ***[/bold]")
    out.print("Press ? for help")


def _run_session(
    config: AppConfig,
    password: str,
    controller_factory: ControllerFactory,
    stdin_fd: int,
) -> int:
    from multidialer.cli.session import Session

    manager = config.manager
    controller = controller_factory()

    with CancellationToken() as token:
        dispatcher = CommandDispatcher(
            controller, LineRegistry(), config.plan, sleep=token.wait,
        )
        session = Session(
            controller,
            dispatcher,
            TerminalMode(stdin_fd),
            StdinKeySource(stdin_fd, token),
            token,
        )
        controller.connect(
            manager.host,
            manager.port,
            on_disconnect=session.handle_disconnect,
        )
        try:
            controller.login(manager.username or "", password)
        except MultidialerError:
            controller.disconnect()
            raise

        _print_banner()
        return session.run()


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(
    argv: list[str] | None = None,
    *,
    controller_factory: ControllerFactory = AmiLineController,
    stdin_fd: int | None = None,
) -> int:
    """Run the multidialer CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.
    controller_factory:
        Builds the line controller; tests pass a scripted fake.
    stdin_fd:
        Descriptor commands are read from (default: stdin).

    Returns
    -------
    int
        OS process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.help:
        out.print(escape(parser.format_help()))
        return exit_codes.SUCCESS

    configure_logging(args.debug)
    config = load_config(
        args.config,
        overrides={
            "host": args.host,
            "username": args.username,
            "password": args.password,
        },
        debug_level=args.debug,
    )

    if args.doctor:
        from multidialer.cli.doctor import run_doctor

        return run_doctor(config)

    if not config.manager.username:
        raise ConfigurationError("No username provided (use -u flag)")
    password = _resolve_password(config.manager)

    if stdin_fd is None:
        stdin_fd = sys.stdin.fileno()
    return _run_session(config, password, controller_factory, stdin_fd)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli() -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main()
        sys.exit(code)
    except MultidialerError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        if exc.hint:
            console.print(f"[yellow]Hint:[/yellow] {escape(exc.hint)}")
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {escape(str(exc))}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)

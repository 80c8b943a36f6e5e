"""``multidialer --doctor`` — environment diagnostics.

Gathers what the dialer needs from the machine it runs on and renders a
Rich table summarising it.  Only a FAIL row makes the command exit
non-zero; WARN rows are advisory.
"""

from __future__ import annotations

import os
import platform
import socket
import sys

from rich.table import Table

from multidialer.cli import exit_codes
from multidialer.cli.console import console
from multidialer.config import AppConfig
from multidialer.version import __version__

REACHABILITY_TIMEOUT: float = 2.0

_OK = "[green]OK[/green]"
_WARN = "[yellow]WARN[/yellow]"
_FAIL = "[red]FAIL[/red]"


# ---------------------------------------------------------------------------
# Diagnostic collectors
# ---------------------------------------------------------------------------

def _version_check() -> tuple[str, str, str]:
    return "multidialer", __version__, _OK


def _python_version_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the Python version row."""
    version = platform.python_version()
    ok = sys.version_info[:2] >= (3, 10)
    status = _OK if ok else "[red]FAIL (>=3.10 required)[/red]"
    return "Python", version, status


def _terminal_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the stdin row.

    A redirected stdin is fine for scripts, so it only warns.
    """
    try:
        is_tty = os.isatty(sys.stdin.fileno())
    except (AttributeError, OSError, ValueError):
        is_tty = False
    if is_tty:
        return "stdin", "terminal", _OK
    return "stdin", "not a terminal (script mode)", _WARN


def _manager_check(host: str, port: int) -> tuple[str, str, str]:
    """Return (label, value, status) for the AMI reachability row."""
    target = f"{host}:{port}"
    try:
        with socket.create_connection((host, port), timeout=REACHABILITY_TIMEOUT):
            pass
    except OSError as exc:
        return "AMI", f"{target} ({exc.strerror or exc})", _FAIL
    return "AMI", f"{target} reachable", _OK


def _manager_conf_check(config: AppConfig) -> tuple[str, str, str]:
    """Return (label, value, status) for the manager.conf row."""
    path = config.manager.manager_conf
    if config.manager.password is not None:
        return "manager.conf", f"{path} (not needed, password given)", _OK
    if os.access(path, os.R_OK):
        return "manager.conf", f"{path} readable", _OK
    # Only needed for password auto-detection on a local switch.
    return "manager.conf", f"{path} not readable", _WARN


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def run_doctor(config: AppConfig) -> int:
    """Execute all diagnostic checks and render a Rich summary table.

    Returns
    -------
    int
        :data:`exit_codes.SUCCESS` when no check fails,
        :data:`exit_codes.GENERAL_ERROR` otherwise.
    """
    checks = [
        _version_check(),
        _python_version_check(),
        _terminal_check(),
        _manager_check(config.manager.host, config.manager.port),
        _manager_conf_check(config),
    ]
    has_failure = any("FAIL" in status for _, _, status in checks)

    table = Table(
        title="multidialer doctor",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Component", style="bold", min_width=12)
    table.add_column("Value", min_width=20)
    table.add_column("Status", justify="center", min_width=8)
    for label, value, status in checks:
        table.add_row(label, value, status)

    console.print()
    console.print(table)
    console.print()

    if has_failure:
        console.print("[bold red]Some checks failed.[/bold red]")
        return exit_codes.GENERAL_ERROR
    console.print("[bold green]All checks passed.[/bold green]")
    return exit_codes.SUCCESS

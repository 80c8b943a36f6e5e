"""Exit-code constants used by the CLI layer.

Centralised here so that every exit path uses a well-known, tested
value rather than magic integers scattered across the codebase.
"""

from __future__ import annotations

SUCCESS: int = 0
"""Clean exit — ``q``, end of input, ``--help`` or ``--version``."""

GENERAL_ERROR: int = 1
"""A known MultidialerError was caught (startup failure or input I/O)."""

UNEXPECTED_ERROR: int = 2
"""An unhandled exception escaped all known error boundaries."""

CONTROLLER_DISCONNECTED: int = 3
"""The switch dropped the manager connection mid-session."""

KEYBOARD_INTERRUPT: int = 130
"""Terminated by SIGINT, SIGTERM or SIGHUP.  128 + SIGINT=2."""

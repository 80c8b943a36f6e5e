"""Operator help shown for ``?`` at the command prompt and by ``-h``."""

from __future__ import annotations

from rich.markup import escape

from multidialer.cli.console import out
from multidialer.core.models import MAX_LINES

COMMAND_HELP: str = f"""\
Line commands (prefix with the line number 1-{MAX_LINES}, e.g. 1o):
  o         Go off hook (originate)
  h         Go on hook (hang up)
  f         Hook flash
  dt<DTMF>  Dial DTMF digits (0-9 * # A-D), e.g. 1dt5551234
  dp<N>     Dial pulse digits (not supported yet)
  a         Answer (not implemented yet)

Global commands:
  s<N>      Sleep N seconds
  ms<N>     Sleep N milliseconds
  k         Hang up all off-hook lines
  q         Hang up all lines and quit
  ?         Show this help

Examples:
  1o        Take line 1 off hook
  2 o       Same for line 2 (space after the line number is ignored)
  1dt123#   Dial 1, 2, 3 and # on line 1
  ms750     Pause for 750 milliseconds
  1h        Hang up line 1

Text after ';' is a comment. Commands may also be piped in on stdin."""


def print_command_help() -> None:
    """Write the command reference to stdout."""
    out.print(escape(COMMAND_HELP))

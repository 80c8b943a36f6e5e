"""Allow ``python -m multidialer`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m multidialer`` behaves identically to the
``multidialer`` console script.
"""

from __future__ import annotations

from multidialer.cli.app import cli

if __name__ == "__main__":
    cli()

"""Password discovery from a local Asterisk ``manager.conf``.

When the dialer runs on the switch itself as a user that can read the
Asterisk configuration, the manager secret can be taken from the
``[<username>]`` section instead of being passed on the command line.

Rules
-----
* Read-only; the file is never modified.
* No ``print()`` — failures raise
  :class:`~multidialer.exceptions.PasswordDetectionError`.
"""

from __future__ import annotations

import configparser
from pathlib import Path

from multidialer.exceptions import PasswordDetectionError

DEFAULT_MANAGER_CONF: Path = Path("/etc/asterisk/manager.conf")


def _parser() -> configparser.ConfigParser:
    # Asterisk allows repeated keys (permit/deny), "=>" assignments,
    # template suffixes such as "[user](!)" and "#include" lines.
    return configparser.ConfigParser(
        delimiters=("=>", "="),
        comment_prefixes=(";", "#"),
        inline_comment_prefixes=(";",),
        strict=False,
        interpolation=None,
        allow_no_value=True,
    )


def read_manager_secret(text: str, username: str) -> str | None:
    """Return the ``secret`` of *username* in manager.conf *text*, if any."""
    parser = _parser()
    try:
        parser.read_string(text)
    except configparser.Error as exc:
        raise PasswordDetectionError(f"Unable to parse manager.conf: {exc}") from exc

    if not parser.has_section(username):
        return None
    secret = parser.get(username, "secret", fallback=None)
    if secret is None:
        return None
    return secret.strip() or None


def detect_manager_password(
    username: str,
    path: Path = DEFAULT_MANAGER_CONF,
) -> str:
    """Read the manager password for *username* from *path*.

    Raises
    ------
    PasswordDetectionError
        When the file cannot be read or has no secret for *username*.
    """
    hint = "Pass the password explicitly with -p."
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise PasswordDetectionError(
            f"No password specified, and failed to read {path}: {exc.strerror or exc}",
            hint=hint,
        ) from exc

    secret = read_manager_secret(text, username)
    if secret is None:
        raise PasswordDetectionError(
            f"No password specified, and no secret for '{username}' in {path}",
            hint=hint,
        )
    return secret

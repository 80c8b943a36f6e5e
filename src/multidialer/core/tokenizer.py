"""Command tokenizer — turns one command line into a :class:`Command`.

Grammar
-------
::

    command   := [selector] ws* verb argument   ; comment
    selector  := digit+                        (1..MAX_LINES)
    line verb := o | h | f | d | a             (one character)
    global    := ms<N> | s<N> | k | q

* ``;`` starts a comment; ``#`` cannot be used because it is a DTMF digit.
* Verbs are case-insensitive; the argument tail is passed on verbatim.
* A selector of ``0`` (or above ``MAX_LINES``) is a range error, never a
  global command.
"""

from __future__ import annotations

import re

from multidialer.core.models import MAX_LINES, Command, Verb
from multidialer.exceptions import InvalidSelectorError

COMMENT_MARKER: str = ";"

_SELECTOR_RE = re.compile(r"[0-9]+")

_LINE_VERBS: dict[str, Verb] = {
    "o": Verb.ORIGINATE,
    "h": Verb.HANGUP,
    "f": Verb.FLASH,
    "d": Verb.DIAL,
    "a": Verb.ANSWER,
}


def strip_comment(text: str) -> str:
    """Return *text* truncated at the first comment marker."""
    return text.split(COMMENT_MARKER, 1)[0]


def tokenize(text: str, *, max_lines: int = MAX_LINES) -> Command | None:
    """Tokenize a single command line.

    Returns ``None`` for a line that is blank once the comment is
    removed.

    Raises
    ------
    InvalidSelectorError
        When the line selector is outside ``1..max_lines``.
    """
    body = strip_comment(text).strip()
    if not body:
        return None

    match = _SELECTOR_RE.match(body)
    if match is None:
        return _tokenize_global(body)

    selector = int(match.group())
    if not 1 <= selector <= max_lines:
        raise InvalidSelectorError(f"Line number must be between 1 and {max_lines}")

    rest = body[match.end():].lstrip()
    verb = _LINE_VERBS.get(rest[:1].lower())
    if verb is None:
        return Command(selector=selector, verb=Verb.UNKNOWN, argument=rest, text=body)
    return Command(selector=selector, verb=verb, argument=rest[1:], text=body)


def _tokenize_global(body: str) -> Command:
    lowered = body.lower()
    if lowered.startswith("ms"):
        return Command(None, Verb.SLEEP_MS, body[2:].strip(), body)
    if lowered.startswith("s"):
        return Command(None, Verb.SLEEP, body[1:].strip(), body)
    if lowered == "k":
        return Command(None, Verb.HANGUP_ALL, "", body)
    if lowered == "q":
        return Command(None, Verb.QUIT, "", body)
    return Command(None, Verb.UNKNOWN, body, body)

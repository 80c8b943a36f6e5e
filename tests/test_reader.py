"""Tests for the keystroke line editor (cli/reader.py).

Keystrokes come from :class:`ScriptedKeySource`; the command handler is
a recording stub.
"""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock

import pytest

from conftest import ScriptedKeySource
from multidialer.cli.reader import InputReader, ReaderExit
from multidialer.core.buffer import CommandBuffer
from multidialer.exceptions import InputReadError
from multidialer.infra.cancellation import CancellationToken, CancelReason


class _Recorder:
    def __init__(self, quit_on: str | None = None) -> None:
        self.lines: list[str] = []
        self._quit_on = quit_on

    def __call__(self, line: str) -> bool:
        self.lines.append(line)
        return line == self._quit_on


@pytest.fixture()
def token() -> Iterator[CancellationToken]:
    with CancellationToken() as tok:
        yield tok


# ---------------------------------------------------------------------------
# Line assembly
# ---------------------------------------------------------------------------

class TestLineAssembly:
    def test_lines_handed_to_handler(self) -> None:
        handler = _Recorder()
        reader = InputReader(ScriptedKeySource("1o\n1dt5\n"), handler)
        assert reader.run() is ReaderExit.END_OF_INPUT
        assert handler.lines == ["1o", "1dt5"]

    def test_carriage_return_ignored(self) -> None:
        handler = _Recorder()
        InputReader(ScriptedKeySource("1o\r\n2o\r\n"), handler).run()
        assert handler.lines == ["1o", "2o"]

    def test_blank_line_still_handed_over(self) -> None:
        handler = _Recorder()
        InputReader(ScriptedKeySource("\n"), handler).run()
        assert handler.lines == [""]

    def test_unterminated_line_dropped_at_eof(self) -> None:
        handler = _Recorder()
        assert InputReader(ScriptedKeySource("1o\n2o"), handler).run() is ReaderExit.END_OF_INPUT
        assert handler.lines == ["1o"]

    def test_prompt_after_each_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        InputReader(ScriptedKeySource("1o\n2o\n"), _Recorder()).run()
        assert capsys.readouterr().err.count(">") == 3


# ---------------------------------------------------------------------------
# Exits
# ---------------------------------------------------------------------------

class TestExits:
    def test_quit_stops_reading(self) -> None:
        source = ScriptedKeySource("1o\nq\n2o\n")
        handler = _Recorder(quit_on="q")
        assert InputReader(source, handler).run() is ReaderExit.QUIT
        assert handler.lines == ["1o", "q"]

    def test_cancelled_token_checked_first(self, token: CancellationToken) -> None:
        token.cancel(CancelReason.INTERRUPTED)
        source = ScriptedKeySource("1o\n")
        handler = _Recorder()
        assert InputReader(source, handler, token=token).run() is ReaderExit.CANCELLED
        assert source.reads == 0
        assert handler.lines == []

    def test_cancelled_between_commands(self, token: CancellationToken) -> None:
        source = ScriptedKeySource(
            "1o\n2o\n",
            hooks={3: lambda: token.cancel(CancelReason.DISCONNECTED)},
        )
        handler = _Recorder()
        # The hook fires while the fourth key is read; that key is still
        # delivered, the next iteration sees the token.
        assert InputReader(source, handler, token=token).run() is ReaderExit.CANCELLED
        assert handler.lines == ["1o"]

    def test_source_cancellation(self) -> None:
        source = ScriptedKeySource("1o\n", cancel_at_end=True)
        assert InputReader(source, _Recorder()).run() is ReaderExit.CANCELLED

    def test_read_failure_propagates(self) -> None:
        source = MagicMock()
        source.read_key.side_effect = InputReadError("Failed to read input: EIO")
        with pytest.raises(InputReadError):
            InputReader(source, _Recorder()).run()


# ---------------------------------------------------------------------------
# Help and overflow
# ---------------------------------------------------------------------------

class TestHelp:
    def test_question_mark_shows_help_and_resets(self) -> None:
        show_help = MagicMock()
        handler = _Recorder()
        InputReader(ScriptedKeySource("1d?2o\n"), handler, show_help=show_help).run()
        show_help.assert_called_once_with()
        assert handler.lines == ["2o"]

    def test_default_help_goes_to_stdout(self, capsys: pytest.CaptureFixture[str]) -> None:
        InputReader(ScriptedKeySource("?"), _Recorder()).run()
        assert "Hang up all off-hook lines" in capsys.readouterr().out

    def test_help_lists_pulse_dialing_and_examples(self, capsys: pytest.CaptureFixture[str]) -> None:
        InputReader(ScriptedKeySource("?"), _Recorder()).run()
        out = capsys.readouterr().out
        assert "dp<N>" in out
        assert "Examples:" in out
        assert "ms750" in out
        assert "2 o" in out


class TestOverflow:
    def test_long_line_reported_and_discarded(self, capsys: pytest.CaptureFixture[str]) -> None:
        handler = _Recorder()
        reader = InputReader(
            ScriptedKeySource("1dt12345\n2o\n"),
            handler,
            buffer=CommandBuffer(limit=4),
        )
        assert reader.run() is ReaderExit.END_OF_INPUT
        assert handler.lines == ["2o"]
        assert capsys.readouterr().err.count("Command too long") == 1

    def test_exactly_at_limit_is_accepted(self) -> None:
        handler = _Recorder()
        InputReader(ScriptedKeySource("1dt5\n"), handler, buffer=CommandBuffer(limit=4)).run()
        assert handler.lines == ["1dt5"]

    def test_default_limit(self) -> None:
        handler = _Recorder()
        InputReader(ScriptedKeySource("1dt" + "5" * 70 + "\nq\n"), handler).run()
        assert handler.lines == ["q"]

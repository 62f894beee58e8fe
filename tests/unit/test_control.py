"""
Unit tests for the operator control channel.
"""

import io

import pytest

from minihttp.control import ControlChannel


class TestControlChannel:
    """Tests for ControlChannel class."""

    @pytest.mark.parametrize("line", ["\\exit", "\\EXIT\n", "  \\Exit  \n"])
    def test_matches(self, line: str):
        """Test case- and whitespace-insensitive matching."""
        assert ControlChannel(io.StringIO(), on_command=lambda: None).matches(line)

    @pytest.mark.parametrize("line", ["exit", "\\quit", "\\exit now", ""])
    def test_does_not_match(self, line: str):
        assert not ControlChannel(io.StringIO(), on_command=lambda: None).matches(line)

    def test_command_triggers_callback_once(self):
        """Test that the command fires the callback and ends the channel."""
        calls = []
        stream = io.StringIO("hello\n\\EXIT\n\\exit\n")

        channel = ControlChannel(stream, on_command=lambda: calls.append(1)).start()

        assert channel.join(timeout=2.0)
        assert channel.triggered.is_set()
        assert calls == [1]

    def test_eof_without_command(self):
        """Test that end of input doesn't trigger shutdown."""
        calls = []
        channel = ControlChannel(io.StringIO("status\nhelp\n"), on_command=lambda: calls.append(1))

        channel.start()

        assert channel.join(timeout=2.0)
        assert not channel.triggered.is_set()
        assert calls == []

    def test_closed_stream(self):
        """Test that a closed stream ends the channel quietly."""
        stream = io.StringIO("\\exit\n")
        stream.close()
        channel = ControlChannel(stream, on_command=lambda: None).start()

        assert channel.join(timeout=2.0)
        assert not channel.triggered.is_set()

    def test_custom_command(self):
        """Test configuring a different command."""
        calls = []
        channel = ControlChannel(io.StringIO("quit\n"), on_command=lambda: calls.append(1), command="QUIT")

        channel.start()

        assert channel.join(timeout=2.0)
        assert calls == [1]

    def test_join_before_start(self):
        assert ControlChannel(io.StringIO(), on_command=lambda: None).join() is True

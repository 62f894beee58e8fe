"""
=============================================================================
CONTROL CHANNEL
=============================================================================

Lets an operator stop the server by typing a command, by default:

    \\exit

The channel reads lines from a text stream (stdin, from the CLI) on its
own daemon thread. The command matches case-insensitively after
surrounding whitespace is stripped, so "\\EXIT" and "  \\exit  " both
work. Every other line is ignored. End of stream ends the channel but
leaves the server running; Ctrl+D in a terminal is not a shutdown.

    ┌──────────┐   lines   ┌────────────────┐  command  ┌──────────────┐
    │  stdin   │──────────►│ ControlChannel │──────────►│ server.stop()│
    └──────────┘           └────────────────┘           └──────────────┘

=============================================================================
"""

import logging
import threading
from typing import Callable, Optional, TextIO

logger = logging.getLogger(__name__)


class ControlChannel:
    """
    Watches a text stream for the shutdown command.

    Usage:
        channel = ControlChannel(sys.stdin, on_command=server.stop)
        channel.start()
    """

    def __init__(
        self,
        stream: TextIO,
        on_command: Callable[[], None],
        command: str = "\\exit",
    ):
        self.stream = stream
        self.on_command = on_command
        self.command = command.strip().lower()
        self._thread: Optional[threading.Thread] = None
        self.triggered = threading.Event()

    def start(self) -> "ControlChannel":
        self._thread = threading.Thread(target=self._run, name="ControlChannel", daemon=True)
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the channel thread. Returns True if it has finished."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def matches(self, line: str) -> bool:
        return line.strip().lower() == self.command

    def _run(self):
        try:
            for line in self.stream:
                if self.matches(line):
                    logger.info(f"Command {self.command!r} received, shutting down")
                    self.triggered.set()
                    self.on_command()
                    return
        except (OSError, ValueError) as e:
            # ValueError: the stream was closed while we were reading it.
            logger.warning(f"Control channel stopped: {e}")
            return

        logger.debug("Control stream closed; server keeps running")

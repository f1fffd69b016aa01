"""Line-oriented `ksysguardd` session on a pair of text streams.

    ksysguardd 1.2.0
    ksysguardd> monitors
    device0/clocks/current/graphics	integer
    ...
    ksysguardd> device0/memory/used?
    memory.used	0	8192	 MiB
    ksysguardd> quit
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import List, TextIO

from .errors import AdapterError
from .protocol import BANNER, PROMPT, format_error
from .router import QueryRouter

log = logging.getLogger(__name__)

MONITORS = "monitors"
QUIT = "quit"


class SessionState(Enum):
    READY = "ready"
    CLOSED = "closed"


class Session:
    def __init__(self, router: QueryRouter, stdin: TextIO, stdout: TextIO) -> None:
        self.router = router
        self.stdin = stdin
        self.stdout = stdout
        self.state = SessionState.READY

    def _write(self, lines: List[str]) -> None:
        for line in lines:
            self.stdout.write(f"{line}\n")

    def _prompt(self) -> None:
        self.stdout.write(PROMPT)
        self.stdout.flush()

    def respond(self, command: str) -> List[str]:
        """Response lines for one non-empty, non-quit command."""
        try:
            if command == MONITORS:
                return [f"{m.name}\t{m.value_type}" for m in self.router.monitors()]
            return [self.router.query(command)]
        except AdapterError as exc:
            return [format_error(exc)]
        except Exception as exc:
            log.exception("unexpected failure answering '%s'", command)
            return [format_error(f"{type(exc).__name__}: {exc}")]

    def handle_line(self, line: str) -> None:
        command = line.strip()
        if command == QUIT:
            self.state = SessionState.CLOSED
            return
        if command:
            self._write(self.respond(command))
        self._prompt()

    def run(self) -> int:
        """Serve until `quit` or end of input; returns the process exit code."""
        self._write([BANNER])
        self._prompt()
        for line in iter(self.stdin.readline, ""):
            self.handle_line(line)
            if self.state is SessionState.CLOSED:
                break
        self.state = SessionState.CLOSED
        log.debug("session closed")
        return 0

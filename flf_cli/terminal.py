"""Terminal device ownership for the interactive console."""

from __future__ import annotations

import logging
from typing import IO, List, Sequence

from prompt_toolkit.input import Input, create_input
from prompt_toolkit.output import Output, create_output

logger = logging.getLogger(__name__)

TTY_PATH = "/dev/tty"


class TerminalSession:
    """Input/output pair the console draws on, plus what must be released.

    ``acquire`` opens the controlling terminal directly so the console keeps
    working when stdout is captured by an editor and stdin is a pipe.  Raw
    mode is entered and left by the prompt_toolkit application running on
    top of the session; ``release`` flushes and closes what was opened.
    """

    def __init__(
        self,
        input: Input,
        output: Output,
        degraded: bool = False,
        owned: Sequence[object] = (),
    ) -> None:
        self.input = input
        self.output = output
        self.degraded = degraded
        self._owned: List[object] = list(owned)
        self._released = False

    @classmethod
    def acquire(cls, tty_path: str = TTY_PATH) -> "TerminalSession":
        tty_files: List[IO[str]] = []
        try:
            tty_files.append(open(tty_path, "r"))
            tty_files.append(open(tty_path, "w"))
            term_input = create_input(stdin=tty_files[0])
            term_output = create_output(stdout=tty_files[1])
        except OSError as exc:
            for f in tty_files:
                f.close()
            logger.warning(
                "Cannot use %s (%s); falling back to standard streams", tty_path, exc,
            )
            return cls(create_input(), create_output(always_prefer_tty=True), degraded=True)

        return cls(term_input, term_output, owned=[term_input, *tty_files])

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Flush output and close owned descriptors; safe to call twice."""
        if self._released:
            return
        self._released = True
        try:
            self.output.flush()
        finally:
            for resource in reversed(self._owned):
                try:
                    resource.close()  # type: ignore[attr-defined]
                except OSError as exc:
                    logger.debug("Error closing %r: %s", resource, exc)
            self._owned.clear()
        logger.debug("Terminal session released")

    def __enter__(self) -> "TerminalSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

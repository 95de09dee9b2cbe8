"""
Per-run progress output.

Every stage of a backfill run reports through a ProgressLog handed to it by
the caller. The CLI writes those lines to the terminal, the HTTP server
streams them into a response, and concurrent runs never share a sink.
"""

import logging
from typing import Callable, Optional, List

Writer = Callable[[str], None]


class ProgressLog:
    """
    Explicit output sink for one pipeline run.

    Lines go to the caller's writers and are mirrored to a standard logger so
    server-side logs keep a record of every run.
    """

    def __init__(self, writer: Optional[Writer] = None, error_writer: Optional[Writer] = None,
                 verbose: bool = False, logger: Optional[logging.Logger] = None):
        self._writer = writer
        self._error_writer = error_writer or writer
        self.verbose = verbose
        self._logger = logger or logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def info(self, message: str) -> None:
        self._logger.info(message)
        if self._writer:
            self._writer(message)

    def error(self, message: str) -> None:
        self._logger.error(message)
        if self._error_writer:
            self._error_writer(message)

    def debug(self, message: str) -> None:
        """Detail lines; only reach the writer in verbose mode."""
        self._logger.debug(message)
        if self.verbose and self._error_writer:
            self._error_writer(message)


class CollectingWriter:
    """Writer that keeps every line in memory."""

    def __init__(self):
        self.lines: List[str] = []

    def __call__(self, message: str) -> None:
        self.lines.append(message)

    def text(self) -> str:
        return "\n".join(self.lines)


def null_progress() -> ProgressLog:
    """A ProgressLog that only writes to the standard logger."""
    return ProgressLog()

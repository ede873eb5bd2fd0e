"""
Operator-facing progress output.

Steps report what they are doing through a :class:`Ui`.  Every line is
written to the output stream for the operator and mirrored to the
structured build logger so that log aggregation sees the same story.
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import TextIO

from .logger import BakeLogger


class Ui:
    """Announce / detail / error sink for one build.

    Attributes:
        build_name: Prefix printed in front of every line.
        stream: Where operator output goes (stdout by default).
        error_stream: Where errors go (stderr by default).
        logger: Structured logger receiving a copy of every line.
    """

    def __init__(
        self,
        build_name: str = "cloudbake",
        *,
        stream: TextIO | None = None,
        error_stream: TextIO | None = None,
        logger: BakeLogger | None = None,
    ) -> None:
        self.build_name = build_name
        self.stream = stream if stream is not None else sys.stdout
        self.error_stream = error_stream if error_stream is not None else sys.stderr
        self.logger = logger or BakeLogger()
        self._lock = threading.Lock()
        self.step: str | None = None

    def say(self, message: str) -> None:
        """Announce a new unit of work."""
        self._write(self.stream, f"==> {self.build_name}: {message}")
        self.logger.info(message, step=self.step)

    def message(self, message: str) -> None:
        """Report a detail of the current unit of work."""
        self._write(self.stream, f"    {self.build_name}: {message}")
        self.logger.log_event(logging.INFO, message, step=self.step)

    def error(self, message: str) -> None:
        self._write(self.error_stream, f"==> {self.build_name}: {message}")
        self.logger.error(message, step=self.step)

    def _write(self, stream: TextIO, line: str) -> None:
        with self._lock:
            stream.write(line + "\n")
            stream.flush()

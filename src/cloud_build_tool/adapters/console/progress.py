from __future__ import annotations

import sys
from typing import TextIO

from cloud_build_tool.domain.ports import ProgressReporter


class ConsoleProgressReporter(ProgressReporter):
    """Print indented step/info lines to a text stream (stdout by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def step(self, number: int, total: int, message: str) -> None:
        self._write(f"\n  [{number}/{total}] {message}")

    def info(self, message: str) -> None:
        self._write(f"        {message}")

    def success(self, message: str) -> None:
        self._write(f"        {message}")

    def warning(self, message: str) -> None:
        self._write(f"        WARNING: {message}")

    def _write(self, line: str) -> None:
        print(line, file=self._stream or sys.stdout, flush=True)

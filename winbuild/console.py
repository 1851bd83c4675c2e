"""Console output with log levels and colored stage banners."""
from __future__ import annotations

from typing import TextIO
import os
import sys


class Color:
    HEADER = "\033[95m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GREEN = "\033[92m"
    WARNING = "\033[93m"
    FAIL = "\033[91m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


class Console:
    """Simple console output handler with configurable log level.

    Levels: none < error < info < debug
    Default: 'info'
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(
        self,
        level: str = "info",
        dry_run: bool = False,
        *,
        stream: TextIO | None = None,
        error_stream: TextIO | None = None,
        color: bool | None = None,
    ) -> None:
        if level not in self.LEVELS:
            raise ValueError(f"Unknown log level '{level}'")
        self.level_name = level
        self.level = self.LEVELS[level]
        self.dry_run = dry_run
        self._out = stream if stream is not None else sys.stdout
        self._err = error_stream if error_stream is not None else sys.stderr
        if color is None:
            color = "NO_COLOR" not in os.environ and bool(getattr(self._out, "isatty", lambda: False)())
        self.color = color

    def _paint(self, text: str, *codes: str) -> str:
        if not self.color:
            return text
        return f"{''.join(codes)}{text}{Color.RESET}"

    def banner(self, title: str) -> None:
        if self.level < self.LEVELS["info"]:
            return
        rule = "=" * max(40, len(title) + 8)
        print(self._paint(rule, Color.CYAN), file=self._out)
        print(self._paint(f"    {title}", Color.BOLD, Color.CYAN), file=self._out)
        print(self._paint(rule, Color.CYAN), file=self._out)

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"[INFO] {message}", file=self._out)

    def success(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(self._paint(f"[DONE] {message}", Color.GREEN), file=self._out)

    def warning(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(self._paint(f"[WARN] {message}", Color.WARNING), file=self._out)

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(self._paint(f"[ERROR] {message}", Color.FAIL), file=self._err)

    def dry(self, message: str) -> None:
        if self.dry_run:
            print(f"[DRY] {message}", file=self._out)

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"[DEBUG] {message}", file=self._out)

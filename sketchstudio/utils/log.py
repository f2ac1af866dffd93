"""Transparency log: prefixed progress lines, phase banners and step timings."""

import sys
import time
from contextlib import contextmanager

BANNER = "═" * 63
RULE = "─" * 65


class StudioLog:
    """Prints `[prefix] message` lines to a stream.

    Debug lines are emitted only when `verbose` is set. Sub-loggers created
    with `child()` share the stream and verbosity.
    """

    def __init__(self, out=None, verbose: bool = False, prefix: str = "studio"):
        self.out = out if out is not None else sys.stderr
        self.verbose = verbose
        self.prefix = prefix

    def child(self, prefix: str) -> "StudioLog":
        return StudioLog(self.out, self.verbose, f"{self.prefix}/{prefix}" if self.prefix else prefix)

    def _emit(self, message: str) -> None:
        tag = f"[{self.prefix}] " if self.prefix else ""
        print(f"{tag}{message}", file=self.out)

    def info(self, message: str) -> None:
        self._emit(message)

    def debug(self, message: str) -> None:
        if self.verbose:
            self._emit(f"debug: {message}")

    def warn(self, message: str) -> None:
        self._emit(f"Warning: {message}")

    def error(self, message: str) -> None:
        self._emit(f"Error: {message}")

    def banner(self, *lines: str) -> None:
        self._emit(BANNER)
        for line in lines:
            self._emit(line)
        self._emit(BANNER)

    def phase(self, title: str) -> None:
        self._emit("")
        self._emit(title)
        self._emit(RULE)

    @contextmanager
    def step(self, name: str):
        """Log start and completion (with elapsed time) of a named step."""
        start = time.monotonic()
        self._emit(f"▶ Starting: {name}")
        try:
            yield
        except BaseException:
            self._emit(f"✗ Failed: {name} (after {time.monotonic() - start:.2f}s)")
            raise
        self._emit(f"✓ Completed: {name} (took {time.monotonic() - start:.2f}s)")

    def tokens(self, input_tokens: int, output_tokens: int) -> None:
        self._emit(
            f"Tokens - input: {input_tokens}, output: {output_tokens}, "
            f"total: {input_tokens + output_tokens}"
        )

    def section(self, title: str, description: str) -> None:
        self._emit(f"Section [{title}]: {description}")

    def compilation(self, outcome) -> None:
        if outcome.success:
            self._emit(f"✓ Compiled successfully: {outcome.artifact_path}")
            for warning in outcome.warnings:
                self.warn(warning)
            return
        self.error(f"✗ Compilation failed: {outcome.artifact_path or '(no output)'}")
        for line in outcome.errors or outcome.diagnostics:
            self._emit(f"  - {line}")


def truncate(text: str, limit: int) -> str:
    text = (text or "").replace("\n", " ")
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."

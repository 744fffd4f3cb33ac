"""Per-run query progress counters and the on-demand progress reporter."""
from __future__ import annotations

import asyncio
import os
import sys
from typing import AsyncIterator, Optional, TextIO, Tuple

from rich.console import Console

from nsrip.logging_config import get_logger

logger = get_logger("progress")


class ProgressTracker:
    """
    Completed vs. total queries for a single scan.

    `total` is fixed when the tracker is created; `completed` only grows.
    Both are touched from the event-loop thread only, so increments need no lock.
    """

    __slots__ = ("_total", "_completed")

    def __init__(self, total: int) -> None:
        if total < 0:
            raise ValueError(f"total must not be negative: {total}")
        self._total = total
        self._completed = 0

    @property
    def total(self) -> int:
        return self._total

    @property
    def completed(self) -> int:
        return self._completed

    def increment(self) -> int:
        self._completed += 1
        return self._completed

    def snapshot(self) -> Tuple[int, int]:
        return self._completed, self._total

    def percent(self) -> float:
        completed, total = self.snapshot()
        if total == 0:
            return 100.0
        return completed * 100.0 / total

    @property
    def done(self) -> bool:
        return self._completed >= self._total

    def render(self) -> str:
        completed, total = self.snapshot()
        return f"[~] Progress: {completed}/{total} ({self.percent():.2f}%)"


async def stdin_trigger(stream: Optional[TextIO] = None) -> AsyncIterator[None]:
    """
    Yield once per line typed on an interactive stdin.

    The descriptor is read directly, so lines typed ahead in one burst each
    produce a yield. Yields nothing when the stream is not a terminal or the
    event loop cannot watch it; returns at end of input.
    """
    stream = stream or sys.stdin
    try:
        if stream is None or not stream.isatty():
            return
        fd = stream.fileno()
    except (OSError, ValueError):
        return

    loop = asyncio.get_running_loop()
    chunks: asyncio.Queue = asyncio.Queue()

    def _on_readable() -> None:
        try:
            chunk = os.read(fd, 4096)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            logger.debug(f"Stopped watching stdin for progress requests: {exc}")
            chunk = b""
        chunks.put_nowait(chunk)

    try:
        loop.add_reader(fd, _on_readable)
    except (NotImplementedError, OSError, ValueError) as exc:
        logger.debug(f"Cannot watch stdin for progress requests: {exc}")
        return

    try:
        while True:
            chunk = await chunks.get()
            if not chunk:
                # EOF
                return
            for _ in range(chunk.count(b"\n")):
                yield
    finally:
        loop.remove_reader(fd)


async def report_progress(
    tracker: ProgressTracker,
    trigger: AsyncIterator[None],
    console: Console,
) -> None:
    """Print the tracker's progress every time `trigger` fires, until cancelled."""
    async for _ in trigger:
        console.log(tracker.render(), markup=False, highlight=False)

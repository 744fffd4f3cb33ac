"""Renders classified answers to the console and, optionally, an output file."""
from __future__ import annotations

import asyncio
from typing import IO, List, Optional, Tuple

from rich.console import Console

from nsrip.logging_config import get_logger
from nsrip.models import Answer, NameserverIndex, OtherRecord, Query

logger = get_logger("sink")

RESOLVED_STYLE = "green"
OTHER_STYLE = "yellow"
FAILURE_STYLE = "red"


def render_answer(answer: Answer, nameserver_name: str) -> List[Tuple[str, str]]:
    """Output lines for an answer, one per record, paired with their console style."""
    prefix = f"[{nameserver_name} ({answer.nameserver_ip})] {answer.domain}"
    lines: List[Tuple[str, str]] = []
    for record in answer.records:
        if isinstance(record, OtherRecord):
            lines.append((f"{prefix} {record.raw}", OTHER_STYLE))
        else:
            lines.append((f"{prefix} => {record.value}", RESOLVED_STYLE))
    return lines


class ResultSink:
    """
    Sole consumer of the answer queue.

    Every rendered line goes to `console` and, when an output path is given,
    to that file. The file is truncated when the sink is opened.
    """

    def __init__(
        self,
        console: Console,
        *,
        output_path: Optional[str] = None,
        error_console: Optional[Console] = None,
        verbose: bool = False,
    ) -> None:
        self.console = console
        self.error_console = error_console or console
        self.output_path = output_path
        self.verbose = verbose
        self.lines_written = 0
        self._fh: Optional[IO[str]] = None

    def open(self) -> "ResultSink":
        if self.output_path and self._fh is None:
            self._fh = open(self.output_path, "w", encoding="utf-8")
            logger.info("Output file opened", extra={"path": self.output_path, "state": "open"})
        return self

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            logger.info(
                "Output file closed",
                extra={"path": self.output_path, "state": "closed", "records": self.lines_written},
            )

    def __enter__(self) -> "ResultSink":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def emit(self, answer: Answer, index: NameserverIndex) -> None:
        name = index.get(answer.nameserver_ip, answer.nameserver_ip)
        for line, style in render_answer(answer, name):
            if self._fh is not None:
                self._fh.write(line + "\n")
            self.console.print(line, style=style, markup=False, highlight=False, soft_wrap=True)
            self.lines_written += 1
        if self._fh is not None:
            self._fh.flush()

    def report_failure(self, query: Query, exc: BaseException) -> None:
        """One red line per failed query when verbose, otherwise a debug log entry."""
        if self.verbose:
            self.error_console.print(
                f"[-] {exc}", style=FAILURE_STYLE, markup=False, highlight=False, soft_wrap=True
            )
            return
        logger.debug(
            f"Query failed: {exc}",
            extra={
                "domain": query.domain,
                "nameserver_ip": query.nameserver_ip,
                "outcome": "error",
                "error_type": type(exc).__name__,
            },
        )

    async def consume(self, answers: "asyncio.Queue[Optional[Answer]]", index: NameserverIndex) -> int:
        """Emit answers until the `None` sentinel arrives; returns the number of answers seen."""
        seen = 0
        while True:
            answer = await answers.get()
            if answer is None:
                return seen
            seen += 1
            try:
                self.emit(answer, index)
            except Exception as exc:
                logger.error(
                    f"Failed to write result: {exc}",
                    exc_info=True,
                    extra={
                        "domain": answer.domain,
                        "nameserver_ip": answer.nameserver_ip,
                        "outcome": "error",
                        "error_type": type(exc).__name__,
                    },
                )

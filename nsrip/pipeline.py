"""Two-stage scan: resolve nameservers, then query every domain against them."""
from __future__ import annotations

import asyncio
import contextlib
import functools
import uuid
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Sequence

from rich.console import Console

from nsrip.config import ScanConfig
from nsrip.dispatcher import Engine, count_queries, dispatch
from nsrip.logging_config import get_logger, reset_run_id, set_run_id
from nsrip.models import NameserverIndex
from nsrip.progress import ProgressTracker, report_progress
from nsrip.query import query_nameserver
from nsrip.resolver import Lookup, resolve_nameservers, system_lookup
from nsrip.sink import ResultSink

logger = get_logger("pipeline")


@dataclass
class ScanResult:
    index: NameserverIndex
    progress: ProgressTracker
    answers: int = 0


async def run_scan(
    nameservers: Sequence[str],
    domains: Sequence[str],
    cfg: ScanConfig,
    *,
    sink: ResultSink,
    status: Optional[Console] = None,
    trigger: Optional[AsyncIterator[None]] = None,
    lookup: Lookup = system_lookup,
    engine: Optional[Engine] = None,
) -> ScanResult:
    """
    Resolve `nameservers`, then query each domain against each resolved IP.

    Args:
        nameservers: Nameserver hostnames
        domains: Target domains
        cfg: Validated scan configuration (workers, timeout, port, quiet)
        sink: Where answers and failures go
        status: Console for status lines and progress reports
        trigger: Async iterator that fires a progress report on each item
        lookup: Hostname -> address coroutine for the resolution stage
        engine: (domain, nameserver_ip) -> Answer coroutine for the query stage

    Returns:
        The nameserver index, the final progress counters and the answer count
    """
    if cfg.workers <= 0:
        raise ValueError(f"Invalid number of workers: {cfg.workers}. It must be a positive integer.")

    status = status or Console(stderr=True)
    engine = engine or functools.partial(
        query_nameserver, port=cfg.port, timeout=cfg.timeout_seconds
    )
    token = set_run_id(uuid.uuid4().hex)
    try:
        if not cfg.quiet:
            status.print(
                f"[+] {len(domains)} domains x {len(nameservers)} nameservers = "
                f"{len(domains) * len(nameservers)} queries",
                markup=False, highlight=False,
            )
            status.print(f"[+] Workers: {cfg.workers}", markup=False, highlight=False)
            status.print("[~] Mapping IPs for nameservers", markup=False, highlight=False)

        index = await resolve_nameservers(nameservers, cfg.workers, lookup=lookup)
        progress = ProgressTracker(count_queries(index.keys(), domains))

        if not cfg.quiet:
            status.print(
                f"[+] Resolved {len(index)} nameserver IPs; {progress.total} queries to run",
                markup=False, highlight=False,
            )
            if trigger is not None:
                status.print("[~] Press enter at any time to check the progress", markup=False, highlight=False)
            status.print("[~] Querying domains against nameservers", markup=False, highlight=False)

        reporter: Optional[asyncio.Task] = None
        if trigger is not None:
            reporter = asyncio.create_task(report_progress(progress, trigger, status))
        try:
            answers = await dispatch(
                index,
                domains,
                cfg.workers,
                engine=engine,
                sink=sink,
                progress=progress,
            )
        finally:
            if reporter is not None:
                reporter.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await reporter

        logger.info(
            "Scan completed",
            extra={
                "nameservers": len(nameservers),
                "resolved": len(index),
                "domains": len(domains),
                "completed": progress.completed,
                "total": progress.total,
                "outcome": "success",
            },
        )
        return ScanResult(index=index, progress=progress, answers=answers)
    finally:
        reset_run_id(token)

"""Bounded worker pool that maps nameserver hostnames to IP addresses."""
from __future__ import annotations

import asyncio
import socket
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

from nsrip.logging_config import get_logger
from nsrip.models import NameserverIndex, NameserverRecord

logger = get_logger("resolver")

Lookup = Callable[[str], Awaitable[Optional[str]]]


async def system_lookup(hostname: str) -> Optional[str]:
    """First address the system resolver returns for `hostname`, or None."""
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(
            hostname, None, family=socket.AF_UNSPEC, type=socket.SOCK_DGRAM
        )
    except (OSError, UnicodeError) as exc:
        logger.debug(
            f"Lookup failed for {hostname}: {exc}",
            extra={"nameserver": hostname, "outcome": "error", "error_type": type(exc).__name__},
        )
        return None
    if not infos:
        return None
    return str(infos[0][4][0])


def build_index(records: Iterable[NameserverRecord]) -> NameserverIndex:
    """Index resolved records by IP; the first hostname seen for an IP keeps it."""
    index: NameserverIndex = {}
    for record in records:
        if not record.resolved_ip:
            continue
        index.setdefault(record.resolved_ip, record.hostname)
    return index


async def _resolve_worker(
    jobs: "asyncio.Queue[Optional[Tuple[int, str]]]",
    results: "asyncio.Queue[Optional[Tuple[int, NameserverRecord]]]",
    lookup: Lookup,
) -> None:
    while True:
        job = await jobs.get()
        if job is None:
            return
        position, hostname = job
        try:
            ip = await lookup(hostname)
        except Exception as exc:
            logger.warning(
                f"Unexpected lookup error for {hostname}: {exc}",
                exc_info=True,
                extra={"nameserver": hostname, "outcome": "error", "error_type": type(exc).__name__},
            )
            ip = None
        await results.put((position, NameserverRecord(hostname=hostname, resolved_ip=ip or None)))


async def resolve_records(
    hostnames: Sequence[str],
    workers: int,
    *,
    lookup: Lookup = system_lookup,
) -> List[NameserverRecord]:
    """
    Resolve every hostname with `workers` concurrent lookups.

    Returns one record per input hostname, in input order. Duplicates are
    looked up again rather than memoized. Failed lookups come back with
    `resolved_ip` set to None.

    Args:
        hostnames: Nameserver hostnames, possibly with duplicates
        workers: Number of concurrent lookups, must be positive
        lookup: Coroutine mapping a hostname to an address or None

    Raises:
        ValueError: If workers is not positive
    """
    if workers <= 0:
        raise ValueError(f"Invalid number of workers: {workers}. It must be a positive integer.")
    if not hostnames:
        return []

    jobs: asyncio.Queue = asyncio.Queue(maxsize=len(hostnames) + workers)
    results: asyncio.Queue = asyncio.Queue(maxsize=len(hostnames) + 1)

    for position, hostname in enumerate(hostnames):
        jobs.put_nowait((position, hostname))
    for _ in range(workers):
        jobs.put_nowait(None)

    pool = [
        asyncio.create_task(_resolve_worker(jobs, results, lookup))
        for _ in range(workers)
    ]

    async def _close_when_done() -> None:
        try:
            await asyncio.gather(*pool)
        finally:
            await results.put(None)

    closer = asyncio.create_task(_close_when_done())

    slots: List[Optional[NameserverRecord]] = [None] * len(hostnames)
    while True:
        item = await results.get()
        if item is None:
            break
        position, record = item
        slots[position] = record
    await closer

    return [
        record if record is not None else NameserverRecord(hostname=hostnames[i])
        for i, record in enumerate(slots)
    ]


async def resolve_nameservers(
    hostnames: Sequence[str],
    workers: int,
    *,
    lookup: Lookup = system_lookup,
) -> NameserverIndex:
    """Resolve nameserver hostnames and return the IP -> hostname index.

    Blocks until every hostname has been attempted. Unresolved hostnames are
    left out of the index.
    """
    records = await resolve_records(hostnames, workers, lookup=lookup)
    index = build_index(records)
    logger.info(
        "Nameservers resolved",
        extra={
            "nameservers": len(hostnames),
            "resolved": sum(1 for r in records if r.resolved),
            "total": len(index),
            "workers": workers,
            "outcome": "success",
        },
    )
    return index

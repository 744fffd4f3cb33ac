"""Cross-product query dispatch over a bounded pool of async workers."""
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Iterable, Iterator, Optional, Sequence

from nsrip.logging_config import get_logger
from nsrip.models import Answer, NameserverIndex, Query
from nsrip.progress import ProgressTracker
from nsrip.query import QueryError
from nsrip.sink import ResultSink

logger = get_logger("dispatcher")

Engine = Callable[[str, str], Awaitable[Answer]]


def iter_queries(nameserver_ips: Iterable[str], domains: Sequence[str]) -> Iterator[Query]:
    """Walk nameserver IPs (outer) x domains (inner), skipping unresolved entries."""
    for nameserver_ip in nameserver_ips:
        if not nameserver_ip:
            continue
        for domain in domains:
            yield Query(domain=domain, nameserver_ip=nameserver_ip)


def count_queries(nameserver_ips: Iterable[str], domains: Sequence[str]) -> int:
    return sum(1 for ip in nameserver_ips if ip) * len(domains)


async def _query_worker(
    worker_id: int,
    jobs: "asyncio.Queue[Optional[Query]]",
    answers: "asyncio.Queue[Optional[Answer]]",
    engine: Engine,
    progress: ProgressTracker,
    sink: ResultSink,
) -> None:
    log = get_logger("dispatcher", context={"worker_id": worker_id})
    while True:
        query = await jobs.get()
        if query is None:
            return

        answer: Optional[Answer] = None
        try:
            answer = await engine(query.domain, query.nameserver_ip)
        except QueryError as exc:
            sink.report_failure(query, exc)
        except Exception as exc:
            log.error(
                f"Unexpected error querying {query.nameserver_ip} for {query.domain}: {exc}",
                exc_info=True,
                extra={
                    "domain": query.domain,
                    "nameserver_ip": query.nameserver_ip,
                    "outcome": "error",
                    "error_type": type(exc).__name__,
                },
            )
            sink.report_failure(query, exc)
        finally:
            progress.increment()

        if answer is not None:
            await answers.put(answer)


async def _enqueue_queries(
    jobs: "asyncio.Queue[Optional[Query]]",
    index: NameserverIndex,
    domains: Sequence[str],
    workers: int,
) -> None:
    for query in iter_queries(index.keys(), domains):
        await jobs.put(query)
    for _ in range(workers):
        await jobs.put(None)


async def dispatch(
    index: NameserverIndex,
    domains: Sequence[str],
    workers: int,
    *,
    engine: Engine,
    sink: ResultSink,
    progress: ProgressTracker,
) -> int:
    """
    Run every (domain, nameserver IP) pair through `engine` exactly once.

    Successful answers are streamed to `sink` in completion order while the
    workers keep going. Failed queries are counted in `progress` and dropped.
    Returns once every pair has been attempted and every answer rendered.

    Args:
        index: Resolved nameserver IP -> hostname
        domains: Domains to ask every nameserver about
        workers: Number of concurrent queries, must be positive
        engine: Coroutine (domain, nameserver_ip) -> Answer, raising QueryError on failure
        sink: Consumer for successful answers and failure reports
        progress: Counter incremented once per attempted query

    Returns:
        Number of answers delivered to the sink

    Raises:
        ValueError: If workers is not positive
        RuntimeError: If the sink stops consuming before the queries are done;
            the workers are cancelled first
    """
    if workers <= 0:
        raise ValueError(f"Invalid number of workers: {workers}. It must be a positive integer.")

    started = time.monotonic()
    jobs: asyncio.Queue = asyncio.Queue(maxsize=workers)
    answers: asyncio.Queue = asyncio.Queue(maxsize=workers)

    logger.info(
        "Dispatch starting",
        extra={
            "queries": progress.total,
            "nameservers": len(index),
            "domains": len(domains),
            "workers": workers,
            "state": "starting",
        },
    )

    consumer = asyncio.create_task(sink.consume(answers, index))
    pool = [
        asyncio.create_task(_query_worker(i, jobs, answers, engine, progress, sink))
        for i in range(workers)
    ]
    producer = asyncio.create_task(_enqueue_queries(jobs, index, domains, workers))
    tasks = [producer, consumer, *pool]

    try:
        running = {producer, *pool}
        while running:
            done, _ = await asyncio.wait(running | {consumer}, return_when=asyncio.FIRST_COMPLETED)
            if consumer in done:
                # re-raises the consumer's own error, if any
                consumer.result()
                raise RuntimeError("Result consumer stopped before all answers were delivered")
            for task in done:
                task.result()
            running -= done

        await answers.put(None)
        delivered = await consumer
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    completed, total = progress.snapshot()
    logger.info(
        "Dispatch completed",
        extra={
            "completed": completed,
            "total": total,
            "resolved": delivered,
            "duration": round((time.monotonic() - started) * 1000, 2),
            "state": "completed",
            "outcome": "success",
        },
    )
    return delivered

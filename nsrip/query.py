"""Single direct DNS query against a nameserver IP, plus answer classification."""
from __future__ import annotations

import functools
import time
from typing import List

import dns.asyncquery
import dns.exception
import dns.message
import dns.name
import dns.rcode
import dns.rdata
import dns.rdataclass
import dns.rdatatype
import dns.rrset
from dns.rdtypes.ANY.CNAME import CNAME as R_CNAME
from dns.rdtypes.IN.A import A as R_A
from dns.rdtypes.IN.AAAA import AAAA as R_AAAA

from nsrip.logging_config import get_logger
from nsrip.models import AAAARecord, ARecord, Answer, ClassifiedRecord, CNAMERecord, OtherRecord

logger = get_logger("query")

DEFAULT_PORT = 53
DEFAULT_TIMEOUT_SECONDS = 5.0


class QueryError(Exception):
    """A query that produced no usable answer."""

    def __init__(self, nameserver: str, message: str) -> None:
        super().__init__(message)
        self.nameserver = nameserver


class NoAnswerError(QueryError):
    """The nameserver replied with a non-success response code."""

    def __init__(self, nameserver: str, rcode: int) -> None:
        super().__init__(
            nameserver,
            f"No answer from nameserver: {nameserver} ({dns.rcode.to_text(rcode)})",
        )
        self.rcode = rcode


class TransportError(QueryError):
    """The exchange itself failed: timeout, socket error, malformed reply."""

    def __init__(self, nameserver: str, cause: BaseException) -> None:
        detail = str(cause) or type(cause).__name__
        super().__init__(nameserver, f"Query to {nameserver} failed: {detail}")
        self.cause = cause


def _raw(rrset: dns.rrset.RRset, rdata: dns.rdata.Rdata) -> str:
    return " ".join((
        rrset.name.to_text(),
        str(rrset.ttl),
        dns.rdataclass.to_text(rrset.rdclass),
        dns.rdatatype.to_text(rdata.rdtype),
        rdata.to_text(),
    ))


@functools.singledispatch
def classify_rdata(rdata: dns.rdata.Rdata, rrset: dns.rrset.RRset) -> ClassifiedRecord:
    """Classify one answer record, dispatching on its dnspython rdata class.

    Anything without a dedicated handler is kept as its text rendering.
    """
    return OtherRecord(raw=_raw(rrset, rdata))


@classify_rdata.register
def _(rdata: R_A, rrset: dns.rrset.RRset) -> ARecord:
    return ARecord(address=rdata.address)


@classify_rdata.register
def _(rdata: R_AAAA, rrset: dns.rrset.RRset) -> AAAARecord:
    return AAAARecord(address=rdata.address)


@classify_rdata.register
def _(rdata: R_CNAME, rrset: dns.rrset.RRset) -> CNAMERecord:
    return CNAMERecord(target=rdata.target.to_text())


def classify_response(response: dns.message.Message) -> List[ClassifiedRecord]:
    """Classify the answer section record by record, keeping the server's order."""
    return [
        classify_rdata(rdata, rrset)
        for rrset in response.answer
        for rdata in rrset
    ]


def build_query(domain: str) -> dns.message.QueryMessage:
    """A recursive A query for the fully-qualified form of `domain`."""
    qname = dns.name.from_text(domain, origin=dns.name.root)
    return dns.message.make_query(qname, dns.rdatatype.A)


async def query_nameserver(
    domain: str,
    nameserver_ip: str,
    *,
    port: int = DEFAULT_PORT,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Answer:
    """
    Ask one nameserver directly for the A record of `domain`.

    Truncated UDP replies are retried over TCP by dnspython.

    Args:
        domain: Name to query; made fully-qualified before sending
        nameserver_ip: Address of the nameserver to ask
        port: Nameserver port
        timeout: Round-trip timeout in seconds

    Returns:
        The classified answer section

    Raises:
        NoAnswerError: The response code was not NOERROR
        TransportError: Timeout, network error or an unparseable reply
    """
    where = f"{nameserver_ip}:{port}"
    started = time.monotonic()
    try:
        message = build_query(domain)
        response, used_tcp = await dns.asyncquery.udp_with_fallback(
            message,
            nameserver_ip,
            timeout=timeout,
            port=port,
        )
    except (dns.exception.DNSException, OSError, EOFError, ValueError) as exc:
        raise TransportError(where, exc) from exc

    rcode = response.rcode()
    if rcode != dns.rcode.NOERROR:
        raise NoAnswerError(where, rcode)

    records = classify_response(response)
    logger.debug(
        "Query answered",
        extra={
            "domain": domain,
            "nameserver_ip": nameserver_ip,
            "records": len(records),
            "duration": round((time.monotonic() - started) * 1000, 2),
            "state": "tcp" if used_tcp else "udp",
        },
    )
    return Answer(nameserver_ip=nameserver_ip, domain=domain, records=records)

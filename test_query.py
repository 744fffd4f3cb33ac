"""Tests for answer classification and the single-query engine."""
import asyncio

import dns.asyncquery
import dns.exception
import dns.message
import dns.rcode
import dns.rdatatype
import dns.rrset
import pytest

from nsrip.models import AAAARecord, ARecord, CNAMERecord, OtherRecord
from nsrip.query import (
    NoAnswerError,
    QueryError,
    TransportError,
    build_query,
    classify_response,
    query_nameserver,
)


def _response(domain, *rrsets, rcode=dns.rcode.NOERROR):
    response = dns.message.make_response(build_query(domain))
    response.set_rcode(rcode)
    for rrset in rrsets:
        response.answer.append(rrset)
    return response


def test_build_query_is_fully_qualified_a_query():
    message = build_query("a.test")
    question = message.question[0]
    assert question.name.to_text() == "a.test."
    assert dns.rdatatype.to_text(question.rdtype) == "A"


def test_classification_preserves_answer_order():
    response = _response(
        "a.test",
        dns.rrset.from_text("a.test.", 300, "IN", "CNAME", "x.test."),
        dns.rrset.from_text("x.test.", 300, "IN", "A", "1.2.3.4"),
    )

    records = classify_response(response)

    assert records == [CNAMERecord(target="x.test."), ARecord(address="1.2.3.4")]


def test_classification_of_aaaa_and_other_records():
    response = _response(
        "a.test",
        dns.rrset.from_text("a.test.", 60, "IN", "AAAA", "2001:db8::1"),
        dns.rrset.from_text("a.test.", 60, "IN", "TXT", '"hello"'),
    )

    aaaa, other = classify_response(response)

    assert aaaa == AAAARecord(address="2001:db8::1")
    assert isinstance(other, OtherRecord)
    assert other.raw == 'a.test. 60 IN TXT "hello"'


def test_multiple_records_in_one_rrset_stay_in_order():
    response = _response(
        "a.test",
        dns.rrset.from_text("a.test.", 60, "IN", "A", "192.0.2.1", "192.0.2.2"),
    )

    assert [r.value for r in classify_response(response)] == ["192.0.2.1", "192.0.2.2"]


def test_empty_answer_section_classifies_to_nothing():
    assert classify_response(_response("a.test")) == []


def test_query_nameserver_returns_classified_answer(monkeypatch):
    calls = []

    async def fake_exchange(message, where, timeout=None, port=53, **kwargs):
        calls.append((where, timeout, port))
        return _response(
            "a.test", dns.rrset.from_text("a.test.", 300, "IN", "A", "198.51.100.9")
        ), False

    monkeypatch.setattr(dns.asyncquery, "udp_with_fallback", fake_exchange)

    answer = asyncio.run(query_nameserver("a.test", "203.0.113.5"))

    assert calls == [("203.0.113.5", 5.0, 53)]
    assert answer.nameserver_ip == "203.0.113.5"
    assert answer.domain == "a.test"
    assert answer.records == [ARecord(address="198.51.100.9")]


def test_non_success_rcode_is_no_answer(monkeypatch):
    async def fake_exchange(message, where, timeout=None, port=53, **kwargs):
        return _response("a.test", rcode=dns.rcode.REFUSED), False

    monkeypatch.setattr(dns.asyncquery, "udp_with_fallback", fake_exchange)

    with pytest.raises(NoAnswerError) as excinfo:
        asyncio.run(query_nameserver("a.test", "203.0.113.5", port=5353))

    assert excinfo.value.nameserver == "203.0.113.5:5353"
    assert excinfo.value.rcode == dns.rcode.REFUSED
    assert "No answer from nameserver: 203.0.113.5:5353" in str(excinfo.value)


@pytest.mark.parametrize("error", [dns.exception.Timeout(), ConnectionRefusedError("refused")])
def test_transport_failures_are_wrapped(monkeypatch, error):
    async def fake_exchange(message, where, timeout=None, port=53, **kwargs):
        raise error

    monkeypatch.setattr(dns.asyncquery, "udp_with_fallback", fake_exchange)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(query_nameserver("a.test", "203.0.113.5", timeout=0.5))

    assert isinstance(excinfo.value, QueryError)
    assert excinfo.value.cause is error

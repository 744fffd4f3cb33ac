"""Data models for nameserver resolution and direct DNS queries."""
from __future__ import annotations

from typing import Annotated, Dict, List, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# resolved IP -> nameserver hostname
NameserverIndex = Dict[str, str]


class NameserverRecord(BaseModel):
    """A nameserver hostname and the address it resolved to, if any."""
    hostname: str
    resolved_ip: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def resolved(self) -> bool:
        return bool(self.resolved_ip)


class Query(NamedTuple):
    """One unit of dispatcher work: ask `nameserver_ip` about `domain`."""
    domain: str
    nameserver_ip: str


class ARecord(BaseModel):
    kind: Literal["A"] = "A"
    address: str

    model_config = ConfigDict(frozen=True)

    @property
    def value(self) -> str:
        return self.address


class AAAARecord(BaseModel):
    kind: Literal["AAAA"] = "AAAA"
    address: str

    model_config = ConfigDict(frozen=True)

    @property
    def value(self) -> str:
        return self.address


class CNAMERecord(BaseModel):
    kind: Literal["CNAME"] = "CNAME"
    target: str

    model_config = ConfigDict(frozen=True)

    @property
    def value(self) -> str:
        return self.target


class OtherRecord(BaseModel):
    """Any answer record that is not A/AAAA/CNAME, kept as its text rendering."""
    kind: Literal["Other"] = "Other"
    raw: str

    model_config = ConfigDict(frozen=True)

    @property
    def value(self) -> str:
        return self.raw


ClassifiedRecord = Annotated[
    Union[ARecord, AAAARecord, CNAMERecord, OtherRecord],
    Field(discriminator="kind"),
]


class Answer(BaseModel):
    """Classified answer section of one successful query, in server order."""
    nameserver_ip: str
    domain: str
    records: List[ClassifiedRecord] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

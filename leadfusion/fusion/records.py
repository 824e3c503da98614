"""Property record models: raw observations in, fused leads out."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal, Union

from pydantic import BaseModel, Field

from leadfusion.normalize.address import (
    Signatures,
    address_hash,
    build_signatures,
    normalize_owner_name,
    split_owner_name,
)

# Closed set of attributes the merge step treats as scalar property facts.
# Any other key in ``attributes`` is carried through with the same rules.
WELL_KNOWN_ATTRIBUTES: tuple[str, ...] = (
    "bedrooms",
    "bathrooms",
    "squareFeet",
    "yearBuilt",
    "lotSize",
)

AttributeValue = Union[int, float, str]


def has_value(value: object) -> bool:
    return value is not None and value != ""


class Address(BaseModel):
    """Postal address as captured. Only the street line is expected."""

    street: str = ""
    city: str | None = None
    state: str | None = None
    zip: str | None = None

    def display(self) -> str:
        region = " ".join(part for part in (self.state, self.zip) if part)
        return ", ".join(part for part in (self.street, self.city, region) if part)

    def compute_hash(self) -> str | None:
        return address_hash(self.street, self.city, self.state, self.zip)


class Contact(BaseModel):
    """A phone number or email reported by one source."""

    type: Literal["phone", "email"]
    value: str
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    source: str | None = None


class RawPropertyRecord(BaseModel):
    """One observation of a property from one source. Immutable once captured."""

    address: Address = Field(default_factory=Address)
    owner_name: str | None = None
    parcel_id: str | None = None
    apn: str | None = None
    attributes: dict[str, AttributeValue] = Field(default_factory=dict)
    price_hint: float | None = None
    last_event_date: str | None = None
    distress_signals: list[str] = Field(default_factory=list)
    contacts: list[Contact] = Field(default_factory=list)
    source_key: str | None = None
    source_url: str | None = None
    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    address_hash: str | None = None

    model_config = {"frozen": True}

    def with_address_hash(self) -> "RawPropertyRecord":
        """Return this record with ``address_hash`` filled in when it can be computed."""
        if self.address_hash:
            return self
        computed = self.address.compute_hash()
        if computed is None:
            return self
        return self.model_copy(update={"address_hash": computed})

    def signatures(self) -> Signatures:
        """Primary and secondary signatures keyed on address and normalized owner."""
        first, last = split_owner_name(normalize_owner_name(self.owner_name))
        return build_signatures(
            self.address.street,
            self.address.city,
            self.address.state,
            self.address.zip,
            first,
            last,
        )


class SourceEntry(BaseModel):
    """Provenance for one contributing raw record."""

    key: str
    url: str | None = None
    captured_at: datetime | None = None
    reliability: int


class ConflictEntry(BaseModel):
    """Which candidate won an attribute merge, and on what evidence."""

    value: Any
    source: str
    confidence: float | None = None
    reliability: int | None = None


class FusedContact(BaseModel):
    """A contact after cross-source deduplication."""

    type: Literal["phone", "email"]
    value: str
    confidence: float = Field(ge=0.0, le=1.0)
    sources: list[str] = Field(default_factory=list)


class LeadScore(BaseModel):
    """Lead prioritization scores computed from a fused record."""

    distress_score: int = 0
    contact_score: int = 0
    motivation_score: int = 0
    equity_score: int | None = None
    total_score: int = 0
    classification: Literal["HOT", "WARM", "LUKEWARM", "COLD"] = "COLD"


class FusedLeadRecord(BaseModel):
    """Best-evidence record for one property identity, keyed by ``address_hash``."""

    address: str = ""
    address_hash: str = ""
    owner_name: str | None = None
    parcel_id: str | None = None
    apn: str | None = None
    avm: float | None = None
    last_event_date: str | None = None
    attributes: dict[str, AttributeValue] = Field(default_factory=dict)
    distress_signals: list[str] = Field(default_factory=list)
    contacts: list[FusedContact] = Field(default_factory=list)
    sources: list[SourceEntry] = Field(default_factory=list)
    conflicts: dict[str, ConflictEntry] = Field(default_factory=dict)
    scoring: LeadScore | None = None

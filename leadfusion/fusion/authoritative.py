"""Authoritative property-data payloads and the vendor field map.

The vendor returns a nested document (identifier / address / building / lot /
assessment / owner / sale / avm). The field map below is data: each entry
pairs a dotted vendor path with the dotted internal path it populates. A
missing vendor path simply means the vendor had no value for that field.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, MutableMapping

from pydantic import BaseModel, Field, field_validator

from leadfusion.fusion.records import Address, AttributeValue, RawPropertyRecord

AUTHORITATIVE_FIELD_MAP: list[tuple[str, str]] = [
    # Identifiers
    ("identifier.obPropId", "parcel_id"),
    ("identifier.apn", "apn"),
    ("identifier.fips", "fips_code"),
    # Address
    ("address.line1", "address.line1"),
    ("address.line2", "address.line2"),
    ("address.locality", "address.city"),
    ("address.countrySubd", "address.state"),
    ("address.postal1", "address.zip"),
    # Building and lot
    ("building.size.universalsize", "attributes.squareFeet"),
    ("building.rooms.beds", "attributes.bedrooms"),
    ("building.rooms.bathstotal", "attributes.bathrooms"),
    ("building.yearbuilt", "attributes.yearBuilt"),
    ("lot.lotsize1", "attributes.lotSize"),
    # Valuation
    ("avm.amount.value", "avm"),
    ("assessment.market.mkttlvalue", "market_value"),
    # Owner
    ("owner.owner1.name", "owner_name"),
    # Last sale
    ("sale.salesearchdate", "last_event_date"),
    ("sale.amount.saleamt", "last_sale_amount"),
]


def get_nested(obj: Any, path: str) -> Any:
    """Value at a dotted path, or None when any hop is missing."""
    if obj is None or not path:
        return None

    current = obj
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
        if current is None:
            return None
    return current


def set_nested(obj: MutableMapping[str, Any], path: str, value: Any) -> None:
    """Assign ``value`` at a dotted path, creating intermediate mappings."""
    if not path:
        return

    parts = path.split(".")
    current = obj
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


def _as_text(value: Any) -> Any:
    if value is None or isinstance(value, str):
        return value
    return str(value)


class AuthoritativeAddress(BaseModel):
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None

    @field_validator("line1", "line2", "city", "state", "zip", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _as_text(value)


class AuthoritativePropertyPayload(BaseModel):
    """High-confidence structured fields from a paid property-data API."""

    parcel_id: str | None = None
    apn: str | None = None
    fips_code: str | None = None
    owner_name: str | None = None
    avm: float | None = None
    market_value: float | None = None
    last_event_date: str | None = None
    last_sale_amount: float | None = None
    address: AuthoritativeAddress = Field(default_factory=AuthoritativeAddress)
    attributes: dict[str, AttributeValue] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @field_validator("parcel_id", "apn", "fips_code", "owner_name", "last_event_date", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _as_text(value)

    @classmethod
    def from_vendor(cls, raw: Mapping[str, Any]) -> "AuthoritativePropertyPayload":
        """Translate a vendor document through ``AUTHORITATIVE_FIELD_MAP``."""
        data: dict[str, Any] = {}
        for vendor_path, internal_path in AUTHORITATIVE_FIELD_MAP:
            value = get_nested(raw, vendor_path)
            if value is None:
                continue
            set_nested(data, internal_path, value)
        return cls.model_validate(data)


def coerce_payload(
    payload: AuthoritativePropertyPayload | Mapping[str, Any] | None,
) -> AuthoritativePropertyPayload | None:
    """Accept either a translated payload or a raw vendor document."""
    if payload is None or isinstance(payload, AuthoritativePropertyPayload):
        return payload
    return AuthoritativePropertyPayload.from_vendor(payload)


def authoritative_to_record(
    payload: AuthoritativePropertyPayload | Mapping[str, Any],
    source_key: str = "attom-api",
    captured_at: datetime | None = None,
) -> RawPropertyRecord:
    """Express an authoritative payload as an ordinary raw record.

    Useful when vendor data should be ingested as one more source rather
    than as the privileged input to fusion.
    """
    resolved = coerce_payload(payload)
    street = " ".join(part for part in (resolved.address.line1, resolved.address.line2) if part)

    fields: dict[str, Any] = {
        "address": Address(
            street=street,
            city=resolved.address.city,
            state=resolved.address.state,
            zip=resolved.address.zip,
        ),
        "owner_name": resolved.owner_name,
        "parcel_id": resolved.parcel_id,
        "apn": resolved.apn,
        "attributes": dict(resolved.attributes),
        "last_event_date": resolved.last_event_date,
        "source_key": source_key,
    }
    if captured_at is not None:
        fields["captured_at"] = captured_at

    return RawPropertyRecord(**fields).with_address_hash()

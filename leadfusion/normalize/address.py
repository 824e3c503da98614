"""Address and person normalization for identity matching.

Raw listings arrive with inconsistent case, punctuation, suffix spelling and
ZIP+4 noise. Everything here reduces those inputs to comparable canonical
strings and derives deterministic SHA-256 signatures from them.

Normalization is total: blank or missing input produces an empty, stable
result instead of raising.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

STREET_SUFFIXES: dict[str, str] = {
    "ST": "STREET",
    "AVE": "AVENUE",
    "BLVD": "BOULEVARD",
    "RD": "ROAD",
    "DR": "DRIVE",
    "LN": "LANE",
    "CT": "COURT",
    "PL": "PLACE",
    "TER": "TERRACE",
    "HWY": "HIGHWAY",
}

UNIT_MARKERS = ("APT", "UNIT", "STE", "SUITE", "FL", "FLOOR", "#")

_PUNCTUATION = re.compile(r"[.,]")
_WHITESPACE = re.compile(r"\s+")
_ZIP = re.compile(r"^(\d{5})(?:-?\d{4})?$")
_UNIT = re.compile(r"(?:\b(?:APT|UNIT|STE|SUITE|FLOOR|FL)\b\s*#?|#)\s*[A-Z0-9][A-Z0-9-]*")

_OWNER_SUFFIX_PATTERNS = [
    re.compile(r"\s+(?:JR|SR|I{1,3}|IV|V)\.?$"),
    re.compile(r"\s+(?:ESQ|ESQUIRE)\.?$"),
    re.compile(r"\s+(?:ET\s+AL|ET\s+UX)\.?$"),
    re.compile(r"\s+AND\s+OTHERS$"),
    re.compile(r"\s+(?:LIVING TRUST|FAMILY TRUST|TRUSTEE|TRUST)$"),
    re.compile(r"\s+(?:REVOCABLE|IRREVOCABLE)$"),
    re.compile(r"\s+(?:LLC|LC|LLP|LP|INCORPORATED|INC|CORPORATION|CORP)\.?$"),
    re.compile(r"\s+(?:LIMITED|COMPANY|PARTNERSHIP|PARTNERS)$"),
]
_NON_WORD = re.compile(r"[^\w\s]")


@dataclass(frozen=True)
class Signatures:
    """Identity signatures for one address + person pair."""

    primary: str
    secondary: str
    normalized_address: str
    normalized_person: str
    has_unit: bool


def _clean(raw: str | None) -> str:
    if not raw:
        return ""
    text = _PUNCTUATION.sub(" ", str(raw).upper())
    return _WHITESPACE.sub(" ", text).strip()


def normalize_street(raw: str | None) -> str:
    """Uppercase, drop periods/commas, collapse whitespace, expand a trailing suffix."""
    street = _clean(raw)
    if not street:
        return ""

    tokens = street.split(" ")
    tokens[-1] = STREET_SUFFIXES.get(tokens[-1], tokens[-1])
    return " ".join(tokens)


def normalize_city_state_zip(
    city: str | None, state: str | None, zip_code: str | None
) -> dict[str, str]:
    zip_clean = str(zip_code).strip() if zip_code else ""
    match = _ZIP.match(zip_clean)
    return {
        "city": (city or "").strip().upper(),
        "state": (state or "").strip().upper(),
        "zip": match.group(1) if match else zip_clean,
    }


def normalize_person(first: str | None, last: str | None) -> str:
    """Signature key for a person. Never use this as a display name."""
    return f"{(first or '').strip().upper()}|{(last or '').strip().upper()}"


def has_unit_markers(street_raw: str | None) -> bool:
    return bool(_UNIT.search(_clean(street_raw)))


def strip_unit_markers(street: str) -> str:
    """Remove unit/suite/floor designators and their values from a street line."""
    return _WHITESPACE.sub(" ", _UNIT.sub(" ", street)).strip()


def _digest(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def _address_key(street: str, city: str | None, state: str | None, zip_code: str | None) -> str:
    parts = normalize_city_state_zip(city, state, zip_code)
    return "|".join([street, parts["city"], parts["state"], parts["zip"]])


def build_signatures(
    street: str | None,
    city: str | None = None,
    state: str | None = None,
    zip_code: str | None = None,
    first: str | None = None,
    last: str | None = None,
) -> Signatures:
    """Compute the primary (unit-aware) and secondary (building-level) signatures.

    The primary signature keeps unit markers so units in the same building
    stay distinct. The secondary signature strips them so "123 Main St Apt 4"
    and "123 Main St" collapse onto the same building.
    """
    normalized_street = normalize_street(street)
    sanitized_street = normalize_street(strip_unit_markers(normalized_street))
    person = normalize_person(first, last)

    address_key = _address_key(normalized_street, city, state, zip_code)
    sanitized_key = _address_key(sanitized_street, city, state, zip_code)

    return Signatures(
        primary=_digest(f"{address_key}#{person}"),
        secondary=_digest(f"{sanitized_key}#{person}"),
        normalized_address=address_key,
        normalized_person=person,
        has_unit=sanitized_street != normalized_street,
    )


def address_hash(
    street: str | None,
    city: str | None = None,
    state: str | None = None,
    zip_code: str | None = None,
) -> str | None:
    """Bucketing hash over normalized address fields only.

    Returns None when there is no street line to anchor the identity; such
    records cannot be grouped.
    """
    normalized_street = normalize_street(street)
    if not normalized_street:
        return None
    return _digest(_address_key(normalized_street, city, state, zip_code))


def normalize_owner_name(name: str | None) -> str | None:
    """Canonical owner name with suffixes, trust and entity wording removed."""
    if not name or not name.strip():
        return None

    normalized = name.upper().strip()
    for pattern in _OWNER_SUFFIX_PATTERNS:
        normalized = pattern.sub("", normalized)

    normalized = _NON_WORD.sub(" ", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def split_owner_name(name: str | None) -> tuple[str, str]:
    """Split a display name into (first, last) tokens for signature use."""
    tokens = (name or "").split()
    if not tokens:
        return "", ""
    return tokens[0], tokens[-1] if len(tokens) > 1 else ""

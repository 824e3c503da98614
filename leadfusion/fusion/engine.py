"""Property Fusion Engine: merge observations of one property into one lead.

Given a bucket of raw records believed to describe the same property, and
optionally an authoritative payload, the engine produces a single
FusedLeadRecord:

- The base record (most complete) supplies the display address and hash.
- Owner and identifiers come from the authoritative payload first.
- Scalar attributes are merged one at a time: authoritative value first,
  otherwise the candidate from the most reliable source.
- Distress signals are unioned.
- Contacts are deduplicated by (type, value) and their confidence is raised
  for every additional source that corroborates them.

The engine is pure and keeps no state between calls. Missing fields skip
the corresponding merge step instead of raising.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from leadfusion.config.settings import FusionSettings
from leadfusion.fusion.authoritative import AuthoritativePropertyPayload, coerce_payload
from leadfusion.fusion.completeness import pick_most_complete
from leadfusion.fusion.records import (
    WELL_KNOWN_ATTRIBUTES,
    AttributeValue,
    ConflictEntry,
    FusedContact,
    FusedLeadRecord,
    RawPropertyRecord,
    SourceEntry,
    has_value,
)

logger = logging.getLogger(__name__)

AuthoritativeInput = Optional[Union[AuthoritativePropertyPayload, Mapping[str, Any]]]


def _attribute_keys(records: Sequence[RawPropertyRecord]) -> list[str]:
    keys = list(WELL_KNOWN_ATTRIBUTES)
    for record in records:
        for key in record.attributes:
            if key not in keys:
                keys.append(key)
    return keys


def _union_signals(records: Iterable[RawPropertyRecord]) -> list[str]:
    signals: list[str] = []
    for record in records:
        for signal in record.distress_signals:
            if signal and signal not in signals:
                signals.append(signal)
    return signals


def _contact_key(contact_type: str, value: str) -> tuple[str, str]:
    value = value.strip()
    if contact_type == "email":
        value = value.lower()
    return contact_type, value


class FusionEngine:
    """Fuses buckets of raw records using a fixed set of tuning settings."""

    def __init__(self, settings: FusionSettings | None = None) -> None:
        self._settings = settings or FusionSettings()

    @property
    def settings(self) -> FusionSettings:
        return self._settings

    def reliability(self, source_key: str | None) -> int:
        return self._settings.reliability.score(source_key)

    # --- Public API ---

    def fuse(
        self,
        authoritative: AuthoritativeInput,
        records: Sequence[RawPropertyRecord],
    ) -> FusedLeadRecord:
        """Fuse one bucket of records into a single lead.

        An empty bucket is a caller error but still yields a mostly-empty
        record so that one bad bucket cannot abort a batch.
        """
        records = list(records)
        payload = coerce_payload(authoritative)
        base = pick_most_complete(records)

        if not records:
            logger.debug("Fusion invoked on an empty bucket")

        attributes, conflicts = self._merge_attributes(payload, records)

        lead = FusedLeadRecord(
            address=base.address.display(),
            address_hash=self._hash_of(base),
            owner_name=self._resolve_owner(payload, base),
            parcel_id=(payload.parcel_id if payload else None) or base.parcel_id,
            apn=payload.apn if payload else None,
            avm=payload.avm if payload else None,
            last_event_date=(payload.last_event_date if payload else None)
            or base.last_event_date,
            attributes=attributes,
            distress_signals=_union_signals(records),
            contacts=self._merge_contacts(records),
            sources=[self._source_entry(record) for record in records],
            conflicts=conflicts,
        )

        logger.debug(
            "Fused %d record(s) into %s (authoritative=%s, conflicts=%d)",
            len(records),
            lead.address_hash or "<unhashed>",
            payload is not None,
            len(conflicts),
        )
        return lead

    def wrap(self, record: RawPropertyRecord) -> FusedLeadRecord:
        """Present a lone record in fused shape without running the merge."""
        attributes = {
            key: record.attributes[key]
            for key in _attribute_keys([record])
            if has_value(record.attributes.get(key))
        }
        return FusedLeadRecord(
            address=record.address.display(),
            address_hash=self._hash_of(record),
            owner_name=record.owner_name or None,
            parcel_id=record.parcel_id,
            last_event_date=record.last_event_date,
            attributes=attributes,
            distress_signals=_union_signals([record]),
            contacts=self._merge_contacts([record]),
            sources=[self._source_entry(record)],
        )

    # --- Resolution helpers ---

    @staticmethod
    def _hash_of(record: RawPropertyRecord) -> str:
        return record.with_address_hash().address_hash or ""

    @staticmethod
    def _resolve_owner(
        payload: AuthoritativePropertyPayload | None, base: RawPropertyRecord
    ) -> str | None:
        if payload and payload.owner_name:
            return payload.owner_name
        return base.owner_name or None

    def _source_entry(self, record: RawPropertyRecord) -> SourceEntry:
        return SourceEntry(
            key=record.source_key or "unknown",
            url=record.source_url,
            captured_at=record.captured_at,
            reliability=self.reliability(record.source_key),
        )

    def _merge_attributes(
        self,
        payload: AuthoritativePropertyPayload | None,
        records: Sequence[RawPropertyRecord],
    ) -> tuple[dict[str, AttributeValue], dict[str, ConflictEntry]]:
        attributes: dict[str, AttributeValue] = {}
        conflicts: dict[str, ConflictEntry] = {}

        for key in _attribute_keys(records):
            authoritative_value = payload.attributes.get(key) if payload else None
            if has_value(authoritative_value):
                attributes[key] = authoritative_value
                conflicts[key] = ConflictEntry(
                    value=authoritative_value,
                    source=self._settings.authoritative_source_key,
                    confidence=self._settings.authoritative_confidence,
                )
                continue

            candidates = [
                (record.attributes[key], record.source_key or "unknown", self.reliability(record.source_key))
                for record in records
                if has_value(record.attributes.get(key))
            ]
            if not candidates:
                continue
            if len(records) == 1:
                attributes[key] = candidates[0][0]
                continue

            # max() keeps the first of equally reliable candidates
            # a lone candidate in a multi-record bucket is still recorded
            value, source, reliability = max(candidates, key=lambda candidate: candidate[2])
            attributes[key] = value
            conflicts[key] = ConflictEntry(value=value, source=source, reliability=reliability)

        return attributes, conflicts

    def _merge_contacts(self, records: Sequence[RawPropertyRecord]) -> list[FusedContact]:
        """Deduplicate contacts by (type, value) and boost corroborated ones.

        Corroboration means independent sources: reports are counted per
        distinct source name, so two records from the same source reporting
        one phone number raise nothing.
        """
        settings = self._settings
        groups: dict[tuple[str, str], dict[str, Any]] = {}

        for record in records:
            for contact in record.contacts:
                if not contact.value or not contact.value.strip():
                    continue

                confidence = (
                    contact.confidence
                    if contact.confidence is not None
                    else settings.contact_default_confidence
                )
                source = contact.source or record.source_key or "unknown"
                group = groups.setdefault(
                    _contact_key(contact.type, contact.value),
                    {
                        "type": contact.type,
                        "value": contact.value.strip(),
                        "best": confidence,
                        "sources": [],
                    },
                )
                group["best"] = max(group["best"], confidence)
                if source not in group["sources"]:
                    group["sources"].append(source)

        merged: list[FusedContact] = []
        for group in groups.values():
            best = group["best"]
            extra_sources = len(group["sources"]) - 1
            if extra_sources > 0:
                boosted = min(
                    settings.contact_confidence_cap,
                    best + settings.contact_corroboration_boost * extra_sources,
                )
                confidence = max(best, boosted)
            else:
                confidence = best
            merged.append(
                FusedContact(
                    type=group["type"],
                    value=group["value"],
                    confidence=round(confidence, 4),
                    sources=group["sources"],
                )
            )

        merged.sort(key=lambda contact: contact.confidence, reverse=True)
        return merged


_default_engine = FusionEngine()


def fuse(
    authoritative: AuthoritativeInput,
    records: Sequence[RawPropertyRecord],
) -> FusedLeadRecord:
    """Fuse with default settings."""
    return _default_engine.fuse(authoritative, records)

"""Completeness scoring used to pick the base record of a fusion bucket."""

from __future__ import annotations

from typing import Sequence

from leadfusion.fusion.records import WELL_KNOWN_ATTRIBUTES, RawPropertyRecord, has_value


def completeness_score(record: RawPropertyRecord | None) -> int:
    """Weighted count of the useful fields a record carries.

    Owner name and parcel/APN weigh 2, each well-known attribute, the price
    hint and the last-event date weigh 1, and every contact weighs 2.
    """
    if record is None:
        return 0

    score = 0
    if has_value(record.owner_name):
        score += 2
    if has_value(record.parcel_id) or has_value(record.apn):
        score += 2

    for name in WELL_KNOWN_ATTRIBUTES:
        if has_value(record.attributes.get(name)):
            score += 1

    if record.price_hint is not None:
        score += 1
    if has_value(record.last_event_date):
        score += 1

    score += 2 * len(record.contacts)
    return score


def pick_most_complete(records: Sequence[RawPropertyRecord]) -> RawPropertyRecord:
    """Highest-scoring record; the first one seen wins ties."""
    if not records:
        return RawPropertyRecord()
    return max(records, key=completeness_score)

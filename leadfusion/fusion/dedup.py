"""Deduplicator: batch-level identity resolution by address hash."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence, Union

from leadfusion.fusion.authoritative import AuthoritativePropertyPayload
from leadfusion.fusion.engine import FusionEngine
from leadfusion.fusion.records import FusedLeadRecord, RawPropertyRecord

logger = logging.getLogger(__name__)

AuthoritativeMap = Mapping[str, Union[AuthoritativePropertyPayload, Mapping[str, Any]]]


def group_by_address_hash(
    records: Sequence[RawPropertyRecord],
) -> list[tuple[str | None, list[RawPropertyRecord]]]:
    """Bucket records by address hash in first-seen order.

    Records whose hash cannot be computed each get a bucket of their own
    keyed by None.
    """
    buckets: dict[str, list[RawPropertyRecord]] = {}
    slots: list[tuple[str | None, list[RawPropertyRecord]]] = []

    for record in records:
        hashed = record.with_address_hash()
        key = hashed.address_hash
        if not key:
            slots.append((None, [hashed]))
            continue
        if key not in buckets:
            buckets[key] = []
            slots.append((key, buckets[key]))
        buckets[key].append(hashed)

    return slots


def deduplicate(
    records: Sequence[RawPropertyRecord],
    authoritative: AuthoritativeMap | None = None,
    engine: FusionEngine | None = None,
) -> list[FusedLeadRecord]:
    """Collapse records sharing an address hash into one fused lead each.

    Singletons are wrapped without a merge pass while larger groups are
    fused. Un-groupable records pass through on their own rather than being
    dropped. When ``authoritative`` maps a group's hash to a payload,
    that group is fused with it even if it has a single member.

    Output follows first-seen group order; callers should key results by
    ``address_hash`` rather than rely on positions.
    """
    engine = engine or FusionEngine()
    authoritative = authoritative or {}
    results: list[FusedLeadRecord] = []
    fused_groups = 0
    ungroupable = 0

    for key, group in group_by_address_hash(records):
        payload = authoritative.get(key) if key else None
        if key is None:
            ungroupable += 1
            results.append(engine.wrap(group[0]))
        elif payload is not None:
            fused_groups += 1
            results.append(engine.fuse(payload, group))
        elif len(group) == 1:
            results.append(engine.wrap(group[0]))
        else:
            fused_groups += 1
            results.append(engine.fuse(None, group))

    logger.debug(
        "Deduplicated %d record(s) into %d lead(s): %d fused group(s), %d un-groupable",
        len(records),
        len(results),
        fused_groups,
        ungroupable,
    )
    return results

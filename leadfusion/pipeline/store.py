"""File-backed lead store keyed by address hash.

Contract: a write replaces the stored lead for that hash in full. Leads are
never patched, since every fusion pass recomputes the whole record. Each
write goes to a temp file first and is renamed into place, so a reader
never sees a half-written lead.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

from leadfusion.config.settings import StoreSettings
from leadfusion.fusion.records import FusedLeadRecord
from leadfusion.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")


class LeadStore:
    """Upsert-by-hash persistence for FusedLeadRecords. Last write wins."""

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._leads_dir = data_dir / "leads"
        self._leads_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(cls, settings: StoreSettings | None = None) -> "LeadStore":
        """Store rooted at ``settings.data_dir`` (LEADFUSION_DATA_DIR by default)."""
        return cls((settings or StoreSettings()).data_dir)

    @property
    def leads_dir(self) -> Path:
        return self._leads_dir

    def _path_for(self, address_hash: str) -> Path:
        return self._leads_dir / f"{address_hash}.json"

    def upsert(self, record: FusedLeadRecord) -> bool:
        """Insert or replace the lead for ``record.address_hash``.

        Gate: the record must carry a usable address hash. Returns False
        when it does not.
        """
        key = record.address_hash
        if not key or not _SAFE_KEY.match(key):
            emit_structured_error(
                logger,
                code=ErrorCode.LEAD_STORE_UNKEYED_RECORD,
                message="Lead has no usable address hash",
                suppressed=True,
                details={"address": record.address},
            )
            return False

        path = self._path_for(key)
        temp_path = path.with_suffix(".tmp")
        try:
            temp_path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
            temp_path.replace(path)
        except Exception as exc:
            if temp_path.exists():
                temp_path.unlink()
            emit_structured_error(
                logger,
                code=ErrorCode.LEAD_STORE_WRITE_FAILED,
                message=str(exc),
                suppressed=False,
                details={"address_hash": key},
            )
            raise

        return True

    def upsert_many(self, records: Iterable[FusedLeadRecord]) -> int:
        """Upsert each record in order. Returns how many were stored."""
        return sum(1 for record in records if self.upsert(record))

    async def persist_chunk(self, records: list[FusedLeadRecord]) -> None:
        """Chunk-completion callback for the stream processor."""
        stored = self.upsert_many(records)
        logger.info("Persisted %d of %d lead(s) from chunk", stored, len(records))

    def get(self, address_hash: str) -> FusedLeadRecord | None:
        if not address_hash or not _SAFE_KEY.match(address_hash):
            return None
        path = self._path_for(address_hash)
        if not path.exists():
            return None
        return FusedLeadRecord.model_validate_json(path.read_text(encoding="utf-8"))

    def delete(self, address_hash: str) -> bool:
        if not address_hash or not _SAFE_KEY.match(address_hash):
            return False
        path = self._path_for(address_hash)
        if not path.exists():
            return False
        path.unlink()
        return True

    def load_all(self) -> list[FusedLeadRecord]:
        """Every stored lead, ordered by address hash."""
        return [
            FusedLeadRecord.model_validate_json(path.read_text(encoding="utf-8"))
            for path in sorted(self._leads_dir.glob("*.json"))
        ]

    def __len__(self) -> int:
        return sum(1 for _ in self._leads_dir.glob("*.json"))

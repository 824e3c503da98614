"""Signal type definitions for fusion runs."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SignalType(str, Enum):
    """All signal types emitted while processing batches and streams."""

    BATCH_PROCESSED = "BATCH_PROCESSED"
    CHUNK_COMPLETE = "CHUNK_COMPLETE"
    CHUNK_CALLBACK_FAILED = "CHUNK_CALLBACK_FAILED"
    STREAM_COMPLETE = "STREAM_COMPLETE"


class Signal(BaseModel):
    """An immutable signal emitted during a fusion run.

    Signals are append-only and cannot be modified after emission.
    """

    sequence: int = Field(description="Monotonic sequence number within the run")
    signal_type: SignalType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    run_id: str
    payload: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

"""Signal emitter for fusion runs.

Handles emission, persistence, and streaming of Signals so that a long
stream can be followed chunk by chunk.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from leadfusion.signals.types import Signal, SignalType
from leadfusion.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class SignalEmitter:
    """Emits, persists, and broadcasts signals for a single run.

    Signals are:
    - Immutable once emitted
    - Assigned monotonic sequence numbers
    - Persisted to a JSONL ledger in append-only mode
    - Broadcast to subscribers as they happen
    """

    def __init__(self, run_id: str, ledger_path: Path | None = None) -> None:
        self._run_id = run_id
        self._sequence = 0
        self._ledger_path = ledger_path
        self._subscribers: list[Callable[[Signal], Any]] = []
        self._signals: list[Signal] = []
        self._lock = asyncio.Lock()

        if self._ledger_path:
            self._ledger_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def signals(self) -> list[Signal]:
        """Return all emitted signals (read-only copy)."""
        return list(self._signals)

    def subscribe(self, callback: Callable[[Signal], Any]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Signal], Any]) -> None:
        self._subscribers = [s for s in self._subscribers if s is not callback]

    async def emit(self, signal_type: SignalType, payload: dict[str, Any] | None = None) -> Signal:
        """Emit a signal. This is the only way to create signals."""
        async with self._lock:
            self._sequence += 1
            signal = Signal(
                sequence=self._sequence,
                signal_type=signal_type,
                timestamp=datetime.now(timezone.utc),
                run_id=self._run_id,
                payload=payload or {},
            )
            self._signals.append(signal)

        if self._ledger_path:
            self._persist(signal)

        await self._broadcast(signal)
        return signal

    def _persist(self, signal: Signal) -> None:
        """Append signal to the JSONL ledger file."""
        with open(self._ledger_path, "a", encoding="utf-8") as f:
            f.write(signal.model_dump_json() + "\n")

    async def _broadcast(self, signal: Signal) -> None:
        for subscriber in self._subscribers:
            try:
                result = subscriber(signal)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                # Subscribers must not break the emission pipeline
                emit_structured_error(
                    logger,
                    code=ErrorCode.SIGNAL_SUBSCRIBER_FAILURE,
                    message=str(exc),
                    suppressed=True,
                    run_id=self._run_id,
                    details={"signal_type": signal.signal_type.value},
                )

    async def emit_batch_processed(self, input_count: int, output_count: int) -> Signal:
        """Convenience: emit a BATCH_PROCESSED signal."""
        return await self.emit(
            SignalType.BATCH_PROCESSED,
            {"input_count": input_count, "output_count": output_count},
        )

    async def emit_chunk_complete(
        self, chunk_index: int, input_count: int, output_count: int
    ) -> Signal:
        """Convenience: emit a CHUNK_COMPLETE signal."""
        return await self.emit(
            SignalType.CHUNK_COMPLETE,
            {
                "chunk_index": chunk_index,
                "input_count": input_count,
                "output_count": output_count,
            },
        )

    async def emit_stream_complete(
        self, total_chunks: int, total_records: int, total_leads: int, duration_s: float
    ) -> Signal:
        """Convenience: emit a STREAM_COMPLETE signal."""
        return await self.emit(
            SignalType.STREAM_COMPLETE,
            {
                "total_chunks": total_chunks,
                "total_records": total_records,
                "total_leads": total_leads,
                "duration_s": duration_s,
            },
        )

    @staticmethod
    def load_ledger(ledger_path: Path) -> list[Signal]:
        """Load all signals from a JSONL ledger file."""
        signals = []
        if ledger_path.exists():
            with open(ledger_path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        signals.append(Signal.model_validate_json(line))
        return signals

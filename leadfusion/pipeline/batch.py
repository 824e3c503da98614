"""Batch/Stream Processor: orchestrate enhancement, dedup and fusion.

Batches are processed synchronously. Streams are consumed in fixed-size
chunks, strictly one chunk at a time, so memory is bounded by one chunk of
raw records plus the accumulated output.

Known limitation: fusion never spans chunk boundaries. Records of one
property that land in different chunks produce separate leads sharing an
``address_hash``; reconciling them is left to the consumer (for example the
last-write-wins LeadStore).
"""

from __future__ import annotations

import inspect
import logging
import time
from typing import Any, AsyncIterable, Awaitable, Callable, Iterable, Sequence, Union

from pydantic import BaseModel

from leadfusion.config.settings import FusionSettings, LeadFusionConfig, StreamSettings
from leadfusion.fusion.dedup import deduplicate
from leadfusion.fusion.engine import FusionEngine
from leadfusion.fusion.records import FusedLeadRecord, RawPropertyRecord
from leadfusion.scoring.lead_scoring import score_leads
from leadfusion.signals.emitter import SignalEmitter
from leadfusion.signals.types import SignalType
from leadfusion.telemetry.errors import ErrorCode, LeadFusionError, emit_structured_error

logger = logging.getLogger(__name__)

RecordSource = Union[Iterable[RawPropertyRecord], AsyncIterable[RawPropertyRecord]]
ChunkCallback = Callable[[list[FusedLeadRecord]], Union[Awaitable[Any], Any]]


class ChunkCallbackError(LeadFusionError):
    """Raised when a chunk-completion callback fails.

    ``processed`` holds every lead fused before the failure, including the
    chunk whose notification failed, so no computed output is lost.
    """

    def __init__(self, message: str, *, chunk_index: int, processed: list[FusedLeadRecord]) -> None:
        super().__init__(message)
        self.chunk_index = chunk_index
        self.processed = processed


class BatchOptions(BaseModel):
    """Options for one batch pass.

    ``authoritative_data`` maps address hash to an authoritative payload
    (translated or raw vendor document). Enhancement defaults to on whenever
    such a map is supplied.
    """

    authoritative_data: dict[str, Any] | None = None
    deduplicate: bool = True
    enhance_with_authoritative: bool | None = None
    score_leads: bool = False

    @property
    def should_enhance(self) -> bool:
        if not self.authoritative_data:
            return False
        if self.enhance_with_authoritative is None:
            return True
        return self.enhance_with_authoritative


def _resolve_options(options: BatchOptions | None, option_fields: dict[str, Any]) -> BatchOptions:
    if options is not None and option_fields:
        raise TypeError(
            f"Pass either options or keyword options, not both: {sorted(option_fields)}"
        )
    return options or BatchOptions(**option_fields)


async def _iterate(source: RecordSource):
    if hasattr(source, "__aiter__"):
        async for record in source:
            yield record
    else:
        for record in source:
            yield record


class BatchProcessor:
    """Runs batch and streaming fusion passes with one engine configuration."""

    def __init__(
        self,
        settings: FusionSettings | None = None,
        stream_settings: StreamSettings | None = None,
        emitter: SignalEmitter | None = None,
    ) -> None:
        self._engine = FusionEngine(settings)
        self._stream_settings = stream_settings or StreamSettings()
        self._emitter = emitter

    @classmethod
    def from_config(
        cls, config: LeadFusionConfig | None = None, emitter: SignalEmitter | None = None
    ) -> "BatchProcessor":
        """Build a processor from root config, applying its log level."""
        config = config or LeadFusionConfig()
        config.configure_logging()
        return cls(config.fusion, config.stream, emitter)

    @property
    def engine(self) -> FusionEngine:
        return self._engine

    @property
    def emitter(self) -> SignalEmitter | None:
        return self._emitter

    # --- Batch ---

    def process_batch(
        self,
        records: Sequence[RawPropertyRecord],
        options: BatchOptions | None = None,
        **option_fields: Any,
    ) -> list[FusedLeadRecord]:
        """Enhance and/or deduplicate one batch of raw records.

        With deduplication on, each address group is fused with its
        authoritative payload when one exists, which is equivalent to
        enhancing each record first and then deduplicating. With
        deduplication off, records are enhanced one by one and all others are
        wrapped as singleton leads.
        """
        options = _resolve_options(options, option_fields)
        if not records:
            return []

        authoritative = options.authoritative_data if options.should_enhance else None

        if options.deduplicate:
            leads = deduplicate(records, authoritative, self._engine)
        else:
            leads = [self._enhance_or_wrap(record, authoritative) for record in records]

        if options.score_leads:
            leads = score_leads(leads)

        logger.debug(
            "Processed batch: %d record(s) -> %d lead(s) (dedup=%s, enhanced=%s)",
            len(records),
            len(leads),
            options.deduplicate,
            authoritative is not None,
        )
        return leads

    async def run_batch(
        self,
        records: Sequence[RawPropertyRecord],
        options: BatchOptions | None = None,
        **option_fields: Any,
    ) -> list[FusedLeadRecord]:
        """``process_batch`` for async callers; reports BATCH_PROCESSED to the emitter."""
        leads = self.process_batch(records, options, **option_fields)
        if self._emitter:
            await self._emitter.emit_batch_processed(
                input_count=len(records), output_count=len(leads)
            )
        return leads

    def _enhance_or_wrap(
        self, record: RawPropertyRecord, authoritative: dict[str, Any] | None
    ) -> FusedLeadRecord:
        hashed = record.with_address_hash()
        payload = None
        if authoritative and hashed.address_hash:
            payload = authoritative.get(hashed.address_hash)
        if payload is not None:
            return self._engine.fuse(payload, [hashed])
        return self._engine.wrap(hashed)

    # --- Stream ---

    async def stream_process(
        self,
        source: RecordSource,
        *,
        chunk_size: int | None = None,
        on_chunk_complete: ChunkCallback | None = None,
        options: BatchOptions | None = None,
        **option_fields: Any,
    ) -> list[FusedLeadRecord]:
        """Consume ``source`` in chunks and return every chunk's leads in order.

        The callback, sync or async, is awaited after each chunk before the
        next record is pulled. A trailing partial chunk is processed too.
        """
        if chunk_size is None:
            size = self._stream_settings.chunk_size
        else:
            size = StreamSettings(chunk_size=chunk_size).chunk_size
        options = _resolve_options(options, option_fields)

        start = time.monotonic()
        results: list[FusedLeadRecord] = []
        chunk: list[RawPropertyRecord] = []
        chunk_index = 0
        total_records = 0

        async for record in _iterate(source):
            chunk.append(record)
            total_records += 1
            if len(chunk) >= size:
                await self._run_chunk(chunk, chunk_index, options, on_chunk_complete, results)
                chunk_index += 1
                chunk = []

        if chunk:
            await self._run_chunk(chunk, chunk_index, options, on_chunk_complete, results)
            chunk_index += 1

        duration = round(time.monotonic() - start, 3)
        logger.info(
            "Stream complete: %d record(s) in %d chunk(s) -> %d lead(s) in %.3fs",
            total_records,
            chunk_index,
            len(results),
            duration,
        )
        if self._emitter:
            await self._emitter.emit_stream_complete(
                total_chunks=chunk_index,
                total_records=total_records,
                total_leads=len(results),
                duration_s=duration,
            )
        return results

    async def _run_chunk(
        self,
        chunk: list[RawPropertyRecord],
        chunk_index: int,
        options: BatchOptions,
        on_chunk_complete: ChunkCallback | None,
        results: list[FusedLeadRecord],
    ) -> None:
        processed = self.process_batch(chunk, options)
        results.extend(processed)

        if self._emitter:
            await self._emitter.emit_chunk_complete(
                chunk_index=chunk_index,
                input_count=len(chunk),
                output_count=len(processed),
            )

        if on_chunk_complete is None:
            return

        try:
            outcome = on_chunk_complete(list(processed))
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            run_id = self._emitter.run_id if self._emitter else None
            emit_structured_error(
                logger,
                code=ErrorCode.CHUNK_CALLBACK_FAILED,
                message=str(exc),
                suppressed=False,
                run_id=run_id,
                chunk_index=chunk_index,
                details={"chunk_leads": len(processed)},
            )
            if self._emitter:
                await self._emitter.emit(
                    SignalType.CHUNK_CALLBACK_FAILED,
                    {"chunk_index": chunk_index, "error": str(exc)},
                )
            raise ChunkCallbackError(
                f"on_chunk_complete failed for chunk {chunk_index}: {exc}",
                chunk_index=chunk_index,
                processed=list(results),
            ) from exc


_default_processor: BatchProcessor | None = None


def _processor() -> BatchProcessor:
    global _default_processor
    if _default_processor is None:
        _default_processor = BatchProcessor()
    return _default_processor


def process_batch(
    records: Sequence[RawPropertyRecord],
    options: BatchOptions | None = None,
    **option_fields: Any,
) -> list[FusedLeadRecord]:
    """Process one batch with default settings."""
    return _processor().process_batch(records, options, **option_fields)


async def stream_process(
    source: RecordSource,
    *,
    chunk_size: int | None = None,
    on_chunk_complete: ChunkCallback | None = None,
    options: BatchOptions | None = None,
    **option_fields: Any,
) -> list[FusedLeadRecord]:
    """Stream-process with default settings."""
    return await _processor().stream_process(
        source,
        chunk_size=chunk_size,
        on_chunk_complete=on_chunk_complete,
        options=options,
        **option_fields,
    )

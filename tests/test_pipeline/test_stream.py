"""Tests for chunked stream processing."""

import logging
from datetime import datetime, timezone

import pytest

from leadfusion.config.settings import StreamSettings
from leadfusion.fusion.records import Address, RawPropertyRecord
from leadfusion.normalize.address import address_hash
from leadfusion.pipeline.batch import BatchProcessor, ChunkCallbackError, stream_process
from leadfusion.signals.emitter import SignalEmitter
from leadfusion.signals.types import SignalType
from leadfusion.telemetry.errors import ErrorCode, LeadFusionError

CAPTURED = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _record(street, source_key="zillow", **fields):
    return RawPropertyRecord(
        address=Address(street=street, city="Anytown", state="CA", zip="90210"),
        source_key=source_key,
        captured_at=CAPTURED,
        **fields,
    )


def _distinct(count):
    return [_record(f"{n} First St") for n in range(1, count + 1)]


async def _agen(items):
    for item in items:
        yield item


@pytest.fixture
def processor():
    return BatchProcessor(stream_settings=StreamSettings(chunk_size=100))


class TestStreamProcess:
    @pytest.mark.asyncio
    async def test_sync_iterable(self, processor):
        leads = await processor.stream_process(iter(_distinct(5)), chunk_size=2)
        assert len(leads) == 5

    @pytest.mark.asyncio
    async def test_async_iterable(self, processor):
        leads = await processor.stream_process(_agen(_distinct(5)), chunk_size=2)
        assert len(leads) == 5

    @pytest.mark.asyncio
    async def test_output_preserves_chunk_order(self, processor):
        records = _distinct(5)
        leads = await processor.stream_process(records, chunk_size=2)
        assert [lead.address for lead in leads] == [r.address.display() for r in records]

    @pytest.mark.asyncio
    async def test_callback_per_chunk_including_trailing(self, processor):
        sizes = []

        leads = await processor.stream_process(
            _distinct(5), chunk_size=2, on_chunk_complete=lambda chunk: sizes.append(len(chunk))
        )

        assert sizes == [2, 2, 1]
        assert len(leads) == 5

    @pytest.mark.asyncio
    async def test_async_callback_awaited(self, processor):
        seen = []

        async def on_chunk(chunk):
            seen.append([lead.address for lead in chunk])

        await processor.stream_process(_agen(_distinct(3)), chunk_size=2, on_chunk_complete=on_chunk)

        assert [len(batch) for batch in seen] == [2, 1]

    @pytest.mark.asyncio
    async def test_exact_multiple_has_no_empty_trailing_chunk(self, processor):
        sizes = []
        await processor.stream_process(
            _distinct(4), chunk_size=2, on_chunk_complete=lambda chunk: sizes.append(len(chunk))
        )
        assert sizes == [2, 2]

    @pytest.mark.asyncio
    async def test_empty_source(self, processor):
        calls = []
        leads = await processor.stream_process([], on_chunk_complete=calls.append)
        assert leads == []
        assert calls == []

    @pytest.mark.asyncio
    async def test_dedup_within_chunk(self, processor):
        records = [_record("123 Main St", "zillow"), _record("123 Main St", "redfin")]
        leads = await processor.stream_process(records, chunk_size=2)
        assert len(leads) == 1
        assert len(leads[0].sources) == 2

    @pytest.mark.asyncio
    async def test_same_property_across_chunks_is_not_reconciled(self, processor):
        records = [_record("123 Main St", "zillow"), _record("123 Main St", "redfin")]

        leads = await processor.stream_process(records, chunk_size=1)

        assert len(leads) == 2
        expected = address_hash("123 Main St", "Anytown", "CA", "90210")
        assert [lead.address_hash for lead in leads] == [expected, expected]
        assert [lead.sources[0].key for lead in leads] == ["zillow", "redfin"]

    @pytest.mark.asyncio
    async def test_batch_options_forwarded(self, processor):
        records = [_record("123 Main St", "zillow"), _record("123 Main St", "redfin")]
        leads = await processor.stream_process(records, chunk_size=2, deduplicate=False, score_leads=True)
        assert len(leads) == 2
        assert all(lead.scoring is not None for lead in leads)

    @pytest.mark.asyncio
    async def test_default_chunk_size_from_settings(self):
        processor = BatchProcessor(stream_settings=StreamSettings(chunk_size=3))
        sizes = []
        await processor.stream_process(_distinct(7), on_chunk_complete=lambda chunk: sizes.append(len(chunk)))
        assert sizes == [3, 3, 1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("size", [0, -1])
    async def test_invalid_chunk_size(self, processor, size):
        with pytest.raises(ValueError):
            await processor.stream_process(_distinct(2), chunk_size=size)

    @pytest.mark.asyncio
    async def test_module_level_stream_process(self):
        leads = await stream_process(_distinct(3), chunk_size=2)
        assert len(leads) == 3

    @pytest.mark.asyncio
    async def test_stops_pulling_while_callback_runs(self, processor):
        events = []

        def source():
            for record in _distinct(4):
                events.append(f"pull {record.address.street}")
                yield record

        def on_chunk(chunk):
            events.append(f"chunk {len(chunk)}")

        await processor.stream_process(source(), chunk_size=2, on_chunk_complete=on_chunk)

        assert events == [
            "pull 1 First St",
            "pull 2 First St",
            "chunk 2",
            "pull 3 First St",
            "pull 4 First St",
            "chunk 2",
        ]


class TestChunkCallbackFailure:
    @pytest.mark.asyncio
    async def test_failure_carries_processed_output(self, processor):
        def on_chunk(chunk):
            if len(chunk) == 1:
                raise RuntimeError("disk full")

        with pytest.raises(ChunkCallbackError) as exc_info:
            await processor.stream_process(_distinct(3), chunk_size=2, on_chunk_complete=on_chunk)

        error = exc_info.value
        assert isinstance(error, LeadFusionError)
        assert error.chunk_index == 1
        assert len(error.processed) == 3
        assert isinstance(error.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_failure_stops_the_stream(self, processor):
        pulled = []

        def source():
            for record in _distinct(6):
                pulled.append(record)
                yield record

        async def on_chunk(chunk):
            raise RuntimeError("boom")

        with pytest.raises(ChunkCallbackError) as exc_info:
            await processor.stream_process(source(), chunk_size=2, on_chunk_complete=on_chunk)

        assert exc_info.value.chunk_index == 0
        assert len(exc_info.value.processed) == 2
        assert len(pulled) == 2

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, processor, caplog):
        def on_chunk(chunk):
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="leadfusion.pipeline.batch"):
            with pytest.raises(ChunkCallbackError):
                await processor.stream_process(_distinct(1), on_chunk_complete=on_chunk)

        record = next(r for r in caplog.records if r.getMessage() == "leadfusion_error")
        assert record.error_code == ErrorCode.CHUNK_CALLBACK_FAILED
        assert record.suppressed is False
        assert record.chunk_index == 0


class TestStreamSignals:
    @pytest.mark.asyncio
    async def test_chunk_and_stream_signals(self, tmp_path):
        ledger = tmp_path / "run" / "signals.jsonl"
        emitter = SignalEmitter(run_id="stream_run", ledger_path=ledger)
        processor = BatchProcessor(emitter=emitter)

        await processor.stream_process(_distinct(3), chunk_size=2)

        types = [signal.signal_type for signal in emitter.signals]
        assert types == [SignalType.CHUNK_COMPLETE, SignalType.CHUNK_COMPLETE, SignalType.STREAM_COMPLETE]
        assert emitter.signals[0].payload == {"chunk_index": 0, "input_count": 2, "output_count": 2}
        summary = emitter.signals[-1].payload
        assert summary["total_chunks"] == 2
        assert summary["total_records"] == 3
        assert summary["total_leads"] == 3
        assert len(SignalEmitter.load_ledger(ledger)) == 3

    @pytest.mark.asyncio
    async def test_callback_failure_signal(self):
        emitter = SignalEmitter(run_id="stream_run")
        processor = BatchProcessor(emitter=emitter)

        def on_chunk(chunk):
            raise RuntimeError("boom")

        with pytest.raises(ChunkCallbackError):
            await processor.stream_process(_distinct(2), chunk_size=2, on_chunk_complete=on_chunk)

        last = emitter.signals[-1]
        assert last.signal_type == SignalType.CHUNK_CALLBACK_FAILED
        assert last.payload == {"chunk_index": 0, "error": "boom"}

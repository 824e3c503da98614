"""Tests for the Signal emitter system."""

import logging

import pytest

from leadfusion.signals.emitter import SignalEmitter
from leadfusion.signals.types import SignalType
from leadfusion.telemetry.errors import ErrorCode


@pytest.fixture
def tmp_ledger(tmp_path):
    return tmp_path / "test_run" / "signals.jsonl"


@pytest.fixture
def emitter(tmp_ledger):
    return SignalEmitter(run_id="test_run_001", ledger_path=tmp_ledger)


class TestSignalEmitter:
    """Test signal emission, persistence, and broadcasting."""

    @pytest.mark.asyncio
    async def test_emit_creates_signal(self, emitter):
        signal = await emitter.emit(SignalType.CHUNK_COMPLETE, {"chunk_index": 0})
        assert signal.sequence == 1
        assert signal.signal_type == SignalType.CHUNK_COMPLETE
        assert signal.run_id == "test_run_001"
        assert signal.payload["chunk_index"] == 0

    @pytest.mark.asyncio
    async def test_monotonic_sequence(self, emitter):
        s1 = await emitter.emit(SignalType.BATCH_PROCESSED)
        s2 = await emitter.emit(SignalType.CHUNK_COMPLETE)
        s3 = await emitter.emit(SignalType.STREAM_COMPLETE)
        assert [s1.sequence, s2.sequence, s3.sequence] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_signals_are_immutable(self, emitter):
        signal = await emitter.emit(SignalType.CHUNK_COMPLETE, {"key": "value"})
        with pytest.raises(Exception):
            signal.payload = {"modified": True}

    @pytest.mark.asyncio
    async def test_signals_persisted_to_ledger(self, emitter, tmp_ledger):
        await emitter.emit(SignalType.CHUNK_COMPLETE, {"chunk_index": 0})
        await emitter.emit(SignalType.STREAM_COMPLETE, {"total_leads": 5})

        assert tmp_ledger.exists()
        lines = tmp_ledger.read_text().strip().split("\n")
        assert len(lines) == 2

    @pytest.mark.asyncio
    async def test_load_ledger(self, emitter, tmp_ledger):
        await emitter.emit(SignalType.CHUNK_COMPLETE, {"chunk_index": 0})
        await emitter.emit(SignalType.STREAM_COMPLETE, {"total_leads": 5})

        loaded = SignalEmitter.load_ledger(tmp_ledger)
        assert len(loaded) == 2
        assert loaded[0].signal_type == SignalType.CHUNK_COMPLETE
        assert loaded[1].payload == {"total_leads": 5}

    def test_load_missing_ledger(self, tmp_path):
        assert SignalEmitter.load_ledger(tmp_path / "absent.jsonl") == []

    @pytest.mark.asyncio
    async def test_no_ledger_keeps_signals_in_memory(self):
        emitter = SignalEmitter(run_id="memory_only")
        await emitter.emit(SignalType.BATCH_PROCESSED)
        assert len(emitter.signals) == 1

    @pytest.mark.asyncio
    async def test_subscriber_receives_signals(self, emitter):
        received = []

        emitter.subscribe(received.append)
        await emitter.emit(SignalType.CHUNK_COMPLETE)
        await emitter.emit(SignalType.STREAM_COMPLETE)

        assert len(received) == 2

    @pytest.mark.asyncio
    async def test_async_subscriber_awaited(self, emitter):
        received = []

        async def on_signal(signal):
            received.append(signal.signal_type)

        emitter.subscribe(on_signal)
        await emitter.emit(SignalType.CHUNK_COMPLETE)

        assert received == [SignalType.CHUNK_COMPLETE]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, emitter):
        received = []

        def on_signal(signal):
            received.append(signal)

        emitter.subscribe(on_signal)
        await emitter.emit(SignalType.CHUNK_COMPLETE)

        emitter.unsubscribe(on_signal)
        await emitter.emit(SignalType.CHUNK_COMPLETE)

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_subscriber_error_does_not_break_emission(self, emitter, caplog):
        def bad_subscriber(signal):
            raise RuntimeError("Subscriber failure")

        emitter.subscribe(bad_subscriber)

        with caplog.at_level(logging.ERROR):
            signal = await emitter.emit(SignalType.CHUNK_COMPLETE)

        assert signal.sequence == 1
        record = next(r for r in caplog.records if r.getMessage() == "leadfusion_error")
        assert record.error_code == ErrorCode.SIGNAL_SUBSCRIBER_FAILURE
        assert record.suppressed is True

    @pytest.mark.asyncio
    async def test_signals_property_returns_copy(self, emitter):
        await emitter.emit(SignalType.CHUNK_COMPLETE)
        signals = emitter.signals
        signals.clear()
        assert len(emitter.signals) == 1  # Original not affected

    @pytest.mark.asyncio
    async def test_emit_chunk_complete_convenience(self, emitter):
        signal = await emitter.emit_chunk_complete(chunk_index=2, input_count=100, output_count=87)
        assert signal.signal_type == SignalType.CHUNK_COMPLETE
        assert signal.payload == {"chunk_index": 2, "input_count": 100, "output_count": 87}

    @pytest.mark.asyncio
    async def test_emit_stream_complete_convenience(self, emitter):
        signal = await emitter.emit_stream_complete(
            total_chunks=3, total_records=250, total_leads=210, duration_s=1.25
        )
        assert signal.signal_type == SignalType.STREAM_COMPLETE
        assert signal.payload["total_leads"] == 210
        assert signal.payload["duration_s"] == 1.25

    @pytest.mark.asyncio
    async def test_emit_batch_processed_convenience(self, emitter):
        signal = await emitter.emit_batch_processed(input_count=10, output_count=7)
        assert signal.signal_type == SignalType.BATCH_PROCESSED
        assert signal.payload == {"input_count": 10, "output_count": 7}

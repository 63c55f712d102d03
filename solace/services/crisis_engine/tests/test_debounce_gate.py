"""Tests for DebounceGate."""
import asyncio

import pytest

from solace.shared.models import JournalRevision
from solace.services.crisis_engine.debounce import DebounceGate

WINDOW = 0.05


def revision(seq, entry_id="entry_1", text=None):
    return JournalRevision(entry_id=entry_id, text=text or f"text {seq}", revision_seq=seq)


class Recorder:
    def __init__(self, delay=0.0, fail=False):
        self.calls = []
        self.delay = delay
        self.fail = fail

    async def __call__(self, rev):
        self.calls.append(rev)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("scan exploded")


@pytest.mark.asyncio
async def test_burst_scans_once_with_last_revision():
    recorder = Recorder()
    gate = DebounceGate(recorder, window_seconds=WINDOW)

    for seq in range(1, 6):
        gate.submit(revision(seq))
        await asyncio.sleep(WINDOW / 5)

    await asyncio.sleep(WINDOW * 3)

    assert [r.revision_seq for r in recorder.calls] == [5]
    assert gate.scans_started == 1


@pytest.mark.asyncio
async def test_trailing_scan_fires_without_further_edits():
    recorder = Recorder()
    gate = DebounceGate(recorder, window_seconds=WINDOW)

    gate.submit(revision(1))
    assert gate.is_pending("entry_1")

    await asyncio.sleep(WINDOW * 3)

    assert len(recorder.calls) == 1
    assert gate.pending_count == 0


@pytest.mark.asyncio
async def test_entries_debounced_independently():
    recorder = Recorder()
    gate = DebounceGate(recorder, window_seconds=WINDOW)

    gate.submit(revision(1, entry_id="a"))
    gate.submit(revision(1, entry_id="b"))
    gate.submit(revision(2, entry_id="a"))
    assert gate.pending_count == 2

    await gate.drain()

    assert sorted((r.entry_id, r.revision_seq) for r in recorder.calls) == [("a", 2), ("b", 1)]


@pytest.mark.asyncio
async def test_out_of_order_submit_keeps_newer_revision():
    recorder = Recorder()
    gate = DebounceGate(recorder, window_seconds=WINDOW)

    gate.submit(revision(4))
    gate.submit(revision(2))
    await gate.drain()

    assert [r.revision_seq for r in recorder.calls] == [4]


@pytest.mark.asyncio
async def test_flush_fires_immediately():
    recorder = Recorder()
    gate = DebounceGate(recorder, window_seconds=60)

    gate.submit(revision(1))
    assert gate.flush() == 1
    await gate.drain()

    assert len(recorder.calls) == 1
    assert gate.flush() == 0


@pytest.mark.asyncio
async def test_flush_single_entry():
    recorder = Recorder()
    gate = DebounceGate(recorder, window_seconds=60)

    gate.submit(revision(1, entry_id="a"))
    gate.submit(revision(1, entry_id="b"))
    assert gate.flush("a") == 1
    assert gate.is_pending("b")
    gate.discard("b")
    await gate.drain()

    assert [r.entry_id for r in recorder.calls] == ["a"]


@pytest.mark.asyncio
async def test_discard_drops_pending_scan():
    recorder = Recorder()
    gate = DebounceGate(recorder, window_seconds=WINDOW)

    gate.submit(revision(1))
    assert gate.discard("entry_1") is True
    assert gate.discard("entry_1") is False

    await asyncio.sleep(WINDOW * 3)
    assert recorder.calls == []


@pytest.mark.asyncio
async def test_in_flight_scan_allowed_to_finish():
    recorder = Recorder(delay=WINDOW)
    gate = DebounceGate(recorder, window_seconds=60)

    gate.submit(revision(1))
    gate.flush()
    await asyncio.sleep(0)
    assert gate.in_flight_count == 1

    gate.submit(revision(2))
    gate.flush()
    await gate.drain()

    assert [r.revision_seq for r in recorder.calls] == [1, 2]
    assert gate.in_flight_count == 0


@pytest.mark.asyncio
async def test_scan_failure_logged_and_gate_survives(caplog):
    recorder = Recorder(fail=True)
    gate = DebounceGate(recorder, window_seconds=WINDOW)

    gate.submit(revision(1))
    await gate.drain()
    gate.submit(revision(2))
    await gate.drain()

    assert len(recorder.calls) == 2
    assert any(r.getMessage() == "DEBOUNCE_SCAN_FAILED" for r in caplog.records)


@pytest.mark.asyncio
async def test_drain_waits_for_pending_deadline():
    recorder = Recorder()
    gate = DebounceGate(recorder, window_seconds=WINDOW)

    gate.submit(revision(1))
    await gate.drain()

    assert len(recorder.calls) == 1


def test_submit_requires_running_loop():
    gate = DebounceGate(Recorder())
    with pytest.raises(RuntimeError):
        gate.submit(revision(1))

from __future__ import annotations

import pytest

from conftest import FakeStore
from slabstock.models.slab import SlabInsert
from slabstock.services.bulk_writer import BulkWriter


def _rows(n: int) -> list[SlabInsert]:
    return [
        SlabInsert(
            user_id="user-1", position="A1", material="Granit", length=300, width=150,
            thickness=2, entry_number=f"E-{i}",
        )
        for i in range(1, n + 1)
    ]


def _fails_on(entry: str):
    return lambda batch: any(r.entry_number == entry for r in batch)


def test_failed_batch_does_not_stop_the_others():
    store = FakeStore(fail_when=_fails_on("E-3"))
    sleeps: list[float] = []
    writer = BulkWriter(store, batch_size=2, max_attempts=3, base_delay=1.0, sleep=sleeps.append)
    report = writer.write(_rows(10))

    assert report.inserted == 8
    assert report.processed == 10
    assert report.errors == ["batch 2: connection reset by peer"]
    assert [o.ok for o in report.outcomes] == [True, False, True, True, True]
    assert report.outcomes[1].attempts == 3
    # linear backoff between attempts of batch 2
    assert sleeps == [1.0, 2.0]
    assert len(store.slabs) == 8


def test_transient_failure_succeeds_on_retry():
    attempts = {"n": 0}

    def flaky(batch):
        attempts["n"] += 1
        return attempts["n"] == 1

    store = FakeStore(fail_when=flaky)
    writer = BulkWriter(store, batch_size=5, sleep=lambda s: None)
    report = writer.write(_rows(5))
    assert report.inserted == 5
    assert report.errors == []
    assert report.outcomes[0].attempts == 2


def test_progress_reported_after_each_batch():
    calls = []
    writer = BulkWriter(FakeStore(), batch_size=2, sleep=lambda s: None)
    writer.write(_rows(5), on_progress=lambda p, i, e: calls.append((p, i, e)))
    assert calls == [(2, 2, []), (4, 4, []), (5, 5, [])]


def test_should_stop_prevents_remaining_batches():
    store = FakeStore()
    writer = BulkWriter(store, batch_size=2, sleep=lambda s: None)
    report = writer.write(_rows(6), should_stop=lambda: len(store.insert_calls) >= 1)
    assert report.cancelled
    assert report.inserted == 2
    assert len(store.insert_calls) == 1


def test_batch_timings_are_accumulated():
    writer = BulkWriter(FakeStore(), batch_size=3, sleep=lambda s: None)
    writer.write(_rows(7))
    total, avg, p95 = writer.stats.get_stats()
    assert total == 3
    assert avg == pytest.approx(0.01)
    assert p95 == pytest.approx(0.01)


def test_invalid_batch_size_rejected():
    with pytest.raises(ValueError):
        BulkWriter(FakeStore(), batch_size=0)

# tests/property/test_partition_properties.py
"""Property-based tests for partitioning and batching.

Whatever the row count and sizes, every row lands in exactly one range and
every record in exactly one batch, in order.
"""

from hypothesis import given
from hypothesis import strategies as st

from spillway.contracts import RowRange
from spillway.engine.batcher import chunk
from spillway.engine.partitioner import partition, range_count, split_range

row_counts = st.integers(min_value=0, max_value=50_000)
sizes = st.integers(min_value=1, max_value=5_000)


class TestPartitionProperties:
    @given(total=row_counts, per_worker=sizes)
    def test_ranges_cover_every_row_once(self, total: int, per_worker: int) -> None:
        ranges = partition(total, per_worker)

        assert sum(len(r) for r in ranges) == total
        position = 0
        for r in ranges:
            assert r.start == position
            position = r.end
        assert position == total

    @given(total=row_counts, per_worker=sizes)
    def test_only_last_range_is_short(self, total: int, per_worker: int) -> None:
        ranges = partition(total, per_worker)

        assert len(ranges) == range_count(total, per_worker)
        assert all(len(r) == per_worker for r in ranges[:-1])
        if ranges:
            assert 1 <= len(ranges[-1]) <= per_worker

    @given(
        start=st.integers(min_value=0, max_value=10_000),
        length=st.integers(min_value=1, max_value=10_000),
        per_read=st.one_of(st.none(), sizes),
    )
    def test_split_range_is_contiguous(self, start: int, length: int, per_read: int | None) -> None:
        row_range = RowRange(start, start + length)

        slices = split_range(row_range, per_read)

        assert slices[0].start == row_range.start
        assert slices[-1].end == row_range.end
        assert all(a.end == b.start for a, b in zip(slices, slices[1:], strict=False))
        if per_read is not None:
            assert all(len(s) <= per_read for s in slices)


class TestChunkProperties:
    @given(
        n=st.integers(min_value=0, max_value=2_000),
        size=st.integers(min_value=1, max_value=50),
        first_row=st.integers(min_value=0, max_value=1_000_000),
    )
    def test_every_record_in_exactly_one_batch(self, n: int, size: int, first_row: int) -> None:
        records = [{"i": i} for i in range(n)]

        batches = chunk(records, size, first_row=first_row)

        assert [r for b in batches for r in b.records] == records
        assert all(1 <= len(b) <= size for b in batches)
        ids = [record_id for b in batches for record_id in b.record_ids]
        assert ids == [str(first_row + i) for i in range(n)]

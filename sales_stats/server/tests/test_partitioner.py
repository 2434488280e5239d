import pytest

from sales_stats.utils.file_utils.sales_record import SalesRecord
from ..common.partitioner import PartitionError, chunk_sizes, partition


def records(n):
    return [SalesRecord(i % 3, 201701, "G", float(i)) for i in range(n)]


@pytest.mark.parametrize("num_records,workers,expected", [
    (10, 3, [3, 3, 4]),
    (9, 3, [3, 3, 3]),
    (2, 4, [0, 0, 0, 2]),
    (0, 2, [0, 0]),
    (7, 1, [7]),
])
def test_chunk_sizes(num_records, workers, expected):
    assert chunk_sizes(num_records, workers) == expected


@pytest.mark.parametrize("num_records,workers", [(5, 0), (5, -2), (-1, 2)])
def test_chunk_sizes_rejects_invalid(num_records, workers):
    with pytest.raises(PartitionError):
        chunk_sizes(num_records, workers)


def test_partition_is_contiguous_and_complete():
    data = records(10)
    chunks = partition(data, [2, 3, 4])

    assert [c.owner_worker_id for c in chunks] == [2, 3, 4]
    assert [len(c) for c in chunks] == [3, 3, 4]
    rebuilt = [r for c in chunks for r in c]
    assert rebuilt == data


def test_every_worker_gets_a_chunk_even_if_empty():
    chunks = partition(records(1), [2, 3, 4])
    assert [len(c) for c in chunks] == [0, 0, 1]


def test_partition_without_workers():
    with pytest.raises(PartitionError):
        partition(records(3), [])

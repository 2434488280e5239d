from typing import List, Sequence

from sales_stats.utils.file_utils.sales_record import SalesRecord
from sales_stats.utils.processing.sales_chunk import SalesChunk


class PartitionError(ValueError):
    """No se pueden particionar los registros (no hay workers)."""


def chunk_sizes(num_records: int, worker_count: int) -> List[int]:
    """
    Tamaños de los chunks contiguos, uno por worker. Los primeros worker_count-1
    reciben num_records // worker_count; el resto va al ultimo.
    """
    if worker_count <= 0:
        raise PartitionError(f"no se pueden repartir {num_records} registros entre {worker_count} workers")
    if num_records < 0:
        raise PartitionError(f"num_records debe ser >= 0, recibido {num_records}")

    base, remainder = divmod(num_records, worker_count)
    sizes = [base] * worker_count
    sizes[-1] += remainder
    return sizes


def partition(records: Sequence[SalesRecord], worker_ids: Sequence[int]) -> List[SalesChunk]:
    """Parte los registros en un chunk contiguo por worker, en orden de worker."""
    sizes = chunk_sizes(len(records), len(worker_ids))
    chunks = []
    offset = 0
    for worker_id, size in zip(worker_ids, sizes):
        chunks.append(SalesChunk(worker_id, records[offset:offset + size]))
        offset += size
    return chunks

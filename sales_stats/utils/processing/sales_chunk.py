from typing import List, Sequence

from sales_stats.utils.file_utils.sales_record import SalesRecord, deserialize_records, serialize_records


class SalesChunkHeader:
    HEADER_SIZE = 12  # 4 bytes owner_worker_id + 4 bytes record_count + 4 bytes size

    def __init__(self, owner_worker_id: int, record_count: int = 0, size: int = 0):
        self.owner_worker_id = owner_worker_id
        self.record_count = record_count
        self.size = size

    def serialize(self) -> bytes:
        return (
                self.owner_worker_id.to_bytes(4, byteorder="big") +
                self.record_count.to_bytes(4, byteorder="big") +
                self.size.to_bytes(4, byteorder="big")
        )

    @staticmethod
    def deserialize(data: bytes):
        if len(data) < SalesChunkHeader.HEADER_SIZE:
            raise ValueError(f"SalesChunk header truncado: {len(data)} bytes")
        owner_worker_id = int.from_bytes(data[0:4], byteorder="big")
        record_count = int.from_bytes(data[4:8], byteorder="big")
        size = int.from_bytes(data[8:12], byteorder="big")
        return SalesChunkHeader(owner_worker_id, record_count, size)


# =========================================
# SALES CHUNK
# - Porcion contigua de registros asignada a un worker.
# =========================================
class SalesChunk:
    def __init__(self, owner_worker_id: int, records: Sequence[SalesRecord]):
        self.records: List[SalesRecord] = list(records)
        self.header = SalesChunkHeader(owner_worker_id, len(self.records))

    @property
    def owner_worker_id(self) -> int:
        return self.header.owner_worker_id

    def __len__(self):
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    def serialize(self) -> bytes:
        payload = serialize_records(self.records)
        self.header.size = len(payload)
        return self.header.serialize() + payload

    @staticmethod
    def deserialize(data: bytes) -> "SalesChunk":
        header = SalesChunkHeader.deserialize(data[:SalesChunkHeader.HEADER_SIZE])
        payload = data[SalesChunkHeader.HEADER_SIZE:]
        if len(payload) != header.size:
            raise ValueError(f"SalesChunk payload de {len(payload)} bytes, header anuncia {header.size}")

        records = deserialize_records(payload)

        if len(records) != header.record_count:
            raise ValueError(f"SalesChunk con {len(records)} registros, header anuncia {header.record_count}")
        return SalesChunk(header.owner_worker_id, records)

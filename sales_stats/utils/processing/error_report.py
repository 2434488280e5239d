from enum import Enum

from sales_stats.utils.file_utils.sales_record import SalesRecord
from .envelope import Envelope


# =========================================
# ENUM DE ERRORES DE REGISTRO
# - El valor viaja como tag del envelope; el orden de declaracion es el
#   orden en que se validan los registros.
# =========================================
class ErrorKind(Enum):
    BAD_CATEGORY = 1
    BAD_DATE_FORMAT = 2
    BAD_MONTH = 3
    BAD_DATE_RANGE = 4
    BAD_CUSTOMER_CLASS = 5
    NEGATIVE_AMOUNT = 6

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @classmethod
    def from_tag(cls, tag: int) -> "ErrorKind":
        try:
            return cls(tag)
        except ValueError:
            raise ValueError(f"Tag de error desconocido: {tag}")


_DESCRIPTIONS = {
    ErrorKind.BAD_CATEGORY: "category id out of range",
    ErrorKind.BAD_DATE_FORMAT: "period code is not a 6 digit YYYYMM value",
    ErrorKind.BAD_MONTH: "month out of range [1, 12]",
    ErrorKind.BAD_DATE_RANGE: "year outside the supported window",
    ErrorKind.BAD_CUSTOMER_CLASS: "unknown customer class",
    ErrorKind.NEGATIVE_AMOUNT: "negative amount (or NaN)",
}


class ErrorReport:
    def __init__(self, source_worker_id: int, error_kind: ErrorKind, record: SalesRecord):
        self.source_worker_id = source_worker_id
        self.error_kind = error_kind
        self.record = record

    def to_envelope(self) -> Envelope:
        return Envelope(self.source_worker_id, self.error_kind.value, self.record.serialize())

    @classmethod
    def from_envelope(cls, envelope: Envelope) -> "ErrorReport":
        kind = ErrorKind.from_tag(envelope.tag)
        record = SalesRecord.deserialize(envelope.payload)
        return cls(envelope.sender_id, kind, record)

    def __str__(self):
        return f"worker {self.source_worker_id}: {self.error_kind.description} | record: {self.record}"

import csv
import io
from dataclasses import dataclass
from typing import List

INPUT_DELIMITER = None  # cualquier whitespace
WIRE_ENCODING = "utf-8"


# =========================================
# Sales Record
# - Representa una venta del archivo de entrada.
# - Campos:
#       - category_id: int
#       - period_code: int (YYYYMM)
#       - customer_class: str (un caracter: G, I, R)
#       - amount: float
# - En el wire viaja como una fila CSV; el modulo csv quotea los campos que
#   contengan comas o comillas, asi una clase invalida no rompe el parseo.
# =========================================
@dataclass(frozen=True)
class SalesRecord:
    category_id: int
    period_code: int
    customer_class: str
    amount: float

    @property
    def year(self) -> int:
        return self.period_code // 100

    @property
    def month(self) -> int:
        return self.period_code % 100

    def __str__(self):
        return f"{self.category_id} {self.period_code} {self.customer_class} {self.amount}"

    def to_row(self) -> List[str]:
        return [str(self.category_id), str(self.period_code), self.customer_class, str(self.amount)]

    @staticmethod
    def from_row(row: List[str]) -> "SalesRecord":
        if len(row) != 4:
            raise ValueError(f"Formato inválido de SalesRecord: {row!r}")
        return SalesRecord(int(row[0]), int(row[1]), row[2], float(row[3]))

    def serialize(self) -> bytes:
        return serialize_records([self])

    @staticmethod
    def deserialize(data: bytes) -> "SalesRecord":
        records = deserialize_records(data)
        if len(records) != 1:
            raise ValueError(f"Se esperaba un SalesRecord, llegaron {len(records)}")
        return records[0]

    @staticmethod
    def from_input_line(line: str) -> "SalesRecord":
        """
        Parsea una linea del archivo de entrada:
            category_id period_code customer_class amount
        Solo valida la forma; la validacion de dominio la hace el worker.
        """
        parts = line.split(INPUT_DELIMITER)
        if len(parts) != 4:
            raise ValueError(f"se esperaban 4 campos, llegaron {len(parts)}: {line.strip()!r}")
        category_id, period_code, customer_class, amount = parts
        return SalesRecord(int(category_id), int(period_code), customer_class, float(amount))


def serialize_records(records) -> bytes:
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, lineterminator="\n")
    for record in records:
        writer.writerow(record.to_row())
    return buffer.getvalue().encode(WIRE_ENCODING)


def deserialize_records(data: bytes) -> List[SalesRecord]:
    reader = csv.reader(io.StringIO(data.decode(WIRE_ENCODING), newline=""))
    try:
        return [SalesRecord.from_row(row) for row in reader if row]
    except csv.Error as e:
        raise ValueError(f"Payload CSV inválido: {e}") from e

import base64
import json
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

_PREFIX = "AGG_DATA"


class AggregateVector:
    """
    Tres sumas paralelas de montos por categoria.

    ``entire_file`` acumula todo registro valido, ``given_year`` solo los del
    periodo del reporte y ``for_customer`` solo los de la clase del reporte.
    El merge es una suma elemento a elemento: el orden de los parciales no
    cambia el resultado.
    """

    def __init__(self, category_count: int,
                 entire_file: Optional[Sequence[float]] = None,
                 given_year: Optional[Sequence[float]] = None,
                 for_customer: Optional[Sequence[float]] = None):
        if category_count < 0:
            raise ValueError(f"category_count debe ser >= 0, recibido {category_count}")
        self.category_count = category_count
        self.entire_file: List[float] = self._init_column(entire_file, "entire_file")
        self.given_year: List[float] = self._init_column(given_year, "given_year")
        self.for_customer: List[float] = self._init_column(for_customer, "for_customer")

    def _init_column(self, values, name) -> List[float]:
        if values is None:
            return [0.0] * self.category_count
        if len(values) != self.category_count:
            raise ValueError(f"{name} tiene {len(values)} entradas, se esperaban {self.category_count}")
        return [float(v) for v in values]

    def add(self, category_id: int, amount: float, in_period: bool, for_class: bool):
        if not 0 <= category_id < self.category_count:
            raise IndexError(f"categoria {category_id} fuera de [0, {self.category_count})")
        self.entire_file[category_id] += amount
        if in_period:
            self.given_year[category_id] += amount
        if for_class:
            self.for_customer[category_id] += amount

    def merge(self, other: "AggregateVector") -> "AggregateVector":
        if other.category_count != self.category_count:
            raise ValueError(
                f"cannot merge vectors of {self.category_count} and {other.category_count} categories"
            )
        return AggregateVector(
            self.category_count,
            [a + b for a, b in zip(self.entire_file, other.entire_file)],
            [a + b for a, b in zip(self.given_year, other.given_year)],
            [a + b for a, b in zip(self.for_customer, other.for_customer)],
        )

    @classmethod
    def merge_all(cls, vectors: Iterable["AggregateVector"], category_count: int) -> "AggregateVector":
        merged = cls(category_count)
        for vector in vectors:
            merged = merged.merge(vector)
        return merged

    def rows(self) -> Iterator[Tuple[int, float, float, float]]:
        for category_id in range(self.category_count):
            yield (
                category_id,
                self.entire_file[category_id],
                self.given_year[category_id],
                self.for_customer[category_id],
            )

    def to_dict(self) -> dict:
        return {
            "category_count": self.category_count,
            "entire_file": self.entire_file,
            "given_year": self.given_year,
            "for_customer": self.for_customer,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "AggregateVector":
        return cls(
            int(payload["category_count"]),
            payload["entire_file"],
            payload["given_year"],
            payload["for_customer"],
        )

    def __eq__(self, other):
        if not isinstance(other, AggregateVector):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"AggregateVector(category_count={self.category_count})"


class PartialAggregateMessage:
    """Vector parcial que un worker aporta a la reduccion."""

    def __init__(self, worker_id: int, vector: AggregateVector):
        self.worker_id = worker_id
        self.vector = vector

    def encode(self) -> bytes:
        payload_json = json.dumps(self.vector.to_dict()).encode("utf-8")
        payload_b64 = base64.b64encode(payload_json).decode("ascii")
        return f"{_PREFIX};{self.worker_id};{payload_b64}".encode("utf-8")

    @classmethod
    def decode(cls, message: bytes) -> "PartialAggregateMessage":
        decoded = message.decode("utf-8")
        parts = decoded.split(";", 2)
        if len(parts) != 3 or parts[0] != _PREFIX:
            raise ValueError(f"Formato inválido de mensaje AGG_DATA: {decoded[:80]}")

        _, worker_id, payload_b64 = parts
        payload = json.loads(base64.b64decode(payload_b64.encode("ascii")).decode("utf-8"))
        return cls(int(worker_id), AggregateVector.from_dict(payload))

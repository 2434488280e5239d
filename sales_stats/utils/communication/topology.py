from dataclasses import dataclass
from enum import Enum
from typing import List


class NodeRole(Enum):
    COORDINATOR = "coordinator"
    ERROR_COLLECTOR = "error_collector"
    WORKER = "worker"

    @classmethod
    def parse(cls, value: str) -> "NodeRole":
        try:
            return cls(value.strip().lower())
        except ValueError:
            allowed = ", ".join(r.value for r in cls)
            raise ValueError(f"Rol inválido: {value!r} (esperado uno de: {allowed})")


@dataclass(frozen=True)
class Topology:
    """
    Asignacion fija de roles para ``worker_count + 2`` nodos:
    coordinador, error collector y despues los workers en orden.
    """
    worker_count: int
    coordinator_id: int = 0
    collector_id: int = 1
    first_worker_id: int = 2

    def __post_init__(self):
        if self.worker_count < 0:
            raise ValueError(f"worker_count debe ser >= 0, recibido {self.worker_count}")
        if self.coordinator_id == self.collector_id:
            raise ValueError("coordinador y error collector deben tener ids distintos")
        reserved = {self.coordinator_id, self.collector_id}
        if reserved & set(self.worker_ids):
            raise ValueError(f"los ids de workers {self.worker_ids} se pisan con los de coordinador/collector")

    @property
    def size(self) -> int:
        return self.worker_count + 2

    @property
    def worker_ids(self) -> List[int]:
        return list(range(self.first_worker_id, self.first_worker_id + self.worker_count))

    @property
    def node_ids(self) -> List[int]:
        return [self.coordinator_id, self.collector_id] + self.worker_ids

    def role_of(self, node_id: int) -> NodeRole:
        if node_id == self.coordinator_id:
            return NodeRole.COORDINATOR
        if node_id == self.collector_id:
            return NodeRole.ERROR_COLLECTOR
        if node_id in self.worker_ids:
            return NodeRole.WORKER
        raise ValueError(f"el nodo {node_id} no forma parte de una topologia de {self.size} nodos")

    def is_worker(self, node_id: int) -> bool:
        return node_id in self.worker_ids

import logging
from typing import Callable, Dict, List, Optional, Sequence

from sales_stats.middleware.middleware_interface import (
    MessageMiddleware,
    MessageMiddlewareCloseError,
    MessageMiddlewareExchange,
    MessageMiddlewareQueue,
)
from sales_stats.middleware.local_middleware import LocalBroker, LocalMessageExchange, LocalMessageQueue
from sales_stats.utils.communication.topology import NodeRole, Topology
from sales_stats.utils.file_utils.sales_record import SalesRecord
from sales_stats.utils.processing.aggregate_vector import AggregateVector, PartialAggregateMessage
from sales_stats.utils.processing.envelope import Envelope
from sales_stats.utils.processing.error_report import ErrorKind, ErrorReport
from sales_stats.utils.processing.run_parameters import RunParameters
from sales_stats.utils.processing.sales_chunk import SalesChunk
from sales_stats.utils.protocol import (
    ERROR_COLLECTOR_QUEUE,
    REDUCE_QUEUE,
    RUN_PARAMETERS_EXCHANGE,
    TAG_CHUNK,
    TAG_COLLECTOR_END,
    TAG_PARTIAL_AGGREGATE,
    TAG_RUN_PARAMETERS,
    TRANSPORT_LOCAL,
    TRANSPORT_RABBITMQ,
    worker_consumer_id,
    worker_queue_name,
)


class ProtocolError(Exception):
    """Llego un mensaje que el rol receptor no puede aceptar."""


def build_local_broker(topology: Topology, context=None) -> LocalBroker:
    """Declara todos los endpoints que necesita una corrida sobre ``topology``."""
    queue_names = [REDUCE_QUEUE, ERROR_COLLECTOR_QUEUE]
    queue_names.extend(worker_queue_name(w) for w in topology.worker_ids)
    exchanges = {RUN_PARAMETERS_EXCHANGE: [worker_consumer_id(w) for w in topology.worker_ids]}
    return LocalBroker(queue_names, exchanges, context=context)


class MiddlewareFactory:
    """Abre colas y exchanges en el backend configurado."""

    def __init__(self, transport: str, rabbit_host: str = "rabbitmq", broker: Optional[LocalBroker] = None):
        if transport == TRANSPORT_LOCAL and broker is None:
            raise ValueError("el transporte local requiere un LocalBroker")
        if transport not in (TRANSPORT_LOCAL, TRANSPORT_RABBITMQ):
            raise ValueError(f"Transporte inválido: {transport}")
        self.transport = transport
        self.rabbit_host = rabbit_host
        self.broker = broker

    def queue(self, queue_name: str) -> MessageMiddleware:
        if self.transport == TRANSPORT_LOCAL:
            return LocalMessageQueue(self.broker, queue_name)
        return MessageMiddlewareQueue(self.rabbit_host, queue_name)

    def exchange(self, exchange_name: str, consumer_id: Optional[str] = None) -> MessageMiddleware:
        if self.transport == TRANSPORT_LOCAL:
            return LocalMessageExchange(self.broker, exchange_name, consumer_id)
        return MessageMiddlewareExchange(self.rabbit_host, exchange_name, consumer_id, "fanout")


def _close_all(middlewares):
    for middleware in middlewares:
        if middleware is None:
            continue
        try:
            middleware.close()
        except MessageMiddlewareCloseError as e:
            logging.warning(f"action: close_middleware | result: fail | error:{e}")


# =========================================
# WORK CHANNEL
# - Coordinador + workers: broadcast de parametros, scatter de chunks
#   y reduccion de vectores parciales en el coordinador.
# =========================================
class WorkChannel:
    def __init__(self, node_id: int, topology: Topology, factory: MiddlewareFactory):
        self.node_id = node_id
        self.topology = topology
        self.role = topology.role_of(node_id)
        if self.role == NodeRole.ERROR_COLLECTOR:
            raise ValueError("el error collector no participa del work channel")

        self._parameters: Optional[MessageMiddleware] = None
        self._chunks: Dict[int, MessageMiddleware] = {}
        self._reduce: Optional[MessageMiddleware] = None

        if self.role == NodeRole.COORDINATOR:
            self._parameters = factory.exchange(RUN_PARAMETERS_EXCHANGE)
            # los workers pueden no estar conectados; sus bindings tienen que existir antes del broadcast
            for worker_id in topology.worker_ids:
                self._parameters.declare_consumer(worker_consumer_id(worker_id))
                self._chunks[worker_id] = factory.queue(worker_queue_name(worker_id))
            self._reduce = factory.queue(REDUCE_QUEUE)
        else:
            self._parameters = factory.exchange(RUN_PARAMETERS_EXCHANGE, worker_consumer_id(node_id))
            self._chunks[node_id] = factory.queue(worker_queue_name(node_id))
            self._reduce = factory.queue(REDUCE_QUEUE)

    def _require(self, role: NodeRole, operation: str):
        if self.role != role:
            raise ProtocolError(f"{operation} es una operacion de {role.value}, el nodo {self.node_id} es {self.role.value}")

    def _receive_envelope(self, middleware: MessageMiddleware, expected_tag: int,
                          timeout: Optional[float]) -> Optional[Envelope]:
        body = middleware.receive(timeout)
        if body is None:
            return None
        envelope = Envelope.deserialize(body)
        if envelope.tag != expected_tag:
            raise ProtocolError(f"el nodo {self.node_id} esperaba el tag {expected_tag}, llego {envelope!r}")
        return envelope

    # ---- lado coordinador ----
    def broadcast_parameters(self, params: RunParameters):
        self._require(NodeRole.COORDINATOR, "broadcast_parameters")
        self._parameters.send(Envelope(self.node_id, TAG_RUN_PARAMETERS, params.encode()).serialize())
        logging.debug(f"action: broadcast_parameters | result: success | params:{params}")

    def scatter(self, chunks: Sequence[SalesChunk]):
        self._require(NodeRole.COORDINATOR, "scatter")
        for chunk in chunks:
            try:
                middleware = self._chunks[chunk.owner_worker_id]
            except KeyError:
                raise ProtocolError(f"el dueño del chunk {chunk.owner_worker_id} no es un worker de esta corrida")
            middleware.send(Envelope(self.node_id, TAG_CHUNK, chunk.serialize()).serialize())
            logging.debug(f"action: send_chunk | result: success | worker:{chunk.owner_worker_id} | records:{len(chunk)}")

    def gather_partials(self, timeout: Optional[float] = None) -> List[PartialAggregateMessage]:
        """
        Bloquea hasta que cada worker de la topologia aporto su vector parcial.
        """
        self._require(NodeRole.COORDINATOR, "gather_partials")
        pending = set(self.topology.worker_ids)
        partials: List[PartialAggregateMessage] = []
        while pending:
            envelope = self._receive_envelope(self._reduce, TAG_PARTIAL_AGGREGATE, timeout)
            if envelope is None:
                raise TimeoutError(f"timeout de la reduccion esperando a los workers {sorted(pending)}")
            if envelope.sender_id not in pending:
                logging.warning(f"action: gather_partials | result: ignored | sender:{envelope.sender_id}")
                continue
            partial = PartialAggregateMessage.decode(envelope.payload)
            if partial.worker_id != envelope.sender_id:
                raise ProtocolError(f"parcial del worker {partial.worker_id} enviado por el nodo {envelope.sender_id}")
            pending.discard(envelope.sender_id)
            partials.append(partial)
            logging.debug(f"action: gather_partials | result: in_progress | worker:{envelope.sender_id} | pending:{len(pending)}")
        return partials

    # ---- lado worker ----
    def receive_parameters(self, timeout: Optional[float] = None) -> Optional[RunParameters]:
        self._require(NodeRole.WORKER, "receive_parameters")
        envelope = self._receive_envelope(self._parameters, TAG_RUN_PARAMETERS, timeout)
        if envelope is None:
            return None
        if envelope.sender_id != self.topology.coordinator_id:
            raise ProtocolError(f"parametros enviados por el nodo {envelope.sender_id}, se esperaba al coordinador")
        return RunParameters.decode(envelope.payload)

    def receive_chunk(self, timeout: Optional[float] = None) -> Optional[SalesChunk]:
        self._require(NodeRole.WORKER, "receive_chunk")
        envelope = self._receive_envelope(self._chunks[self.node_id], TAG_CHUNK, timeout)
        if envelope is None:
            return None
        return SalesChunk.deserialize(envelope.payload)

    def contribute(self, vector: AggregateVector):
        self._require(NodeRole.WORKER, "contribute")
        message = PartialAggregateMessage(self.node_id, vector)
        self._reduce.send(Envelope(self.node_id, TAG_PARTIAL_AGGREGATE, message.encode()).serialize())

    def close(self):
        _close_all([self._parameters, self._reduce, *self._chunks.values()])


# =========================================
# ERROR CHANNEL
# - Cualquier nodo -> error collector. El fin lo decide la identidad del
#   emisor (el coordinador), nunca el contenido.
# =========================================
class ErrorChannel:
    def __init__(self, node_id: int, topology: Topology, factory: MiddlewareFactory):
        self.node_id = node_id
        self.topology = topology
        self.role = topology.role_of(node_id)
        self._queue = factory.queue(ERROR_COLLECTOR_QUEUE)

    def report(self, kind: ErrorKind, record: SalesRecord):
        self._queue.send(ErrorReport(self.node_id, kind, record).to_envelope().serialize())

    def send_termination(self):
        if self.role != NodeRole.COORDINATOR:
            raise ProtocolError(f"solo el coordinador termina al collector, el nodo {self.node_id} es {self.role.value}")
        self._queue.send(Envelope(self.node_id, TAG_COLLECTOR_END).serialize())

    def start_consuming(self, on_envelope: Callable[[Envelope], None]):
        if self.role != NodeRole.ERROR_COLLECTOR:
            raise ProtocolError(f"el nodo {self.node_id} es {self.role.value}, solo el collector consume errores")
        self._queue.start_consuming(lambda body: on_envelope(Envelope.deserialize(body)))

    def stop_consuming(self):
        self._queue.stop_consuming()

    def close(self):
        _close_all([self._queue])

import logging
import multiprocessing
import time
from typing import Dict, Iterable, List, Optional

from .middleware_interface import (
    MessageMiddleware,
    MessageMiddlewareCloseError,
    MessageMiddlewareDeleteError,
    MessageMiddlewareMessageError,
)

POLL_INTERVAL = 0.5
RECEIVE_POLL = 0.01


class LocalBroker:
    """
    Broker en memoria para correr todos los roles en un mismo host.

    Cada cola es una multiprocessing.SimpleQueue creada por el proceso padre
    antes de lanzar a los hijos; los exchanges fanout se resuelven como una
    lista de colas bindeadas. Se pasa como argumento a cada Process.

    El put de una SimpleQueue escribe en el pipe antes de volver (no hay
    feeder thread), asi que dos envios de un mismo proceso a colas distintas
    quedan visibles en el orden en que se hicieron: los reportes de error de
    un worker llegan al collector antes de que su vector parcial llegue al
    coordinador. Cada cola tiene un unico consumidor.
    """

    def __init__(self, queue_names: Iterable[str], exchanges: Optional[Dict[str, Iterable[str]]] = None,
                 context=None):
        ctx = context or multiprocessing.get_context()
        self._queues: Dict[str, multiprocessing.SimpleQueue] = {}
        self._bindings: Dict[str, List[str]] = {}

        for name in queue_names:
            self._queues[name] = ctx.SimpleQueue()

        for exchange_name, consumer_ids in (exchanges or {}).items():
            bound = []
            for consumer_id in consumer_ids:
                queue_name = self.exchange_queue_name(exchange_name, consumer_id)
                self._queues[queue_name] = ctx.SimpleQueue()
                bound.append(queue_name)
            self._bindings[exchange_name] = bound

    @staticmethod
    def exchange_queue_name(exchange_name: str, consumer_id: str) -> str:
        # mismo nombre que usa MessageMiddlewareExchange
        return f"{exchange_name}_{consumer_id}"

    def queue(self, queue_name: str):
        try:
            return self._queues[queue_name]
        except KeyError:
            raise MessageMiddlewareMessageError(f"Cola no declarada en el broker local: {queue_name}")

    def bound_queues(self, exchange_name: str) -> List[str]:
        try:
            return list(self._bindings[exchange_name])
        except KeyError:
            raise MessageMiddlewareMessageError(f"Exchange no declarado en el broker local: {exchange_name}")


class _LocalConsumer:
    """Consumo bloqueante sobre una cola del broker."""

    def __init__(self, broker: LocalBroker, queue_name: str):
        self.broker = broker
        self.queue_name = queue_name
        self._consuming = False
        self._closed = False

    def _own_queue(self):
        return self.broker.queue(self.queue_name)

    def start_consuming(self, on_message_callback):
        self._consuming = True
        while self._consuming:
            body = self.receive(POLL_INTERVAL)
            if body is None:
                continue
            try:
                on_message_callback(body)
            except Exception as e:
                raise MessageMiddlewareMessageError(f"Error procesando mensaje: {e}")

    def stop_consuming(self):
        self._consuming = False

    def receive(self, timeout: Optional[float] = None) -> Optional[bytes]:
        own = self._own_queue()
        if timeout is not None:
            # SimpleQueue.get no tiene timeout; con un unico consumidor,
            # si empty() da False el get siguiente no bloquea
            deadline = time.monotonic() + timeout
            while own.empty():
                if time.monotonic() >= deadline:
                    return None
                time.sleep(RECEIVE_POLL)
        body = own.get()
        logging.debug(f"action: middleware_received_msg | queue:{self.queue_name} | size:{len(body)}")
        return body

    def close(self):
        if self._closed:
            raise MessageMiddlewareCloseError(f"Cola ya cerrada: {self.queue_name}")
        self._consuming = False
        self._closed = True

    def delete(self):
        own = self._own_queue()
        try:
            while not own.empty():
                own.get()
        except (OSError, ValueError) as e:
            raise MessageMiddlewareDeleteError(f"Error eliminando queue: {e}")


class LocalMessageQueue(_LocalConsumer, MessageMiddleware):
    def __init__(self, broker: LocalBroker, queue_name: str):
        super().__init__(broker, queue_name)
        # falla al abrir una cola no declarada
        self._own_queue()

    def send(self, message: bytes):
        try:
            self._own_queue().put(message)
        except (OSError, ValueError) as e:
            raise MessageMiddlewareMessageError(f"Error al enviar: {e}")
        logging.debug(f"action: middleware_sent_msg | queue:{self.queue_name} | size:{len(message)}")


class LocalMessageExchange(_LocalConsumer, MessageMiddleware):
    def __init__(self, broker: LocalBroker, exchange_name: str, consumer_id: Optional[str] = None):
        queue_name = broker.exchange_queue_name(exchange_name, consumer_id) if consumer_id is not None else None
        super().__init__(broker, queue_name)
        self.exchange_name = exchange_name
        self.consumer_id = consumer_id
        broker.bound_queues(exchange_name)

    def _own_queue(self):
        if self.queue_name is None:
            raise MessageMiddlewareMessageError(
                f"Exchange {self.exchange_name} abierto sin consumer_id: no puede consumir"
            )
        return super()._own_queue()

    def declare_consumer(self, consumer_id: str):
        queue_name = self.broker.exchange_queue_name(self.exchange_name, consumer_id)
        if queue_name not in self.broker.bound_queues(self.exchange_name):
            raise MessageMiddlewareMessageError(
                f"Consumidor {consumer_id} no bindeado al exchange {self.exchange_name}"
            )

    def send(self, message: bytes):
        try:
            for queue_name in self.broker.bound_queues(self.exchange_name):
                self.broker.queue(queue_name).put(message)
        except (OSError, ValueError) as e:
            raise MessageMiddlewareMessageError(f"Error al enviar mensaje: {e}")
        logging.debug(f"action: middleware_sent_msg | exchange:{self.exchange_name} | size:{len(message)}")

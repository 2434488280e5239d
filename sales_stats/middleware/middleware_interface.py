import pika
import logging
import time
import socket
from abc import ABC, abstractmethod
from typing import Optional

logging.getLogger("pika").setLevel(logging.CRITICAL)

RETRY_DELAY = 3
HEARTBEAT = 3000
BLOCKED_CONNECTION_TIMEOUT = 30
CONNECT_ATTEMPTS = 15


class MessageMiddlewareMessageError(Exception):
    pass


class MessageMiddlewareDisconnectedError(Exception):
    pass


class MessageMiddlewareCloseError(Exception):
    pass


class MessageMiddlewareDeleteError(Exception):
    pass


class MessageMiddleware(ABC):
    @abstractmethod
    def start_consuming(self, on_message_callback):
        pass

    @abstractmethod
    def stop_consuming(self):
        pass

    @abstractmethod
    def send(self, message: bytes):
        pass

    @abstractmethod
    def receive(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """Recepcion bloqueante de un mensaje. Devuelve None si vence el timeout."""
        pass

    @abstractmethod
    def close(self):
        pass

    @abstractmethod
    def delete(self):
        pass


class _RabbitMiddleware(MessageMiddleware):
    """
    Una conexión bloqueante de pika por instancia. Las subclases declaran
    su topología en ``_declare`` y dicen a dónde publican en ``_publish_target``.
    ``queue_name`` es la cola que consume esta instancia (None: solo publica).
    """

    def __init__(self, host: str):
        self.host = host
        self.connection = None
        self.channel = None

    def _declare(self):
        raise NotImplementedError

    def _publish_target(self, routing_key: Optional[str]):
        raise NotImplementedError

    def _connect(self):
        for attempt in range(1, CONNECT_ATTEMPTS + 1):
            try:
                self.connection = pika.BlockingConnection(
                    pika.ConnectionParameters(
                        host=self.host,
                        heartbeat=HEARTBEAT,
                        blocked_connection_timeout=BLOCKED_CONNECTION_TIMEOUT,
                    )
                )
                self.channel = self.connection.channel()
                self._declare()
                self.channel.basic_qos(prefetch_count=1)
                self.channel.confirm_delivery()
                return
            except (pika.exceptions.AMQPConnectionError, socket.gaierror) as e:
                logging.warning(
                    f"action: rabbit_connect | result: retry | host:{self.host} "
                    f"| attempt:{attempt}/{CONNECT_ATTEMPTS} | error:{e}"
                )
                if attempt == CONNECT_ATTEMPTS:
                    raise MessageMiddlewareDisconnectedError(f"Error al conectar con RabbitMQ: {e}")
                time.sleep(RETRY_DELAY)

    def _reconnect_and_fail(self, during: str):
        self._connect()
        raise MessageMiddlewareDisconnectedError(f"Conexión perdida {during}.")

    def _require_queue(self):
        if self.queue_name is None:
            raise MessageMiddlewareMessageError(f"{self!r} no tiene cola propia: no puede consumir")

    def start_consuming(self, on_message_callback):
        """Consume con ACK manual; un callback que falla deja el mensaje en la cola."""
        self._require_queue()

        def callback(ch, method, properties, body):
            try:
                on_message_callback(body)
            except Exception as e:
                ch.basic_nack(delivery_tag=method.delivery_tag, requeue=True)
                raise MessageMiddlewareMessageError(f"Error procesando mensaje: {e}")
            ch.basic_ack(delivery_tag=method.delivery_tag)

        try:
            self.channel.basic_consume(queue=self.queue_name, on_message_callback=callback, auto_ack=False)
            self.channel.start_consuming()
        except pika.exceptions.AMQPConnectionError:
            self._reconnect_and_fail("durante el consumo")
        except MessageMiddlewareMessageError:
            raise
        except Exception as e:
            raise MessageMiddlewareMessageError(f"Error en consumo: {e}")

    def stop_consuming(self):
        try:
            self.channel.stop_consuming()
        except pika.exceptions.AMQPConnectionError:
            raise MessageMiddlewareDisconnectedError("Conexión perdida al detener consumo.")

    def send(self, message: bytes, routing_key: Optional[str] = None):
        exchange, key = self._publish_target(routing_key)
        try:
            self.channel.basic_publish(
                exchange=exchange,
                routing_key=key,
                body=message,
                properties=pika.BasicProperties(delivery_mode=2),
            )
        except pika.exceptions.AMQPConnectionError:
            self._reconnect_and_fail("al enviar mensaje")
        except Exception as e:
            raise MessageMiddlewareMessageError(f"Error al enviar mensaje: {e}")
        logging.debug(f"action: middleware_sent_msg | target:{exchange or key} | size:{len(message)}")

    def receive(self, timeout: Optional[float] = None) -> Optional[bytes]:
        self._require_queue()
        try:
            for method, _properties, body in self.channel.consume(
                queue=self.queue_name, auto_ack=False, inactivity_timeout=timeout
            ):
                if method is None:
                    return None
                self.channel.basic_ack(delivery_tag=method.delivery_tag)
                logging.debug(f"action: middleware_received_msg | queue:{self.queue_name} | size:{len(body)}")
                return body
        except pika.exceptions.AMQPConnectionError:
            self._reconnect_and_fail("al recibir mensaje")
        finally:
            # devuelve a la cola lo prefetcheado y no entregado
            if self.channel.is_open:
                self.channel.cancel()

    def close(self):
        try:
            if self.connection is not None and self.connection.is_open:
                self.connection.close()
        except Exception as e:
            raise MessageMiddlewareCloseError(f"Error cerrando conexión: {e}")


# ----------------------------
# Exchange Middleware
# ----------------------------
class MessageMiddlewareExchange(_RabbitMiddleware):
    """
    Exchange de RabbitMQ. Si consumer_id es None la instancia solo publica y
    no declara una cola propia.
    """

    def __init__(self, host: str, exchange_name: str, consumer_id: Optional[str] = None,
                 exchange_type: str = "fanout", routing_keys=None):
        super().__init__(host)
        self.exchange_name = exchange_name
        self.exchange_type = exchange_type
        self.consumer_id = consumer_id
        self.queue_name = self.queue_name_for(exchange_name, consumer_id) if consumer_id is not None else None
        self.routing_keys = routing_keys or [""]
        self._connect()

    def __repr__(self):
        return f"MessageMiddlewareExchange({self.exchange_name}, consumer={self.consumer_id})"

    @staticmethod
    def queue_name_for(exchange_name: str, consumer_id: str) -> str:
        return f"{exchange_name}_{consumer_id}"

    def _declare(self):
        self.channel.exchange_declare(exchange=self.exchange_name, exchange_type=self.exchange_type, durable=True)
        if self.queue_name is not None:
            self._bind(self.queue_name)

    def _bind(self, queue_name: str):
        self.channel.queue_declare(queue=queue_name, durable=True)
        for rk in self.routing_keys:
            self.channel.queue_bind(exchange=self.exchange_name, queue=queue_name, routing_key=rk)

    def declare_consumer(self, consumer_id: str):
        """Declara y bindea la cola de un consumidor que todavía no se conectó."""
        try:
            self._bind(self.queue_name_for(self.exchange_name, consumer_id))
        except pika.exceptions.AMQPConnectionError:
            self._reconnect_and_fail("al declarar consumidor")

    def _publish_target(self, routing_key: Optional[str]):
        return self.exchange_name, routing_key or ""

    def delete(self):
        try:
            if self.queue_name is not None:
                self.channel.queue_delete(queue=self.queue_name)
            self.channel.exchange_delete(exchange=self.exchange_name)
        except Exception as e:
            raise MessageMiddlewareDeleteError(f"Error eliminando exchange: {e}")


# ----------------------------
# Queue Middleware
# ----------------------------
class MessageMiddlewareQueue(_RabbitMiddleware):
    def __init__(self, host: str, queue_name: str):
        super().__init__(host)
        self.queue_name = queue_name
        self._connect()

    def __repr__(self):
        return f"MessageMiddlewareQueue({self.queue_name})"

    def _declare(self):
        self.channel.queue_declare(queue=self.queue_name, durable=True)

    def _publish_target(self, routing_key: Optional[str]):
        # default exchange: la routing key es el nombre de la cola
        return "", self.queue_name

    def delete(self):
        try:
            self.channel.queue_delete(queue=self.queue_name)
        except Exception as e:
            raise MessageMiddlewareDeleteError(f"Error eliminando queue: {e}")

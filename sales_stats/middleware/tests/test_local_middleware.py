import threading
import time

import pytest

from sales_stats.middleware.local_middleware import LocalBroker, LocalMessageExchange, LocalMessageQueue
from sales_stats.middleware.middleware_interface import MessageMiddlewareMessageError


@pytest.fixture
def broker():
    return LocalBroker(["task_queue", "other_queue"], {"fanout_test": ["c1", "c2"]})


def test_working_queue_1_to_1(broker):
    producer = LocalMessageQueue(broker, "task_queue")
    consumer = LocalMessageQueue(broker, "task_queue")

    producer.send(b"mensaje unico")

    assert consumer.receive(timeout=2) == b"mensaje unico"
    assert consumer.receive(timeout=0.1) is None


def test_queue_preserves_order_from_one_producer(broker):
    producer = LocalMessageQueue(broker, "task_queue")
    consumer = LocalMessageQueue(broker, "task_queue")

    for i in range(5):
        producer.send(f"msg{i}".encode())

    assert [consumer.receive(timeout=2) for _ in range(5)] == [f"msg{i}".encode() for i in range(5)]


def test_send_is_readable_as_soon_as_it_returns(broker):
    first = LocalMessageQueue(broker, "task_queue")
    second = LocalMessageQueue(broker, "other_queue")

    first.send(b"report")
    second.send(b"partial")

    # el segundo envio es visible, entonces el primero tambien
    assert second.receive(timeout=0) == b"partial"
    assert first.receive(timeout=0) == b"report"


def test_receive_without_timeout_blocks_until_a_message_arrives(broker):
    consumer = LocalMessageQueue(broker, "task_queue")
    producer = LocalMessageQueue(broker, "task_queue")
    timer = threading.Timer(0.2, producer.send, args=(b"tarde",))
    timer.start()

    assert consumer.receive() == b"tarde"
    timer.join()


def test_exchange_1_to_n(broker):
    producer = LocalMessageExchange(broker, "fanout_test")
    consumer1 = LocalMessageExchange(broker, "fanout_test", "c1")
    consumer2 = LocalMessageExchange(broker, "fanout_test", "c2")

    producer.send(b"broadcast")

    assert consumer1.receive(timeout=2) == b"broadcast"
    assert consumer2.receive(timeout=2) == b"broadcast"


def test_producer_only_exchange_cannot_consume(broker):
    producer = LocalMessageExchange(broker, "fanout_test")
    with pytest.raises(MessageMiddlewareMessageError):
        producer.receive(timeout=0.1)


def test_declare_consumer_rejects_unbound_consumer(broker):
    producer = LocalMessageExchange(broker, "fanout_test")
    producer.declare_consumer("c1")
    with pytest.raises(MessageMiddlewareMessageError):
        producer.declare_consumer("c3")


def test_undeclared_queue_fails_fast(broker):
    with pytest.raises(MessageMiddlewareMessageError):
        LocalMessageQueue(broker, "nope")


def test_start_consuming_until_stop_from_callback(broker):
    producer = LocalMessageQueue(broker, "task_queue")
    consumer = LocalMessageQueue(broker, "task_queue")
    results = []

    def callback(msg):
        results.append(msg)
        if msg == b"stop":
            consumer.stop_consuming()

    for body in (b"a", b"b", b"stop"):
        producer.send(body)

    t = threading.Thread(target=consumer.start_consuming, args=(callback,), daemon=True)
    t.start()
    t.join(timeout=5)

    assert not t.is_alive()
    assert results == [b"a", b"b", b"stop"]


def test_stop_consuming_from_another_thread(broker):
    consumer = LocalMessageQueue(broker, "task_queue")
    t = threading.Thread(target=consumer.start_consuming, args=(lambda msg: None,), daemon=True)
    t.start()
    time.sleep(0.2)

    consumer.stop_consuming()
    t.join(timeout=3)

    assert not t.is_alive()


def test_callback_error_is_wrapped(broker):
    producer = LocalMessageQueue(broker, "task_queue")
    consumer = LocalMessageQueue(broker, "task_queue")
    producer.send(b"boom")

    def callback(msg):
        raise RuntimeError("falla")

    with pytest.raises(MessageMiddlewareMessageError):
        consumer.start_consuming(callback)


def test_delete_drains_queue(broker):
    queue = LocalMessageQueue(broker, "task_queue")
    queue.send(b"x")
    queue.send(b"y")

    queue.delete()

    assert queue.receive(timeout=0.1) is None

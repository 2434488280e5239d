import unittest
from unittest.mock import MagicMock, patch

import pika

from sales_stats.middleware.middleware_interface import (
    CONNECT_ATTEMPTS,
    MessageMiddlewareDisconnectedError,
    MessageMiddlewareExchange,
    MessageMiddlewareMessageError,
    MessageMiddlewareQueue,
)


class TestRabbitMiddleware(unittest.TestCase):
    def setUp(self):
        self.connection_patcher = patch(
            'sales_stats.middleware.middleware_interface.pika.BlockingConnection'
        )
        self.MockConnection = self.connection_patcher.start()
        self.channel = MagicMock()
        self.MockConnection.return_value.channel.return_value = self.channel

    def tearDown(self):
        self.connection_patcher.stop()

    def test_queue_declares_durable_queue(self):
        MessageMiddlewareQueue("rabbitmq", "to_worker_2")
        self.channel.queue_declare.assert_called_once_with(queue="to_worker_2", durable=True)

    def test_queue_send_publishes_to_default_exchange(self):
        queue = MessageMiddlewareQueue("rabbitmq", "to_worker_2")
        queue.send(b"payload")

        kwargs = self.channel.basic_publish.call_args.kwargs
        self.assertEqual(kwargs["exchange"], "")
        self.assertEqual(kwargs["routing_key"], "to_worker_2")
        self.assertEqual(kwargs["body"], b"payload")

    def test_receive_acks_and_cancels(self):
        method = MagicMock(delivery_tag=7)
        self.channel.consume.return_value = iter([(method, None, b"body")])
        queue = MessageMiddlewareQueue("rabbitmq", "to_error_collector")

        self.assertEqual(queue.receive(timeout=1), b"body")
        self.channel.basic_ack.assert_called_once_with(delivery_tag=7)
        self.channel.cancel.assert_called_once()

    def test_receive_timeout_returns_none(self):
        self.channel.consume.return_value = iter([(None, None, None)])
        queue = MessageMiddlewareQueue("rabbitmq", "to_error_collector")

        self.assertIsNone(queue.receive(timeout=0.1))
        self.channel.basic_ack.assert_not_called()

    def test_producer_exchange_declares_no_queue(self):
        exchange = MessageMiddlewareExchange("rabbitmq", "run_parameters_exchange")

        self.assertIsNone(exchange.queue_name)
        self.channel.exchange_declare.assert_called_once()
        self.channel.queue_declare.assert_not_called()
        with self.assertRaises(MessageMiddlewareMessageError):
            exchange.receive(timeout=0.1)

    def test_declare_consumer_binds_named_queue(self):
        exchange = MessageMiddlewareExchange("rabbitmq", "run_parameters_exchange")
        exchange.declare_consumer("worker_2")

        self.channel.queue_declare.assert_called_once_with(queue="run_parameters_exchange_worker_2", durable=True)
        self.channel.queue_bind.assert_called_once_with(
            exchange="run_parameters_exchange", queue="run_parameters_exchange_worker_2", routing_key=""
        )

    def test_consumer_exchange_uses_shared_queue_naming(self):
        exchange = MessageMiddlewareExchange("rabbitmq", "run_parameters_exchange", "worker_3")
        self.assertEqual(exchange.queue_name, "run_parameters_exchange_worker_3")

    def test_exchange_send_publishes_to_exchange(self):
        exchange = MessageMiddlewareExchange("rabbitmq", "run_parameters_exchange")
        exchange.send(b"PARAMS;1;2017;G")

        kwargs = self.channel.basic_publish.call_args.kwargs
        self.assertEqual(kwargs["exchange"], "run_parameters_exchange")
        self.assertEqual(kwargs["routing_key"], "")

    def test_failing_callback_nacks_with_requeue(self):
        queue = MessageMiddlewareQueue("rabbitmq", "to_error_collector")
        method = MagicMock(delivery_tag=3)

        def fake_start_consuming():
            callback = self.channel.basic_consume.call_args.kwargs["on_message_callback"]
            callback(self.channel, method, None, b"body")
        self.channel.start_consuming.side_effect = fake_start_consuming

        def failing(body):
            raise ValueError("boom")

        with self.assertRaises(MessageMiddlewareMessageError):
            queue.start_consuming(failing)
        self.channel.basic_nack.assert_called_once_with(delivery_tag=3, requeue=True)
        self.channel.basic_ack.assert_not_called()

    @patch('sales_stats.middleware.middleware_interface.time.sleep')
    def test_connect_gives_up_after_retries(self, mock_sleep):
        self.MockConnection.side_effect = pika.exceptions.AMQPConnectionError("down")

        with self.assertRaises(MessageMiddlewareDisconnectedError):
            MessageMiddlewareQueue("rabbitmq", "to_worker_2")
        self.assertEqual(self.MockConnection.call_count, CONNECT_ATTEMPTS)
        self.assertEqual(mock_sleep.call_count, CONNECT_ATTEMPTS - 1)


if __name__ == '__main__':
    unittest.main()

"""RabbitMQ publish/subscribe transport.

Topics are carried on the ``amq.topic`` exchange, which is where RabbitMQ's
MQTT plugin routes MQTT traffic. Topic strings are translated to routing
keys the same way the plugin does it (``/`` and ``.`` swap places), so a
worker speaking MQTT to the same broker sees the same topics we do.
"""

from __future__ import annotations

import functools
import threading
from typing import Optional, Set

import pika
import pika.exceptions

from ...log import get_component_logger
from ..base import Callbacks, Transport, TransportConnectionError


_EXCHANGE = "amq.topic"
_SWAP = str.maketrans({"/": ".", ".": "/"})


def routing_key(topic: str) -> str:
    """Translate an MQTT-style *topic* to an AMQP routing key."""
    return topic.translate(_SWAP)


def topic_name(key: str) -> str:
    """Translate an AMQP routing *key* back to an MQTT-style topic."""
    return key.translate(_SWAP)


def _broker_params(endpoint, credentials) -> pika.ConnectionParameters:
    host, port = endpoint
    username, password = credentials
    return pika.ConnectionParameters(
        host=host,
        port=int(port),
        credentials=pika.PlainCredentials(username, password),
        heartbeat=600,
        blocked_connection_timeout=300,
    )


class Client(Transport):
    """ Publish and subscribe through a RabbitMQ topic exchange. All channel
        operations happen on a dedicated connection thread; calls from other
        threads are handed over via ``add_callback_threadsafe``.
    """

    join_timeout = 5

    def __init__(self):
        Transport.__init__(self)
        self.log = get_component_logger("RabbitMQTransport")

        self._bindings: Set[str] = set()
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._connection = None
        self._channel = None
        self._queue_name = None
        self._thread: Optional[threading.Thread] = None
        self._closing = False

    @property
    def is_open(self) -> bool:
        return self._ready.is_set()

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    def connect(self, endpoint, credentials, callbacks: Optional[Callbacks] = None) -> None:
        if callbacks is None:
            callbacks = Callbacks()

        if self._thread is not None and self._thread.is_alive():
            raise TransportConnectionError("already connected; disconnect() first")

        self._last_connect = (endpoint, credentials, callbacks)
        self._closing = False
        self._ready.clear()

        params = _broker_params(endpoint, credentials)
        self._thread = threading.Thread(target=self._run, args=(params, callbacks), daemon=True)
        self._thread.start()

    def disconnect(self) -> None:
        thread = self._thread
        if thread is None:
            return

        self._closing = True

        with self._lock:
            connection = self._connection
            self._ready.clear()
            self._bindings.clear()

        if connection is not None:
            try:
                connection.add_callback_threadsafe(self._stop)
            except pika.exceptions.AMQPError as error:
                # The connection thread is already on its way out.
                self.log.debug("disconnect_stale", error=str(error))

        thread.join(self.join_timeout)
        self._thread = None

    def publish(self, topic: str, payload: bytes) -> None:
        with self._lock:
            if not self._ready.is_set():
                raise TransportConnectionError(f"not connected; cannot publish to {topic}")
            self._connection.add_callback_threadsafe(
                functools.partial(self._publish, routing_key(topic), payload)
            )

    def subscribe(self, topic: str) -> None:
        key = routing_key(topic)
        with self._lock:
            self._bindings.add(key)
            if self._ready.is_set():
                self._connection.add_callback_threadsafe(functools.partial(self._bind, key))

    def unsubscribe(self, topic: str) -> None:
        key = routing_key(topic)
        with self._lock:
            self._bindings.discard(key)
            if self._ready.is_set():
                self._connection.add_callback_threadsafe(functools.partial(self._unbind, key))

    # --- connection thread ---

    def _run(self, params: pika.ConnectionParameters, callbacks: Callbacks) -> None:
        try:
            connection = pika.BlockingConnection(params)
            channel = connection.channel()
            result = channel.queue_declare(queue="", exclusive=True, auto_delete=True)
            queue_name = result.method.queue
            channel.basic_consume(
                queue=queue_name,
                on_message_callback=self._on_message,
                auto_ack=True,
            )
        except pika.exceptions.AMQPError as error:
            self.log.warning("connect_failed", host=params.host, port=params.port, error=repr(error))
            callbacks.on_failure(error)
            return

        if self._closing:
            # disconnect() was called while the connection was being made.
            connection.close()
            return

        # Apply any bindings requested before the channel was ready.

        with self._lock:
            self._connection = connection
            self._channel = channel
            self._queue_name = queue_name
            for key in self._bindings:
                self._bind(key)
            self._ready.set()

        self.log.info("connected", host=params.host, port=params.port, queue=queue_name)
        callbacks.on_success()

        try:
            channel.start_consuming()
        except pika.exceptions.AMQPError as error:
            if not self._closing:
                # Bindings die with the queue; nothing carries over to the
                # next connection.
                with self._lock:
                    self._ready.clear()
                    self._bindings.clear()
                self.log.warning("connection_lost", error=repr(error))
                callbacks.on_connection_lost(error)
        finally:
            with self._lock:
                self._ready.clear()
                self._connection = None
                self._channel = None
            if connection.is_open:
                connection.close()
            self.log.info("disconnected", host=params.host, port=params.port)

    def _stop(self) -> None:
        self._channel.stop_consuming()

    def _bind(self, key: str) -> None:
        self._channel.queue_bind(exchange=_EXCHANGE, queue=self._queue_name, routing_key=key)

    def _unbind(self, key: str) -> None:
        self._channel.queue_unbind(exchange=_EXCHANGE, queue=self._queue_name, routing_key=key)

    def _publish(self, key: str, payload: bytes) -> None:
        self._channel.basic_publish(exchange=_EXCHANGE, routing_key=key, body=payload)

    def _on_message(self, _ch, method, _properties, body: bytes) -> None:
        topic = topic_name(method.routing_key)
        try:
            self._deliver(topic, body)
        except Exception:
            # An exception escaping here would tear down start_consuming().
            self.log.exception("handler_failed", topic=topic)

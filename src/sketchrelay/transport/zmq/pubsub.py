"""ZeroMQ publish/subscribe transport.

The broker is expected to run a forwarding proxy: an XPUB socket on the
configured port, and an XSUB socket on the port immediately above it. We
connect a SUB socket to the former and an XPUB socket to the latter.

Publishing through XPUB rather than PUB lets us see the subscriptions the
broker forwards upstream. A ZeroMQ publisher silently drops anything that
no known subscriber wants, so the client only reports itself ready once
both sockets have completed their handshake and at least one subscription
has arrived; a job whose topic no subscriber matches yet is held until one
does.

Each message is two frames: the topic, then the payload.
"""

from __future__ import annotations

import atexit
import itertools
import queue
import threading
import weakref
from typing import List, Optional, Set, Tuple

import zmq
import zmq.utils.monitor

from ...log import get_component_logger
from ..base import Callbacks, Transport, TransportConnectionError


zmq_context = zmq.Context()
clients = weakref.WeakSet()
signal_ids = itertools.count()


def to_frames(topic: str, payload: bytes):
    return (topic.encode("utf-8"), bytes(payload))


def from_frames(parts):
    if len(parts) != 2:
        raise ValueError(f"expected 2 frames, received {len(parts)}")
    topic, payload = parts
    return topic.decode("utf-8"), payload


class _Link:
    """ State owned by the socket thread for a single connection.
    """

    def __init__(self, sub, pub):
        self.sub = sub
        self.pub = pub
        self.handshakes: Set[str] = set()
        self.upstream: Set[bytes] = set()
        self.topics: Set[str] = set()
        self.held: List[Tuple[bytes, bytes]] = list()
        self.connected = False
        self.failed = False

    def wanted(self, topic: bytes) -> bool:
        for prefix in self.upstream:
            if topic.startswith(prefix):
                return True
        return False

    def send(self, frames) -> bool:
        if self.wanted(frames[0]):
            self.pub.send_multipart(frames)
            return True
        self.held.append(frames)
        return False

    def flush(self) -> int:
        held = self.held
        self.held = list()
        sent = 0
        for frames in held:
            sent += self.send(frames)
        return sent

    def forget(self) -> None:
        """ Drop every local subscription filter. ZeroMQ would otherwise
            replay them on its own when it reconnects.
        """

        for topic in self.topics:
            self.sub.setsockopt(zmq.UNSUBSCRIBE, topic.encode("utf-8"))
        self.topics.clear()


class Client(Transport):
    """ SUB/XPUB client pair. ZeroMQ sockets are not thread safe, so every
        socket operation runs on one background thread; other threads queue
        work for it and wake it through an inproc PAIR socket.
    """

    join_timeout = 5

    def __init__(self):
        Transport.__init__(self)
        self.log = get_component_logger("ZMQTransport")

        self._ready = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._sig_tx = None
        self._sig_lock = threading.Lock()
        self.shutdown = False

        clients.add(self)

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
        self._ready.clear()
        self.shutdown = False
        self._queue = queue.SimpleQueue()

        host, port = endpoint
        port = int(port)
        username, password = credentials

        sub = zmq_context.socket(zmq.SUB)
        pub = zmq_context.socket(zmq.XPUB)

        for socket in (sub, pub):
            socket.setsockopt(zmq.LINGER, 0)
            socket.plain_username = username.encode()
            socket.plain_password = password.encode()

        monitors = (sub.get_monitor_socket(), pub.get_monitor_socket())

        internal = f"inproc://pubsub.Client:signal:{next(signal_ids)}"
        sig_rx = zmq_context.socket(zmq.PAIR)
        sig_rx.bind(internal)
        sig_tx = zmq_context.socket(zmq.PAIR)
        sig_tx.connect(internal)

        try:
            sub.connect(f"tcp://{host}:{port}")
            pub.connect(f"tcp://{host}:{port + 1}")
        except zmq.ZMQError as error:
            self.log.warning("connect_failed", host=host, port=port, error=repr(error))
            for socket in (sub, pub):
                socket.disable_monitor()
            for socket in (sub, pub, sig_rx, sig_tx) + monitors:
                socket.close()
            callbacks.on_failure(error)
            return

        with self._sig_lock:
            self._sig_tx = sig_tx

        sockets = (sub, pub, sig_rx) + monitors
        self._thread = threading.Thread(target=self.run, args=(sockets, callbacks), daemon=True)
        self._thread.start()

    def disconnect(self) -> None:
        thread = self._thread
        if thread is None:
            return

        self.shutdown = True
        try:
            self._signal(("stop",))
        except TransportConnectionError:
            # The socket thread already exited.
            pass
        thread.join(self.join_timeout)

        self._close_signal()
        self._thread = None
        self._ready.clear()

    def publish(self, topic: str, payload: bytes) -> None:
        if not self._ready.is_set():
            raise TransportConnectionError(f"not connected; cannot publish to {topic}")
        self._signal(("pub", topic, payload))

    def subscribe(self, topic: str) -> None:
        self._signal(("sub", topic))

    def unsubscribe(self, topic: str) -> None:
        self._signal(("unsub", topic))

    def _signal(self, command) -> None:
        with self._sig_lock:
            if self._sig_tx is None:
                raise TransportConnectionError("not connected")
            self._queue.put(command)
            self._sig_tx.send(b"")

    def _close_signal(self) -> None:
        with self._sig_lock:
            if self._sig_tx is not None:
                self._sig_tx.close()
                self._sig_tx = None

    # --- background thread ---

    def run(self, sockets, callbacks: Callbacks) -> None:
        sub, pub, sig_rx, sub_monitor, pub_monitor = sockets

        # ZeroMQ subscriptions are prefix matches; 'result/job1' would also
        # receive 'result/job10'. Only exact matches are delivered.

        link = _Link(sub, pub)
        monitors = {sub_monitor: "sub", pub_monitor: "pub"}

        poller = zmq.Poller()
        poller.register(sub, zmq.POLLIN)
        poller.register(pub, zmq.POLLIN)
        poller.register(sig_rx, zmq.POLLIN)
        poller.register(sub_monitor, zmq.POLLIN)
        poller.register(pub_monitor, zmq.POLLIN)

        try:
            while not self.shutdown:
                for active, _flag in poller.poll(10000):
                    if active is sig_rx:
                        sig_rx.recv()
                        self._run_command(link)
                    elif active is sub:
                        self._recv(link)
                    elif active is pub:
                        self._upstream(link, callbacks)
                    else:
                        self._monitor_event(active, monitors[active], link, callbacks)
        except zmq.ContextTerminated:
            self.log.debug("context_terminated")
        finally:
            self._ready.clear()
            for socket in (sub, pub):
                try:
                    socket.disable_monitor()
                except zmq.ZMQError:
                    pass
            for socket in (sub, pub, sig_rx, sub_monitor, pub_monitor):
                socket.close()
            self._close_signal()
            self.log.info("disconnected")

    def _run_command(self, link: _Link) -> None:
        command = self._queue.get_nowait()
        kind = command[0]

        if kind == "sub":
            topic = command[1]
            if topic not in link.topics:
                link.topics.add(topic)
                link.sub.setsockopt(zmq.SUBSCRIBE, topic.encode("utf-8"))
        elif kind == "unsub":
            topic = command[1]
            if topic in link.topics:
                link.topics.discard(topic)
                link.sub.setsockopt(zmq.UNSUBSCRIBE, topic.encode("utf-8"))
        elif kind == "pub":
            if not link.send(to_frames(command[1], command[2])):
                self.log.debug("publish_held", topic=command[1])
        elif kind == "stop":
            self.shutdown = True

    def _recv(self, link: _Link) -> None:
        parts = link.sub.recv_multipart()

        try:
            topic, payload = from_frames(parts)
        except ValueError as error:
            self.log.warning("bad_frames", error=str(error))
            return

        if topic not in link.topics:
            return

        try:
            self._deliver(topic, payload)
        except Exception:
            self.log.exception("handler_failed", topic=topic)

    def _upstream(self, link: _Link, callbacks: Callbacks) -> None:
        """ Track the subscriptions forwarded to us by the broker; the first
            byte of each frame is 1 for subscribe, 0 for unsubscribe.
        """

        frame = link.pub.recv()
        if not frame:
            return

        prefix = frame[1:]
        if frame[0] == 1:
            link.upstream.add(prefix)
            if link.held:
                sent = link.flush()
                self.log.debug("publish_released", count=sent, remaining=len(link.held))
        elif frame[0] == 0:
            link.upstream.discard(prefix)

        self._check_ready(link, callbacks)

    def _check_ready(self, link: _Link, callbacks: Callbacks) -> None:
        if link.connected:
            return
        if len(link.handshakes) < 2 or not link.upstream:
            return

        link.connected = True
        link.failed = False
        self._ready.set()
        self.log.info("connected", subscribers=len(link.upstream))
        callbacks.on_success()

    def _monitor_event(self, monitor, side: str, link: _Link, callbacks: Callbacks) -> None:
        event = zmq.utils.monitor.recv_monitor_message(monitor)
        code = event["event"]

        if code == zmq.EVENT_HANDSHAKE_SUCCEEDED:
            link.handshakes.add(side)
            self.log.debug("handshake", side=side, endpoint=event.get("endpoint"))
            self._check_ready(link, callbacks)
            return

        if code == zmq.EVENT_HANDSHAKE_FAILED_AUTH:
            # ZeroMQ keeps retrying; report the first rejection only.
            if not link.failed:
                link.failed = True
                error = TransportConnectionError("authentication rejected by broker")
                self.log.warning("connect_failed", side=side, error=str(error))
                callbacks.on_failure(error)
            return

        if code == zmq.EVENT_DISCONNECTED:
            link.handshakes.discard(side)
            if side == "pub":
                link.upstream.clear()

            if not link.connected:
                return

            # ZeroMQ reconnects on its own; report the loss regardless, and
            # start the next connection with no subscriptions.
            link.connected = False
            self._ready.clear()
            link.forget()
            link.held.clear()
            error = TransportConnectionError("disconnected from broker")
            self.log.warning("connection_lost", side=side, error=str(error))
            callbacks.on_connection_lost(error)


def _cleanup() -> None:
    for client in list(clients):
        client.disconnect()
    try:
        zmq_context.term()
    except zmq.ZMQError:
        pass


atexit.register(_cleanup)

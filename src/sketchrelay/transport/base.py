"""Transport interface.

This is the (small) contract that transport implementations should follow.
It lives outside :mod:`sketchrelay.protocol` so the protocol remains
transport-agnostic. A transport moves (topic, payload) pairs; it has no
notion of requests, phases or correlation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, NamedTuple, Optional, Tuple


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportTimeout(TransportError):
    """The transport did not become ready in a timely fashion."""


class TransportConnectionError(TransportError):
    """The transport could not establish or maintain a connection."""


def _ignore(*args) -> None:
    pass


class Callbacks(NamedTuple):
    """ Connection lifecycle notifications. *on_failure* and
        *on_connection_lost* receive the underlying exception.
    """

    on_success: Callable[[], None] = _ignore
    on_failure: Callable[[BaseException], None] = _ignore
    on_connection_lost: Callable[[BaseException], None] = _ignore


Endpoint = Tuple[str, int]
Credentials = Tuple[str, str]
MessageHandler = Callable[[str, bytes], None]


class Transport(ABC):
    """ Minimal contract for a publish/subscribe transport.

        :ivar on_message: Called with (topic, raw_payload) for every inbound
            message matching an active subscription. Assign before calling
            :func:`connect`.
    """

    on_message: Optional[MessageHandler] = None

    def __init__(self) -> None:
        self._last_connect: Optional[Tuple[Endpoint, Credentials, Callbacks]] = None

    @abstractmethod
    def connect(self, endpoint: Endpoint, credentials: Credentials,
                callbacks: Optional[Callbacks] = None) -> None:
        """Begin establishing the connection; outcome arrives via *callbacks*."""

    @abstractmethod
    def disconnect(self) -> None:
        """Tear down the connection. Safe to call when not connected."""

    @abstractmethod
    def publish(self, topic: str, payload: bytes) -> None:
        """Send *payload* on *topic*."""

    @abstractmethod
    def subscribe(self, topic: str) -> None:
        """Start delivering messages published on exactly *topic*."""

    @abstractmethod
    def unsubscribe(self, topic: str) -> None:
        """Stop delivering messages published on *topic*."""

    def reconnect(self) -> None:
        """ Disconnect, then connect again with the arguments of the most
            recent :func:`connect` call.
        """

        if self._last_connect is None:
            raise TransportConnectionError('reconnect() before connect()')

        endpoint, credentials, callbacks = self._last_connect
        self.disconnect()
        self.connect(endpoint, credentials, callbacks)

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        """ Block until the connection is usable or *timeout* seconds pass.
            Returns whether the connection is usable.
        """

        return self.is_open

    def _deliver(self, topic: str, payload: bytes) -> None:
        handler = self.on_message
        if handler is not None:
            handler(topic, payload)

    @property
    def is_open(self) -> bool:
        """Whether the transport is currently connected."""
        return False

"""Transport layer implementations."""

from .base import (
    Callbacks,
    Transport,
    TransportError,
    TransportTimeout,
    TransportConnectionError,
)


def create(backend: str) -> Transport:
    """ Instantiate the transport for the named *backend*. Backends are
        imported on demand so that only the selected library needs to be
        importable.
    """

    if backend == "rabbitmq":
        from .rabbitmq.pubsub import Client
    elif backend == "zmq":
        from .zmq.pubsub import Client
    else:
        raise ValueError(f"unknown transport backend: {backend!r}")

    return Client()

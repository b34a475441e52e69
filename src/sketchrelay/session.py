""" A :class:`Session` is one connection lifetime: it owns a transport, the
    :class:`CorrelationEngine` tracking requests made over that transport,
    and the :class:`JobSubmitter` that issues them. Nothing here is global;
    build one session per connection and hand it to whatever needs it.

    In-flight requests do not survive the connection. Disconnecting,
    reconnecting, or losing the connection reports every outstanding
    request to the reporter as abandoned; requests are never silently
    dropped, and never silently re-submitted.
"""

from __future__ import annotations

from typing import Optional

from . import transport as transports
from .config import Settings
from .correlation import CorrelationEngine
from .log import get_component_logger
from .protocol.fields import Command
from .reporter import Reporter
from .submit import JobSubmitter
from .transport.base import Callbacks, Transport, TransportTimeout


class Session:
    """ Bind *settings*, a *reporter* and a *transport* together. The
        transport defaults to the backend named in the settings, and the
        settings default to :func:`Settings.from_env`.
    """

    def __init__(self, settings: Optional[Settings] = None,
                 reporter: Optional[Reporter] = None,
                 transport: Optional[Transport] = None):

        if settings is None:
            settings = Settings.from_env()

        if reporter is None:
            reporter = Reporter()

        if transport is None:
            transport = transports.create(settings.backend)

        self.settings = settings
        self.reporter = reporter
        self.transport = transport
        self.log = get_component_logger("Session")

        self.engine = CorrelationEngine(transport, reporter)
        self.submitter = JobSubmitter(self.engine, sketch=settings.sketch)

        transport.on_message = self.engine.on_message

        self.callbacks = Callbacks(
            on_success=self._on_success,
            on_failure=self._on_failure,
            on_connection_lost=self._on_connection_lost,
        )


    def __enter__(self):
        return self


    def __exit__(self, *exc):
        self.disconnect()
        return False


    def connect(self, wait: Optional[float] = None) -> None:
        """ Connect to the configured broker. The outcome is reported to the
            reporter asynchronously; if *wait* is given, also block for up to
            that many seconds for the connection to become usable, raising
            :class:`TransportTimeout` if it does not.
        """

        endpoint = self.settings.endpoint
        self.log.info("connecting", host=endpoint[0], port=endpoint[1], backend=self.settings.backend)
        self.reporter.on_status('Connecting')
        self.transport.connect(endpoint, self.settings.credentials, self.callbacks)

        if wait is not None and not self.transport.wait_ready(wait):
            raise TransportTimeout('no connection to %s:%d after %.1f sec' % (endpoint[0], endpoint[1], wait))


    def disconnect(self) -> None:
        self.engine.abandon_all('disconnected')
        self.transport.disconnect()


    def reconnect(self, wait: Optional[float] = None) -> None:
        """ Drop the current connection, abandoning any in-flight requests,
            and connect again. This is also how a caller retries after a
            connection failure or loss.
        """

        self.engine.abandon_all('reconnecting')
        self.transport.disconnect()
        self.connect(wait)


    def submit(self, command, source: str, sketch: Optional[str] = None,
               timeout: Optional[float] = None) -> str:
        """ Submit *source* for *command*; see :func:`JobSubmitter.submit`.
            The *timeout* defaults to the configured one.
        """

        if timeout is None:
            timeout = self.settings.timeout

        return self.submitter.submit(command, source, sketch=sketch, timeout=timeout)


    def verify(self, source: str, **kwargs) -> str:
        return self.submit(Command.VERIFY, source, **kwargs)


    def upload(self, source: str, **kwargs) -> str:
        return self.submit(Command.UPLOAD, source, **kwargs)


    def _on_success(self):
        self.reporter.on_status('Connected')


    def _on_failure(self, error):
        self.log.warning("connect_failed", error=repr(error))
        self.reporter.on_status('Connect failed')
        self.engine.abandon_all('connect failed')


    def _on_connection_lost(self, error):
        self.log.warning("connection_lost", error=repr(error))
        self.reporter.on_status('Connection was lost')
        self.engine.abandon_all('connection lost')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" Runtime configuration. All settings come from environment variables,
    with defaults suitable for a broker on the local host; command-line
    arguments override them via :func:`Settings.replace`.
"""

from __future__ import annotations

import dataclasses
import os
from typing import Mapping, Optional, Tuple

from .protocol.fields import DEFAULT_SKETCH


BACKENDS = ('rabbitmq', 'zmq')

# The broker port is fixed per backend; SKETCHRELAY_PORT exists for test
# rigs and non-standard deployments.

default_ports = {
    'rabbitmq': 5672,
    'zmq': 1884,
}


@dataclasses.dataclass(frozen=True)
class Settings:
    host: str = 'localhost'
    port: Optional[int] = None
    username: str = 'test'
    password: str = 'test'
    backend: str = 'rabbitmq'
    timeout: Optional[float] = None
    sketch: str = DEFAULT_SKETCH

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise ValueError('unknown transport backend: ' + repr(self.backend))

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError('timeout must be positive: ' + repr(self.timeout))


    @property
    def endpoint(self) -> Tuple[str, int]:
        port = self.port
        if port is None:
            port = default_ports[self.backend]
        return (self.host, int(port))


    @property
    def credentials(self) -> Tuple[str, str]:
        return (self.username, self.password)


    def replace(self, **changes) -> 'Settings':
        """ Return a copy with any non-None *changes* applied.
        """

        changes = {k: v for k, v in changes.items() if v is not None}
        return dataclasses.replace(self, **changes)


    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        if environ is None:
            environ = os.environ

        def lookup(name):
            value = environ.get('SKETCHRELAY_' + name)
            if value is None or value == '':
                return None
            return value

        port = lookup('PORT')
        if port is not None:
            port = int(port)

        timeout = lookup('TIMEOUT')
        if timeout is not None:
            timeout = float(timeout)

        settings = cls()
        return settings.replace(
            host=lookup('HOST'),
            port=port,
            username=lookup('USERNAME'),
            password=lookup('PASSWORD'),
            backend=lookup('TRANSPORT'),
            timeout=timeout,
            sketch=lookup('SKETCH'),
        )


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

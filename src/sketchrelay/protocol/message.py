""" Typed representations of the three payloads exchanged with a worker:
    the :class:`Job` a client publishes, the :class:`AcceptResponse` the
    worker sends back on the reply topic, and the terminal
    :class:`ResultPayload` delivered on the result topic.

    Field names on the wire are camelCase (``exitCode``); the Python
    attributes are not.
"""

from __future__ import annotations

import base64
from typing import Any, List, Literal, Optional, Union

import msgspec

from .fields import DEFAULT_SKETCH, SUCCESS


def encode_source(source: str) -> str:
    """ Encode arbitrary *source* text as base64 over UTF-8. This is the
        representation carried in the *src* field of a :class:`Job`.
    """

    return base64.b64encode(source.encode("utf-8")).decode("ascii")


def decode_source(encoded: str) -> str:
    """ Inverse of :func:`encode_source`. Raises :class:`ValueError` if
        *encoded* is not valid base64 or does not decode to UTF-8.
    """

    raw = base64.b64decode(encoded.encode("ascii"), validate=True)
    return raw.decode("utf-8")


class Job(msgspec.Struct, frozen=True):
    """ A single compile or upload job. *src* is the transport encoding of
        the source text; see :func:`encode_source`.
    """

    sketch: str
    src: str

    @classmethod
    def create(cls, source: str, sketch: Optional[str] = None) -> "Job":
        if sketch is None:
            sketch = DEFAULT_SKETCH
        return cls(sketch=sketch, src=encode_source(source))


class AcceptResponse(msgspec.Struct, frozen=True):
    """ The worker's acknowledgment of a submitted job. The *id* names the
        job whose result topic the client should watch next.
    """

    id: Union[str, int]

    @property
    def job_id(self) -> str:
        return str(self.id)


class ResultPayload(msgspec.Struct, frozen=True, rename="camel", omit_defaults=True):
    """ Terminal outcome of a job. A *type* of ``failure`` is an ordinary
        outcome as far as the client is concerned, not an error; so is a
        non-zero *exit_code*. Use :attr:`ok` to tell them apart.

        :ivar errors: Structured diagnostics, in the order the worker
            reported them. Their shape is up to the worker.
    """

    type: Literal["success", "failure"]
    exit_code: Optional[int] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    errors: Optional[List[Any]] = None

    @property
    def ok(self) -> bool:
        if self.type != SUCCESS:
            return False
        return self.exit_code is None or self.exit_code == 0


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

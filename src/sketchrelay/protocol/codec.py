"""Wire codec for protocol payloads.

Decoding is driven by topic shape: the caller classifies the topic first
and asks for the one variant that topic can carry. Anything that does not
decode into that variant raises :class:`ProtocolDecodeError`.
"""

from __future__ import annotations

import msgspec

from .. import json
from .message import AcceptResponse, Job, ResultPayload


# Typed decoders are built once; msgspec plans the decoding per type.

_accept_decoder = msgspec.json.Decoder(AcceptResponse)
_result_decoder = msgspec.json.Decoder(ResultPayload)


class ProtocolDecodeError(ValueError):
    """A payload could not be decoded into the variant its topic requires."""

    def __init__(self, topic: str, reason: str):
        ValueError.__init__(self, f"{topic}: {reason}")
        self.topic = topic
        self.reason = reason


def encode_job(job: Job) -> bytes:
    return json.dumps(job)


def encode(payload) -> bytes:
    """ Encode any protocol payload as JSON bytes. Workers and tests use this
        to produce replies.
    """

    return json.dumps(payload)


def _as_bytes(raw) -> bytes:
    if isinstance(raw, str):
        return raw.encode("utf-8")
    return bytes(raw)


def decode_accept(topic: str, raw) -> AcceptResponse:
    try:
        accept = _accept_decoder.decode(_as_bytes(raw))
    except msgspec.DecodeError as error:
        raise ProtocolDecodeError(topic, str(error)) from error

    if accept.job_id == "":
        raise ProtocolDecodeError(topic, "empty job id")

    return accept


def decode_result(topic: str, raw) -> ResultPayload:
    try:
        return _result_decoder.decode(_as_bytes(raw))
    except msgspec.DecodeError as error:
        raise ProtocolDecodeError(topic, str(error)) from error


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

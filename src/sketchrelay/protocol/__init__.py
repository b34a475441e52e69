from . import fields
from . import topic
from . import message
from . import codec

from .fields import Command
from .codec import ProtocolDecodeError
from .message import AcceptResponse, Job, ResultPayload, decode_source, encode_source


"""
sketchrelay Protocol Layer
==========================

This package defines the transport-agnostic job protocol spoken between a
client and a remote compile/upload worker. It provides the topic grammar,
the payload structures, and the codec that maps payloads to bytes.

The protocol layer MUST NOT depend on any transport implementation
(e.g. RabbitMQ, ZeroMQ, etc).

---------------------------------------------------------------------

Layer Architecture Overview
---------------------------

User Code / CLI
    │
    ▼
Session (session.py)
    One connection lifetime
    - connect() / reconnect() / disconnect()
    - submit()

    │
    ▼
Job Submitter (submit.py)          Correlation Engine (correlation.py)
    Builds and publishes jobs          Subscription table, two-phase
                                       dispatch, timeouts, abandonment
    │
    ▼
Codec (codec.py)
    Payload <-> JSON bytes
    Tagged-variant decoding selected by topic shape

    │
    ▼
Message Model (message.py)
    Immutable payload structures
    - Job
    - AcceptResponse
    - ResultPayload

    │
    ▼
Topic Grammar (topic.py) and Field Vocabulary (fields.py)
    Canonical topic shapes and names
    Prevents string drift across system

---------------------------------------------------------------------

Request Lifecycle
-----------------

1. subscribe  response/{command}/{request_id}
2. publish    {command}/{request_id}        {sketch, src}
3. receive    response/{command}/{request_id}  {id}
4. subscribe  result/{id}
5. unsubscribe response/{command}/{request_id}
6. receive    result/{id}                   {type, exitCode, stdout, ...}
7. unsubscribe result/{id}

Step 4 always precedes step 5, so a request is never without a standing
subscription until it terminates.

---------------------------------------------------------------------
"""


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" Job submission. A :class:`JobSubmitter` turns source text into a
    published job, leaving the correlation of the eventual reply to a
    :class:`sketchrelay.correlation.CorrelationEngine`.
"""

from __future__ import annotations

from typing import Optional

from .correlation import CorrelationEngine
from .log import get_component_logger
from .protocol import codec
from .protocol import topic as topics
from .protocol.fields import Command, DEFAULT_SKETCH
from .protocol.message import Job
from .transport.base import TransportError


class JobSubmitter:
    """ Publish jobs through the *engine*'s transport. The *sketch* is the
        artifact name used when :func:`submit` is not given one.
    """

    def __init__(self, engine: CorrelationEngine, sketch: str = DEFAULT_SKETCH):
        self.engine = engine
        self.sketch = sketch
        self.log = get_component_logger("JobSubmitter")


    def submit(self, command, source: str, sketch: Optional[str] = None,
               timeout: Optional[float] = None) -> str:
        """ Submit *source* for the requested *command* ('verify' or
            'upload'). A standing subscription for the reply is in place
            before the job is published. The outcome is delivered to the
            engine's reporter; the returned request id is only useful for
            matching that outcome up with this call.

            Raises :class:`TransportError` if the job could not be handed to
            the transport. In that case the request has already been reported
            as abandoned.
        """

        command = Command(command)

        if sketch is None:
            sketch = self.sketch

        request_id = self.engine.begin_request(command, timeout=timeout)

        job = Job.create(source, sketch=sketch)
        payload = codec.encode_job(job)
        topic = topics.command(command, request_id)

        self.engine.notify(self.engine.reporter.on_submitted, request_id, command.value)

        try:
            self.engine.transport.publish(topic, payload)
        except TransportError as error:
            self.log.warning("publish_failed", topic=topic, request_id=request_id, error=str(error))
            self.engine.abandon(request_id, 'publish failed: ' + str(error))
            raise

        self.log.info("published", topic=topic, request_id=request_id, sketch=sketch, size=len(source))
        return request_id


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

""" The :class:`CorrelationEngine` ties asynchronous replies back to the
    request that caused them. It owns the subscription table: which topics
    are subscribed, on behalf of which request, and in which phase.

    A request passes through exactly two phases. It begins awaiting an
    accept on ``response/{command}/{request_id}``; the accept names a job
    id, and the request moves on to await a result on ``result/{job_id}``.
    The result is terminal. So are a timeout, if one was requested, and
    abandonment, which happens when the connection goes away. Whichever of
    the three happens first wins; the other two become no-ops.
"""

from __future__ import annotations

import enum
import threading
import uuid
from typing import Callable, Dict, List, NamedTuple, Optional

from .log import get_component_logger
from .protocol import codec
from .protocol import topic as topics
from .protocol.fields import Command
from .reporter import Reporter
from .transport.base import Transport, TransportError


class Phase(enum.Enum):
    AWAITING_ACCEPT = "awaiting_accept"
    AWAITING_RESULT = "awaiting_result"


class SubscriptionEntry(NamedTuple):
    topic: str
    request_id: str
    phase: Phase


class _Request:
    """ In-flight bookkeeping for a single request: the one topic currently
        subscribed on its behalf, and its timeout timer, if any.
    """

    __slots__ = ('request_id', 'command', 'topic', 'timer')

    def __init__(self, request_id, command, topic):
        self.request_id = request_id
        self.command = command
        self.topic = topic
        self.timer = None


    def cancel(self):
        timer = self.timer
        if timer is not None:
            timer.cancel()
            self.timer = None


def new_request_id() -> str:
    """ Return a fresh request identifier. 122 random bits; collisions
        within a session are not a practical concern.
    """

    return uuid.uuid4().hex


class CorrelationEngine:
    """ Track in-flight requests against a shared *transport*, and report
        terminal outcomes to the *reporter*.

        The engine is driven from two directions: callers invoke
        :func:`begin_request`, and the transport invokes :func:`on_message`,
        usually from its own thread. All table updates happen under a single
        lock; reporter hooks are invoked after the lock is released.

        :ivar id_factory: Callable returning new request identifiers.
    """

    def __init__(self, transport: Transport, reporter: Optional[Reporter] = None,
                 id_factory: Optional[Callable[[], str]] = None):

        if reporter is None:
            reporter = Reporter()

        if id_factory is None:
            id_factory = new_request_id

        self.transport = transport
        self.reporter = reporter
        self.id_factory = id_factory
        self.log = get_component_logger("CorrelationEngine")

        self._lock = threading.RLock()
        self._entries: Dict[str, SubscriptionEntry] = dict()
        self._requests: Dict[str, _Request] = dict()


    def begin_request(self, command, timeout: Optional[float] = None) -> str:
        """ Start tracking a new request for *command*, subscribing to its
            reply topic. Returns the new request id. If *timeout* is given
            and no result arrives within that many seconds, the request is
            discarded and reported via :func:`Reporter.on_timeout`.

            Raises :class:`ValueError` for an unknown command, and
            :class:`TransportError` if the subscription fails; in the latter
            case no state is retained.
        """

        command = Command(command)

        if timeout is not None and timeout <= 0:
            raise ValueError('timeout must be positive: ' + repr(timeout))

        with self._lock:
            request_id = self.id_factory()
            while request_id in self._requests:
                request_id = self.id_factory()

            reply_topic = topics.reply(command, request_id)
            request = _Request(request_id, command, reply_topic)

            self._entries[reply_topic] = SubscriptionEntry(reply_topic, request_id, Phase.AWAITING_ACCEPT)
            self._requests[request_id] = request

            try:
                self.transport.subscribe(reply_topic)
            except TransportError:
                del self._entries[reply_topic]
                del self._requests[request_id]
                raise

            if timeout is not None:
                timer = threading.Timer(timeout, self._expire, args=(request_id,))
                timer.daemon = True
                request.timer = timer
                timer.start()

        self.log.info("subscribed", topic=reply_topic, request_id=request_id, phase=Phase.AWAITING_ACCEPT.value)
        return request_id


    def on_message(self, topic: str, raw) -> None:
        """ Single dispatch point for every inbound message. Nothing raised
            here escapes: malformed payloads, unknown topic shapes, and
            topics with no matching subscription are logged and dropped
            without touching any other request.
        """

        parsed = topics.parse(topic)

        if isinstance(parsed, topics.ReplyTopic):
            self._on_reply(topic, raw)
        elif isinstance(parsed, topics.ResultTopic):
            self._on_result(topic, raw)
        else:
            self.log.warning("unknown_topic", topic=topic)


    def _on_reply(self, topic, raw):

        with self._lock:
            entry = self._entries.get(topic)
            if entry is None or entry.phase is not Phase.AWAITING_ACCEPT:
                self.log.warning("unmatched_topic", topic=topic)
                return

            try:
                accept = codec.decode_accept(topic, raw)
            except codec.ProtocolDecodeError as error:
                self.log.warning("decode_failed", topic=topic, request_id=entry.request_id, reason=error.reason)
                return

            result_topic = topics.result(accept.job_id)

            if result_topic in self._entries:
                other = self._entries[result_topic]
                self.log.warning("duplicate_job", topic=result_topic, request_id=entry.request_id, claimed_by=other.request_id)
                return

            # Subscribe to the result before letting go of the reply topic;
            # the request is never without a standing subscription.

            try:
                self.transport.subscribe(result_topic)
            except TransportError as error:
                self.log.warning("subscribe_failed", topic=result_topic, request_id=entry.request_id, error=str(error))
                return

            self._entries[result_topic] = SubscriptionEntry(result_topic, entry.request_id, Phase.AWAITING_RESULT)
            self._requests[entry.request_id].topic = result_topic

            del self._entries[topic]
            self._unsubscribe(topic)

        self.log.info("accepted", request_id=entry.request_id, job_id=accept.job_id)
        self.log.info("subscribed", topic=result_topic, request_id=entry.request_id, phase=Phase.AWAITING_RESULT.value)


    def _on_result(self, topic, raw):

        with self._lock:
            entry = self._entries.get(topic)
            if entry is None or entry.phase is not Phase.AWAITING_RESULT:
                self.log.warning("unmatched_topic", topic=topic)
                return

            try:
                result = codec.decode_result(topic, raw)
            except codec.ProtocolDecodeError as error:
                self.log.warning("decode_failed", topic=topic, request_id=entry.request_id, reason=error.reason)
                return

            del self._entries[topic]
            request = self._requests.pop(entry.request_id)
            request.cancel()
            self._unsubscribe(topic)

        self.log.info("result", request_id=entry.request_id, type=result.type, exit_code=result.exit_code)
        self.notify(self.reporter.on_result, entry.request_id, result)


    def _expire(self, request_id):

        with self._lock:
            request = self._requests.pop(request_id, None)
            if request is None:
                # Already terminated some other way.
                return

            request.timer = None
            self._entries.pop(request.topic, None)
            self._unsubscribe(request.topic)

        self.log.warning("timeout", request_id=request_id, topic=request.topic)
        self.notify(self.reporter.on_timeout, request_id)


    def abandon(self, request_id: str, reason: str, unsubscribe: bool = True) -> bool:
        """ Stop tracking a single request, reporting it as abandoned.
            Returns False if the request had already terminated.
        """

        with self._lock:
            request = self._requests.pop(request_id, None)
            if request is None:
                return False

            request.cancel()
            self._entries.pop(request.topic, None)
            if unsubscribe:
                self._unsubscribe(request.topic)

        self.log.warning("abandoned", request_id=request_id, reason=reason)
        self.notify(self.reporter.on_abandoned, request_id, reason)
        return True


    def abandon_all(self, reason: str, unsubscribe: bool = True) -> List[str]:
        """ Stop tracking every in-flight request, reporting each one as
            abandoned exactly once, and release their topics on the
            transport. Transports accept an unsubscribe while the connection
            is down, so this also holds when the connection has just been
            lost. Returns the abandoned request ids.
        """

        with self._lock:
            requests = list(self._requests.values())
            self._requests.clear()
            self._entries.clear()

            for request in requests:
                request.cancel()
                if unsubscribe:
                    self._unsubscribe(request.topic)

        abandoned = list()
        for request in requests:
            self.log.warning("abandoned", request_id=request.request_id, reason=reason)
            self.notify(self.reporter.on_abandoned, request.request_id, reason)
            abandoned.append(request.request_id)

        return abandoned


    def pending(self) -> Dict[str, Phase]:
        """ Return a snapshot mapping each in-flight request id to its phase.
        """

        with self._lock:
            return {entry.request_id: entry.phase for entry in self._entries.values()}


    def subscriptions(self) -> Dict[str, SubscriptionEntry]:
        """ Return a snapshot of the subscription table, keyed by topic.
        """

        with self._lock:
            return dict(self._entries)


    def _unsubscribe(self, topic):
        try:
            self.transport.unsubscribe(topic)
        except TransportError as error:
            self.log.warning("unsubscribe_failed", topic=topic, error=str(error))
        else:
            self.log.info("unsubscribed", topic=topic)


    def notify(self, hook, *args):
        """ Invoke a reporter *hook*, logging rather than propagating any
            exception it raises.
        """

        try:
            hook(*args)
        except Exception:
            self.log.exception("reporter_failed", hook=hook.__name__)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

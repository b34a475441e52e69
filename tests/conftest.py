import pytest

import sketchrelay
from sketchrelay.transport.base import Transport, TransportConnectionError


class LoopbackTransport(Transport):
    """ In-memory transport. Delivery is synchronous: anything passed to
        :func:`deliver` reaches the engine before the call returns, provided
        the topic is subscribed, exactly as a broker would filter it.
        :func:`inject` skips the filtering, to simulate a redelivery or a
        misbehaving broker.
    """

    def __init__(self, fail_connect=False):
        Transport.__init__(self)
        self.fail_connect = fail_connect
        self.open = False
        self.callbacks = None
        self.subscribed = set()
        self.calls = list()
        self.published = list()
        self.worker = None

    @property
    def is_open(self):
        return self.open

    def wait_ready(self, timeout=None):
        return self.open

    def connect(self, endpoint, credentials, callbacks=None):
        if callbacks is None:
            callbacks = sketchrelay.transport.Callbacks()

        self._last_connect = (endpoint, credentials, callbacks)
        self.callbacks = callbacks
        self.calls.append(('connect', endpoint, credentials))

        if self.fail_connect:
            callbacks.on_failure(TransportConnectionError('refused'))
            return

        self.open = True
        callbacks.on_success()

    def disconnect(self):
        self.calls.append(('disconnect',))
        self.open = False
        self.subscribed.clear()

    def lose_connection(self):
        # Subscriptions survive the loss, as they would on a transport that
        # reconnects by itself; releasing them is up to the caller.
        self.open = False
        self.callbacks.on_connection_lost(TransportConnectionError('lost'))

    def publish(self, topic, payload):
        if not self.open:
            raise TransportConnectionError('not connected')
        self.calls.append(('publish', topic))
        self.published.append((topic, payload))
        if self.worker is not None:
            self.worker(topic, payload)

    def subscribe(self, topic):
        if not self.open:
            raise TransportConnectionError('not connected')

        # A topic must never be subscribed twice without an intervening
        # unsubscribe.
        assert topic not in self.subscribed, 'duplicate subscription: ' + topic

        self.calls.append(('subscribe', topic))
        self.subscribed.add(topic)

    def unsubscribe(self, topic):
        self.calls.append(('unsubscribe', topic))
        self.subscribed.discard(topic)

    def deliver(self, topic, payload):
        if topic in self.subscribed:
            self._deliver(topic, payload)

    def inject(self, topic, payload):
        self._deliver(topic, payload)


class RecordingReporter(sketchrelay.Reporter):

    def __init__(self):
        self.events = list()

    def on_status(self, message):
        self.events.append(('status', message))

    def on_submitted(self, request_id, command):
        self.events.append(('submitted', request_id, command))

    def on_result(self, request_id, result):
        self.events.append(('result', request_id, result))

    def on_timeout(self, request_id):
        self.events.append(('timeout', request_id))

    def on_abandoned(self, request_id, reason):
        self.events.append(('abandoned', request_id, reason))

    def terminal(self, request_id=None):
        """ Return the terminal events, optionally only those for one request.
        """

        found = list()
        for event in self.events:
            if event[0] in ('result', 'timeout', 'abandoned'):
                if request_id is None or event[1] == request_id:
                    found.append(event)
        return found


@pytest.fixture
def transport():
    loopback = LoopbackTransport()
    loopback.connect(('localhost', 5672), ('test', 'test'))
    return loopback


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def engine(transport, reporter):
    correlation = sketchrelay.CorrelationEngine(transport, reporter)
    transport.on_message = correlation.on_message
    return correlation


@pytest.fixture
def submitter(engine):
    return sketchrelay.JobSubmitter(engine)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

import pytest

import sketchrelay
from sketchrelay.transport import TransportConnectionError

import unitworker


def test_job_payload(submitter, transport, reporter):

    source = 'void setup() {}\nvoid loop() {}\n'
    request_id = submitter.submit('upload', source)

    topic, payload = transport.published[-1]
    assert topic == 'upload/' + request_id

    job = sketchrelay.json.loads(payload)
    assert set(job.keys()) == set(('sketch', 'src'))
    assert job['sketch'] == 'sketch.ino'
    assert sketchrelay.decode_source(job['src']) == source

    assert ('submitted', request_id, 'upload') in reporter.events


def test_custom_sketch(engine, transport):

    submitter = sketchrelay.JobSubmitter(engine, sketch='blink.ino')
    submitter.submit('verify', '')
    job = sketchrelay.json.loads(transport.published[-1][1])
    assert job['sketch'] == 'blink.ino'

    submitter.submit('verify', '', sketch='other.ino')
    job = sketchrelay.json.loads(transport.published[-1][1])
    assert job['sketch'] == 'other.ino'


def test_submitted_before_publish(submitter, transport, reporter):
    """ The progress notification goes out before the job does, so that a
        fast worker cannot deliver a result ahead of it.
    """

    unitworker.Worker(transport)
    request_id = submitter.submit('verify', 'int main(){}')

    kinds = [event[0] for event in reporter.events]
    assert kinds == ['submitted', 'result']
    assert reporter.events[1][1] == request_id


def test_worker_round_trip(submitter, transport, reporter):

    worker = unitworker.Worker(transport)
    source = 'int main() {\n  return 0; // éè ☃\n}\n'

    request_id = submitter.submit('verify', source)

    assert worker.jobs[0]['source'] == source
    assert reporter.terminal() == [('result', request_id, worker.result)]
    assert transport.subscribed == set()


def test_bad_command(submitter, transport):

    with pytest.raises(ValueError):
        submitter.submit('compile', 'int main(){}')

    assert transport.published == []
    assert transport.subscribed == set()


def test_publish_failure(submitter, engine, transport, reporter):

    def refuse(topic, payload):
        raise TransportConnectionError('broker went away')

    transport.publish = refuse

    with pytest.raises(TransportConnectionError):
        submitter.submit('verify', 'int main(){}')

    assert engine.pending() == {}
    assert transport.subscribed == set()

    terminal = reporter.terminal()
    assert len(terminal) == 1
    assert terminal[0][0] == 'abandoned'


def test_timeout_passthrough(submitter, engine, transport, reporter):

    unitworker.Worker(transport, accept=False)
    request_id = submitter.submit('verify', 'x', timeout=30)

    # The timer exists but has not fired; tidy it up.
    assert engine.pending() == {request_id: sketchrelay.Phase.AWAITING_ACCEPT}
    engine.abandon_all('test over')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

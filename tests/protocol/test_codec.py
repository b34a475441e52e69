import pytest

import sketchrelay
from sketchrelay.protocol import codec
from sketchrelay.protocol.message import AcceptResponse, Job, ResultPayload


def test_source_round_trip():

    for source in ('', 'int main(){}', 'line one\nline two\r\n\n',
                   'void loop() { Serial.println("°C ✓"); }', '日本語\tτεστ 🚀'):
        encoded = sketchrelay.encode_source(source)
        assert isinstance(encoded, str)
        assert encoded.isascii()
        assert sketchrelay.decode_source(encoded) == source


def test_source_bad_encoding():

    with pytest.raises(ValueError):
        sketchrelay.decode_source('not base64!')

    with pytest.raises(ValueError):
        sketchrelay.decode_source('/w==')


def test_job():

    job = Job.create('int main(){}')
    assert job.sketch == 'sketch.ino'
    assert job.src == 'aW50IG1haW4oKXt9'

    decoded = sketchrelay.json.loads(codec.encode_job(job))
    assert decoded == {'sketch': 'sketch.ino', 'src': 'aW50IG1haW4oKXt9'}


def test_decode_accept():

    accept = codec.decode_accept('response/verify/x', b'{"id": "job1"}')
    assert accept == AcceptResponse(id='job1')
    assert accept.job_id == 'job1'

    accept = codec.decode_accept('response/verify/x', b'{"id": 7, "extra": true}')
    assert accept.job_id == '7'


def test_decode_result():

    raw = b'{"type": "failure", "exitCode": 1, "stdout": "", "stderr": "oops", "errors": [{"line": 1}]}'
    result = codec.decode_result('result/job1', raw)

    assert result == ResultPayload(type='failure', exit_code=1, stdout='', stderr='oops', errors=[{'line': 1}])
    assert result.ok == False

    result = codec.decode_result('result/job1', b'{"type": "success"}')
    assert result.exit_code is None
    assert result.ok == True


def test_decode_errors():

    bad = (b'', b'{', b'null', b'[]', b'{"type": "maybe"}', b'{"exitCode": 0}',
           b'{"type": "success", "exitCode": "zero"}')

    for raw in bad:
        with pytest.raises(codec.ProtocolDecodeError) as caught:
            codec.decode_result('result/job1', raw)
        assert caught.value.topic == 'result/job1'

    for raw in (b'{}', b'{"id": ""}', b'{"id": null}', b'"job1"'):
        with pytest.raises(codec.ProtocolDecodeError):
            codec.decode_accept('response/verify/x', raw)


def test_result_encoding_is_camel_case():

    encoded = codec.encode(ResultPayload(type='success', exit_code=0, stdout='OK'))
    assert sketchrelay.json.loads(encoded) == {'type': 'success', 'exitCode': 0, 'stdout': 'OK'}


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

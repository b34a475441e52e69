import json

import msgspec
import pytest

import sketchrelay


def test_json_encode_and_decode():
    encode_and_decode(json.dumps, json.loads, dump_is_bytes=False)


def test_sketchrelay_encode_and_decode():
    encode_and_decode(sketchrelay.json.dumps, sketchrelay.json.loads)


def encode_and_decode(dumps, loads, dump_is_bytes=True):

    input_dictionary = dict()
    input_dictionary['list'] = [1, 2, 3, 'a', 'b', None, 'c', 'z']
    input_dictionary['dict'] = {'one': 1, 'two': 2}
    input_dictionary['none'] = None
    input_dictionary['true'] = True
    input_dictionary['false'] = False
    input_dictionary['text'] = 'Serial.println("ok");\n'

    encoded = dumps(input_dictionary)

    if dump_is_bytes:
        assert isinstance(encoded, bytes)
    else:
        assert isinstance(encoded, str)

    # It won't do to compare the encoded JSON against a pre-set notion of
    # what the encoded output should look like, as there is variance in
    # the handling of whitespace between the different modules.

    decoded = loads(encoded)
    assert isinstance(decoded, dict)
    assert decoded == input_dictionary


def test_decode_error():

    with pytest.raises(msgspec.DecodeError):
        sketchrelay.json.loads(b'{"unterminated": ')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

import pytest

from sketchrelay.protocol import topic as topics
from sketchrelay.protocol.fields import Command


def test_builders():

    assert topics.command('verify', 'abc') == 'verify/abc'
    assert topics.command(Command.UPLOAD, 'abc') == 'upload/abc'
    assert topics.reply('upload', 'abc') == 'response/upload/abc'
    assert topics.result('job1') == 'result/job1'

    with pytest.raises(ValueError):
        topics.reply('compile', 'abc')


def test_parse():

    assert topics.parse('verify/abc') == topics.CommandTopic(Command.VERIFY, 'abc')
    assert topics.parse('response/upload/abc') == topics.ReplyTopic(Command.UPLOAD, 'abc')
    assert topics.parse('result/job1') == topics.ResultTopic('job1')

    # Job identifiers are opaque; everything after the prefix belongs to it.

    assert topics.parse('result/a/b') == topics.ResultTopic('a/b')


def test_parse_unknown():

    for topic in ('', 'status', 'result', 'result/', 'response/verify',
                  'response/verify/', 'response/compile/abc',
                  'response/verify/a/b', 'compile/abc', 'verify/', 'verify/a/b'):
        parsed = topics.parse(topic)
        assert isinstance(parsed, topics.UnknownTopic), topic
        assert str(parsed) == topic


def test_parse_inverts_builders():

    for topic in ('verify/x1', 'response/verify/x1', 'result/x1'):
        assert str(topics.parse(topic)) == topic


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

import pytest

from sketchrelay.config import Settings


def test_defaults():

    settings = Settings.from_env({})

    assert settings.host == 'localhost'
    assert settings.backend == 'rabbitmq'
    assert settings.endpoint == ('localhost', 5672)
    assert settings.credentials == ('test', 'test')
    assert settings.timeout is None
    assert settings.sketch == 'sketch.ino'


def test_environment():

    environ = dict()
    environ['SKETCHRELAY_HOST'] = 'broker.example.org'
    environ['SKETCHRELAY_TRANSPORT'] = 'zmq'
    environ['SKETCHRELAY_USERNAME'] = 'alice'
    environ['SKETCHRELAY_PASSWORD'] = 'secret'
    environ['SKETCHRELAY_TIMEOUT'] = '2.5'
    environ['SKETCHRELAY_SKETCH'] = 'blink.ino'
    environ['SKETCHRELAY_PORT'] = ''

    settings = Settings.from_env(environ)

    assert settings.endpoint == ('broker.example.org', 1884)
    assert settings.credentials == ('alice', 'secret')
    assert settings.timeout == 2.5
    assert settings.sketch == 'blink.ino'

    environ['SKETCHRELAY_PORT'] = '15672'
    assert Settings.from_env(environ).endpoint == ('broker.example.org', 15672)


def test_replace():

    settings = Settings()
    changed = settings.replace(host='other', port=None, timeout=1)

    assert changed.host == 'other'
    assert changed.port is None
    assert changed.timeout == 1
    assert settings.host == 'localhost'


def test_invalid():

    with pytest.raises(ValueError):
        Settings(backend='carrier-pigeon')

    with pytest.raises(ValueError):
        Settings(timeout=0)

    with pytest.raises(ValueError):
        Settings.from_env({'SKETCHRELAY_TIMEOUT': 'soon'})


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:

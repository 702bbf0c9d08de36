import pytest

import memmon

REQUIRED = {
    '--endpoint': 'a1b2c3.iot.us-east-1.amazonaws.com',
    '--thing-name': 'memmon01',
    '--certificate': 'memmon01.crt',
    '--private-key': 'memmon01.private.key'
}

ENVIRONMENT = ('ENDPOINT', 'THING_NAME', 'ROOT_CA', 'CERTIFICATE', 'PRIVATE_KEY', 'PORT', 'LOG_LEVEL')

@pytest.fixture(autouse=True)
def cleanEnvironment(monkeypatch):
    for name in ENVIRONMENT:
        monkeypatch.delenv('MEMMON_' + name, raising=False)

def commandLine(*omit):
    argv = []
    for flag, value in REQUIRED.items():
        if flag not in omit:
            argv += [flag, value]
    return argv

def test_parseArgs_defaults():
    args = memmon.parseArgs(commandLine())
    assert(args.endpoint == 'a1b2c3.iot.us-east-1.amazonaws.com')
    assert(args.thingName == 'memmon01')
    assert(args.certificatePath == 'memmon01.crt')
    assert(args.privateKeyPath == 'memmon01.private.key')
    assert(args.rootCAPath == 'root-CA.crt')
    assert(args.port == 8883)
    assert(args.logLevel == 'WARNING')
    assert(args.dashboard is True)

def test_parseArgs_no_dashboard():
    args = memmon.parseArgs(commandLine() + ['--no-dashboard'])
    assert(args.dashboard is False)

def test_parseArgs_environment_fallback(monkeypatch):
    monkeypatch.setenv('MEMMON_ENDPOINT', 'env.iot.eu-west-1.amazonaws.com')
    monkeypatch.setenv('MEMMON_THING_NAME', 'envthing')
    monkeypatch.setenv('MEMMON_ROOT_CA', 'env-CA.crt')
    monkeypatch.setenv('MEMMON_CERTIFICATE', 'env.crt')
    monkeypatch.setenv('MEMMON_PRIVATE_KEY', 'env.private.key')
    monkeypatch.setenv('MEMMON_PORT', '443')
    monkeypatch.setenv('MEMMON_LOG_LEVEL', 'debug')

    args = memmon.parseArgs([])

    assert(args.endpoint == 'env.iot.eu-west-1.amazonaws.com')
    assert(args.thingName == 'envthing')
    assert(args.rootCAPath == 'env-CA.crt')
    assert(args.certificatePath == 'env.crt')
    assert(args.privateKeyPath == 'env.private.key')
    assert(args.port == 443)
    assert(args.logLevel == 'debug')

def test_parseArgs_command_line_wins_over_environment(monkeypatch):
    monkeypatch.setenv('MEMMON_THING_NAME', 'envthing')
    monkeypatch.setenv('MEMMON_PORT', '443')

    args = memmon.parseArgs(commandLine() + ['--port', '8443'])

    assert(args.thingName == 'memmon01')
    assert(args.port == 8443)

@pytest.mark.parametrize('flag', list(REQUIRED))
def test_parseArgs_missing_required_option(flag, capsys):
    with pytest.raises(SystemExit):
        memmon.parseArgs(commandLine(flag))
    assert('{0} is required'.format(flag) in capsys.readouterr().err)

def test_parseArgs_bad_port():
    with pytest.raises(SystemExit):
        memmon.parseArgs(commandLine() + ['--port', 'mqtt'])

import json

import pytest

from pyMemmon.Command import CommandDispatcher, DiagnosticsMode, humanizeDuration
from pyMemmon.Counters import Counters
from pyMemmon.Property import PropertyStore

from tests import simulator

@pytest.fixture
def dispatcher(request):
    store = PropertyStore({ 'enabled': True, 'interval': 750 })
    d = CommandDispatcher(store, Counters(), simulator.samplerSim(), sdkInfo='transportSim/1.0')

    def release():
        d.memory.release()

    request.addfinalizer(release)
    return d

def stats(dispatcher, mode):
    response = dispatcher.dispatch('getRuntimeStats', json.dumps(mode).encode())
    assert(response.status == 200)
    return json.loads(response.payload)

@pytest.mark.parametrize('number,expected', [
    (-7, True), (0, True), (1, True), (2, True), (3, True), (4, False), (9, False),
    (17, True), (18, False), (25, False), (97, True), (7919, True), (7921, False)
])
def test_isPrime(dispatcher, number, expected):
    assert(dispatcher.isPrime(number) is expected)

def test_isPrime_int32_limits(dispatcher):
    assert(dispatcher.dispatch('isPrime', str(2 ** 31 - 1).encode()) == (200, b'true'))
    assert(dispatcher.dispatch('isPrime', str(-2 ** 31).encode()) == (200, b'true'))

def test_isPrime_command(dispatcher):
    response = dispatcher.dispatch('isPrime', b'17')
    assert(response.status == 200)
    assert(json.loads(response.payload) is True)

    response = dispatcher.dispatch('isPrime', b'18')
    assert(json.loads(response.payload) is False)

@pytest.mark.parametrize('payload', [b'true', b'"17"', b'4.5', b'', b'{"n": 3}', b'not json',
    str(2 ** 31).encode(), str(-2 ** 31 - 1).encode(), b'170141183460469231731687303715884105727'])
def test_isPrime_bad_argument(dispatcher, payload):
    response = dispatcher.dispatch('isPrime', payload)
    assert(response.status == 400)
    assert('error' in json.loads(response.payload))

def test_runtime_stats_minimal(dispatcher):
    result = stats(dispatcher, 0)
    assert(set(result) == { 'machine name', 'os version', 'started' })

def test_runtime_stats_key_sets_grow(dispatcher):
    minimal = set(stats(dispatcher, 'minimal'))
    complete = set(stats(dispatcher, 'complete'))
    full = set(stats(dispatcher, 'full'))

    assert(minimal < complete < full)
    assert(complete - minimal == { 'sdk info' })
    assert(full - complete == { 'interval', 'enabled', 'twin receive', 'telemetry', 'command', 'reconnects', 'workingSet', 'GC Memory' })

def test_runtime_stats_full_values(dispatcher):
    dispatcher._counters.increment('twinReceive')
    result = stats(dispatcher, DiagnosticsMode.full.value)

    assert(all(isinstance(v, str) for v in result.values()))
    assert(result['sdk info'] == 'transportSim/1.0')
    assert(result['interval'] == '750')
    assert(result['enabled'] == 'True')
    assert(result['twin receive'] == '1')
    assert(result['command'] == '1')
    assert(result['workingSet'] == '64.0 MiB')
    assert(result['GC Memory'] == '16.0 MiB')

@pytest.mark.parametrize('mode', [3, -1, 'everything', True, None, 1.5])
def test_runtime_stats_bad_mode(dispatcher, mode):
    response = dispatcher.dispatch('getRuntimeStats', json.dumps(mode).encode())
    assert(response.status == 400)

def test_malloc_then_free(dispatcher):
    response = dispatcher.dispatch('malloc', b'5')
    assert(response == (200, b''))
    assert(len(dispatcher.memory.entries) == 5)
    assert(len(set(dispatcher.memory.entries)) == 5)
    assert(dispatcher.memory.buffer is not None)

    response = dispatcher.dispatch('free', b'')
    assert(response == (200, b''))
    assert(dispatcher.memory.entries == [])
    assert(dispatcher.memory.buffer is None)

def test_malloc_twice_leaks_first_buffer(dispatcher):
    # The first raw buffer is intentionally lost when malloc runs again before free
    dispatcher.dispatch('malloc', b'5')
    first = dispatcher.memory.buffer
    response = dispatcher.dispatch('malloc', b'5')

    assert(response.status == 200)
    assert(dispatcher.memory.buffer is not None)
    assert(dispatcher.memory.buffer != first)
    assert(len(dispatcher.memory.entries) == 10)

@pytest.mark.parametrize('payload', [b'-1', b'"big"', str(2 ** 31).encode(), str(-2 ** 31 - 1).encode()])
def test_malloc_bad_argument(dispatcher, payload):
    assert(dispatcher.dispatch('malloc', payload).status == 400)
    assert(dispatcher.memory.entries == [])

def test_free_without_malloc(dispatcher):
    assert(dispatcher.dispatch('free', b'null') == (200, b''))

@pytest.mark.parametrize('payload', [b'not json', b'{"now": true}', b'', None])
def test_free_ignores_payload(dispatcher, payload):
    dispatcher.dispatch('malloc', b'5')
    assert(dispatcher.dispatch('free', payload) == (200, b''))
    assert(dispatcher.memory.entries == [])

def test_command_counter_counts_every_outcome(dispatcher):
    dispatcher.dispatch('isPrime', b'7')
    dispatcher.dispatch('isPrime', b'nope')
    dispatcher.dispatch('reboot', b'')
    assert(dispatcher._counters.command == 3)

def test_failing_handler_answers_500(dispatcher):
    def broken(argument):
        raise RuntimeError('out of cheese')

    dispatcher._handlers['isPrime'] = broken
    response = dispatcher.dispatch('isPrime', b'7')

    assert(response.status == 500)
    assert(json.loads(response.payload) == { 'error': 'out of cheese' })
    assert(dispatcher._counters.command == 1)

def test_unknown_command(dispatcher):
    assert(dispatcher.dispatch('reboot', b'').status == 404)

def test_humanize_duration():
    assert(humanizeDuration(0) == '0 milliseconds')
    assert(humanizeDuration(1) == '1 second')
    assert(humanizeDuration(1.5) == '1 second and 500 milliseconds')
    assert(humanizeDuration(0.3) == '300 milliseconds')
    assert(humanizeDuration(3725) == '1 hour, 2 minutes and 5 seconds')
    assert(humanizeDuration(90061.25) == '1 day, 1 hour, 1 minute, 1 second and 250 milliseconds')

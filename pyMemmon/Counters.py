# -*- coding: utf-8 -*-
from threading import Lock

class Counters(object):
    ''' Process wide operation counters shared by the twin, command and telemetry handlers and read by diagnostics and the dashboard.

    Each counter only ever grows.  Increments are made under a lock so that callbacks arriving on transport threads never lose a count.

    '''

    NAMES = ('telemetry', 'command', 'twinReceive', 'reconnect')

    def __init__(self):
        self._lock = Lock()
        self._values = dict.fromkeys(self.NAMES, 0)

    def increment(self, name):
        ''' Add one to the named counter and return the new count

        Args:
            name (`str`): One of telemetry, command, twinReceive or reconnect

        Raises:
            KeyError: if name is not a known counter

        '''
        with self._lock:
            self._values[name] += 1
            return self._values[name]

    def snapshot(self):
        ''' Return a copy of all counters '''
        with self._lock:
            return dict(self._values)

    @property
    def telemetry(self):
        return self._values['telemetry']

    @property
    def command(self):
        return self._values['command']

    @property
    def twinReceive(self):
        return self._values['twinReceive']

    @property
    def reconnect(self):
        return self._values['reconnect']

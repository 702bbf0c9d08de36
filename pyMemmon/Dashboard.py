# -*- coding: utf-8 -*-
from threading import Event
import logging
import shutil
import sys
import time

from pyMemmon.Command import humanizeDuration
from pyMemmon.Telemetry import MEGABYTE

class Dashboard(object):
    ''' Console view of the device state, redrawn in place every refresh seconds.

    Args:
        store (:obj:`PropertyStore`): Device properties
        counters (:obj:`Counters`): Operation counters
        sampler (:obj:`RuntimeSampler`): Memory measurements
        title (`str`, optional): First line of the view, usually the endpoint and thing name
        sdkInfo (`str`, optional): Description of the connectivity library in use
        stream (`IOBase`, optional): Where the view is written.  Default is stdout
        refresh (`float`, optional): Seconds between redraws.  Default is 1

    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, store, counters, sampler, title='', sdkInfo='', stream=None, refresh=1.0):
        self._store = store
        self._counters = counters
        self._sampler = sampler
        self._title = title
        self._sdkInfo = sdkInfo
        self._stream = stream if stream is not None else sys.stdout
        self._refresh = refresh
        self._started = time.monotonic()
        self._exit = Event()

    def render(self):
        ''' Return the text of the view '''
        width = max(shutil.get_terminal_size((300, 24)).columns - 1, 1)
        counters = self._counters.snapshot()
        enabled = self._store.get('enabled')
        interval = self._store.get('interval')

        lines = [
            ' ',
            self._title,
            ' ',
            '{0:8} | {1:>15} | {2}'.format('Property', 'Value', 'Version'),
            '{0:8} | {1:>15} | {2}'.format('--------', '-' * 15, '-------'),
            '{0:8} | {1:>15} | {2}'.format('enabled', str(enabled.value), enabled.ackVersion),
            '{0:8} | {1:>15} | {2}'.format('interval', str(interval.value), interval.ackVersion),
            ' ',
            'Reconnects: {0}'.format(counters['reconnect']),
            'Telemetry: {0}'.format(counters['telemetry']),
            'Twin receive: {0}'.format(counters['twinReceive']),
            'Command messages: {0}'.format(counters['command']),
            ' ',
            'WorkingSet: {0:.2f} MB'.format(self._sampler.workingSet() / MEGABYTE),
            'ManagedMemory: {0:.2f} MB'.format(self._sampler.managedMemory(collect=False) / MEGABYTE),
            ' ',
            'Time Running: {0}'.format(humanizeDuration(time.monotonic() - self._started)),
            'SDK: {0}'.format(self._sdkInfo),
            ' '
        ]
        return '\n'.join(line.ljust(width) for line in lines)

    def run(self):
        ''' Redraw the view until exit is called '''
        while not self._exit.is_set():
            try:
                # move the cursor home so the view is redrawn over the previous one
                self._stream.write('\x1b[H' + self.render() + '\n')
                self._stream.flush()
            except (OSError, ValueError):
                self._logger.exception('Unable to refresh dashboard')
            if self._exit.wait(self._refresh):
                break

    def exit(self):
        self._exit.set()

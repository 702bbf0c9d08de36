# -*- coding: utf-8 -*-
from collections import namedtuple
from threading import Event
import gc
import logging
import tracemalloc

import psutil

MEGABYTE = 1024 * 1024


class TelemetrySample(namedtuple('TelemetrySample', ['workingSetMB', 'managedMemoryMB'])):
    __slots__ = ()

    def toMessage(self):
        ''' Return the telemetry message sent to the IOT service '''
        return { 'workingSet': self.workingSetMB, 'managedMemory': self.managedMemoryMB }


class RuntimeSampler(object):
    ''' Measures the memory used by the running process.

    The working set is the resident set size reported by the operating system.  Managed memory is the memory currently allocated by the interpreter as traced by tracemalloc, which is started when the sampler is created if it is not running already.

    Tracing is process wide and stays on once started.  It adds bookkeeping to every allocation the interpreter makes, so allocation heavy code runs noticeably slower, and the trace records themselves are resident memory.  The working set reported while tracing is therefore larger than the same process would use untraced, by roughly the size of the trace records for the live allocations.

    '''

    def __init__(self):
        self._process = psutil.Process()
        if not tracemalloc.is_tracing():
            tracemalloc.start()

    def workingSet(self):
        ''' Resident memory of the process in bytes '''
        return self._process.memory_info().rss

    def managedMemory(self, collect=True):
        ''' Bytes currently allocated by the interpreter, after a full collection when collect is True '''
        if collect:
            gc.collect()
        return tracemalloc.get_traced_memory()[0]

    def allocatedBytes(self):
        ''' Largest number of bytes the interpreter has held at once since tracing started '''
        return tracemalloc.get_traced_memory()[1]


class TelemetryScheduler(object):
    ''' Periodically samples memory usage and sends it as telemetry.

    The loop is level triggered.  Every tick reads enabled and interval from the property store, so a change made by the twin takes effect on the next tick.  While disabled the loop keeps sleeping for interval but sends nothing.

    Args:
        store (:obj:`PropertyStore`): Source of the enabled and interval properties
        counters (:obj:`Counters`): Receives one telemetry count per sample sent
        sampler (:obj:`RuntimeSampler`): Measures process memory
        send (`callable`): Called with each :obj:`TelemetrySample`

    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, store, counters, sampler, send):
        self._store = store
        self._counters = counters
        self._sampler = sampler
        self._send = send
        self._exit = Event()

    def tick(self):
        ''' Produce and send one sample if telemetry is enabled

        Returns:
            The :obj:`TelemetrySample` that was sent or None when telemetry is disabled

        '''
        if not self._store.value('enabled'):
            return None

        self._counters.increment('telemetry')
        sample = TelemetrySample(
            self._sampler.workingSet() / MEGABYTE,
            self._sampler.managedMemory() / MEGABYTE
        )
        self._send(sample)
        return sample

    def run(self):
        ''' Run the telemetry loop until exit is called '''
        self._logger.info('Starting telemetry loop')
        while not self._exit.is_set():
            try:
                self.tick()
            except Exception:
                self._logger.exception('Unable to send telemetry')

            interval = max(self._store.value('interval'), 0)
            if self._exit.wait(interval / 1000.0):
                break
        self._logger.info('Telemetry loop stopped')

    def exit(self):
        ''' Stop the telemetry loop.  A loop that is sleeping returns immediately '''
        self._exit.set()
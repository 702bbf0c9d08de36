# -*- coding: utf-8 -*-
from collections import namedtuple
from datetime import timedelta
from enum import IntEnum
from threading import Lock
import ctypes
import gc
import json
import logging
import math
import platform
import time

import humanize

from pyMemmon.Property import DecodeError

# Raw allocator of the interpreter.  Blocks obtained here are invisible to the garbage collector.
_rawMalloc = ctypes.pythonapi.PyMem_RawMalloc
_rawMalloc.argtypes = [ctypes.c_size_t]
_rawMalloc.restype = ctypes.c_void_p
_rawFree = ctypes.pythonapi.PyMem_RawFree
_rawFree.argtypes = [ctypes.c_void_p]
_rawFree.restype = None


class DiagnosticsMode(IntEnum):
    minimal = 0
    complete = 1
    full = 2


# JSON arguments are 32 bit signed integers
INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1

CommandResponse = namedtuple('CommandResponse', ['status', 'payload'])


def humanizeDuration(seconds):
    ''' Format a duration to the millisecond, such as `1 hour, 2 minutes and 5 seconds` '''
    return humanize.precisedelta(timedelta(milliseconds=round(max(seconds, 0) * 1000)), minimum_unit='milliseconds')


class MemoryPressure(object):
    ''' Synthetic memory used by the malloc and free commands.

    Entries grow the interpreter heap.  The raw buffer is allocated outside of it.  Only the most recent raw buffer is remembered, so calling allocate twice without release leaks the first buffer on purpose.

    '''

    def __init__(self):
        self._lock = Lock()
        self.entries = []
        self.buffer = None

    def allocate(self, count):
        with self._lock:
            self.entries.extend('entry {0}'.format(i) for i in range(len(self.entries), len(self.entries) + count))
            self.buffer = _rawMalloc(count)

    def release(self):
        with self._lock:
            self.entries = []
            gc.collect()
            if self.buffer is not None:
                _rawFree(self.buffer)
                self.buffer = None


class CommandDispatcher(object):
    ''' Executes the commands that can be invoked remotely on the device.

    Every command receives a single JSON encoded argument and answers with a status code and a JSON payload.

    ===================  =============================  ========================================
    Command              Argument                       Response
    ===================  =============================  ========================================
    getRuntimeStats      0, 1, 2 or minimal/complete/   flat object of strings
                         full
    isPrime              integer                        true or false
    malloc               non negative integer           empty
    free                 ignored                        empty
    ===================  =============================  ========================================

    A malformed argument answers 400.  A command that fails answers 500.  The dispatcher itself never raises.

    Args:
        store (:obj:`PropertyStore`): Device properties reported by getRuntimeStats
        counters (:obj:`Counters`): Receives one command count per dispatched command
        sampler (:obj:`RuntimeSampler`): Source of the memory figures reported by getRuntimeStats
        sdkInfo (`str`, optional): Description of the connectivity library in use

    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, store, counters, sampler, sdkInfo=''):
        self._store = store
        self._counters = counters
        self._sampler = sampler
        self._sdkInfo = sdkInfo
        self._started = time.monotonic()
        self.memory = MemoryPressure()

        self._handlers = {
            'getRuntimeStats': self.getRuntimeStats,
            'isPrime': self.isPrime,
            'malloc': self.malloc,
            'free': self.free
        }
        # commands that take no argument never look at their payload
        self._ignorePayload = { 'free' }

    def dispatch(self, name, payload):
        ''' Run the named command

        Args:
            name (`str`): Command name
            payload (`bytes` or `str`): The JSON encoded argument.  An empty payload is read as null.  The payload of free is ignored.

        Returns:
            :obj:`CommandResponse`

        '''
        self._counters.increment('command')

        handler = self._handlers.get(name)
        if handler is None:
            self._logger.warning('Received unknown command {0}'.format(name))
            return self._error(404, '{0} is not a supported command'.format(name))

        try:
            result = handler(None if name in self._ignorePayload else self._load(payload))
        except DecodeError as e:
            self._logger.warning('{0} rejected: {1}'.format(name, e))
            return self._error(400, str(e))
        except Exception as e:
            self._logger.exception('{0} failed'.format(name))
            return self._error(500, str(e))

        self._logger.info('{0} completed'.format(name))
        return CommandResponse(200, b'' if result is None else json.dumps(result).encode())

    @staticmethod
    def _error(status, message):
        return CommandResponse(status, json.dumps({ 'error': message }).encode())

    @staticmethod
    def _load(payload):
        if isinstance(payload, bytes):
            payload = payload.decode('utf-8', errors='replace')
        if payload is None or not payload.strip():
            return None
        try:
            return json.loads(payload)
        except ValueError:
            raise DecodeError('{0} is not valid JSON'.format(payload))

    @staticmethod
    def _integer(value, name):
        if isinstance(value, bool) or not isinstance(value, int):
            raise DecodeError('{0} must be an integer, received {1}'.format(name, json.dumps(value)))
        if not INT32_MIN <= value <= INT32_MAX:
            raise DecodeError('{0} must be between {1} and {2}, received {3}'.format(name, INT32_MIN, INT32_MAX, value))
        return value

    @staticmethod
    def _mode(value):
        try:
            if isinstance(value, str):
                return DiagnosticsMode[value]
            if isinstance(value, int) and not isinstance(value, bool):
                return DiagnosticsMode(value)
        except (KeyError, ValueError):
            pass
        raise DecodeError('{0} is not a valid diagnostics mode'.format(json.dumps(value)))

    def getRuntimeStats(self, mode):
        ''' Describe the running device.  Each mode includes every key of the previous one '''
        mode = self._mode(mode)
        result = {
            'machine name': platform.node(),
            'os version': platform.platform(),
            'started': humanizeDuration(time.monotonic() - self._started)
        }
        if mode >= DiagnosticsMode.complete:
            result['sdk info'] = self._sdkInfo
        if mode == DiagnosticsMode.full:
            result['interval'] = str(self._store.value('interval'))
            result['enabled'] = str(self._store.value('enabled'))
            result['twin receive'] = str(self._counters.twinReceive)
            result['telemetry'] = str(self._counters.telemetry)
            result['command'] = str(self._counters.command)
            result['reconnects'] = str(self._counters.reconnect)
            result['workingSet'] = humanize.naturalsize(self._sampler.workingSet(), binary=True)
            result['GC Memory'] = humanize.naturalsize(self._sampler.allocatedBytes(), binary=True)
        return result

    def isPrime(self, number):
        ''' Return False when number is the product of two integers a and b with 2 <= a <= number/2 and b >= 2.

        Numbers below 4, including 0, 1 and negative numbers, have no such factors and are reported as prime.
        '''
        number = self._integer(number, 'isPrime argument')
        # the smaller factor of any such pair is at most isqrt(number), which never exceeds number/2
        if number < 4:
            return True
        return not any(number % a == 0 for a in range(2, math.isqrt(number) + 1))

    def malloc(self, count):
        count = self._integer(count, 'malloc argument')
        if count < 0:
            raise DecodeError('malloc argument must not be negative, received {0}'.format(count))
        self.memory.allocate(count)
        self._logger.info('Allocated {0} entries and a {0} byte buffer'.format(count))

    def free(self, _):
        self.memory.release()
        self._logger.info('Released synthetic memory')

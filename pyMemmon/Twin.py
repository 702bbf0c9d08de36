# -*- coding: utf-8 -*-
from collections import namedtuple
from datetime import datetime
from functools import partial
import logging

from pyMemmon.Property import decode, decodeBool, decodeInt, encode


class PropertySnapshot(namedtuple('PropertySnapshot', ['desired', 'reported', 'desiredVersion', 'reportedVersion'])):
    ''' The desired and reported sections of the twin as received once at startup '''
    __slots__ = ()

    @classmethod
    def fromShadow(cls, document):
        ''' Build a snapshot from a shadow document (e.g. `{"state": {"desired": {...}, "reported": {...}}, "version": 7}`)

        The shadow carries a single version for the whole document, so it is used for both sections.

        '''
        document = document or {}
        state = document.get('state') or {}
        version = document.get('version', 0)
        return cls(dict(state.get('desired') or {}), dict(state.get('reported') or {}), version, version)


class DesiredDelta(namedtuple('DesiredDelta', ['properties', 'version'])):
    ''' A batch of desired property changes that share one twin version '''
    __slots__ = ()

    @classmethod
    def fromPatch(cls, patch):
        ''' Build a delta from a desired patch such as `{"enabled": true, "$version": 4}`.  Keys starting with $ are metadata '''
        version = patch.get('$version', 0)
        properties = { k: v for k, v in patch.items() if not k.startswith('$') }
        return cls(properties, version)


class TwinReconciler(object):
    ''' Keeps the :obj:`PropertyStore` consistent with the twin.

    At startup the reconciler seeds every property from the twin snapshot and reports what the device is running with.  Afterwards it applies each desired delta and reports a batched acknowledgement of the properties that changed.

    Args:
        store (:obj:`PropertyStore`): The store holding the device properties
        counters (:obj:`Counters`): Receives one twinReceive count per delta
        report (`callable`): Called with a partial reported document whenever an acknowledgement must be sent

    '''
    _logger = logging.getLogger(__name__)

    # Properties the device understands and the decoder for each one
    properties = {
        'enabled': decodeBool,
        'interval': decodeInt
    }

    def __init__(self, store, counters, report):
        self._store = store
        self._counters = counters
        self._report = report

    @classmethod
    def _resolve(cls, snapshot, name, default):
        decoder = cls.properties.get(name) or partial(decode, kind=type(default))
        value = decoder(snapshot.desired.get(name))
        if value is not None:
            return value, snapshot.desiredVersion
        value = decoder(snapshot.reported.get(name))
        if value is not None:
            return value, 0
        return default, 0

    @classmethod
    def initProperty(cls, snapshot, name, default):
        ''' Return the starting value of a property

        The desired value wins over the last reported value which wins over the default.  A value that is missing or malformed in a section is treated as absent from that section.

        Args:
            snapshot (:obj:`PropertySnapshot`): The twin received at startup
            name (`str`): Name of the property
            default: Value to use when neither section holds a usable value

        '''
        return cls._resolve(snapshot, name, default)[0]

    def seed(self, snapshot):
        ''' Initialize every property from the startup twin and send the startup report

        Each property is reported with status 200 and the version of the reported section, whatever source its value came from.

        Returns:
            The reported document that was sent

        '''
        reported = { 'started': datetime.now().isoformat() }
        for name in self.properties:
            default = self._store.value(name)
            value, version = self._resolve(snapshot, name, default)
            self._store.set(name, value, version, 200, 'prop initialized')
            reported[name] = {
                'value': value,
                'ac': 200,
                'av': snapshot.reportedVersion,
                'ad': 'prop initialized'
            }
            self._logger.info('{0} initialized to {1}'.format(name, value))

        self._report(reported)
        return reported

    def applyDesired(self, delta):
        ''' Apply a desired property delta and acknowledge the properties it changed

        Only enabled and interval are recognized.  Other properties are ignored.  A recognized property whose value can not be decoded is skipped and not acknowledged.  A single report holding only the accepted properties is sent, and nothing is sent when no property was accepted.

        Args:
            delta (:obj:`DesiredDelta`): The desired changes and their version

        Returns:
            `dict` of the acknowledgements that were reported

        '''
        self._counters.increment('twinReceive')

        ack = dict()
        for name, raw in delta.properties.items():
            decoder = self.properties.get(name)
            if decoder is None:
                self._logger.debug('Ignoring unrecognized desired property {0}'.format(name))
                continue

            value = decoder(raw)
            if value is None:
                self._logger.warning('{0} is not a valid value for property {1}'.format(raw, name))
                continue

            prop = self._store.set(name, value, delta.version, 200, 'prop accepted')
            ack[name] = encode(prop)
            self._logger.info('Desired {0} accepted: {1} (version {2})'.format(name, value, delta.version))

        if ack:
            self._report(ack)
        return ack

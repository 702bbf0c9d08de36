# -*- coding: utf-8 -*-
from collections import namedtuple
from threading import Lock
import logging

class DecodeError(ValueError):
    ''' Raised when a value required by an operation is missing or has the wrong shape '''


Property = namedtuple('Property', ['name', 'value', 'ackVersion', 'ackStatus', 'ackDescription'])
Property.__doc__ = ''' The current value of a device property together with the acknowledgement that was reported for it.

    ackVersion is the desired version that produced value, or 0 when value came from a default or from the reported section of the twin.
'''


def decode(raw, kind):
    ''' Decode a property value from its twin wire representation

    The twin can hold a property either as a bare value (e.g. `{"enabled": true}`) or as an acknowledged object (e.g. `{"enabled": {"value": true, "ac": 200}}`).  Both shapes are accepted.

    Args:
        raw: The raw value found in the twin under the property name.  None when the property is missing.
        kind (`type`): bool or int

    Returns:
        The decoded value, or `None` if the property is absent or can not be converted to kind.  A falsy value such as False or 0 is returned as is.

    '''
    if isinstance(raw, dict):
        raw = raw.get('value')
    if raw is None:
        return None
    if kind is bool:
        return raw if isinstance(raw, bool) else None
    if kind is int:
        # bool is a subclass of int but is never a valid number here
        if isinstance(raw, bool):
            return None
        if isinstance(raw, int):
            return raw
        if isinstance(raw, float) and raw.is_integer():
            return int(raw)
        return None
    raise TypeError('{0} is not a supported property type'.format(kind.__name__))


def decodeBool(raw):
    return decode(raw, bool)


def decodeInt(raw):
    return decode(raw, int)


def encode(prop):
    ''' Encode a property as the acknowledgement object sent in a reported update '''
    return {
        'value': prop.value,
        'ac': prop.ackStatus,
        'av': prop.ackVersion,
        'ad': prop.ackDescription
    }


class PropertyStore(object):
    ''' Holds the device configuration and the acknowledgement state of every property.

    Args:
        defaults (`dict`): The properties the device supports and the value each starts with

    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, defaults):
        self._lock = Lock()
        self._properties = { name: Property(name, value, 0, 0, '') for name, value in defaults.items() }

    def get(self, name):
        ''' Return the :obj:`Property` record for name.  Raises KeyError for an unknown property '''
        return self._properties[name]

    def value(self, name):
        return self._properties[name].value

    def set(self, name, value, version, status, description):
        ''' Replace a property.  The value and its acknowledgement are always updated together

        Args:
            name (`str`): Name of an existing property
            value: The new value
            version (`int`): The desired version that produced this value
            status (`int`): Acknowledgement status code
            description (`str`): Acknowledgement description

        Returns:
            The new :obj:`Property`

        '''
        with self._lock:
            if name not in self._properties:
                raise KeyError(name)
            prop = Property(name, value, version, status, description)
            self._properties[name] = prop
        self._logger.debug('{0} set to {1} (version {2}, status {3})'.format(name, value, version, status))
        return prop

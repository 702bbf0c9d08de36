"""**A simulated memory monitor device for the Amazon AWS IOT-Core service.**

.. module:: pyMemmon

pyMemmon runs a device that reports the memory used by its own process, answers a small set of remote commands and keeps its configuration synchronized with its device Shadow.  In IOT-Core the Shadow is a JSON document holding the desired state of the device, set by an operator, and the reported state, sent by the device.  Whenever the desired state changes pyMemmon applies the new values and acknowledges them in the reported state with a status code, the version of the desired state they answer and a description.

The device has two properties.  `enabled` turns telemetry on and off and `interval` sets the number of milliseconds between two telemetry messages.  At startup each property takes its desired value if there is one, otherwise its last reported value, otherwise its default.

Commands are received over MQTT and answered with a status code and a JSON payload.  `getRuntimeStats` describes the device, `isPrime` exercises the CPU, `malloc` and `free` grow and release memory so that the telemetry has something to show.

"""

from pyMemmon.Device import Device
from pyMemmon.Transport import ShadowTransport, TransportError
from pyMemmon.Property import DecodeError

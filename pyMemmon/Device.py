# -*- coding: utf-8 -*-
from threading import Thread
import logging
import queue

from pyMemmon.Command import CommandDispatcher
from pyMemmon.Counters import Counters
from pyMemmon.Dashboard import Dashboard
from pyMemmon.Property import PropertyStore
from pyMemmon.Telemetry import RuntimeSampler, TelemetryScheduler
from pyMemmon.Transport import TransportError
from pyMemmon.Twin import DesiredDelta, PropertySnapshot, TwinReconciler

class Device(object):
    ''' A memory monitor device that keeps its configuration synchronized with the IOT service, sends memory telemetry and answers remote commands.

    The device owns two properties which can be changed through the desired state of the twin:

    * enabled (`bool`): whether telemetry is sent.  Default is False
    * interval (`int`): milliseconds between two telemetry messages.  Default is 500

    Messages arriving from the transport are queued and handled one at a time by the main loop started with :meth:`start`.  The telemetry loop and the dashboard run on their own threads.

    Args:
        transport (:obj:`ShadowTransport`): Connection to the IOT service
        sampler (:obj:`RuntimeSampler`, optional): Memory measurements.  One is created when not provided
        counters (:obj:`Counters`, optional): Operation counters.  One is created when not provided
        dashboard (`bool` or :obj:`IOBase`, optional): Show the console dashboard.  Pass a stream to draw it somewhere other than stdout

    '''
    _logger = logging.getLogger(__name__)

    defaultEnabled = False
    defaultInterval = 500

    def __init__(self, transport, sampler=None, counters=None, dashboard=False):
        self._transport = transport
        self._eventQueue = queue.Queue()
        self.counters = counters if counters is not None else Counters()
        self.sampler = sampler if sampler is not None else RuntimeSampler()
        self.store = PropertyStore({ 'enabled': self.defaultEnabled, 'interval': self.defaultInterval })

        self.reconciler = TwinReconciler(self.store, self.counters, self._sendReported)
        self.dispatcher = CommandDispatcher(self.store, self.counters, self.sampler, sdkInfo=transport.productInfo)
        self.scheduler = TelemetryScheduler(self.store, self.counters, self.sampler, self._sendTelemetry)
        self.dashboard = None
        if dashboard:
            title = '{0} ({1})'.format(getattr(transport, 'endpoint', ''), getattr(transport, 'thingName', ''))
            self.dashboard = Dashboard(self.store, self.counters, self.sampler, title=title, sdkInfo=transport.productInfo,
                stream=None if dashboard is True else dashboard)

    def start(self, twinTimeout=5):
        ''' Connect, initialize the properties from the twin and process events until :meth:`exit` is called '''
        self._transport.connect(self._desiredCallback, self._commandCallback, self._reconnectCallback)
        try:
            twin = self._transport.getTwin(twinTimeout)
        except TransportError:
            self._logger.exception('Unable to retrieve the twin, starting from default values')
            twin = dict()
        self.reconciler.seed(PropertySnapshot.fromShadow(twin))

        Thread(target=self.scheduler.run, name='telemetry', daemon=True).start()
        if self.dashboard is not None:
            Thread(target=self.dashboard.run, name='dashboard', daemon=True).start()

        self._main()

    def exit(self):
        ''' Ask the main loop to stop '''
        self._eventQueue.put({'action': 'EXIT'})

    def _desiredCallback(self, patch):
        self._eventQueue.put({'source': '__transport__', 'action': 'DESIRED', 'patch': patch})

    def _commandCallback(self, name, requestId, payload):
        self._eventQueue.put({'source': '__transport__', 'action': 'COMMAND', 'name': name, 'requestId': requestId, 'payload': payload})

    def _reconnectCallback(self):
        self.counters.increment('reconnect')

    def _sendReported(self, patch):
        try:
            self._transport.updateReported(patch)
        except Exception:
            self._logger.exception('Unable to send reported properties')

    def _sendTelemetry(self, sample):
        self._transport.sendTelemetry(sample.toMessage())

    def _main(self):

        while True:
            message = self._eventQueue.get()
            self._eventQueue.task_done()

            if message['action'] == 'EXIT':
                ''' Stop the loops that run on their own threads and leave the main loop '''
                self.scheduler.exit()
                if self.dashboard is not None:
                    self.dashboard.exit()
                self._transport.disconnect()
                return

            if message['action'] == 'DESIRED':
                self.reconciler.applyDesired(DesiredDelta.fromPatch(message['patch']))

            elif message['action'] == 'COMMAND':
                response = self.dispatcher.dispatch(message['name'], message['payload'])
                try:
                    self._transport.respond(message['name'], message['requestId'], response.status, response.payload)
                except Exception:
                    self._logger.exception('Unable to respond to {0}'.format(message['name']))

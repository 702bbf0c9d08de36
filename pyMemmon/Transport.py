# -*- coding: utf-8 -*-
from threading import Event
import json
import logging

import AWSIoTPythonSDK
from AWSIoTPythonSDK.MQTTLib import AWSIoTMQTTShadowClient

class TransportError(Exception):
    ''' Raised when the IOT service does not answer a request the device can not run without '''


class ShadowTransport(object):
    ''' Connects the device to the AWS IOT-Core service.

    The device shadow plays the role of the twin.  Commands and telemetry travel over the MQTT connection of the shadow client using the following topics.

    ======================================================  ===========================================
    Topic                                                   Use
    ======================================================  ===========================================
    memmon/<thingName>/methods/POST/<command>/<requestId>   command request, payload is the argument
    memmon/<thingName>/methods/res/<status>/<requestId>     command response
    memmon/<thingName>/telemetry                            telemetry messages
    ======================================================  ===========================================

    Args:
        endpoint (`str`): URL of the IOT-Core endpoint assigned.  This is provided by the AWS IOT-Core service
        thingName (`str`): The name of your IOT device.  Must be globally unique within your AWS account
        rootCAPath (`str`): Path to the file which holds a valid AWS root certificate
        certificatePath (`str`): Path to the file which holds the certificate for your IOT device
        privateKeyPath (`str`): Path to the file which holds the private key for your IOT device
        port (`int`, optional): MQTT port.  Default is 8883
        client (:obj:`AWSIoTMQTTShadowClient`, optional): Preconfigured shadow client.  One is created when not provided

    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, endpoint=None, thingName=None, rootCAPath=None, certificatePath=None, privateKeyPath=None, port=8883, client=None):
        self.endpoint = endpoint
        self.thingName = thingName
        self._rootCAPath = rootCAPath
        self._certificatePath = certificatePath
        self._privateKeyPath = privateKeyPath
        self._port = port
        self._shadowClient = client if client is not None else AWSIoTMQTTShadowClient(thingName)
        self._shadowHandler = None
        self._mqtt = None
        self._lastDesired = dict() # last desired value seen for every property
        self._offline = False
        self._onDesired = None
        self._onCommand = None
        self._onReconnect = None

    @property
    def productInfo(self):
        return 'AWSIoTPythonSDK/{0}'.format(AWSIoTPythonSDK.__version__)

    @property
    def _methodsTopic(self):
        return 'memmon/{0}/methods'.format(self.thingName)

    @property
    def _telemetryTopic(self):
        return 'memmon/{0}/telemetry'.format(self.thingName)

    def connect(self, onDesired, onCommand, onReconnect=None):
        ''' Establish connection to the AWS IOT service

        Args:
            onDesired (`callable`): Called with a desired patch (e.g. `{"enabled": true, "$version": 9}`) whenever a desired property changes
            onCommand (`callable`): Called with the command name, request id and payload of every command request
            onReconnect (`callable`, optional): Called each time the connection comes back after being lost

        '''
        self._onDesired = onDesired
        self._onCommand = onCommand
        self._onReconnect = onReconnect

        self._shadowClient.configureEndpoint(self.endpoint, self._port)
        self._shadowClient.configureCredentials(self._rootCAPath, self._privateKeyPath, self._certificatePath)

        # AWSIoTMQTTShadowClient configuration
        self._shadowClient.configureAutoReconnectBackoffTime(1, 32, 20)
        self._shadowClient.configureConnectDisconnectTimeout(10)
        self._shadowClient.configureMQTTOperationTimeout(5)
        self._shadowClient.onOnline = self._onlineCallback
        self._shadowClient.onOffline = self._offlineCallback

        # Connect to AWS IoT
        self._shadowClient.connect()
        self._logger.info('Connected to {0} as {1}'.format(self.endpoint, self.thingName))

        # Create a deviceShadow with persistent subscription
        self._shadowHandler = self._shadowClient.createShadowHandlerWithName(self.thingName, True)

        # Listen on deltas
        self._shadowHandler.shadowRegisterDeltaCallback(self._deltaCallback)

        # Listen for commands
        self._mqtt = self._shadowClient.getMQTTConnection()
        self._mqtt.subscribe(self._methodsTopic + '/POST/#', 1, self._commandCallback)

    def disconnect(self):
        self._shadowClient.disconnect()
        self._logger.info('Disconnected from {0}'.format(self.endpoint))

    def getTwin(self, timeout=5):
        ''' Retrieve the current shadow document

        Returns:
            `dict` holding the shadow document.  An empty document is returned if the thing has no shadow yet.

        Raises:
            TransportError: if the request is rejected or times out

        '''
        received = Event()
        result = dict()

        def getCallback(payload, responseStatus, token):
            result['status'] = responseStatus
            result['payload'] = payload
            received.set()

        self._shadowHandler.shadowGet(getCallback, timeout)
        if not received.wait(timeout + 1):
            raise TransportError('Get request for {0} shadow received no response'.format(self.thingName))

        # a timed out request carries a plain text payload
        if result['status'] == 'accepted':
            document = json.loads(result['payload'])
        elif result['status'] == 'rejected' and json.loads(result['payload']).get('code') == 404:
            self._logger.info('{0} has no shadow yet'.format(self.thingName))
            document = dict()
        else:
            raise TransportError('Get request for {0} shadow {1}: {2}'.format(self.thingName, result['status'], result['payload']))

        desired = (document.get('state') or {}).get('desired') or {}
        self._lastDesired = dict(desired)
        return document

    def updateReported(self, patch):
        ''' Send a partial reported document to the shadow '''
        payloadDict = { 'state': { 'reported': patch } }
        self._shadowHandler.shadowUpdate(json.dumps(payloadDict), self._updateCallback, 5)

    def respond(self, name, requestId, status, payload):
        ''' Publish the response of a command '''
        topic = '{0}/res/{1}/{2}'.format(self._methodsTopic, status, requestId)
        self._mqtt.publish(topic, payload, 1)
        self._logger.debug('Responded to {0} request {1} with status {2}'.format(name, requestId, status))

    def sendTelemetry(self, message):
        self._mqtt.publish(self._telemetryTopic, json.dumps(message), 1)

    def _updateCallback(self, payload, responseStatus, token):
        ''' Log result when a request has been made to update the IOT shadow '''
        if responseStatus == 'accepted':
            self._logger.info('Update request {0} accepted'.format(token))
            return

        self._logger.warning({
            'timeout': 'Update request {0} timed out!'.format(token),
            'rejected': 'Update request {0} was rejected!'.format(token)
        }.get(responseStatus, 'Update request {0} contained unexpected response status {1}'.format(token, responseStatus)))

    def _deltaCallback(self, payload, responseStatus, token):
        ''' Receive a delta message from the IOT service and forward the desired properties that changed

        The service publishes a delta whenever desired and reported differ.  Because reported properties carry their acknowledgement they never equal the desired values, so a delta is also published after every reported update.  Only properties whose desired value is new are forwarded.

        '''
        payloadDict = json.loads(payload)
        state = payloadDict.get('state') or {}

        changed = { k: v for k, v in state.items() if k not in self._lastDesired or self._lastDesired[k] != v }
        if not changed:
            self._logger.debug('Ignoring delta version {0}, no desired property changed'.format(payloadDict.get('version')))
            return

        self._lastDesired.update(changed)
        changed['$version'] = payloadDict.get('version', 0)
        self._logger.info('Delta message received: {0}'.format(json.dumps(changed)))
        self._onDesired(changed)

    def _commandCallback(self, client, userdata, message):
        ''' Receive a command request and forward it '''
        parts = message.topic[len(self._methodsTopic) + 1:].split('/')
        if len(parts) != 3:
            self._logger.warning('Ignoring message on unexpected topic {0}'.format(message.topic))
            return
        _, name, requestId = parts
        self._logger.info('Command {0} received (request {1})'.format(name, requestId))
        self._onCommand(name, requestId, message.payload)

    def _onlineCallback(self):
        if self._offline:
            self._offline = False
            self._logger.info('Connection to {0} restored'.format(self.endpoint))
            if self._onReconnect:
                self._onReconnect()

    def _offlineCallback(self):
        self._offline = True
        self._logger.warning('Connection to {0} lost'.format(self.endpoint))

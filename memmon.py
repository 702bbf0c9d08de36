# -*- coding: utf-8 -*-
''' Run a pyMemmon device from the command line.

Every option can also be given through an environment variable (e.g. `MEMMON_ENDPOINT`).

Example:

    memmon --endpoint a1b2c3d4e5f6g7.iot.us-east-1.amazonaws.com --thing-name memmon01 \\
        --root-ca root-CA.crt --certificate memmon01.crt --private-key memmon01.private.key
'''
import argparse
import logging
import os
import signal
import sys

from pyMemmon import Device, ShadowTransport


def _env(name, default=None):
    return os.environ.get('MEMMON_' + name, default)


def parseArgs(argv=None):
    parser = argparse.ArgumentParser(description='Simulated memory monitor device for AWS IOT-Core')
    parser.add_argument('--endpoint', default=_env('ENDPOINT'), help='IOT-Core endpoint of your AWS account')
    parser.add_argument('--thing-name', dest='thingName', default=_env('THING_NAME'), help='Name of the IOT thing')
    parser.add_argument('--root-ca', dest='rootCAPath', default=_env('ROOT_CA', 'root-CA.crt'), help='Path to the AWS root certificate')
    parser.add_argument('--certificate', dest='certificatePath', default=_env('CERTIFICATE'), help='Path to the device certificate')
    parser.add_argument('--private-key', dest='privateKeyPath', default=_env('PRIVATE_KEY'), help='Path to the device private key')
    parser.add_argument('--port', type=int, default=int(_env('PORT', '8883')), help='MQTT port.  Default is 8883')
    parser.add_argument('--log-level', dest='logLevel', default=_env('LOG_LEVEL', 'WARNING'), help='Level of the pyMemmon logger.  Default is WARNING')
    parser.add_argument('--no-dashboard', dest='dashboard', action='store_false', help='Do not draw the console dashboard')

    args = parser.parse_args(argv)
    for option, flag in (('endpoint', '--endpoint'), ('thingName', '--thing-name'), ('certificatePath', '--certificate'), ('privateKeyPath', '--private-key')):
        if not getattr(args, option):
            parser.error('{0} is required'.format(flag))
    return args


def main(argv=None):
    args = parseArgs(argv)

    root = logging.getLogger('pyMemmon')
    root.setLevel(args.logLevel.upper())
    ch = logging.StreamHandler(sys.stderr)
    ch.setFormatter(logging.Formatter('%(asctime)s %(name)s %(levelname)s %(message)s'))
    root.addHandler(ch)

    transport = ShadowTransport(endpoint=args.endpoint, thingName=args.thingName, rootCAPath=args.rootCAPath,
        certificatePath=args.certificatePath, privateKeyPath=args.privateKeyPath, port=args.port)
    device = Device(transport, dashboard=args.dashboard)

    signal.signal(signal.SIGINT, lambda signum, frame: device.exit())
    signal.signal(signal.SIGTERM, lambda signum, frame: device.exit())

    device.start()


if __name__ == '__main__':
    main()

# Copyright (c) 2016-2018, Neil Booth
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''Script to run the UTXOBridge block processor.'''

import asyncio
import logging
import sys
import traceback

from utxobridge.server.controller import Controller
from utxobridge.server.env import Env


def main():
    '''Set up logging and run the bridge.'''
    log_fmt = Env.default('LOG_FORMAT', '%(levelname)s:%(name)s:%(message)s')
    log_level = Env.default('LOG_LEVEL', 'INFO').upper()
    logging.basicConfig(level=logging.INFO, format=log_fmt)
    logging.info('UTXOBridge starting')
    try:
        logging.getLogger().setLevel(log_level)
    except ValueError:
        logging.error(f'invalid LOG_LEVEL {log_level!r}; using INFO')
    try:
        controller = Controller(Env())
        asyncio.run(controller.run())
    except KeyboardInterrupt:
        logging.info('UTXOBridge interrupted')
        sys.exit(1)
    except Exception:
        traceback.print_exc()
        logging.critical('UTXOBridge terminated abnormally')
        sys.exit(1)
    else:
        logging.info('UTXOBridge terminated normally')


if __name__ == '__main__':
    main()

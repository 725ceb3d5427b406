# Copyright (c) 2016, Neil Booth
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''Class for handling environment configuration and defaults.'''


from os import environ

from utxobridge.lib.networks import (
    genesis_hash_for_net, magic_for_net, UnsupportedNetError,
)
from utxobridge.lib.util import class_logger


class Env:
    '''Wraps environment configuration.  Optionally, accepts values
    to override the environment.'''

    class Error(Exception):
        pass

    def __init__(self, *, net=None, blocks_dir=None, data_dir=None):
        self.logger = class_logger(__name__, self.__class__.__name__)

        self.net = net or self.default('NET', 'mainnet')
        try:
            self.genesis_hash = genesis_hash_for_net(self.net)
            self.magic = magic_for_net(self.net)
        except UnsupportedNetError as e:
            raise self.Error(str(e)) from None
        self.blocks_dir = blocks_dir or self.required('BLOCKS_DIR')
        self.data_dir = data_dir or self.default('DATA_DIR', '.')
        self.lookahead = self.integer('LOOKAHEAD', 1000)
        self.prefetch_blocks = self.integer('PREFETCH_BLOCKS', 10)
        self.max_blocks = self.integer('MAX_BLOCKS', 0)
        self.write_deletions = self.boolean('WRITE_DELETIONS', True)

        if self.lookahead < 0:
            raise self.Error(f'LOOKAHEAD must be non-negative: {self.lookahead}')
        if self.prefetch_blocks < 1:
            raise self.Error(f'PREFETCH_BLOCKS must be positive: {self.prefetch_blocks}')

    @classmethod
    def default(cls, envvar, default):
        return environ.get(envvar, default)

    @classmethod
    def boolean(cls, envvar, default):
        default = 'Yes' if default else ''
        return bool(cls.default(envvar, default).strip())

    @classmethod
    def required(cls, envvar):
        value = environ.get(envvar)
        if value is None:
            raise cls.Error(f'required envvar {envvar} not set')
        return value

    @classmethod
    def integer(cls, envvar, default):
        value = environ.get(envvar)
        if value is None:
            return default
        try:
            return int(value)
        except Exception:
            raise cls.Error(f'cannot convert envvar {envvar} value {value} to an integer')

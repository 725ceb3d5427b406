# Copyright (c) 2016-2017, Neil Booth
# Copyright (c) 2017, the ElectrumX authors
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''Per-network constants: genesis block hashes and message start bytes.'''

from types import MappingProxyType

from utxobridge.lib.hash import sha256

# Hashes are in internal (serialized) byte order
GENESIS_HASHES = MappingProxyType({
    'mainnet': bytes.fromhex(
        '6fe28c0ab6f1b372c1a6a246ae63f74f931e8365e15a089c68d6190000000000'),
    'testnet3': bytes.fromhex(
        '43497fd7f826957108f4a30fd9cec3aeba79972084e90ead01ea330900000000'),
    'regtest': bytes.fromhex(
        '06226e46111a0b59caaf126043eb5bbf28c34f3a5e332a1fc7b2b73cf188910f'),
    'signet': bytes.fromhex(
        'f61eee3b63a380a477a063af32b2bbc97c9ff9f01f2c4225e973988108000000'),
})

MAGIC_BYTES = MappingProxyType({
    'mainnet': bytes.fromhex('f9beb4d9'),
    'testnet3': bytes.fromhex('0b110907'),
    'regtest': bytes.fromhex('fabfb5da'),
    'signet': bytes.fromhex('0a03cf40'),
})

_ALL_MAGIC = frozenset(MAGIC_BYTES.values())


class UnsupportedNetError(ValueError):
    '''Raised when a network name is not known.'''


def genesis_hash_for_net(net):
    '''Return the genesis block hash of the named network.'''
    try:
        return GENESIS_HASHES[net]
    except KeyError:
        raise UnsupportedNetError(f'network {net!r} not supported') from None


def magic_for_net(net):
    '''Return the 4 message start bytes of the named network.'''
    try:
        return MAGIC_BYTES[net]
    except KeyError:
        raise UnsupportedNetError(f'network {net!r} not supported') from None


def is_magic_bytes(data):
    '''Return True if data is the message start of a supported network.'''
    return bytes(data) in _ALL_MAGIC


def hash_from_string(s):
    '''Return the SHA-256 of the UTF-8 encoding of s.'''
    return sha256(s.encode())

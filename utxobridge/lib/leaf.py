# Copyright (c) 2016-2017, Neil Booth
# Copyright (c) 2017, the ElectrumX authors
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''Accumulator leaf records.

A leaf commits to everything needed to later prove an output unspent:

    block_hash(32) | tx_hash(32) | out_idx BE32 | cb_height BE32 (signed)
    | amount BE64 (signed) | pk_script (rest)

There is no terminator; the script runs to the end of the record, so a
stream of leaves must be framed (see framing.py).
'''

from dataclasses import dataclass

from utxobridge.lib.hash import sha256, hash_to_hex_str
from utxobridge.lib.tx import OutPoint
from utxobridge.lib.util import (
    pack_be_uint32, pack_be_int32, pack_be_int64,
    unpack_be_uint32_from, unpack_be_int32_from, unpack_be_int64_from,
)

LEAF_PREFIX_LEN = 80


class MalformedLeafError(ValueError):
    '''Raised when bytes are too short to hold a leaf record.'''


@dataclass(frozen=True)
class LeafData:
    '''All the data that goes into a leaf of the accumulator.'''
    __slots__ = 'block_hash', 'outpoint', 'cb_height', 'amount', 'pk_script'
    block_hash: bytes
    outpoint: OutPoint
    cb_height: int
    amount: int
    pk_script: bytes

    def __str__(self):
        return (f'Leaf({self.outpoint}, block={hash_to_hex_str(self.block_hash)}, '
                f'height={self.cb_height:,d}, amount={self.amount:,d})')

    def serialize(self):
        return b''.join((
            self.block_hash,
            self.outpoint.to_bytes(),
            pack_be_int32(self.cb_height),
            pack_be_int64(self.amount),
            self.pk_script,
        ))

    @classmethod
    def deserialize(cls, data):
        '''Return a LeafData parsed from data.

        Everything past the fixed prefix is taken as the script.
        '''
        if len(data) < LEAF_PREFIX_LEN:
            raise MalformedLeafError(
                f'leaf needs at least {LEAF_PREFIX_LEN} bytes, got {len(data):,d}'
            )
        data = bytes(data)
        index, = unpack_be_uint32_from(data, 64)
        cb_height, = unpack_be_int32_from(data, 68)
        amount, = unpack_be_int64_from(data, 72)
        return cls(
            data[0:32],
            OutPoint(data[32:64], index),
            cb_height,
            amount,
            data[LEAF_PREFIX_LEN:],
        )

    def leaf_hash(self):
        '''The accumulator identity of this leaf: SHA-256 of its serialization.'''
        return sha256(self.serialize())

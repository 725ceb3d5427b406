# Copyright (c) 2016-2017, Neil Booth
# Copyright (c) 2017, the ElectrumX authors
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''Transaction-related classes and functions.'''

from dataclasses import dataclass
from typing import Sequence, Tuple

from utxobridge.lib.hash import double_sha256, hash_to_hex_str
from utxobridge.lib.script import is_unspendable
from utxobridge.lib.util import (
    unpack_le_int32_from, unpack_le_int64_from, unpack_le_uint16_from,
    unpack_le_uint32_from, unpack_le_uint64_from, pack_le_int32, pack_varint,
    pack_le_uint32, pack_le_int64, pack_varbytes, pack_be_uint32,
)

ZERO = bytes(32)
MINUS_1 = 4294967295
HEADER_LEN = 80


@dataclass(frozen=True)
class OutPoint:
    '''A reference to one output of one transaction.

    Value type: hashable and comparable, so usable as a dict key.
    '''
    __slots__ = 'tx_hash', 'index'
    tx_hash: bytes
    index: int

    def __str__(self):
        return f'{hash_to_hex_str(self.tx_hash)}:{self.index:d}'

    def to_bytes(self):
        '''The 36 byte form: the txid in internal byte order followed by
        the output index as a big-endian uint32.'''
        return self.tx_hash + pack_be_uint32(self.index)


@dataclass
class Tx:
    '''Class representing a transaction.'''
    __slots__ = 'version', 'inputs', 'outputs', 'locktime'
    version: int
    inputs: Sequence['TxInput']
    outputs: Sequence['TxOutput']
    locktime: int

    def serialize(self):
        return b''.join((
            pack_le_int32(self.version),
            pack_varint(len(self.inputs)),
            b''.join(tx_in.serialize() for tx_in in self.inputs),
            pack_varint(len(self.outputs)),
            b''.join(tx_out.serialize() for tx_out in self.outputs),
            pack_le_uint32(self.locktime)
        ))


@dataclass
class TxInput:
    '''Class representing a transaction input.'''
    __slots__ = 'prev_hash', 'prev_idx', 'script', 'sequence'
    prev_hash: bytes
    prev_idx: int
    script: bytes
    sequence: int

    def __str__(self):
        script = self.script.hex()
        prev_hash = hash_to_hex_str(self.prev_hash)
        return (f"Input({prev_hash}, {self.prev_idx:d}, script={script}, "
                f"sequence={self.sequence:d})")

    def is_generation(self):
        '''Test if an input is generation/coinbase like'''
        return self.prev_idx == MINUS_1 and self.prev_hash == ZERO

    @property
    def prevout(self):
        return OutPoint(self.prev_hash, self.prev_idx)

    def serialize(self):
        return b''.join((
            self.prev_hash,
            pack_le_uint32(self.prev_idx),
            pack_varbytes(self.script),
            pack_le_uint32(self.sequence),
        ))


@dataclass
class TxOutput:
    __slots__ = 'value', 'pk_script'
    value: int
    pk_script: bytes

    def is_unspendable(self):
        return is_unspendable(self.pk_script)

    def serialize(self):
        return b''.join((
            pack_le_int64(self.value),
            pack_varbytes(self.pk_script),
        ))


@dataclass
class TxSegWit:
    '''Class representing a SegWit transaction.'''
    __slots__ = ('version', 'marker', 'flag', 'inputs', 'outputs',
                 'witness', 'locktime')
    version: int
    marker: int
    flag: int
    inputs: Sequence[TxInput]
    outputs: Sequence[TxOutput]
    witness: Sequence
    locktime: int


@dataclass
class Block:
    '''A deserialized block.  Transaction 0 is the coinbase.'''
    __slots__ = 'raw', 'header', 'transactions'
    raw: bytes
    header: bytes
    transactions: Sequence[Tuple[Tx, bytes]]

    @property
    def block_hash(self):
        return double_sha256(self.header)

    @property
    def prev_hash(self):
        return self.header[4:36]


class Deserializer:
    '''Deserializes blocks into transactions.

    External entry points are read_tx(), read_tx_and_hash(),
    read_tx_block() and read_block().

    This code is performance sensitive as it is executed 100s of
    millions of times during sync.
    '''

    TX_HASH_FN = staticmethod(double_sha256)

    def __init__(self, binary, start=0):
        assert isinstance(binary, bytes)
        self.binary = binary
        self.binary_length = len(binary)
        self.cursor = start

    def read_tx(self):
        '''Return a deserialized transaction.'''
        return Tx(
            self._read_le_int32(),  # version
            self._read_inputs(),    # inputs
            self._read_outputs(),   # outputs
            self._read_le_uint32()  # locktime
        )

    def read_tx_and_hash(self):
        '''Return a (deserialized TX, tx_hash) pair.

        The hash needs to be reversed for human display; for efficiency
        we process it in the natural serialized order.
        '''
        start = self.cursor
        return self.read_tx(), self.TX_HASH_FN(self.binary[start:self.cursor])

    def read_tx_block(self):
        '''Returns a list of (deserialized_tx, tx_hash) pairs.'''
        read = self.read_tx_and_hash
        return [read() for _ in range(self._read_varint())]

    def read_block(self):
        '''Return a Block read from the start of the binary.'''
        header = self._read_nbytes(HEADER_LEN)
        return Block(self.binary, header, self.read_tx_block())

    def _read_inputs(self):
        read_input = self._read_input
        return [read_input() for i in range(self._read_varint())]

    def _read_input(self):
        return TxInput(
            self._read_nbytes(32),   # prev_hash
            self._read_le_uint32(),  # prev_idx
            self._read_varbytes(),   # script
            self._read_le_uint32()   # sequence
        )

    def _read_outputs(self):
        read_output = self._read_output
        return [read_output() for i in range(self._read_varint())]

    def _read_output(self):
        return TxOutput(
            self._read_le_int64(),  # value
            self._read_varbytes(),  # pk_script
        )

    def _read_byte(self):
        cursor = self.cursor
        self.cursor += 1
        return self.binary[cursor]

    def _read_nbytes(self, n):
        cursor = self.cursor
        self.cursor = end = cursor + n
        if self.binary_length < end:
            raise ValueError(
                f'Trying to read {n} bytes at position {cursor}, but only '
                f'{self.binary_length - cursor} bytes available'
            )
        return self.binary[cursor:end]

    def _read_varbytes(self):
        return self._read_nbytes(self._read_varint())

    def _read_varint(self):
        if self.cursor >= self.binary_length:
            raise ValueError(
                f'Reading varint at position {self.cursor} but only '
                f'{self.binary_length} bytes available'
            )
        n = self.binary[self.cursor]
        self.cursor += 1
        if n < 253:
            return n
        if n == 253:
            return self._read_le_uint16()
        if n == 254:
            return self._read_le_uint32()
        return self._read_le_uint64()

    def _read_le_int32(self):
        result, = unpack_le_int32_from(self.binary, self.cursor)
        self.cursor += 4
        return result

    def _read_le_int64(self):
        result, = unpack_le_int64_from(self.binary, self.cursor)
        self.cursor += 8
        return result

    def _read_le_uint16(self):
        result, = unpack_le_uint16_from(self.binary, self.cursor)
        self.cursor += 2
        return result

    def _read_le_uint32(self):
        result, = unpack_le_uint32_from(self.binary, self.cursor)
        self.cursor += 4
        return result

    def _read_le_uint64(self):
        result, = unpack_le_uint64_from(self.binary, self.cursor)
        self.cursor += 8
        return result


class DeserializerSegWit(Deserializer):

    # https://bitcoincore.org/en/segwit_wallet_dev/#transaction-serialization

    def _read_witness(self, fields):
        read_witness_field = self._read_witness_field
        return [read_witness_field() for i in range(fields)]

    def _read_witness_field(self):
        read_varbytes = self._read_varbytes
        return [read_varbytes() for i in range(self._read_varint())]

    def _read_tx_parts(self):
        '''Return a (deserialized TX, tx_hash) pair.

        The hash commits to the serialization without the marker, flag
        and witness data.
        '''
        start = self.cursor
        if self.cursor + 4 >= self.binary_length:
            raise ValueError(
                f'Not enough bytes to read transaction marker at position '
                f'{self.cursor + 4} (only {self.binary_length} bytes available)'
            )
        marker = self.binary[self.cursor + 4]
        if marker:
            tx = super().read_tx()
            return tx, self.TX_HASH_FN(self.binary[start:self.cursor])

        # Ugh, this is nasty.
        version = self._read_le_int32()
        orig_ser = self.binary[start:self.cursor]

        marker = self._read_byte()
        flag = self._read_byte()

        start = self.cursor
        inputs = self._read_inputs()
        outputs = self._read_outputs()
        orig_ser += self.binary[start:self.cursor]

        witness = self._read_witness(len(inputs))

        start = self.cursor
        locktime = self._read_le_uint32()
        orig_ser += self.binary[start:self.cursor]

        return (TxSegWit(version, marker, flag, inputs, outputs, witness, locktime),
                self.TX_HASH_FN(orig_ser))

    def read_tx(self):
        return self._read_tx_parts()[0]

    def read_tx_and_hash(self):
        return self._read_tx_parts()

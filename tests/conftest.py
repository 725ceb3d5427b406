'''Shared fixtures: hand-built transactions and blocks.'''

import pytest

from utxobridge.lib.hash import double_sha256
from utxobridge.lib.script import OpCodes
from utxobridge.lib.tx import Block, Tx, TxInput, TxOutput, ZERO, MINUS_1
from utxobridge.lib.util import pack_le_int32, pack_le_uint32, pack_varint


def p2pkh_script(tag=0):
    return bytes((OpCodes.OP_DUP, OpCodes.OP_HASH160, 20)) + bytes([tag]) * 20 + \
        bytes((OpCodes.OP_EQUALVERIFY, OpCodes.OP_CHECKSIG))


def _make_tx(prevouts, outputs=1, value=5000):
    '''Return a (tx, tx_hash) pair.

    prevouts is a list of (prev_hash, prev_idx) pairs.  outputs is a
    count of P2PKH outputs or a list of scripts.
    '''
    if isinstance(outputs, int):
        outputs = [p2pkh_script(n) for n in range(outputs)]
    tx = Tx(
        1,
        [TxInput(prev_hash, prev_idx, b'', 0xffffffff) for prev_hash, prev_idx in prevouts],
        [TxOutput(value + n, script) for n, script in enumerate(outputs)],
        0,
    )
    return tx, double_sha256(tx.serialize())


def _make_coinbase(height, outputs=1, extra_inputs=0):
    '''A coinbase (tx, tx_hash) pair, unique per height.'''
    inputs = [TxInput(ZERO, MINUS_1, pack_le_int32(height), 0xffffffff)]
    inputs += [TxInput(ZERO, MINUS_1, pack_le_int32(height) + bytes([n]), 0xffffffff)
               for n in range(1, extra_inputs + 1)]
    tx = Tx(
        1,
        inputs,
        [TxOutput(50 * 100_000_000, p2pkh_script(n)) for n in range(outputs)],
        0,
    )
    return tx, double_sha256(tx.serialize())


def _make_block(prev_hash, txs, nonce=0):
    '''Return a Block whose raw form deserializes back to it.'''
    merkle = double_sha256(b''.join(tx_hash for _tx, tx_hash in txs))
    header = b''.join((
        pack_le_int32(1),
        prev_hash,
        merkle,
        pack_le_uint32(1231006505),
        pack_le_uint32(0x1d00ffff),
        pack_le_uint32(nonce),
    ))
    raw = header + pack_varint(len(txs)) + b''.join(tx.serialize() for tx, _ in txs)
    return Block(raw, header, txs)


@pytest.fixture
def make_tx():
    return _make_tx


@pytest.fixture
def make_coinbase():
    return _make_coinbase


@pytest.fixture
def make_block():
    return _make_block


@pytest.fixture
def chain():
    '''Three connected blocks exercising intra-block spends.

    Block 0: coinbase only.
    Block 1: coinbase, tx A spending block 0's coinbase output, tx B
             spending A:0 (intra-block) and an OP_RETURN output.
    Block 2: coinbase, tx C spending A:1 and B:0.
    '''
    cb0 = _make_coinbase(0)
    block0 = _make_block(ZERO, [cb0])

    cb1 = _make_coinbase(1)
    tx_a = _make_tx([(cb0[1], 0)], outputs=2)
    tx_b = _make_tx([(tx_a[1], 0)], outputs=[p2pkh_script(7), b'\x6a\x01\x02'])
    block1 = _make_block(block0.block_hash, [cb1, tx_a, tx_b])

    cb2 = _make_coinbase(2)
    tx_c = _make_tx([(tx_a[1], 1), (tx_b[1], 0)])
    block2 = _make_block(block1.block_hash, [cb2, tx_c])

    return [block0, block1, block2]

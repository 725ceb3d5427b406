# Copyright (c) 2016-2017, Neil Booth
# Copyright (c) 2017, the ElectrumX authors
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''Intra-block deduplication of accumulator operations.

An output created and spent in the same block never needs to enter the
accumulator, and its spend needs no deletion proof.  Inputs and outputs
are numbered across the whole block, coinbase included, so the coinbase
shifts the numbering even though it is never deduplicated.
'''

from typing import List, Sequence, Tuple

from utxobridge.lib.tx import OutPoint, Tx


def dedupe_block(
        txs: Sequence[Tuple[Tx, bytes]],
) -> Tuple[int, int, List[int], List[int]]:
    '''Return (in_count, out_count, inskip, outskip) for a block.

    txs is the block's list of (tx, tx_hash) pairs.  inskip holds the
    block-wide indices of inputs spending an output of this block, and
    outskip the indices of those outputs.  Both are ascending.

    If two inputs spend the same outpoint only one of them is matched:
    the map entry for an outpoint is overwritten by each input
    registering it.
    '''
    in_map = {}
    put_input = in_map.__setitem__

    # Pass 1: register every non-coinbase input's outpoint
    idx = 0
    for n, (tx, _tx_hash) in enumerate(txs):
        if n == 0:
            # Coinbase inputs take indices but can't be deduped
            idx += len(tx.inputs)
            continue
        for txin in tx.inputs:
            put_input(OutPoint(txin.prev_hash, txin.prev_idx), idx)
            idx += 1
    in_count = idx

    # Pass 2: look up every non-coinbase output
    inskip = []
    outskip = []
    get_input = in_map.get
    idx = 0
    for n, (tx, tx_hash) in enumerate(txs):
        if n == 0:
            idx += len(tx.outputs)
            continue
        for out_idx in range(len(tx.outputs)):
            in_idx = get_input(OutPoint(tx_hash, out_idx))
            if in_idx is not None:
                inskip.append(in_idx)
                outskip.append(idx)
            idx += 1
    out_count = idx

    # inskip was built in output order, not input order
    inskip.sort()
    return in_count, out_count, inskip, outskip


def block_to_del_outpoints(
        txs: Sequence[Tuple[Tx, bytes]],
        inskip: Sequence[int],
) -> List[OutPoint]:
    '''Return the outpoints of a block that need deletion proofs.

    That is every input except coinbase inputs and those on inskip, in
    block order.  inskip must be ascending; it is walked with a cursor
    alongside the block's input numbering and is not modified.
    '''
    del_outpoints = []
    append = del_outpoints.append
    skip_pos = 0
    skip_len = len(inskip)

    idx = 0
    for n, (tx, _tx_hash) in enumerate(txs):
        if n == 0:
            idx += len(tx.inputs)
            continue
        for txin in tx.inputs:
            if skip_pos < skip_len and inskip[skip_pos] == idx:
                skip_pos += 1
            else:
                append(OutPoint(txin.prev_hash, txin.prev_idx))
            idx += 1

    return del_outpoints


def block_del_outpoints(txs: Sequence[Tuple[Tx, bytes]]) -> List[OutPoint]:
    '''Dedupe a block and return the outpoints needing deletion proofs.'''
    _in_count, _out_count, inskip, _outskip = dedupe_block(txs)
    return block_to_del_outpoints(txs, inskip)

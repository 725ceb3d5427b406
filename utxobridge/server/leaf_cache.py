# Copyright (c) 2016-2017, Neil Booth
# Copyright (c) 2017, the ElectrumX authors
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''The in-memory leaf cache.'''

import threading
from array import array
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from utxobridge.lib.compact import compact_in_place, check_positions
from utxobridge.lib.tx import OutPoint
from utxobridge.lib.util import class_logger


class LeafCache:
    '''Leaves created recently enough that they are expected to be spent
    soon, so their proofs are worth keeping in memory.

    Entries live in three parallel dense arrays (outpoints, leaf hashes
    and expiry heights) in insertion order.  Positions are not stable:
    removing a batch renumbers every entry after the first removed
    position, and the outpoint -> position index is rebuilt from there.

    Batch removal rewrites the arrays in place, so all access goes
    through one lock.
    '''

    def __init__(self):
        self.logger = class_logger(__name__, self.__class__.__name__)
        self.lock = threading.Lock()
        self.outpoints = []                     # type: List[OutPoint]
        self.leaf_hashes = []                   # type: List[bytes]
        self.expiries = array('q')
        self.positions = {}                     # type: Dict[OutPoint, int]

    def __len__(self):
        return len(self.outpoints)

    def __getitem__(self, pos) -> Tuple[OutPoint, bytes, int]:
        '''Return the (outpoint, leaf_hash, expiry_height) entry at pos.'''
        with self.lock:
            return self.outpoints[pos], self.leaf_hashes[pos], self.expiries[pos]

    def __contains__(self, outpoint):
        with self.lock:
            return outpoint in self.positions

    def position(self, outpoint: OutPoint) -> Optional[int]:
        with self.lock:
            return self.positions.get(outpoint)

    def leaf_hash(self, outpoint: OutPoint) -> Optional[bytes]:
        with self.lock:
            pos = self.positions.get(outpoint)
            return None if pos is None else self.leaf_hashes[pos]

    def add(self, outpoint: OutPoint, leaf_hash: bytes, expiry_height: int):
        with self.lock:
            if outpoint in self.positions:
                self.logger.warning(f'leaf for {outpoint} already cached')
                return
            self.positions[outpoint] = len(self.outpoints)
            self.outpoints.append(outpoint)
            self.leaf_hashes.append(leaf_hash)
            self.expiries.append(expiry_height)

    def _remove_positions(self, positions):
        # Caller holds the lock
        if not positions:
            return 0
        outpoints = self.outpoints
        check_positions(positions, len(outpoints))
        index = self.positions
        for pos in positions:
            del index[outpoints[pos]]
        compact_in_place(outpoints, positions)
        compact_in_place(self.leaf_hashes, positions)
        compact_in_place(self.expiries, positions)
        for pos in range(positions[0], len(outpoints)):
            index[outpoints[pos]] = pos
        return len(positions)

    def remove_positions(self, positions: Sequence[int]) -> int:
        '''Remove the entries at positions, which must be ascending and
        unique.  Returns the number removed.'''
        with self.lock:
            return self._remove_positions(positions)

    def spend(self, outpoints: Iterable[OutPoint]) -> int:
        '''Drop the entries of spent outpoints.  Outpoints not in the
        cache are ignored.  Returns the number dropped.'''
        with self.lock:
            get = self.positions.get
            positions = sorted({pos for pos in map(get, outpoints) if pos is not None})
            return self._remove_positions(positions)

    def expire(self, height: int) -> int:
        '''Drop entries whose expiry height is below height.  Returns the
        number dropped.'''
        with self.lock:
            positions = [pos for pos, expiry in enumerate(self.expiries)
                         if expiry < height]
            count = self._remove_positions(positions)
        if count:
            self.logger.debug(f'expired {count:,d} leaves below height {height:,d}')
        return count

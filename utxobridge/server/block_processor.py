# Copyright (c) 2016-2017, Neil Booth
# Copyright (c) 2017, the ElectrumX authors
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''Block prefetcher and chain processor.'''


import asyncio
import time
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import attr
from aiorpcx import TaskGroup, run_in_thread

from utxobridge.lib.dedup import dedupe_block, block_to_del_outpoints
from utxobridge.lib.framing import frame
from utxobridge.lib.hash import hash_to_hex_str
from utxobridge.lib.leaf import LeafData
from utxobridge.lib.tx import Block, DeserializerSegWit, OutPoint, Tx
from utxobridge.lib.util import class_logger
from utxobridge.server.leaf_cache import LeafCache


class ChainError(Exception):
    '''Raised on error processing blocks.'''


@attr.s(slots=True)
class BlockDelta:
    '''The accumulator operations of one block.'''
    height = attr.ib()
    block_hash = attr.ib()
    in_count = attr.ib()
    out_count = attr.ib()
    skipped = attr.ib()  # outputs created and spent within the block
    del_outpoints = attr.ib()  # type: List[OutPoint]  # in block input order
    leaves = attr.ib()  # type: List[LeafData]
    frames = attr.ib()  # type: List[bytes]  # framed serialized leaves
    cache_hits = attr.ib(default=0)


class Prefetcher:
    '''Prefetches raw blocks from a blocking source into a bounded queue.'''

    def __init__(self, raw_blocks: Iterable[bytes], queue: asyncio.Queue,
                 max_blocks: int = 0):
        self.logger = class_logger(__name__, self.__class__.__name__)
        self.raw_blocks = iter(raw_blocks)
        self.queue = queue
        self.max_blocks = max_blocks
        self.fetched = 0

    async def main_loop(self):
        '''Loop until the source is exhausted; None marks the end.'''
        try:
            while not self.max_blocks or self.fetched < self.max_blocks:
                # Reads are blocking disk I/O
                raw_block = await run_in_thread(next, self.raw_blocks, None)
                if raw_block is None:
                    break
                await self.queue.put(raw_block)
                self.fetched += 1
        except asyncio.CancelledError:
            self.logger.info('cancelled; prefetcher stopping')
            raise
        self.logger.info(f'prefetched {self.fetched:,d} blocks')
        await self.queue.put(None)


class BlockProcessor:
    '''Turn blocks into accumulator operations and keep the leaf cache
    in step.

    Each block is deduplicated, its deletions extracted and its new
    leaves built and framed; the resulting BlockDelta goes to the sink.
    A prefetcher reads ahead and a flusher drains results so one block
    can be processed while the previous one is written out.
    '''

    def __init__(self, sink: Callable[[BlockDelta], None], *,
                 leaf_cache: Optional[LeafCache] = None,
                 lookahead: int = 1000,
                 prefetch_blocks: int = 10,
                 max_blocks: int = 0,
                 genesis_hash: Optional[bytes] = None,
                 height: int = -1,
                 tip: Optional[bytes] = None):
        self.logger = class_logger(__name__, self.__class__.__name__)
        self.sink = sink
        self.leaf_cache = leaf_cache if leaf_cache is not None else LeafCache()
        self.lookahead = lookahead
        self.prefetch_blocks = prefetch_blocks
        self.max_blocks = max_blocks
        self.genesis_hash = genesis_hash

        # Meta
        self.height = height
        self.tip = tip
        self.tx_count = 0
        self.leaf_count = 0
        self.del_count = 0
        self.skip_count = 0
        self.cache_hits = 0

        # If the lock is successfully acquired, in-memory chain state
        # is consistent with self.height
        self.state_lock = asyncio.Lock()

    async def run_in_thread_with_lock(self, func, *args):
        # Run in a thread to prevent blocking.  Shielded so that
        # cancellations from shutdown don't lose work - the block
        # completes and only then do we stop.
        async def run_in_thread_locked():
            async with self.state_lock:
                return await run_in_thread(func, *args)
        return await asyncio.shield(run_in_thread_locked())

    def block_leaves(
            self,
            txs: Sequence[Tuple[Tx, bytes]],
            block_hash: bytes,
            height: int,
            outskip: Sequence[int],
    ) -> List[LeafData]:
        '''Return the leaves created by a block, in block output order.

        Outputs on outskip were spent within the block and unspendable
        outputs can never be spent, so neither becomes a leaf.
        '''
        leaves = []
        append_leaf = leaves.append
        skip_pos = 0
        skip_len = len(outskip)
        idx = 0
        for tx, tx_hash in txs:
            for out_idx, txout in enumerate(tx.outputs):
                if skip_pos < skip_len and outskip[skip_pos] == idx:
                    skip_pos += 1
                elif not txout.is_unspendable():
                    append_leaf(LeafData(block_hash, OutPoint(tx_hash, out_idx),
                                         height, txout.value, txout.pk_script))
                idx += 1
        return leaves

    def advance_block(self, block: Block) -> BlockDelta:
        '''Synchronously advance one block.

        The block must connect onto our tip.
        '''
        height = self.height + 1
        block_hash = block.block_hash
        if self.tip is not None and block.prev_hash != self.tip:
            raise ChainError(
                f'block {hash_to_hex_str(block_hash)} at height {height:,d} '
                f'does not connect to tip {hash_to_hex_str(self.tip)}'
            )
        if height == 0 and self.genesis_hash is not None and block_hash != self.genesis_hash:
            raise ChainError(
                f'first block {hash_to_hex_str(block_hash)} is not genesis '
                f'{hash_to_hex_str(self.genesis_hash)}'
            )

        txs = block.transactions
        if not txs:
            raise ChainError(f'block {hash_to_hex_str(block_hash)} has no coinbase')
        in_count, out_count, inskip, outskip = dedupe_block(txs)
        del_outpoints = block_to_del_outpoints(txs, inskip)
        leaves = self.block_leaves(txs, block_hash, height, outskip)
        frames = [frame(leaf.serialize()) for leaf in leaves]

        # Spent leaves leave the cache before the new ones arrive
        leaf_cache = self.leaf_cache
        cache_hits = leaf_cache.spend(del_outpoints)
        expiry = height + self.lookahead
        for leaf in leaves:
            leaf_cache.add(leaf.outpoint, leaf.leaf_hash(), expiry)
        leaf_cache.expire(height)

        self.height = height
        self.tip = block_hash
        self.tx_count += len(txs)
        self.leaf_count += len(leaves)
        self.del_count += len(del_outpoints)
        self.skip_count += len(outskip)
        self.cache_hits += cache_hits

        return BlockDelta(
            height=height,
            block_hash=block_hash,
            in_count=in_count,
            out_count=out_count,
            skipped=len(outskip),
            del_outpoints=del_outpoints,
            leaves=leaves,
            frames=frames,
            cache_hits=cache_hits,
        )

    def advance_raw_block(self, raw_block: bytes) -> BlockDelta:
        try:
            block = DeserializerSegWit(raw_block).read_block()
        except Exception as e:
            self.logger.error(f'failed to deserialize block at height '
                              f'{self.height + 1:,d} (raw length {len(raw_block):,d}): {e!r}')
            raise
        return self.advance_block(block)

    async def _process_prefetched_blocks(self, raw_queue, delta_queue):
        '''Loop processing blocks as they arrive; None ends the loop.'''
        while True:
            raw_block = await raw_queue.get()
            if raw_block is None:
                break
            try:
                delta = await self.run_in_thread_with_lock(self.advance_raw_block, raw_block)
            except ChainError as e:
                self.logger.error(f'ChainError during block processing: {e}')
                raise
            await delta_queue.put(delta)
        await delta_queue.put(None)

    async def _flush_deltas(self, delta_queue):
        '''Hand each block's operations to the sink, in order.'''
        start = time.monotonic()
        flushed = 0
        while True:
            delta = await delta_queue.get()
            if delta is None:
                break
            # The sink does blocking I/O
            await run_in_thread(self.sink, delta)
            flushed += 1
            if flushed % 1000 == 0:
                self.log_progress(start)
        self.log_progress(start)

    def log_progress(self, start):
        elapsed = time.monotonic() - start
        self.logger.info(f'height {self.height:,d} tx count {self.tx_count:,d} '
                         f'leaves {self.leaf_count:,d} deletions {self.del_count:,d} '
                         f'skipped {self.skip_count:,d} cache {len(self.leaf_cache):,d} '
                         f'hits {self.cache_hits:,d} in {elapsed:.1f}s')

    # --- External API

    async def process_blocks(self, raw_blocks: Iterable[bytes]):
        '''Process raw blocks in chain order until the source runs out.

        Blocks are prefetched, processed and flushed by three tasks
        joined by bounded queues.  An exception in any of them cancels
        the others and propagates.
        '''
        raw_queue = asyncio.Queue(self.prefetch_blocks)
        delta_queue = asyncio.Queue(self.prefetch_blocks)
        prefetcher = Prefetcher(raw_blocks, raw_queue, self.max_blocks)
        try:
            async with TaskGroup() as group:
                await group.spawn(prefetcher.main_loop())
                await group.spawn(self._process_prefetched_blocks(raw_queue, delta_queue))
                await group.spawn(self._flush_deltas(delta_queue))
            # The group cancels the other tasks but only records the error
            if group.exception:
                raise group.exception
        except asyncio.CancelledError:
            self.logger.info(f'stopped at height {self.height:,d}')
            raise
        except Exception as e:
            self.logger.error(f'Unexpected error in process_blocks: {e}')
            self.logger.exception('Error details:')
            raise
        finally:
            self.logger.debug('process_blocks exiting')

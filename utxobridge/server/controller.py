# Copyright (c) 2016-2018, Neil Booth
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''Wires configuration, block source, processor and output files.'''

import os

import utxobridge
from utxobridge.lib.hash import hash_to_hex_str
from utxobridge.lib.util import class_logger, pack_be_uint32
from utxobridge.server.block_processor import BlockDelta, BlockProcessor
from utxobridge.server.block_source import BlockFileReader
from utxobridge.server.env import Env

LEAVES_FILE = 'leaves.dat'
DELETIONS_FILE = 'deletions.dat'


class DeltaWriter:
    '''Appends block deltas to the output files.

    leaves.dat is the concatenation of every new leaf's frame.
    deletions.dat holds, per block, the height and the deletion count
    as big-endian uint32s followed by that many 36 byte outpoints.
    '''

    def __init__(self, data_dir, write_deletions=True):
        self.logger = class_logger(__name__, self.__class__.__name__)
        os.makedirs(data_dir, exist_ok=True)
        self.leaves_file = open(os.path.join(data_dir, LEAVES_FILE), 'ab')
        self.deletions_file = None
        if write_deletions:
            self.deletions_file = open(os.path.join(data_dir, DELETIONS_FILE), 'ab')

    def __call__(self, delta: BlockDelta):
        self.leaves_file.write(b''.join(delta.frames))
        if self.deletions_file is not None:
            self.deletions_file.write(b''.join((
                pack_be_uint32(delta.height),
                pack_be_uint32(len(delta.del_outpoints)),
                b''.join(op.to_bytes() for op in delta.del_outpoints),
            )))

    def close(self):
        self.leaves_file.close()
        if self.deletions_file is not None:
            self.deletions_file.close()


class Controller:
    '''Runs the bridge over the configured block files.'''

    def __init__(self, env: Env):
        self.logger = class_logger(__name__, self.__class__.__name__)
        self.env = env

    async def run(self):
        env = self.env
        self.logger.info(f'{utxobridge.version} on {env.net}')
        self.logger.info(f'genesis {hash_to_hex_str(env.genesis_hash)}')
        self.logger.info(f'reading blocks from {env.blocks_dir}, '
                         f'writing to {env.data_dir}')

        reader = BlockFileReader(env.blocks_dir, env.magic)
        writer = DeltaWriter(env.data_dir, env.write_deletions)
        bp = BlockProcessor(
            writer,
            lookahead=env.lookahead,
            prefetch_blocks=env.prefetch_blocks,
            max_blocks=env.max_blocks,
            genesis_hash=env.genesis_hash,
        )
        try:
            await bp.process_blocks(reader.raw_blocks())
        finally:
            writer.close()
        self.logger.info(f'processed to height {bp.height:,d}')
        return bp

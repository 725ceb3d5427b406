# Copyright (c) 2016-2017, Neil Booth
# Copyright (c) 2017, the ElectrumX authors
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''Sequential reader of raw blocks from blk*.dat files.'''

import os
from glob import glob

from utxobridge.lib.networks import is_magic_bytes
from utxobridge.lib.util import class_logger, unpack_le_uint32_from

RECORD_HEADER_LEN = 8


class BlockFileReader:
    '''Reads raw blocks from a directory of blk*.dat files.

    Each record is the network magic, a little-endian uint32 size, then
    the block.  Files are read in name order and blocks are assumed to
    be stored in chain order.  A file ends at the first record that
    does not start with the magic; bitcoind pre-allocates files so the
    tail is normally zero padding.
    '''

    def __init__(self, blocks_dir, magic):
        self.logger = class_logger(__name__, self.__class__.__name__)
        self.blocks_dir = blocks_dir
        self.magic = magic

    def block_files(self):
        return sorted(glob(os.path.join(self.blocks_dir, 'blk*.dat')))

    def read_file(self, path):
        '''Yield each raw block in the file at path.'''
        count = 0
        with open(path, 'rb') as f:
            while True:
                header = f.read(RECORD_HEADER_LEN)
                if len(header) < RECORD_HEADER_LEN:
                    break
                magic = header[:4]
                if magic != self.magic:
                    if is_magic_bytes(magic):
                        self.logger.error(f'{path}: magic {magic.hex()} is for '
                                          f'another network, skipping file')
                    elif any(header):
                        self.logger.warning(f'{path}: got non-magic bytes '
                                            f'{magic.hex()}, finishing file')
                    break
                size, = unpack_le_uint32_from(header, 4)
                raw_block = f.read(size)
                if len(raw_block) < size:
                    self.logger.warning(f'{path}: block {count:,d} truncated at '
                                        f'{len(raw_block):,d} of {size:,d} bytes')
                    break
                count += 1
                yield raw_block
        self.logger.info(f'read {count:,d} blocks from {path}')

    def raw_blocks(self):
        '''Yield every raw block of every file.'''
        paths = self.block_files()
        if not paths:
            self.logger.warning(f'no blk*.dat files in {self.blocks_dir}')
        for path in paths:
            yield from self.read_file(path)

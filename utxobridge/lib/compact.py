# Copyright (c) 2016-2017, Neil Booth
# Copyright (c) 2017, the ElectrumX authors
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''Batched in-place removal of positions from a dense array.'''

from itertools import islice
from typing import MutableSequence, Sequence, TypeVar

T = TypeVar('T')


class InvalidPositionsError(ValueError):
    '''Raised when removal positions are unsorted, repeated or out of range.'''


def check_positions(positions: Sequence[int], length: int):
    '''Raise InvalidPositionsError unless positions are strictly
    ascending and all in range(length).'''
    prev = -1
    for pos in positions:
        if pos <= prev:
            raise InvalidPositionsError(
                f'position {pos:,d} follows {prev:,d}; positions must be '
                f'strictly ascending and non-negative'
            )
        prev = pos
    if prev >= length:
        raise InvalidPositionsError(
            f'position {prev:,d} out of range for length {length:,d}'
        )


def compact_in_place(array: MutableSequence[T],
                     positions: Sequence[int]) -> MutableSequence[T]:
    '''Remove the given positions from array in one linear pass.

    array is any mutable sequence supporting slice deletion (list,
    bytearray, array.array).  Survivors keep their relative order and
    are moved down within the same storage; the array is then truncated
    and returned.  Positions are checked before anything is moved.
    '''
    if not positions:
        return array
    length = len(array)
    check_positions(positions, length)

    # Everything before the first removal stays put.  Each later run of
    # survivors moves down by the number of removals before it, so
    # reads are always ahead of the write cursor.
    write = positions[0]
    prev = write + 1
    for pos in islice(positions, 1, None):
        for read in range(prev, pos):
            array[write] = array[read]
            write += 1
        prev = pos + 1
    for read in range(prev, length):
        array[write] = array[read]
        write += 1

    del array[write:]
    return array

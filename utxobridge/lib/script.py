# Copyright (c) 2016-2017, Neil Booth
# Copyright (c) 2017, the ElectrumX authors
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''Script-related classes and functions.'''


from enum import IntEnum


# Scripts longer than this can never be satisfied
MAX_SCRIPT_SIZE = 10000


class OpCodes(IntEnum):
    OP_0 = 0x00
    OP_RETURN = 0x6a
    OP_DUP = 0x76
    OP_EQUALVERIFY = 0x88
    OP_HASH160 = 0xa9
    OP_CHECKSIG = 0xac


def is_unspendable(script):
    '''Return True if no input could ever spend an output with this script.

    The empty script is spendable.  An output is provably unspendable
    if its script starts with OP_RETURN or exceeds the size limit.
    Such outputs never enter the accumulator.
    '''
    if len(script) > MAX_SCRIPT_SIZE:
        return True
    return bool(script) and script[0] == OpCodes.OP_RETURN

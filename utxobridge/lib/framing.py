# Copyright (c) 2016-2017, Neil Booth
# Copyright (c) 2017, the ElectrumX authors
#
# All rights reserved.
#
# See the file "LICENCE" for information about the copyright
# and warranty status of this software.

'''Length-prefixed framing of byte payloads.

Each frame is a big-endian uint16 length followed by that many bytes.
Frames concatenate; unframe() returns the unconsumed remainder so a
stream can be walked frame by frame.
'''

from utxobridge.lib.util import pack_be_uint16, unpack_be_uint16_from

PREFIX_LEN = 2
MAX_PAYLOAD = 65535


class FramingError(ValueError):
    '''Base class of framing errors.'''


class FrameTooLargeError(FramingError):
    '''Raised when a payload does not fit a 16-bit length prefix.'''


class ShortBufferError(FramingError):
    '''Raised when fewer bytes remain than a length prefix needs.'''


class TruncatedPayloadError(FramingError):
    '''Raised when a frame declares more bytes than remain.'''


def frame(payload):
    '''Return payload with its 2 byte length prefix.'''
    if len(payload) > MAX_PAYLOAD:
        raise FrameTooLargeError(
            f'payload of {len(payload):,d} bytes exceeds {MAX_PAYLOAD:,d}'
        )
    return pack_be_uint16(len(payload)) + payload


def unframe(buffer):
    '''Split one frame off the front of buffer.

    Returns a (payload, rest) pair.  Slices of a memoryview stay views,
    so walking a large buffer does not copy it.
    '''
    if len(buffer) < PREFIX_LEN:
        raise ShortBufferError(f'length prefix needs {PREFIX_LEN} bytes, '
                               f'only {len(buffer)} left')
    length, = unpack_be_uint16_from(buffer, 0)
    end = PREFIX_LEN + length
    if end > len(buffer):
        raise TruncatedPayloadError(f'frame declares {length:,d} bytes but only '
                                    f'{len(buffer) - PREFIX_LEN:,d} left')
    return buffer[PREFIX_LEN:end], buffer[end:]


def iter_frames(buffer):
    '''Yield each payload of a concatenation of frames.

    A framing error is raised at the first bad frame; payloads already
    yielded are unaffected.
    '''
    while buffer:
        payload, buffer = unframe(buffer)
        yield payload

import hashlib

import pytest

from utxobridge.lib.leaf import LeafData, MalformedLeafError, LEAF_PREFIX_LEN
from utxobridge.lib.tx import OutPoint


BLOCK_HASH = bytes(range(32))
TX_HASH = bytes(range(32, 64))


def make_leaf(script=b'\x76\xa9', cb_height=100, amount=5_000_000_000, index=3):
    return LeafData(BLOCK_HASH, OutPoint(TX_HASH, index), cb_height, amount, script)


def test_serialize_layout():
    leaf = make_leaf(script=b'\xab\xcd', cb_height=0x01020304, amount=0x05, index=0x0a0b0c0d)
    ser = leaf.serialize()
    assert len(ser) == 32 + 36 + 4 + 8 + 2
    assert ser[0:32] == BLOCK_HASH
    assert ser[32:64] == TX_HASH
    assert ser[64:68] == bytes.fromhex('0a0b0c0d')
    assert ser[68:72] == bytes.fromhex('01020304')
    assert ser[72:80] == bytes.fromhex('0000000000000005')
    assert ser[80:] == b'\xab\xcd'


@pytest.mark.parametrize("leaf", [
    make_leaf(),
    make_leaf(script=b''),
    make_leaf(script=bytes(10_001)),
    make_leaf(cb_height=-1, amount=-5),
    make_leaf(cb_height=2**31 - 1, amount=2**63 - 1, index=2**32 - 1),
    make_leaf(cb_height=-2**31, amount=-2**63, index=0),
])
def test_round_trip(leaf):
    ser = leaf.serialize()
    assert len(ser) == LEAF_PREFIX_LEN + len(leaf.pk_script)
    decoded = LeafData.deserialize(ser)
    assert decoded == leaf
    assert decoded.serialize() == ser
    assert decoded.leaf_hash() == leaf.leaf_hash()


def test_negative_fields_are_twos_complement():
    ser = make_leaf(cb_height=-1, amount=-1).serialize()
    assert ser[68:80] == b'\xff' * 12


@pytest.mark.parametrize("length", [0, 1, 32, 68, 79])
def test_deserialize_short(length):
    with pytest.raises(MalformedLeafError):
        LeafData.deserialize(bytes(length))


def test_deserialize_prefix_only():
    leaf = LeafData.deserialize(bytes(80))
    assert leaf.pk_script == b''
    assert leaf.outpoint == OutPoint(bytes(32), 0)
    assert leaf.cb_height == 0
    assert leaf.amount == 0


def test_deserialize_memoryview():
    leaf = make_leaf()
    ser = b'junk' + leaf.serialize()
    assert LeafData.deserialize(memoryview(ser)[4:]) == leaf


def test_leaf_hash():
    leaf = make_leaf()
    assert leaf.leaf_hash() == hashlib.sha256(leaf.serialize()).digest()
    assert len(leaf.leaf_hash()) == 32


def test_leaf_hash_distinguishes_fields():
    base = make_leaf()
    others = [
        make_leaf(script=b'\x76\xaa'),
        make_leaf(cb_height=101),
        make_leaf(amount=1),
        make_leaf(index=4),
        LeafData(bytes(32), base.outpoint, base.cb_height, base.amount, base.pk_script),
    ]
    hashes = {leaf.leaf_hash() for leaf in others}
    assert base.leaf_hash() not in hashes
    assert len(hashes) == len(others)


def test_malformed_does_not_affect_earlier_records():
    leaves = [make_leaf(index=n) for n in range(3)]
    records = [leaf.serialize() for leaf in leaves] + [bytes(10)]
    decoded = []
    with pytest.raises(MalformedLeafError):
        for record in records:
            decoded.append(LeafData.deserialize(record))
    assert decoded == leaves

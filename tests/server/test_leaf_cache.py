import logging
import threading

import pytest

from utxobridge.lib.compact import InvalidPositionsError
from utxobridge.lib.tx import OutPoint
from utxobridge.server.leaf_cache import LeafCache


def op(n):
    return OutPoint(bytes([n]) * 32, n)


@pytest.fixture
def cache():
    cache = LeafCache()
    for n in range(6):
        cache.add(op(n), bytes([100 + n]) * 32, 10 + n)
    return cache


def check_index(cache):
    assert len(cache.positions) == len(cache)
    for pos in range(len(cache)):
        assert cache.position(cache.outpoints[pos]) == pos
    assert len(cache.leaf_hashes) == len(cache.expiries) == len(cache)


def test_add(cache):
    assert len(cache) == 6
    assert cache[2] == (op(2), bytes([102]) * 32, 12)
    assert op(5) in cache
    assert op(6) not in cache
    assert cache.leaf_hash(op(3)) == bytes([103]) * 32
    assert cache.leaf_hash(op(9)) is None
    assert cache.position(op(9)) is None
    check_index(cache)


def test_add_duplicate(cache, caplog):
    with caplog.at_level(logging.WARNING):
        cache.add(op(1), bytes(32), 99)
    assert 'already cached' in caplog.text
    assert len(cache) == 6
    assert cache[1] == (op(1), bytes([101]) * 32, 11)


def test_spend(cache):
    assert cache.spend([op(4), op(1), op(77), op(1)]) == 2
    assert cache.outpoints == [op(0), op(2), op(3), op(5)]
    assert list(cache.expiries) == [10, 12, 13, 15]
    assert op(1) not in cache and op(4) not in cache
    check_index(cache)
    assert cache.spend([]) == 0
    assert cache.spend([op(1)]) == 0


def test_remove_positions(cache):
    assert cache.remove_positions([0, 5]) == 2
    assert cache.outpoints == [op(1), op(2), op(3), op(4)]
    check_index(cache)
    with pytest.raises(InvalidPositionsError):
        cache.remove_positions([3, 1])
    with pytest.raises(InvalidPositionsError):
        cache.remove_positions([4])
    assert len(cache) == 4
    check_index(cache)


def test_expire(cache):
    assert cache.expire(10) == 0
    assert cache.expire(13) == 3
    assert cache.outpoints == [op(3), op(4), op(5)]
    check_index(cache)
    assert cache.expire(100) == 3
    assert len(cache) == 0
    assert not cache.positions


def test_expire_out_of_order_expiries():
    cache = LeafCache()
    for n, expiry in enumerate((5, 1, 7, 2, 9)):
        cache.add(op(n), bytes(32), expiry)
    assert cache.expire(6) == 3
    assert cache.outpoints == [op(2), op(4)]
    check_index(cache)


@pytest.mark.parametrize("call", [
    lambda cache: op(2) in cache,
    lambda cache: cache.position(op(2)),
    lambda cache: cache.spend([op(2)]),
    lambda cache: cache.expire(12),
])
def test_access_waits_for_lock(cache, call):
    results = []
    thread = threading.Thread(target=lambda: results.append(call(cache)))
    with cache.lock:
        thread.start()
        thread.join(0.2)
        assert thread.is_alive()
        assert results == []
    thread.join(5)
    assert not thread.is_alive()
    assert len(results) == 1
    check_index(cache)

import struct
import threading

import pytest

from sixfs.bcache import BufferCache
from sixfs.disk import MemoryDisk
from sixfs.errors import KernelPanic
from sixfs.layout import BSIZE, SuperBlock
from sixfs.log import Log

LOGSTART = 2


def make_log(image=None, nblocks=64, nlog=10, logsize=10, maxop=3):
    disk = MemoryDisk(image if image is not None else bytes(nblocks * BSIZE), dev=1)
    cache = BufferCache(disk, 40)
    sb = SuperBlock(size=nblocks, nlog=nlog, logstart=LOGSTART)
    return disk, cache, Log(cache, 1, sb, logsize, maxop)


def header_count(disk):
    return struct.unpack_from("<i", disk.read_block(LOGSTART))[0]


def test_commit_installs_block_at_home():
    disk, cache, log = make_log()
    payload = bytes([7]) * BSIZE
    with log.transaction():
        with cache.block(1, 40) as b:
            b.data[:] = payload
            log.log_write(b)
        assert disk.read_block(40) == bytes(BSIZE)
    assert disk.read_block(40) == payload
    assert disk.read_block(LOGSTART + 1) == payload
    assert log.blocks == []
    assert header_count(disk) == 0


def test_absorption_keeps_one_entry_per_block():
    _, cache, log = make_log()
    with log.transaction():
        for blockno in (40, 40, 41):
            with cache.block(1, blockno) as b:
                b.data[0] = blockno
                log.log_write(b)
        assert log.blocks == [40, 41]


def test_log_write_outside_transaction_panics():
    _, cache, log = make_log()
    with cache.block(1, 40) as b:
        with pytest.raises(KernelPanic):
            log.log_write(b)


def test_too_big_transaction_panics():
    disk, cache, log = make_log(nlog=5, logsize=10, maxop=3)
    with pytest.raises(KernelPanic):
        with log.transaction():
            for blockno in range(40, 45):
                with cache.block(1, blockno) as b:
                    b.data[0] = 1
                    log.log_write(b)
    assert all(disk.read_block(n)[0] == 1 for n in range(40, 44))
    assert disk.read_block(44)[0] == 0


def test_recovery_installs_committed_transaction():
    image = bytearray(64 * BSIZE)
    struct.pack_into("<ii", image, LOGSTART * BSIZE, 1, 50)
    payload = bytes([9]) * BSIZE
    image[(LOGSTART + 1) * BSIZE:(LOGSTART + 2) * BSIZE] = payload
    disk, _, log = make_log(image=bytes(image))
    assert disk.read_block(50) == payload
    assert header_count(disk) == 0
    assert log.blocks == []


def test_nested_operations_commit_at_last_end():
    disk, cache, log = make_log()
    with log.transaction():
        with log.transaction():
            assert log.outstanding == 2
            with cache.block(1, 45) as b:
                b.data[:] = bytes([3]) * BSIZE
                log.log_write(b)
        assert disk.read_block(45) == bytes(BSIZE)
    assert disk.read_block(45) == bytes([3]) * BSIZE
    assert log.outstanding == 0


def test_header_too_big_panics():
    with pytest.raises(KernelPanic):
        make_log(nlog=127, logsize=127, maxop=3)


def test_maxop_larger_than_log_rejected():
    with pytest.raises(ValueError):
        make_log(logsize=5, maxop=6)


def test_begin_op_waits_for_log_space():
    _, _, log = make_log(nlog=6, logsize=6, maxop=3)
    log.begin_op()
    log.begin_op()
    entered = threading.Event()

    def worker():
        log.begin_op()
        entered.set()

    t = threading.Thread(target=worker)
    t.start()
    assert not entered.wait(0.1)
    log.end_op()
    assert entered.wait(2)
    t.join(2)
    log.end_op()
    log.end_op()
    assert log.outstanding == 0
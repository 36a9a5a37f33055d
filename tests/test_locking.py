"""Tests for keg.locking."""

import threading
import time

import pytest

from keg.errors import ErrorKind, KegError, is_lock_timeout
from keg.locking import NodeLockTable, ReadWriteLock
from keg.node_id import NodeId


class TestNodeLockTable:
    """Per-node mutual exclusion."""

    def test_hold_and_release(self, locks):
        with locks.hold(NodeId(1)):
            assert locks.is_locked(NodeId(1))
            assert not locks.is_locked(NodeId(2))
        assert not locks.is_locked(NodeId(1))

    def test_reentrant_in_same_call_chain(self, locks):
        with locks.hold(NodeId(1)):
            with locks.hold("1", timeout=0.05):
                assert locks.is_locked(NodeId(1))
            assert locks.is_locked(NodeId(1))
        assert not locks.is_locked(NodeId(1))

    def test_timeout_when_held_elsewhere(self, locks):
        held = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold(NodeId(7)):
                held.set()
                release.wait(5)

        t = threading.Thread(target=holder)
        t.start()
        try:
            assert held.wait(5)
            start = time.monotonic()
            with pytest.raises(KegError) as exc_info:
                with locks.hold(NodeId(7), timeout=0.1):
                    pass
            assert time.monotonic() - start >= 0.1
            assert exc_info.value.kind == ErrorKind.LOCK_TIMEOUT
            assert is_lock_timeout(exc_info.value)
        finally:
            release.set()
            t.join()

    def test_other_nodes_not_blocked(self, locks):
        held = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold(NodeId(1)):
                held.set()
                release.wait(5)

        t = threading.Thread(target=holder)
        t.start()
        try:
            assert held.wait(5)
            with locks.hold(NodeId(2), timeout=0.1):
                pass
        finally:
            release.set()
            t.join()

    def test_waiter_acquires_after_release(self, locks):
        order = []
        held = threading.Event()

        def holder():
            with locks.hold(NodeId(3)):
                held.set()
                time.sleep(0.05)
                order.append("holder")

        t = threading.Thread(target=holder)
        t.start()
        assert held.wait(5)
        with locks.hold(NodeId(3), timeout=2):
            order.append("waiter")
        t.join()
        assert order == ["holder", "waiter"]

    def test_cancel_aborts_wait(self, locks):
        held = threading.Event()
        release = threading.Event()
        cancel = threading.Event()

        def holder():
            with locks.hold(NodeId(4)):
                held.set()
                release.wait(5)

        t = threading.Thread(target=holder)
        t.start()
        try:
            assert held.wait(5)
            threading.Timer(0.05, cancel.set).start()
            with pytest.raises(KegError) as exc_info:
                with locks.hold(NodeId(4), timeout=None, cancel=cancel):
                    pass
            assert exc_info.value.kind == ErrorKind.LOCK_TIMEOUT
        finally:
            release.set()
            t.join()

    def test_already_cancelled(self, locks):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(KegError) as exc_info:
            with locks.hold(NodeId(5), cancel=cancel):
                pass
        assert exc_info.value.kind == ErrorKind.LOCK_TIMEOUT
        assert not locks.is_locked(NodeId(5))

    @pytest.mark.parametrize("bad", ["abc", "007", 3.5])
    def test_invalid_id_is_lock_failed(self, locks, bad):
        with pytest.raises(KegError) as exc_info:
            with locks.hold(bad):
                pass
        assert exc_info.value.kind == ErrorKind.LOCK_FAILED

    def test_released_on_exception(self, locks):
        with pytest.raises(RuntimeError):
            with locks.hold(NodeId(6)):
                raise RuntimeError("boom")
        assert not locks.is_locked(NodeId(6))

    def test_from_config(self, monkeypatch):
        monkeypatch.setenv("KEG_LOCK_TIMEOUT", "2.5")
        assert NodeLockTable.from_config().default_timeout == 2.5


class TestReadWriteLock:
    def test_readers_share(self):
        lock = ReadWriteLock()
        inside = threading.Barrier(3, timeout=5)

        def reader():
            with lock.read():
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        inside.wait()
        for t in threads:
            t.join()

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        events = []
        writing = threading.Event()

        def writer():
            with lock.write():
                writing.set()
                time.sleep(0.05)
                events.append("write-done")

        t = threading.Thread(target=writer)
        t.start()
        assert writing.wait(5)
        with lock.read():
            events.append("read")
        t.join()
        assert events == ["write-done", "read"]

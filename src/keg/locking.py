"""Locks used by the index façade and the per-node lock table."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from .config import LOCK_RETRY_INTERVAL, get_lock_timeout
from .errors import KegError
from .node_id import NodeId, parse_node

log = logging.getLogger(__name__)

# (table identity, node path) pairs held by the current call chain
_HELD_LOCKS: ContextVar[frozenset[tuple[int, str]]] = ContextVar("keg_held_node_locks", default=frozenset())


class ReadWriteLock:
    """Many concurrent readers or one writer.

    Waiting writers block new readers so a steady stream of reads cannot
    starve mutation. Not reentrant.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class NodeLockTable:
    """Mutual exclusion per node id.

    Locks are reentrant within one call chain: a nested ``hold`` for a node
    already held by the current context returns immediately. Other threads
    wait until release, the timeout, or the cancel event.
    """

    def __init__(
        self,
        default_timeout: float | None = None,
        retry_interval: float = LOCK_RETRY_INTERVAL,
    ) -> None:
        self.default_timeout = default_timeout
        self._retry_interval = retry_interval
        self._cond = threading.Condition()
        self._held: set[str] = set()

    @classmethod
    def from_config(cls) -> NodeLockTable:
        """Build a table whose default timeout comes from KEG_LOCK_TIMEOUT."""
        return cls(default_timeout=get_lock_timeout())

    def is_locked(self, node: NodeId | str) -> bool:
        key = self._key(node)
        with self._cond:
            return key in self._held

    @contextmanager
    def hold(
        self,
        node: NodeId | str,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> Iterator[None]:
        """Hold the lock for ``node`` for the duration of the block.

        Args:
            node: Node id or node path.
            timeout: Seconds to wait; None uses the table default.
            cancel: Event that aborts the wait once set.

        Raises:
            KegError: LOCK_TIMEOUT when the wait times out or is cancelled,
                LOCK_FAILED when the node id is invalid.
        """
        key = self._key(node)
        marker = (id(self), key)
        held = _HELD_LOCKS.get()
        if marker in held:
            yield
            return

        self._acquire(key, self.default_timeout if timeout is None else timeout, cancel)
        token = _HELD_LOCKS.set(held | {marker})
        try:
            yield
        finally:
            _HELD_LOCKS.reset(token)
            self._release(key)

    def _acquire(self, key: str, timeout: float | None, cancel: threading.Event | None) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while True:
                if cancel is not None and cancel.is_set():
                    log.debug("Lock wait for node %s cancelled", key)
                    raise KegError.lock_timeout(key, timeout)
                if key not in self._held:
                    self._held.add(key)
                    return
                wait = self._retry_interval
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        log.debug("Lock wait for node %s timed out after %ss", key, timeout)
                        raise KegError.lock_timeout(key, timeout)
                    wait = min(wait, remaining)
                self._cond.wait(wait)

    def _release(self, key: str) -> None:
        with self._cond:
            self._held.discard(key)
            self._cond.notify_all()

    @staticmethod
    def _key(node: NodeId | str) -> str:
        if isinstance(node, NodeId):
            return node.path
        if isinstance(node, str):
            try:
                return parse_node(node).path
            except ValueError as e:
                raise KegError.lock_failed(node, str(e)) from e
        raise KegError.lock_failed(repr(node), f"unsupported node id type {type(node).__name__}")

"""
Per-key reader/writer locks.

The store serialises access to one session's rows by locking on the session
id. Locks are created on first use and dropped as soon as nobody holds or
waits for them, so the table only ever holds keys that are in use.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class ReadWriteLock:
    """
    A reader/writer lock with writer preference.

    Any number of readers may hold the lock together; a writer holds it
    alone. Once a writer is waiting, new readers queue behind it so a steady
    stream of reads cannot starve a save. Not reentrant.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release of an unheld read lock")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release of an unheld write lock")
            self._writer = False
            self._cond.notify_all()


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = ReadWriteLock()
        self.refs = 0


class KeyedLockTable:
    """Maps arbitrary keys to reader/writer locks, reference counted."""

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._entries: Dict[Hashable, _Entry] = {}

    def __len__(self) -> int:
        with self._mutex:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._mutex:
            return key in self._entries

    def lock(self, key: Hashable) -> None:
        """Acquire exclusive access to ``key``."""
        entry = self._checkout(key)
        try:
            entry.lock.acquire_write()
        except BaseException:
            self._checkin(key, entry)
            raise

    def unlock(self, key: Hashable) -> None:
        """Release exclusive access to ``key``."""
        entry = self._held(key)
        entry.lock.release_write()
        self._checkin(key, entry)

    def rlock(self, key: Hashable) -> None:
        """Acquire shared access to ``key``."""
        entry = self._checkout(key)
        try:
            entry.lock.acquire_read()
        except BaseException:
            self._checkin(key, entry)
            raise

    def runlock(self, key: Hashable) -> None:
        """Release shared access to ``key``."""
        entry = self._held(key)
        entry.lock.release_read()
        self._checkin(key, entry)

    @contextmanager
    def write(self, key: Hashable) -> Iterator[None]:
        self.lock(key)
        try:
            yield
        finally:
            self.unlock(key)

    @contextmanager
    def read(self, key: Hashable) -> Iterator[None]:
        self.rlock(key)
        try:
            yield
        finally:
            self.runlock(key)

    def _checkout(self, key: Hashable) -> _Entry:
        with self._mutex:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.refs += 1
            return entry

    def _checkin(self, key: Hashable, entry: _Entry) -> None:
        with self._mutex:
            entry.refs -= 1
            if entry.refs == 0:
                del self._entries[key]

    def _held(self, key: Hashable) -> _Entry:
        with self._mutex:
            entry = self._entries.get(key)
        if entry is None:
            raise RuntimeError(f"unlock of a key that is not locked: {key!r}")
        return entry

"""
Reader/Writer Lock

Lets any number of readers hold the lock together while giving a writer
exclusive access. Writers are preferred: once a writer is waiting, new readers
block until it has finished, so a steady stream of reads cannot starve uploads.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional


class ReadWriteLock:
    """Writer-preferring reader/writer lock built on a single Condition."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer_active = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer_active or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read called without a matching acquire_read")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self, timeout: Optional[float] = None) -> bool:
        """
        Take the lock exclusively.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely

        Returns:
            True if the lock was taken, False if the timeout expired
        """
        with self._cond:
            self._writers_waiting += 1
            acquired = False
            try:
                acquired = self._cond.wait_for(
                    lambda: not self._writer_active and not self._readers, timeout
                )
                if acquired:
                    self._writer_active = True
            finally:
                self._writers_waiting -= 1
                if not acquired:
                    # Readers queued behind this writer may proceed now
                    self._cond.notify_all()
            return acquired

    def release_write(self) -> None:
        with self._cond:
            if not self._writer_active:
                raise RuntimeError("release_write called without a matching acquire_write")
            self._writer_active = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    @property
    def readers(self) -> int:
        """Number of readers currently holding the lock."""
        with self._cond:
            return self._readers

    @property
    def writer_active(self) -> bool:
        with self._cond:
            return self._writer_active

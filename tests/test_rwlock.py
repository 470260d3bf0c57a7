"""
Tests for the reader/writer lock guarding the storage service state.
"""

import threading
import time
import unittest

from merkle_storage.api.rwlock import ReadWriteLock


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


class TestReadWriteLock(unittest.TestCase):

    def test_readers_share_the_lock(self):
        lock = ReadWriteLock()
        barrier = threading.Barrier(3, timeout=2)
        errors = []

        def reader():
            try:
                with lock.read_locked():
                    # Only passes if all three readers are inside at once
                    barrier.wait()
            except threading.BrokenBarrierError as e:
                errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        self.assertEqual(errors, [])
        self.assertEqual(lock.readers, 0)

    def test_writer_excludes_readers(self):
        lock = ReadWriteLock()
        acquired = threading.Event()

        def reader():
            with lock.read_locked():
                acquired.set()

        lock.acquire_write()
        t = threading.Thread(target=reader)
        t.start()
        self.assertFalse(acquired.wait(0.1))
        lock.release_write()
        self.assertTrue(acquired.wait(2))
        t.join(timeout=2)

    def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        acquired = threading.Event()

        def writer():
            with lock.write_locked():
                acquired.set()

        lock.acquire_read()
        t = threading.Thread(target=writer)
        t.start()
        self.assertFalse(acquired.wait(0.1))
        lock.release_read()
        self.assertTrue(acquired.wait(2))
        t.join(timeout=2)
        self.assertFalse(lock.writer_active)

    def test_waiting_writer_blocks_new_readers(self):
        lock = ReadWriteLock()
        order = []

        def writer():
            with lock.write_locked():
                order.append("writer")

        def reader():
            with lock.read_locked():
                order.append("reader")

        lock.acquire_read()
        writer_thread = threading.Thread(target=writer)
        writer_thread.start()
        self.assertTrue(_wait_until(lambda: lock._writers_waiting == 1))

        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        time.sleep(0.1)
        self.assertEqual(order, [])

        lock.release_read()
        writer_thread.join(timeout=2)
        reader_thread.join(timeout=2)
        self.assertEqual(order, ["writer", "reader"])

    def test_writers_are_exclusive(self):
        lock = ReadWriteLock()
        active = []
        overlaps = []

        def writer():
            for _ in range(50):
                with lock.write_locked():
                    active.append(1)
                    if len(active) > 1:
                        overlaps.append(len(active))
                    active.pop()

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        self.assertEqual(overlaps, [])

    def test_unbalanced_release_raises(self):
        lock = ReadWriteLock()
        with self.assertRaises(RuntimeError):
            lock.release_read()
        with self.assertRaises(RuntimeError):
            lock.release_write()

    def test_write_timeout(self):
        lock = ReadWriteLock()
        lock.acquire_read()
        self.assertFalse(lock.acquire_write(timeout=0.05))
        self.assertFalse(lock.writer_active)
        lock.release_read()
        self.assertTrue(lock.acquire_write(timeout=1))
        lock.release_write()

    def test_writer_giving_up_wakes_queued_readers(self):
        lock = ReadWriteLock()
        results = []
        reader_in = threading.Event()

        def writer():
            results.append(lock.acquire_write(timeout=0.3))

        def reader():
            with lock.read_locked():
                reader_in.set()

        lock.acquire_read()
        writer_thread = threading.Thread(target=writer)
        writer_thread.start()
        self.assertTrue(_wait_until(lambda: lock._writers_waiting == 1))

        # Queued behind the waiting writer
        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        self.assertFalse(reader_in.wait(0.1))

        writer_thread.join(timeout=2)
        self.assertEqual(results, [False])
        # The first reader still holds the lock; the queued one gets in anyway
        self.assertTrue(reader_in.wait(2))
        reader_thread.join(timeout=2)
        lock.release_read()
        self.assertEqual(lock.readers, 0)

    def test_lock_released_on_exception(self):
        lock = ReadWriteLock()
        with self.assertRaises(KeyError):
            with lock.write_locked():
                raise KeyError("boom")
        self.assertFalse(lock.writer_active)
        with lock.read_locked():
            self.assertEqual(lock.readers, 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)

import threading
import time
from pathlib import Path

import pytest

from fsqueue.adapters.lock.flock import FlockLock
from fsqueue.ports.lock import LockPort


def test_satisfies_lock_port(tmp_path: Path):
    assert isinstance(FlockLock(tmp_path / "q.lock"), LockPort)


def test_acquire_creates_lock_file_and_parents(tmp_path: Path):
    path = tmp_path / "deep" / "nested" / "q.lock"
    lock = FlockLock(path)
    assert lock.acquire() is True
    try:
        assert path.exists()
        assert lock.locked
    finally:
        lock.release()
    assert not lock.locked


def test_path_accepts_string(tmp_path: Path):
    lock = FlockLock(str(tmp_path / "q.lock"))
    assert lock.path == tmp_path / "q.lock"


def test_second_instance_cannot_acquire_while_held(tmp_path: Path):
    first = FlockLock(tmp_path / "q.lock")
    second = FlockLock(tmp_path / "q.lock")
    assert first.acquire()
    try:
        assert second.acquire(blocking=False) is False
        assert not second.locked
    finally:
        first.release()

    assert second.acquire(blocking=False) is True
    second.release()


def test_same_instance_non_blocking_while_held(tmp_path: Path):
    lock = FlockLock(tmp_path / "q.lock")
    lock.acquire()
    try:
        result: list[bool] = []
        t = threading.Thread(target=lambda: result.append(lock.acquire(blocking=False)))
        t.start()
        t.join()
        assert result == [False]
    finally:
        lock.release()


def test_blocking_acquire_waits_for_release(tmp_path: Path):
    first = FlockLock(tmp_path / "q.lock")
    second = FlockLock(tmp_path / "q.lock")
    events: list[str] = []

    first.acquire()

    def contender() -> None:
        second.acquire()
        events.append("acquired")
        second.release()

    t = threading.Thread(target=contender)
    t.start()
    time.sleep(0.05)
    events.append("releasing")
    first.release()
    t.join(timeout=5)

    assert events == ["releasing", "acquired"]


def test_release_without_acquire_raises(tmp_path: Path):
    with pytest.raises(RuntimeError):
        FlockLock(tmp_path / "q.lock").release()


def test_reacquire_after_release(tmp_path: Path):
    lock = FlockLock(tmp_path / "q.lock")
    for _ in range(3):
        assert lock.acquire()
        lock.release()

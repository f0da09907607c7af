from __future__ import annotations

import json
import os
import stat
import sys
import threading
from pathlib import Path

import pytest

from pdffreezer.counter import ProcessLock, SequenceManager
from pdffreezer.exceptions import AlreadyLockedError, CounterError


def test_get_next_starts_at_one(tmp_path: Path) -> None:
    manager = SequenceManager(tmp_path)

    assert manager.get_current() == 0
    assert manager.get_next() == 1
    assert json.loads(manager.state_path.read_text()) == {"current": 1}


def test_get_next_sequence_from_persisted_state(tmp_path: Path) -> None:
    (tmp_path / "counter.json").write_text(json.dumps({"current": 41}))
    manager = SequenceManager(tmp_path)

    issued = [manager.get_next() for _ in range(5)]

    assert issued == [42, 43, 44, 45, 46]


def test_sequence_survives_restart(tmp_path: Path) -> None:
    first = SequenceManager(tmp_path)
    assert [first.get_next() for _ in range(3)] == [1, 2, 3]

    second = SequenceManager(tmp_path)
    assert second.get_current() == 3
    assert second.get_next() == 4


def test_get_current_does_not_mutate(tmp_path: Path) -> None:
    manager = SequenceManager(tmp_path)
    manager.get_next()

    assert manager.get_current() == 1
    assert manager.get_current() == 1


def test_set_override_then_get_next(tmp_path: Path) -> None:
    manager = SequenceManager(tmp_path)
    manager.get_next()

    manager.set_override(99)

    assert manager.get_next() == 100


def test_set_override_rejects_non_integer(tmp_path: Path) -> None:
    manager = SequenceManager(tmp_path)
    with pytest.raises(CounterError):
        manager.set_override("5")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "payload",
    [b"not json", b"[]", b'{"current": "seven"}', b'{"current": true}', b"\xff\xfe\x00garbage", b"\xe9t\xe9"],
)
def test_corrupt_state_is_treated_as_zero(tmp_path: Path, payload: bytes) -> None:
    (tmp_path / "counter.json").write_bytes(payload)
    manager = SequenceManager(tmp_path)

    assert manager.get_current() == 0
    assert manager.get_next() == 1


def test_unreadable_state_raises_counter_error(tmp_path: Path) -> None:
    manager = SequenceManager(tmp_path)
    manager.state_path.mkdir()

    with pytest.raises(CounterError):
        manager.get_next()


def test_save_failure_raises_counter_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = SequenceManager(tmp_path)

    def failing_replace(*_: object) -> None:
        raise OSError("disk full")

    monkeypatch.setattr("pdffreezer.counter.os.replace", failing_replace)

    with pytest.raises(CounterError):
        manager.get_next()
    assert not list(tmp_path.glob("counter-*.tmp"))


def test_concurrent_get_next_issues_unique_numbers(tmp_path: Path) -> None:
    manager = SequenceManager(tmp_path)
    issued: list[int] = []
    guard = threading.Lock()

    def worker() -> None:
        for _ in range(25):
            value = manager.get_next()
            with guard:
                issued.append(value)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(issued) == list(range(1, 101))
    assert manager.get_current() == 100


def test_creates_state_directory(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "state"
    manager = SequenceManager(target)

    assert target.is_dir()
    assert manager.lock_path == target.resolve() / "counter.lock"


def test_lock_is_mutually_exclusive(tmp_path: Path) -> None:
    first = SequenceManager(tmp_path)
    second = SequenceManager(tmp_path)

    first.lock()
    assert first.is_locked
    assert first.lock_path.exists()

    with pytest.raises(AlreadyLockedError):
        second.lock()
    with pytest.raises(AlreadyLockedError):
        first.lock()

    first.unlock()
    assert not first.lock_path.exists()
    second.lock()
    second.unlock()


def test_unlock_without_lock_is_noop(tmp_path: Path) -> None:
    manager = SequenceManager(tmp_path)
    manager.unlock()
    assert not manager.is_locked


def test_force_unlock_clears_stale_marker(tmp_path: Path) -> None:
    (tmp_path / "counter.lock").touch()
    manager = SequenceManager(tmp_path)

    with pytest.raises(AlreadyLockedError):
        manager.lock()

    manager.force_unlock()
    manager.force_unlock()  # missing marker is fine
    manager.unlock()  # no-op after force unlock

    manager.lock()
    assert manager.is_locked


def test_unlock_after_force_unlock_is_noop(tmp_path: Path) -> None:
    manager = SequenceManager(tmp_path)
    manager.lock()
    manager.force_unlock()

    manager.unlock()

    assert not manager.lock_path.exists()
    assert not manager.is_locked


def test_unlock_fails_when_marker_vanished(tmp_path: Path) -> None:
    manager = SequenceManager(tmp_path)
    manager.lock()
    manager.lock_path.unlink()

    with pytest.raises(CounterError):
        manager.unlock()


def test_get_next_does_not_require_lock(tmp_path: Path) -> None:
    holder = SequenceManager(tmp_path)
    holder.lock()

    other = SequenceManager(tmp_path)
    assert other.get_next() == 1
    holder.unlock()


def test_process_lock_context_manager(tmp_path: Path) -> None:
    marker = tmp_path / "job.lock"
    lock = ProcessLock(marker)

    with lock:
        assert marker.exists()
        assert lock.held
        with pytest.raises(AlreadyLockedError):
            ProcessLock(marker).acquire()

    assert not marker.exists()
    assert not lock.held


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX permissions")
def test_state_file_is_not_owner_only(tmp_path: Path) -> None:
    previous = os.umask(0o022)
    try:
        SequenceManager(tmp_path).get_next()
    finally:
        os.umask(previous)

    assert stat.S_IMODE((tmp_path / "counter.json").stat().st_mode) == 0o644

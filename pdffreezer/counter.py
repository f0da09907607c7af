"""Persistent serial-number counter and its filesystem lock.

The counter lives in ``counter.json`` inside the application config
directory. Calls on one :class:`SequenceManager` are serialized by an
in-process mutex. The marker-file lock is an optional, advisory guard for
callers that need exclusion across processes: :meth:`SequenceManager.get_next`
never takes it, so separate processes incrementing without it can race.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from .config import user_config_dir
from .exceptions import AlreadyLockedError, CounterError
from .utils import copy_target_mode, resolve_path

LOGGER = logging.getLogger("pdffreezer.counter")

STATE_FILENAME = "counter.json"
LOCK_FILENAME = "counter.lock"


@dataclasses.dataclass(slots=True)
class SequenceState:
    """Persisted counter value; ``current`` is the last number issued."""

    current: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"current": self.current}

    @classmethod
    def from_dict(cls, payload: Any) -> "SequenceState":
        if not isinstance(payload, dict):
            raise ValueError("Counter state must be a JSON object")
        current = payload.get("current", 0)
        if isinstance(current, bool) or not isinstance(current, int):
            raise ValueError(f"Counter value must be an integer, got {current!r}")
        return cls(current=current)


class ProcessLock:
    """Marker-file mutex shared by every process using the same *path*.

    Presence of the file means the lock is held. Creation uses
    ``O_CREAT | O_EXCL`` so exactly one caller can win. Locks never expire;
    a marker left behind by a crash must be cleared with
    :meth:`force_release`.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        if self._held:
            raise AlreadyLockedError("Counter is already locked by this instance.")
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            raise AlreadyLockedError() from exc
        except OSError as exc:
            raise CounterError(f"Failed to create lock file {self.path}: {exc}") from exc
        os.close(fd)
        self._held = True
        LOGGER.debug("Acquired counter lock %s", self.path)

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.path.unlink()
        except OSError as exc:
            raise CounterError(f"Failed to remove lock file {self.path}: {exc}") from exc
        self._held = False
        LOGGER.debug("Released counter lock %s", self.path)

    def force_release(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            raise CounterError(f"Failed to remove lock file {self.path}: {exc}") from exc
        self._held = False
        LOGGER.info("Force-cleared counter lock %s", self.path)

    def __enter__(self) -> "ProcessLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


class SequenceManager:
    """Issues unique, monotonically increasing serial numbers.

    Args:
        state_dir: Directory holding ``counter.json`` and ``counter.lock``.
            Defaults to the user config directory and is created if missing.
    """

    def __init__(self, state_dir: str | os.PathLike[str] | None = None) -> None:
        directory = resolve_path(state_dir) if state_dir is not None else user_config_dir()
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CounterError(f"Failed to create config dir {directory}: {exc}") from exc

        self.state_dir = directory
        self.state_path = directory / STATE_FILENAME
        self.lock_path = directory / LOCK_FILENAME
        self._mutex = threading.Lock()
        self._process_lock = ProcessLock(self.lock_path)

    @property
    def is_locked(self) -> bool:
        return self._process_lock.held

    def lock(self) -> None:
        """Acquire the cross-process marker; raises :class:`AlreadyLockedError`."""

        with self._mutex:
            self._process_lock.acquire()

    def unlock(self) -> None:
        """Release the marker; a no-op when this instance does not hold it."""

        with self._mutex:
            self._process_lock.release()

    def force_unlock(self) -> None:
        """Remove the marker regardless of owner, e.g. after a crash."""

        with self._mutex:
            self._process_lock.force_release()

    def get_current(self) -> int:
        """Return the last issued number without incrementing."""

        with self._mutex:
            return self._load_state().current

    def get_next(self) -> int:
        """Increment the persisted counter and return the new value."""

        with self._mutex:
            state = self._load_state()
            state.current += 1
            self._save_state(state)
        LOGGER.debug("Issued serial number %d", state.current)
        return state.current

    def set_override(self, value: int) -> None:
        """Store *value* directly as the last issued number.

        The next :meth:`get_next` returns ``value + 1``. To choose the next
        number issued, store one less, as :meth:`FreezerApp.set_number_override
        <pdffreezer.app.FreezerApp.set_number_override>` does.
        """

        if isinstance(value, bool) or not isinstance(value, int):
            raise CounterError(f"Counter value must be an integer, got {value!r}")
        with self._mutex:
            self._save_state(SequenceState(current=value))
        LOGGER.info("Counter overridden to %d", value)

    def _load_state(self) -> SequenceState:
        try:
            raw = self.state_path.read_bytes()
        except FileNotFoundError:
            return SequenceState()
        except OSError as exc:
            raise CounterError(f"Failed to read counter state {self.state_path}: {exc}") from exc

        # Undecodable bytes raise UnicodeDecodeError, a ValueError.
        try:
            return SequenceState.from_dict(json.loads(raw))
        except ValueError as exc:
            LOGGER.warning("Ignoring unreadable counter state %s: %s", self.state_path, exc)
            return SequenceState()

    def _save_state(self, state: SequenceState) -> None:
        payload = json.dumps(state.to_dict(), indent=2)
        tmp_name: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                dir=self.state_dir,
                prefix="counter-",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as handle:
                tmp_name = handle.name
                handle.write(payload)
            copy_target_mode(tmp_name, self.state_path)
            os.replace(tmp_name, self.state_path)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise CounterError(f"Failed to write counter state {self.state_path}: {exc}") from exc


__all__ = ["LOCK_FILENAME", "ProcessLock", "STATE_FILENAME", "SequenceManager", "SequenceState"]

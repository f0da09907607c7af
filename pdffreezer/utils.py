"""Utility helpers shared by :mod:`pdffreezer` components."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import subprocess
import threading
import time
from pathlib import Path
from typing import Sequence

_LOGGER = logging.getLogger("pdffreezer.utils")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILENAME = "app.log"


class CommandAborted(Exception):
    """Raised when a running command is killed before it finishes."""

    def __init__(self, command: Sequence[str], reason: str, output: str = "") -> None:
        super().__init__(f"Command {reason}: {command[0] if command else ''}")
        self.command = list(command)
        self.reason = reason
        self.output = output


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(LOG_FORMAT)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def configure_file_logging(log_dir: Path, name: str = "pdffreezer") -> logging.Handler:
    """Append records of logger *name* to ``app.log`` inside *log_dir*.

    The handler is only added once per log file.
    """

    log_path = (log_dir / LOG_FILENAME).resolve()
    logger = logging.getLogger(name)
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_path:
            return handler

    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    if logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)
    return handler


def resolve_path(path: os.PathLike[str] | str) -> Path:
    """Resolve *path* into an absolute :class:`~pathlib.Path`."""

    resolved = Path(path).expanduser().resolve()
    _LOGGER.debug("Resolved path '%s' to '%s'", path, resolved)
    return resolved


def ensure_parent_dir(path: Path) -> None:
    """Create parent directory for *path* if it does not exist."""

    path.parent.mkdir(parents=True, exist_ok=True)


def current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def copy_target_mode(tmp_path: str | os.PathLike[str], destination: Path) -> None:
    """Give *tmp_path* the permissions *destination* has, or the umask default.

    Temporary files are created ``0600``; call this before renaming one over
    *destination*.
    """

    try:
        mode = stat.S_IMODE(destination.stat().st_mode)
    except FileNotFoundError:
        mode = 0o666 & ~current_umask()
    os.chmod(tmp_path, mode)


def which(executables: Sequence[str]) -> str | None:
    """Return the first executable from *executables* found on ``PATH``."""

    for candidate in executables:
        found = shutil.which(candidate)
        if found:
            _LOGGER.debug("Detected external tool: %s -> %s", candidate, found)
            return found
    return None


def run_subprocess(
    command: Sequence[str],
    *,
    timeout: float | None = None,
    cancel_event: threading.Event | None = None,
    check: bool = True,
    poll_interval: float = 0.1,
) -> subprocess.CompletedProcess[str]:
    """Run *command* capturing combined stdout and stderr.

    Parameters
    ----------
    command:
        Command and arguments to execute.
    timeout:
        Seconds after which the process is killed.
    cancel_event:
        When set by another thread, the process is killed.
    check:
        Whether to raise :class:`subprocess.CalledProcessError` on non-zero exit.

    Raises :class:`CommandAborted` when the process is killed because of
    *timeout* or *cancel_event*. :class:`OSError` from starting the process
    propagates unchanged.
    """

    _LOGGER.debug("Executing command: %s", " ".join(command))
    deadline = None if timeout is None else time.monotonic() + timeout
    process = subprocess.Popen(
        list(command),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        encoding="utf-8",
        errors="replace",
    )

    while True:
        try:
            output, _ = process.communicate(timeout=poll_interval)
            break
        except subprocess.TimeoutExpired:
            if cancel_event is not None and cancel_event.is_set():
                reason = "cancelled"
            elif deadline is not None and time.monotonic() >= deadline:
                reason = "timed out"
            else:
                continue
            _LOGGER.warning("Killing %s: %s", command[0], reason)
            process.kill()
            output, _ = process.communicate()
            raise CommandAborted(command, reason, output or "")

    completed = subprocess.CompletedProcess(list(command), process.returncode, output or "", None)
    _LOGGER.debug(
        "Command finished with exit code %s\noutput: %s",
        completed.returncode,
        completed.stdout,
    )
    if check and completed.returncode != 0:
        raise subprocess.CalledProcessError(completed.returncode, list(command), output=completed.stdout)
    return completed


def sizeof_fmt(num_bytes: int) -> str:
    """Format *num_bytes* into a human-friendly string."""

    step_unit = 1024.0
    size = float(num_bytes)
    for unit in ("bytes", "KiB", "MiB", "GiB"):
        if abs(size) < step_unit:
            return f"{size:3.1f} {unit}"
        size /= step_unit
    return f"{size:.1f} TiB"


__all__ = [
    "CommandAborted",
    "configure_file_logging",
    "copy_target_mode",
    "ensure_parent_dir",
    "get_logger",
    "resolve_path",
    "run_subprocess",
    "sizeof_fmt",
    "which",
]

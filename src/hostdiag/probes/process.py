# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Child-process execution for probes."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
from collections.abc import Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandOutcome:
    exit_code: int | None
    output: bytes
    stderr: bytes = b""
    timed_out: bool = False
    truncated: bool = False


class ProcessTracker:
    """Tracks live probe processes so a cancelled run can terminate all of them."""

    def __init__(self):
        self._lock = threading.Lock()
        self._processes: set[subprocess.Popen] = set()
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def register(self, process: subprocess.Popen) -> None:
        with self._lock:
            self._processes.add(process)
        # A cancel may have landed between the cancelled check and the spawn.
        if self.cancelled:
            kill_process_group(process)

    def unregister(self, process: subprocess.Popen) -> None:
        with self._lock:
            self._processes.discard(process)

    def active_count(self) -> int:
        with self._lock:
            return len(self._processes)

    def terminate_all(self) -> int:
        """Mark the run cancelled and kill every in-flight probe. Returns how many were signalled."""
        self._cancelled.set()
        with self._lock:
            processes = list(self._processes)
        for process in processes:
            kill_process_group(process)
        if processes:
            logger.info("Terminated %d in-flight probe(s)", len(processes))
        return len(processes)

    def reset(self) -> None:
        self._cancelled.clear()


def kill_process_group(process: subprocess.Popen) -> None:
    """Kill the probe and anything it spawned; probes run in their own session."""
    if process.poll() is not None:
        return
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, signal.SIGKILL)
        else:  # pragma: no cover - non-POSIX
            process.kill()
    except ProcessLookupError:
        pass
    except PermissionError:
        process.kill()


_CHUNK_SIZE = 64 * 1024
# After a kill, a reader is abandoned if a detached grandchild still holds the pipe open.
_DRAIN_GRACE = 2.0


class _BoundedReader(threading.Thread):
    """Drains one pipe, keeping at most `limit` bytes so memory stays bounded."""

    def __init__(self, stream, limit: int | None):
        super().__init__(daemon=True, name="hostdiag-pipe")
        self.stream = stream
        self.limit = limit if limit is not None and limit > 0 else None
        self.chunks: list[bytes] = []
        self.kept = 0
        self.truncated = False

    def run(self) -> None:
        read = getattr(self.stream, "read1", self.stream.read)
        try:
            while True:
                chunk = read(_CHUNK_SIZE)
                if not chunk:
                    break
                if self.limit is not None:
                    room = self.limit - self.kept
                    if len(chunk) > room:
                        self.truncated = True
                        chunk = chunk[:room]
                if chunk:
                    self.chunks.append(chunk)
                    self.kept += len(chunk)
        except (OSError, ValueError) as exc:
            logger.debug("Pipe read stopped: %s", exc)
        finally:
            self.stream.close()

    def data(self) -> bytes:
        return b"".join(self.chunks)


def run_command(
    argv: Sequence[str],
    *,
    timeout: float,
    merge_stderr: bool = True,
    max_output_bytes: int | None = None,
    tracker: ProcessTracker | None = None,
) -> CommandOutcome:
    """
    Run `argv` to completion or until `timeout` seconds elapse.

    On timeout the process group is killed and whatever was written before the kill is
    returned. Output beyond `max_output_bytes` per stream is read and discarded, never
    held in memory. Spawn errors (missing binary, permission denied) propagate to the caller.
    """
    process = subprocess.Popen(
        list(argv),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
        start_new_session=True,
    )
    if tracker is not None:
        tracker.register(process)
    readers = [_BoundedReader(process.stdout, max_output_bytes)]
    if process.stderr is not None:
        readers.append(_BoundedReader(process.stderr, max_output_bytes))
    timed_out = False
    try:
        for reader in readers:
            reader.start()
        try:
            process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            logger.debug("Command %s exceeded %.1fs, killing", argv[0], timeout)
            kill_process_group(process)
            process.wait()
        for reader in readers:
            reader.join(_DRAIN_GRACE if timed_out else None)
    except BaseException:
        kill_process_group(process)
        process.wait()
        raise
    finally:
        if tracker is not None:
            tracker.unregister(process)

    stdout_reader = readers[0]
    stderr_reader = readers[1] if len(readers) > 1 else None
    return CommandOutcome(
        exit_code=None if timed_out else process.returncode,
        output=stdout_reader.data(),
        stderr=stderr_reader.data() if stderr_reader is not None else b"",
        timed_out=timed_out,
        truncated=any(reader.truncated for reader in readers),
    )


__all__ = ["CommandOutcome", "ProcessTracker", "kill_process_group", "run_command"]

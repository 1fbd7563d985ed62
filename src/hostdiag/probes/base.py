# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Probe capability and its variants."""

from __future__ import annotations

import os
import shutil
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from ..models import ProbeResult, ProbeSpec, ProbeStatus
from .process import ProcessTracker, run_command


class Probe(ABC):
    """
    A runnable diagnostic probe.

    Variants differ in how the executable is located; invocation and exit-status
    interpretation are shared.
    """

    kind: str = "base"

    def __init__(self, spec: ProbeSpec):
        self.spec = spec

    @property
    def id(self) -> str:
        return self.spec.id

    @abstractmethod
    def resolve(self) -> str | None:
        """Return the executable path to run, or None when the probe's tool is unavailable."""

    def is_available(self) -> bool:
        return self.resolve() is not None

    def argv(self) -> list[str]:
        executable = self.resolve() or self.spec.executable
        return [executable, *self.spec.command[1:]]

    def invoke(
        self,
        timeout: float | None = None,
        *,
        max_output_bytes: int | None = None,
        tracker: ProcessTracker | None = None,
    ) -> ProbeResult:
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()
        effective_timeout = timeout if timeout is not None else self.spec.timeout_seconds
        outcome = run_command(
            self.argv(),
            timeout=effective_timeout,
            merge_stderr=self.spec.merge_stderr,
            max_output_bytes=max_output_bytes,
            tracker=tracker,
        )
        duration = time.monotonic() - start

        note = None
        if outcome.timed_out:
            status = ProbeStatus.TIMED_OUT
            exit_code = None
            note = f"killed after {effective_timeout:g}s timeout"
        elif outcome.exit_code in self.spec.ok_exit_codes:
            status = ProbeStatus.SUCCESS
            exit_code = outcome.exit_code
        else:
            status = ProbeStatus.FAILED
            exit_code = outcome.exit_code
            if exit_code is not None and exit_code < 0:
                note = f"terminated by signal {-exit_code}"

        return ProbeResult(
            probe_id=self.id,
            status=status,
            exit_code=exit_code,
            raw_output=outcome.output,
            started_at=started_at,
            duration=duration,
            stderr=outcome.stderr,
            note=note,
            truncated=outcome.truncated,
        )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"{self.__class__.__name__}(id={self.id!r})"


class CommandProbe(Probe):
    """Probe backed by a system utility looked up on PATH."""

    kind = "command"

    def resolve(self) -> str | None:
        return shutil.which(self.spec.executable)


class ScriptProbe(Probe):
    """Probe backed by an explicit path, typically a helper script shipped next to the collector."""

    kind = "script"

    def resolve(self) -> str | None:
        path = self.spec.executable
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return path
        return None


def probe_for(spec: ProbeSpec) -> Probe:
    """Pick the probe variant for a spec: anything with a path separator is a script."""
    if os.sep in spec.executable or (os.altsep and os.altsep in spec.executable):
        return ScriptProbe(spec)
    return CommandProbe(spec)


__all__ = ["CommandProbe", "Probe", "ScriptProbe", "probe_for"]

# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Probe definition and result models."""

from __future__ import annotations

import re
import shlex
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

_PROBE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class ProbeStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    TIMED_OUT = "TIMED_OUT"


@dataclass(frozen=True)
class ProbeSpec:
    """
    One diagnostic probe: an external command plus how to run it.

    - `command` is an argv sequence; a plain string is split with shell quoting rules.
    - `required` probes report a missing command with a note instead of skipping silently.
    - `ok_exit_codes` lists exit statuses that count as success (some tools use 1 for "nothing found").
    - `merge_stderr` captures stderr into the same stream as stdout.
    """

    id: str
    command: Sequence[str] | str
    timeout_seconds: float = 30.0
    required: bool = False
    description: str = ""
    merge_stderr: bool = True
    ok_exit_codes: tuple[int, ...] = (0,)

    def __post_init__(self) -> None:
        if not self.id or not _PROBE_ID_RE.match(self.id):
            raise ValueError(f"invalid probe id: {self.id!r}")
        command = shlex.split(self.command) if isinstance(self.command, str) else tuple(self.command)
        if not command:
            raise ValueError(f"probe {self.id!r} has an empty command")
        if self.timeout_seconds <= 0:
            raise ValueError(f"probe {self.id!r} needs a positive timeout")
        # Frozen dataclass: normalize in place.
        object.__setattr__(self, "command", tuple(str(part) for part in command))
        object.__setattr__(self, "ok_exit_codes", tuple(self.ok_exit_codes))

    @property
    def executable(self) -> str:
        return self.command[0]

    @property
    def output_file_name(self) -> str:
        return f"{self.id}.txt"

    def command_line(self) -> str:
        return shlex.join(self.command)


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of running one ProbeSpec. `exit_code` is only set for SUCCESS/FAILED."""

    probe_id: str
    status: ProbeStatus
    exit_code: int | None = None
    raw_output: bytes = b""
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration: float = 0.0
    stderr: bytes = b""
    note: str | None = None
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return self.status == ProbeStatus.SUCCESS

    @property
    def text(self) -> str:
        return self.raw_output.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    def to_dict(self) -> dict[str, Any]:
        return {
            "probe_id": self.probe_id,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "started_at": self.started_at.isoformat(),
            "duration_seconds": round(self.duration, 3),
            "note": self.note,
            "truncated": self.truncated,
            "output_bytes": len(self.raw_output),
        }


__all__ = ["ProbeResult", "ProbeSpec", "ProbeStatus"]

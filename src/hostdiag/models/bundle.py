# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Dataclasses for bundle manifests and aggregator results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from .probe import ProbeResult, ProbeStatus


class BundleOutcome(str, Enum):
    COMPLETED = "COMPLETED"
    PACKAGING_FAILED = "PACKAGING_FAILED"


@dataclass(frozen=True)
class ManifestEntry:
    probe_id: str
    status: ProbeStatus
    output_file: str | None
    exit_code: int | None = None
    duration: float = 0.0
    note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "probe_id": self.probe_id,
            "status": self.status.value,
            "output_file": self.output_file,
            "exit_code": self.exit_code,
            "duration_seconds": round(self.duration, 3),
            "note": self.note,
        }


@dataclass(frozen=True)
class Manifest:
    """Ordered index of probe outcomes inside a bundle (Registry order)."""

    host_tag: str
    generated_at: datetime
    tool_version: str
    entries: tuple[ManifestEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def status_of(self, probe_id: str) -> ProbeStatus:
        for entry in self.entries:
            if entry.probe_id == probe_id:
                return entry.status
        raise KeyError(probe_id)

    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in ProbeStatus}
        for entry in self.entries:
            counts[entry.status.value] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "host_tag": self.host_tag,
            "generated_at": self.generated_at.isoformat(),
            "tool_version": self.tool_version,
            "probe_count": len(self.entries),
            "status_counts": self.counts(),
            "probes": [entry.to_dict() for entry in self.entries],
        }


@dataclass
class BundleResult:
    """
    Terminal state of one aggregator run.

    `workdir` is only set when the working directory was kept; on PACKAGING_FAILED it is
    the fallback location of the collected artifacts.
    """

    outcome: BundleOutcome
    manifest: Manifest | None
    results: list[ProbeResult] = field(default_factory=list)
    archive_path: Path | None = None
    workdir: Path | None = None
    error: str | None = None

    @property
    def completed(self) -> bool:
        return self.outcome == BundleOutcome.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "archive_path": str(self.archive_path) if self.archive_path else None,
            "workdir": str(self.workdir) if self.workdir else None,
            "error": self.error,
            "manifest": self.manifest.to_dict() if self.manifest else None,
        }


__all__ = ["BundleOutcome", "BundleResult", "Manifest", "ManifestEntry"]

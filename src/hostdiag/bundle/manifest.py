# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Manifest building and serialization."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

from ..models import Manifest, ManifestEntry, ProbeResult, ProbeSpec, ProbeStatus, RunContext
from ..version import __version__

MANIFEST_FILE_NAME = "manifest.json"


def build_manifest(
    context: RunContext,
    specs: Sequence[ProbeSpec],
    results: Sequence[ProbeResult],
) -> Manifest:
    """
    One entry per spec, in spec order.

    Skipped probes have no artifact, so their `output_file` is None.
    """
    if len(specs) != len(results):
        raise ValueError(f"expected {len(specs)} results, got {len(results)}")
    entries = []
    for spec, result in zip(specs, results):
        if spec.id != result.probe_id:
            raise ValueError(f"result for {result.probe_id} is out of order (expected {spec.id})")
        entries.append(
            ManifestEntry(
                probe_id=spec.id,
                status=result.status,
                output_file=None if result.status == ProbeStatus.SKIPPED else spec.output_file_name,
                exit_code=result.exit_code,
                duration=result.duration,
                note=result.note,
            )
        )
    return Manifest(
        host_tag=context.host_tag,
        generated_at=context.generated_at,
        tool_version=__version__,
        entries=tuple(entries),
    )


def manifest_json(manifest: Manifest) -> str:
    return json.dumps(manifest.to_dict(), indent=2, sort_keys=True) + "\n"


def write_manifest(manifest: Manifest, directory: Path) -> Path:
    path = directory / MANIFEST_FILE_NAME
    path.write_text(manifest_json(manifest), encoding="utf-8")
    return path


__all__ = ["MANIFEST_FILE_NAME", "build_manifest", "manifest_json", "write_manifest"]

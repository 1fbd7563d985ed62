# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Dataclass exports for hostdiag."""

from .bundle import BundleOutcome, BundleResult, Manifest, ManifestEntry
from .context import RunContext
from .probe import ProbeResult, ProbeSpec, ProbeStatus

__all__ = [
    "BundleOutcome",
    "BundleResult",
    "Manifest",
    "ManifestEntry",
    "ProbeResult",
    "ProbeSpec",
    "ProbeStatus",
    "RunContext",
]

# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
hostdiag package entrypoint.

hostdiag runs hardware, kernel and runtime diagnostic probes (external system
utilities) in isolation, redacts host-identifying data from their output and packs
the results into a reproducible support bundle. Probe failures are modeled as
result statuses rather than exceptions, and domain objects are typed dataclasses.
"""

from .bundle import BundleAggregator
from .config import CollectorSettings, load_settings
from .errors import BundleCancelled, ErrorCategory, HostDiagError, PackagingError, UsageError
from .log import setup_logging
from .models import (
    BundleOutcome,
    BundleResult,
    Manifest,
    ManifestEntry,
    ProbeResult,
    ProbeSpec,
    ProbeStatus,
    RunContext,
)
from .probes import ProbeRegistry, ProbeRunner, default_registry
from .redaction import PRIVATE_IP_PLACEHOLDER, RedactionRule, build_rules, redact
from .report import OutputMode, format_result
from .runtime import HostDiag
from .version import __version__

__all__ = [
    "PRIVATE_IP_PLACEHOLDER",
    "BundleAggregator",
    "BundleCancelled",
    "BundleOutcome",
    "BundleResult",
    "CollectorSettings",
    "ErrorCategory",
    "HostDiag",
    "HostDiagError",
    "Manifest",
    "ManifestEntry",
    "OutputMode",
    "PackagingError",
    "ProbeRegistry",
    "ProbeResult",
    "ProbeRunner",
    "ProbeSpec",
    "ProbeStatus",
    "RedactionRule",
    "RunContext",
    "UsageError",
    "build_rules",
    "default_registry",
    "format_result",
    "load_settings",
    "redact",
    "setup_logging",
    "__version__",
]

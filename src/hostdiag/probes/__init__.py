# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Probe registry, probe variants and the isolated probe runner."""

from .base import CommandProbe, Probe, ScriptProbe, probe_for
from .process import CommandOutcome, ProcessTracker, run_command
from .registry import BUILTIN_PROBES, ProbeRegistry, default_registry
from .runner import ProbeRunner

__all__ = [
    "BUILTIN_PROBES",
    "CommandOutcome",
    "CommandProbe",
    "Probe",
    "ProbeRegistry",
    "ProbeRunner",
    "ProcessTracker",
    "ScriptProbe",
    "default_registry",
    "probe_for",
    "run_command",
]

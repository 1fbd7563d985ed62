# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Probe registry: the static, ordered list of known probes."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import replace
from pathlib import Path

from ..config import CollectorSettings, load_settings
from ..errors import UsageError
from ..models import ProbeSpec

logger = logging.getLogger(__name__)

BUILTIN_PROBES: tuple[ProbeSpec, ...] = (
    ProbeSpec("numa", ("numactl", "--hardware"), 30, True, "NUMA nodes, distances and memory per node"),
    ProbeSpec("cpu", ("lscpu",), 30, True, "CPU model, topology, caches and vulnerability mitigations"),
    ProbeSpec("gpu", ("lspci", "-nnk", "-d", "::0300"), 30, True, "Display controllers with kernel drivers"),
    ProbeSpec("compute-api", ("clinfo", "--list"), 60, False, "OpenCL platforms and devices"),
    ProbeSpec("rendering-api", ("glxinfo", "-B"), 30, False, "OpenGL renderer summary"),
    ProbeSpec("ml-stack", ("python3", "-m", "pip", "list", "--disable-pip-version-check"), 60, False, "Installed Python ML packages"),
    ProbeSpec("pcie", ("lspci", "-tv"), 30, True, "PCIe topology tree"),
    ProbeSpec("storage", ("lsblk", "-o", "NAME,SIZE,TYPE,ROTA,TRAN,MOUNTPOINT"), 30, True, "Block devices"),
    ProbeSpec("io", ("iostat", "-dxk", "1", "5"), 30, True, "Per-device I/O saturation, five one-second samples"),
    ProbeSpec("net", ("ip", "-s", "address", "show"), 30, True, "Interfaces, addresses and counters"),
    ProbeSpec("mem", ("free", "-h", "-w"), 15, True, "Memory and swap usage"),
    ProbeSpec("firmware", ("dmidecode", "-t", "bios", "-t", "baseboard"), 30, True, "BIOS/UEFI and baseboard firmware"),
    ProbeSpec("sysctl", ("sysctl", "-a"), 30, True, "Runtime kernel tunables"),
    ProbeSpec("security", ("ss", "-lntu"), 30, False, "Listening TCP/UDP sockets"),
    # systemd-detect-virt exits 1 when it finds no hypervisor.
    ProbeSpec("virtualization", ("systemd-detect-virt",), 15, False, "Hypervisor / container detection", ok_exit_codes=(0, 1)),
)


class ProbeRegistry:
    """Ordered, immutable collection of ProbeSpecs with unique ids."""

    def __init__(self, specs: Iterable[ProbeSpec]):
        ordered: list[ProbeSpec] = []
        seen: set[str] = set()
        for spec in specs:
            if spec.id in seen:
                raise ValueError(f"duplicate probe id: {spec.id}")
            seen.add(spec.id)
            ordered.append(spec)
        self._specs = tuple(ordered)
        self._by_id = {spec.id: spec for spec in self._specs}

    def list(self) -> tuple[ProbeSpec, ...]:
        return self._specs

    def ids(self) -> tuple[str, ...]:
        return tuple(spec.id for spec in self._specs)

    def get(self, probe_id: str) -> ProbeSpec:
        return self._by_id[probe_id]

    def with_timeout(self, timeout: float) -> ProbeRegistry:
        """Copy of the registry with every probe's timeout replaced."""
        return ProbeRegistry(replace(spec, timeout_seconds=timeout) for spec in self._specs)

    def __contains__(self, probe_id: object) -> bool:
        return probe_id in self._by_id

    def __iter__(self) -> Iterator[ProbeSpec]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"ProbeRegistry({', '.join(self.ids())})"

    @classmethod
    def from_directory(cls, path: str | Path, *, timeout: float = 60.0, required: bool = False) -> ProbeRegistry:
        """
        Build a registry from helper scripts in `path`, sorted by file name.

        The probe id is the file stem (`get-cpu-info.sh` -> `get-cpu-info`). Files that are
        not executable are still registered so that they show up as skipped in the manifest.
        """
        directory = Path(path)
        specs: list[ProbeSpec] = []
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.name.startswith(".") or not entry.is_file():
                continue
            try:
                spec = ProbeSpec(entry.stem, (str(entry.resolve()),), timeout, required, f"helper script {entry.name}")
            except ValueError as exc:
                logger.warning("Ignoring helper %s: %s", entry.name, exc)
                continue
            if any(existing.id == spec.id for existing in specs):
                logger.warning("Ignoring helper %s: probe id %s already registered", entry.name, spec.id)
                continue
            specs.append(spec)
        return cls(specs)


def default_registry(settings: CollectorSettings | None = None) -> ProbeRegistry:
    """
    Built-in probes, or the helper-script directory when one is configured.

    Raises UsageError when the configured directory cannot be listed.
    """
    settings = settings or load_settings()
    if settings.probe_dir:
        try:
            registry = ProbeRegistry.from_directory(settings.probe_dir, timeout=settings.default_timeout)
        except OSError as exc:
            raise UsageError(f"cannot read probe directory {settings.probe_dir}: {exc.strerror or exc}") from exc
    else:
        registry = ProbeRegistry(BUILTIN_PROBES)
    if settings.timeout_override is not None:
        registry = registry.with_timeout(settings.timeout_override)
    return registry


__all__ = ["BUILTIN_PROBES", "ProbeRegistry", "default_registry"]

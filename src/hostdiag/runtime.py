# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""High-level hostdiag facade for standalone probes and support bundles."""

from __future__ import annotations

from contextlib import suppress
from pathlib import Path

from .bundle import BundleAggregator, ProgressCallback
from .config import CollectorSettings, load_settings
from .models import BundleResult, ProbeResult, ProbeSpec, RunContext
from .probes import ProbeRegistry, ProbeRunner, default_registry
from .report import OutputMode, format_result


class HostDiag:
    """
    Convenience wrapper that wires one registry and one runner across standalone probe
    runs and bundle runs.

    Closing the facade terminates any probe processes that are still running.
    """

    def __init__(
        self,
        settings: CollectorSettings | None = None,
        registry: ProbeRegistry | None = None,
        runner: ProbeRunner | None = None,
    ):
        self.settings = settings or load_settings()
        self.registry = registry if registry is not None else default_registry(self.settings)
        self.runner = runner or ProbeRunner(self.settings)

    def probes(self) -> tuple[ProbeSpec, ...]:
        return self.registry.list()

    def run_probe(self, probe_id: str) -> ProbeResult:
        """Run one registered probe. Raises KeyError for an unknown id; probe failures are statuses."""
        spec = self.registry.get(probe_id)
        self.runner.reset()
        return self.runner.run(spec)

    def report(self, probe_id: str, mode: OutputMode | str = OutputMode.HUMAN) -> tuple[ProbeResult, str]:
        result = self.run_probe(probe_id)
        return result, format_result(result, mode)

    def collect_bundle(
        self,
        *,
        output_path: str | Path | None = None,
        keep: bool | None = None,
        progress: ProgressCallback | None = None,
        context: RunContext | None = None,
    ) -> BundleResult:
        aggregator = BundleAggregator(
            registry=self.registry,
            runner=self.runner,
            settings=self.settings,
            progress=progress,
        )
        return aggregator.run(output_path=output_path, keep=keep, context=context)

    def close(self) -> None:
        with suppress(Exception):
            if self.runner.tracker.active_count():
                self.runner.cancel()

    def __enter__(self) -> HostDiag:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()

# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Support-bundle aggregator: run every probe, redact, manifest, package, clean up."""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from pathlib import Path

from ..config import CollectorSettings, load_settings
from ..errors import BundleCancelled, ErrorCategory, PackagingError, categorize_exception, error_category_to_reason
from ..models import BundleOutcome, BundleResult, Manifest, ProbeResult, ProbeSpec, ProbeStatus, RunContext
from ..probes import ProbeRegistry, ProbeRunner, default_registry
from ..redaction import build_rules, redact_result
from ..report import OutputMode, format_result
from .archive import default_archive_path, write_archive
from .manifest import build_manifest, write_manifest

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProbeSpec, ProbeResult], None]


class BundleAggregator:
    """
    Coordinates one support-bundle run.

    Probe failures never abort the run; they are recorded as statuses in the manifest.
    Only packaging failures and cancellation end a run without an archive.
    """

    def __init__(
        self,
        registry: ProbeRegistry | None = None,
        runner: ProbeRunner | None = None,
        settings: CollectorSettings | None = None,
        progress: ProgressCallback | None = None,
    ):
        self.settings = settings or load_settings()
        self.registry = registry if registry is not None else default_registry(self.settings)
        self.runner = runner or ProbeRunner(self.settings)
        self.progress = progress

    def cancel(self) -> None:
        """Cancel a run in progress from another thread: in-flight probes are killed and no archive is written."""
        self.runner.cancel()

    def worker_count(self, probe_count: int) -> int:
        if self.settings.sequential:
            return 1
        return max(1, min(self.settings.max_workers, probe_count))

    def run(
        self,
        *,
        output_path: str | Path | None = None,
        keep: bool | None = None,
        context: RunContext | None = None,
    ) -> BundleResult:
        keep = self.settings.keep_workdir if keep is None else keep
        context = context or RunContext.create()
        self.runner.reset()
        specs = self.registry.list()
        rules = build_rules(context)
        archive_path = Path(output_path) if output_path else default_archive_path(context, self.settings.output_dir)

        try:
            workdir = self._create_workdir(context)
        except OSError as exc:
            error = f"could not create working directory under {self.settings.workdir_root}: {exc}"
            logger.error(error)
            return BundleResult(outcome=BundleOutcome.PACKAGING_FAILED, manifest=None, error=error)
        logger.info("Collecting diagnostics into %s", workdir)

        keep_workdir = keep
        try:
            raw_results = self._dispatch(specs)
            if self.runner.cancelled:
                keep_workdir = False
                raise BundleCancelled("cancelled; no bundle written")
            results = [redact_result(result, rules) for result in raw_results]
            manifest = build_manifest(context, specs, results)
            error = self._package(workdir, specs, results, manifest, archive_path, context)
        except KeyboardInterrupt as exc:
            keep_workdir = False
            self.runner.cancel()
            raise BundleCancelled("interrupted; no bundle written") from exc
        finally:
            # Cancellation always discards the working directory, even with keep.
            if keep_workdir:
                logger.info("Temporary files kept in %s", workdir)
            else:
                self._remove_workdir(workdir)

        if error is not None:
            logger.error(error)
            return BundleResult(
                outcome=BundleOutcome.PACKAGING_FAILED,
                manifest=manifest,
                results=results,
                workdir=workdir if keep else None,
                error=error,
            )
        return BundleResult(
            outcome=BundleOutcome.COMPLETED,
            manifest=manifest,
            results=results,
            archive_path=archive_path,
            workdir=workdir if keep else None,
        )

    def _package(
        self,
        workdir: Path,
        specs: Sequence[ProbeSpec],
        results: Sequence[ProbeResult],
        manifest: Manifest,
        archive_path: Path,
        context: RunContext,
    ) -> str | None:
        """Stage artifacts and the manifest, then write the archive. Returns the error text on failure."""
        try:
            members = self._write_artifacts(workdir, specs, results)
            members.append(write_manifest(manifest, workdir).name)
            write_archive(workdir, members, archive_path, context)
        except PackagingError as exc:
            return str(exc)
        except OSError as exc:
            return f"{error_category_to_reason(ErrorCategory.PACKAGING)}: could not stage files in {workdir}: {exc}"
        return None

    def _create_workdir(self, context: RunContext) -> Path:
        root = Path(self.settings.workdir_root)
        root.mkdir(parents=True, exist_ok=True)
        # mkdtemp adds a random suffix, so concurrent runs in the same second do not collide.
        return Path(tempfile.mkdtemp(prefix=f"{context.bundle_basename}-", dir=root))

    def _remove_workdir(self, workdir: Path) -> None:
        try:
            shutil.rmtree(workdir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove working directory %s: %s", workdir, exc)

    def _run_one(self, spec: ProbeSpec) -> ProbeResult:
        try:
            return self.runner.run(spec)
        except Exception as exc:  # noqa: BLE001
            # Runners are not supposed to raise; keep the one-result-per-probe guarantee anyway.
            logger.warning("Runner raised for probe %s: %s", spec.id, exc)
            reason = error_category_to_reason(categorize_exception(exc))
            return ProbeResult(
                probe_id=spec.id,
                status=ProbeStatus.FAILED,
                started_at=datetime.now(timezone.utc),
                note=f"{reason}: {exc}",
            )

    def _report(self, spec: ProbeSpec, result: ProbeResult) -> None:
        if self.progress is None:
            logger.info("Probe %s: %s", spec.id, result.status.value)
            return
        try:
            self.progress(spec, result)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Progress callback failed for %s: %s", spec.id, exc)

    def _dispatch(self, specs: Sequence[ProbeSpec]) -> list[ProbeResult]:
        """Run every spec; results come back in spec order whatever the completion order."""
        if not specs:
            return []
        workers = self.worker_count(len(specs))
        if workers == 1:
            results = []
            for spec in specs:
                result = self._run_one(spec)
                self._report(spec, result)
                results.append(result)
            return results

        by_id: dict[str, ProbeResult] = {}
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="hostdiag-probe")
        try:
            futures = {executor.submit(self._run_one, spec): spec for spec in specs}
            for future in as_completed(futures):
                spec = futures[future]
                result = future.result()
                by_id[spec.id] = result
                self._report(spec, result)
        except BaseException:
            self.runner.cancel()
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return [by_id[spec.id] for spec in specs]

    def _write_artifacts(
        self,
        workdir: Path,
        specs: Sequence[ProbeSpec],
        results: Sequence[ProbeResult],
    ) -> list[str]:
        """Write one rendered, redacted file per non-skipped probe. Returns file names in spec order."""
        members: list[str] = []
        for spec, result in zip(specs, results):
            if result.status == ProbeStatus.SKIPPED:
                continue
            path = workdir / spec.output_file_name
            path.write_text(format_result(result, OutputMode.HUMAN), encoding="utf-8")
            members.append(path.name)
        return members


__all__ = ["BundleAggregator", "ProgressCallback"]

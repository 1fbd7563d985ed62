# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Probe runner: executes one probe in isolation and never raises."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import datetime, timezone

from ..config import CollectorSettings, load_settings
from ..errors import ErrorCategory, categorize_exception, error_category_to_reason
from ..models import ProbeResult, ProbeSpec, ProbeStatus
from .base import Probe, probe_for
from .process import ProcessTracker

logger = logging.getLogger(__name__)


class ProbeRunner:
    """
    Runs ProbeSpecs and folds every failure mode into ProbeResult.status.

    One runner can be shared across worker threads; the only shared state is the
    ProcessTracker used to terminate in-flight probes on cancellation.
    """

    def __init__(self, settings: CollectorSettings | None = None, tracker: ProcessTracker | None = None):
        self.settings = settings or load_settings()
        self.tracker = tracker or ProcessTracker()

    @property
    def cancelled(self) -> bool:
        return self.tracker.cancelled

    def cancel(self) -> int:
        return self.tracker.terminate_all()

    def reset(self) -> None:
        """Clear a previous cancellation so the runner can be reused for a new run."""
        self.tracker.reset()

    def timeout_for(self, spec: ProbeSpec) -> float:
        if self.settings.timeout_override is not None:
            return self.settings.timeout_override
        return spec.timeout_seconds

    def run(self, spec: ProbeSpec) -> ProbeResult:
        started_at = datetime.now(timezone.utc)
        start = time.monotonic()

        def _result(status: ProbeStatus, note: str | None = None) -> ProbeResult:
            return ProbeResult(
                probe_id=spec.id,
                status=status,
                started_at=started_at,
                duration=time.monotonic() - start,
                note=note,
            )

        if self.cancelled:
            return _result(ProbeStatus.SKIPPED, error_category_to_reason(ErrorCategory.CANCELLED))

        probe: Probe = probe_for(spec)
        if not probe.is_available():
            if spec.required:
                logger.warning("Probe %s: required command not found: %s", spec.id, spec.executable)
                return _result(ProbeStatus.SKIPPED, f"required command not found or not executable: {spec.executable}")
            logger.info("Probe %s: %s not installed, skipping", spec.id, spec.executable)
            return _result(ProbeStatus.SKIPPED)

        logger.debug("Probe %s: running %s (timeout %.1fs)", spec.id, spec.command_line(), self.timeout_for(spec))
        try:
            result = probe.invoke(
                self.timeout_for(spec),
                max_output_bytes=self.settings.max_output_bytes,
                tracker=self.tracker,
            )
        except Exception as exc:  # noqa: BLE001
            category = categorize_exception(exc)
            reason = error_category_to_reason(category)
            logger.warning("Probe %s could not run: %s", spec.id, exc)
            status = ProbeStatus.SKIPPED if isinstance(exc, FileNotFoundError) else ProbeStatus.FAILED
            return _result(status, f"{reason}: {exc}")

        if self.cancelled and result.status != ProbeStatus.SUCCESS:
            return replace(result, note=error_category_to_reason(ErrorCategory.CANCELLED))

        if result.status == ProbeStatus.TIMED_OUT:
            logger.warning("Probe %s timed out after %.1fs", spec.id, result.duration)
        elif result.status == ProbeStatus.FAILED:
            logger.info("Probe %s exited with status %s", spec.id, result.exit_code)
        return result


__all__ = ["ProbeRunner"]

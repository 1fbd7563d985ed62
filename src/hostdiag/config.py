# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration helpers for hostdiag."""

import os
import tempfile
from dataclasses import dataclass, field

DEFAULT_MAX_OUTPUT_BYTES = 8 * 1024 * 1024


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _optional_float_env(name: str, default: float | None) -> float | None:
    try:
        value = os.getenv(name)
        if value is None or not value.strip():
            return default
        parsed = float(value)
        return parsed if parsed > 0 else None
    except ValueError:
        return default


def _optional_str_env(name: str, default: str | None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or None


@dataclass
class CollectorSettings:
    """Collector defaults for probe execution and bundle assembly."""

    max_workers: int = 4
    sequential: bool = False
    timeout_override: float | None = None
    default_timeout: float = 60.0
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    workdir_root: str = field(default_factory=tempfile.gettempdir)
    output_dir: str = "."
    probe_dir: str | None = None
    keep_workdir: bool = False

    @classmethod
    def from_env(cls) -> "CollectorSettings":
        """Create settings from environment variables (evaluated at call time)."""
        max_workers = _int_env("HOSTDIAG_MAX_WORKERS", cls.max_workers)
        if max_workers <= 0:
            max_workers = 1
        max_output_bytes = _int_env("HOSTDIAG_MAX_OUTPUT_BYTES", cls.max_output_bytes)
        if max_output_bytes <= 0:
            max_output_bytes = cls.max_output_bytes
        default_timeout = _float_env("HOSTDIAG_DEFAULT_TIMEOUT", cls.default_timeout)
        if default_timeout <= 0:
            default_timeout = cls.default_timeout
        return cls(
            max_workers=max_workers,
            sequential=_bool_env("HOSTDIAG_SEQUENTIAL", cls.sequential),
            timeout_override=_optional_float_env("HOSTDIAG_PROBE_TIMEOUT", cls.timeout_override),
            default_timeout=default_timeout,
            max_output_bytes=max_output_bytes,
            workdir_root=_optional_str_env("HOSTDIAG_WORKDIR_ROOT", None) or tempfile.gettempdir(),
            output_dir=_optional_str_env("HOSTDIAG_OUTPUT_DIR", None) or cls.output_dir,
            probe_dir=_optional_str_env("HOSTDIAG_PROBE_DIR", cls.probe_dir),
            keep_workdir=_bool_env("HOSTDIAG_KEEP_WORKDIR", cls.keep_workdir),
        )


def load_settings() -> CollectorSettings:
    """Load collector settings from environment with sensible defaults."""
    return CollectorSettings.from_env()

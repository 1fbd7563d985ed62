# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy and exception helpers."""

from __future__ import annotations

import re
import subprocess
import tarfile
from enum import Enum


class ErrorCategory(str, Enum):
    DEPENDENCY_MISSING = "DEPENDENCY_MISSING"
    PROBE_RUNTIME = "PROBE_RUNTIME"
    PROBE_TIMEOUT = "PROBE_TIMEOUT"
    REDACTION = "REDACTION"
    PACKAGING = "PACKAGING"
    USAGE = "USAGE"
    CANCELLED = "CANCELLED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    NONE = "NONE"


class HostDiagError(Exception):
    """Base class for errors that are fatal to a hostdiag run."""

    category: ErrorCategory = ErrorCategory.UNKNOWN_ERROR


class UsageError(HostDiagError):
    category = ErrorCategory.USAGE


class PackagingError(HostDiagError):
    """The bundle archive (or its staging files) could not be written."""

    category = ErrorCategory.PACKAGING

    def __init__(self, message: str, *, output_path: str | None = None, workdir: str | None = None):
        super().__init__(message)
        self.output_path = output_path
        self.workdir = workdir


class BundleCancelled(HostDiagError):
    category = ErrorCategory.CANCELLED


def categorize_exception(exc: BaseException) -> ErrorCategory:
    """
    Map Python exceptions to ErrorCategory.
    """
    if isinstance(exc, HostDiagError):
        return exc.category

    if isinstance(exc, KeyboardInterrupt):
        return ErrorCategory.CANCELLED

    if isinstance(exc, subprocess.TimeoutExpired):
        return ErrorCategory.PROBE_TIMEOUT

    # Missing binary, or a file that exists but cannot be executed.
    if isinstance(exc, (FileNotFoundError, PermissionError, NotADirectoryError)):
        return ErrorCategory.DEPENDENCY_MISSING

    if isinstance(exc, re.error):
        return ErrorCategory.REDACTION

    if isinstance(exc, tarfile.TarError):
        return ErrorCategory.PACKAGING

    if isinstance(exc, (OSError, subprocess.SubprocessError)):
        return ErrorCategory.PROBE_RUNTIME

    return ErrorCategory.UNKNOWN_ERROR


def error_category_to_reason(category: ErrorCategory | None) -> str:
    """User-facing reason string."""
    mapping = {
        ErrorCategory.DEPENDENCY_MISSING: "Required tool not found or not executable",
        ErrorCategory.PROBE_RUNTIME: "Probe could not be executed",
        ErrorCategory.PROBE_TIMEOUT: "Probe exceeded its timeout",
        ErrorCategory.REDACTION: "Redaction rule could not be applied",
        ErrorCategory.PACKAGING: "Support bundle could not be written",
        ErrorCategory.USAGE: "Invalid command line",
        ErrorCategory.CANCELLED: "Run cancelled",
        ErrorCategory.UNKNOWN_ERROR: "Unexpected error",
        ErrorCategory.NONE: "",
        None: "",
    }
    return mapping.get(category, "Unexpected error")


__all__ = [
    "BundleCancelled",
    "ErrorCategory",
    "HostDiagError",
    "PackagingError",
    "UsageError",
    "categorize_exception",
    "error_category_to_reason",
]

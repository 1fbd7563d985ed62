# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Logging helpers for hostdiag."""

from __future__ import annotations

import logging
import os

DEFAULT_LOG_LEVEL = os.getenv("HOSTDIAG_LOG_LEVEL", "WARNING").upper()
_VERBOSITY_LEVELS = {1: logging.INFO, 2: logging.DEBUG}


def resolve_log_level(level: str | None = None, verbosity: int = 0) -> int:
    """Pick the effective level: ``-v`` flags win over an explicit name, which wins over the env default."""
    if verbosity > 0:
        return _VERBOSITY_LEVELS.get(min(verbosity, 2), logging.DEBUG)
    effective_level = (level or DEFAULT_LOG_LEVEL).upper()
    return getattr(logging, effective_level, logging.WARNING)


def setup_logging(level: str | None = None, verbosity: int = 0) -> None:
    """Configure standard logging for CLI/library use. Log records go to stderr so progress output stays clean."""
    logging.basicConfig(
        level=resolve_log_level(level, verbosity),
        format="%(levelname)s %(name)s: %(message)s",
    )


__all__ = ["resolve_log_level", "setup_logging"]

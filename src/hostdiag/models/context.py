# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Per-run context.

A RunContext carries the values that must be identical for every probe in one
bundle run: the short hostname (read once) and the anonymization tag (generated
once). It is passed explicitly to the redaction rule builder, the manifest
builder and the archive writer.
"""

from __future__ import annotations

import logging
import secrets
import socket
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

TAG_BYTES = 4


def short_hostname() -> str:
    """Return the host name up to the first dot, or an empty string when it cannot be read."""
    try:
        name = socket.gethostname()
    except OSError as exc:
        logger.warning("Could not read hostname: %s", exc)
        return ""
    return (name or "").split(".", 1)[0].strip()


def generate_tag() -> str:
    return secrets.token_hex(TAG_BYTES)


@dataclass(frozen=True)
class RunContext:
    hostname: str
    tag: str
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls,
        *,
        hostname: str | None = None,
        tag: str | None = None,
        now: datetime | None = None,
    ) -> RunContext:
        generated_at = now or datetime.now(timezone.utc)
        if generated_at.tzinfo is None:
            generated_at = generated_at.replace(tzinfo=timezone.utc)
        return cls(
            hostname=short_hostname() if hostname is None else hostname,
            tag=tag or generate_tag(),
            generated_at=generated_at,
        )

    @property
    def host_tag(self) -> str:
        return f"host-{self.tag}"

    @property
    def stamp(self) -> str:
        return self.generated_at.astimezone(timezone.utc).strftime("%Y%m%d-%H%M%S")

    @property
    def bundle_basename(self) -> str:
        """`support-bundle-<host>-<stamp>`; falls back to the host tag when the hostname is unknown."""
        return f"support-bundle-{self.hostname or self.host_tag}-{self.stamp}"


__all__ = ["RunContext", "generate_tag", "short_hostname"]

# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Redaction rules built once per bundle run."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import lru_cache

from ..models import RunContext

logger = logging.getLogger(__name__)

PRIVATE_IP_PLACEHOLDER = "XXX.PRIV.IP"

_OCTET = r"(?:25[0-5]|2[0-4][0-9]|1[0-9]{2}|[1-9]?[0-9])"
PRIVATE_IPV4_PATTERN = (
    r"(?<![0-9.])"
    r"(?:"
    rf"10(?:\.{_OCTET}){{3}}"
    rf"|172\.(?:1[6-9]|2[0-9]|3[01])(?:\.{_OCTET}){{2}}"
    rf"|192\.168(?:\.{_OCTET}){{2}}"
    r")"
    r"(?!\.?[0-9])"
)


@dataclass(frozen=True)
class RedactionRule:
    """A compiled pattern and the token every match is replaced with."""

    name: str
    pattern: re.Pattern[str]
    replacement: str

    def apply(self, text: str) -> str:
        replacement = self.replacement
        return self.pattern.sub(lambda _match: replacement, text)


def hostname_rule(hostname: str, host_tag: str) -> RedactionRule:
    """Literal, case-sensitive hostname match."""
    if not hostname:
        raise ValueError("hostname is empty")
    return RedactionRule("hostname", re.compile(re.escape(hostname)), host_tag)


def private_ip_rule(placeholder: str = PRIVATE_IP_PLACEHOLDER) -> RedactionRule:
    return RedactionRule("private-ipv4", re.compile(PRIVATE_IPV4_PATTERN), placeholder)


KEEP_GROUP = "_keep"
_SCOPED_FLAGS = ((re.IGNORECASE, "i"), (re.MULTILINE, "m"), (re.DOTALL, "s"), (re.VERBOSE, "x"))


def rule_group(index: int) -> str:
    return f"_rule{index}"


def _scoped(pattern: re.Pattern[str]) -> str:
    letters = "".join(letter for flag, letter in _SCOPED_FLAGS if pattern.flags & flag)
    return f"(?{letters}:{pattern.pattern})" if letters else pattern.pattern


@lru_cache(maxsize=32)
def combine_rules(rules: Sequence[RedactionRule]) -> re.Pattern[str]:
    """
    One alternation over every rule, matched in a single left-to-right scan.

    Replacement tokens come first and match themselves, so already redacted text is a
    fixed point, and no rule ever sees another rule's output. Rule patterns must not
    use numbered backreferences. Raises re.error when the combination does not compile.
    """
    tokens = sorted({rule.replacement for rule in rules if rule.replacement}, key=len, reverse=True)
    parts = []
    if tokens:
        parts.append(f"(?P<{KEEP_GROUP}>{'|'.join(re.escape(token) for token in tokens)})")
    parts.extend(f"(?P<{rule_group(index)}>{_scoped(rule.pattern)})" for index, rule in enumerate(rules))
    return re.compile("|".join(parts))


def build_rules(context: RunContext) -> tuple[RedactionRule, ...]:
    """Rules for one run. A rule that cannot be built is left out."""
    builders: list[tuple[str, Callable[[], RedactionRule]]] = [
        ("hostname", lambda: hostname_rule(context.hostname, context.host_tag)),
        ("private-ipv4", private_ip_rule),
    ]
    rules: list[RedactionRule] = []
    for name, build in builders:
        try:
            rules.append(build())
        except (ValueError, re.error) as exc:
            logger.warning("Redaction rule %s disabled: %s", name, exc)
    return tuple(rules)


__all__ = [
    "KEEP_GROUP",
    "PRIVATE_IPV4_PATTERN",
    "PRIVATE_IP_PLACEHOLDER",
    "RedactionRule",
    "build_rules",
    "combine_rules",
    "hostname_rule",
    "private_ip_rule",
    "rule_group",
]

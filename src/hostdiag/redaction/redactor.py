# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Stateless redaction transforms over text, line streams, bytes and probe results."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import replace
from typing import BinaryIO

from ..models import ProbeResult
from .rules import KEEP_GROUP, RedactionRule, combine_rules, rule_group

logger = logging.getLogger(__name__)


def _substitute(text: str, rules: tuple[RedactionRule, ...]) -> str:
    pattern = combine_rules(rules)
    replacements = {rule_group(index): rule.replacement for index, rule in enumerate(rules)}

    def _replace(match: re.Match[str]) -> str:
        if match.lastgroup == KEEP_GROUP:
            return match.group()
        return replacements[match.lastgroup]

    return pattern.sub(_replace, text)


def redact(text: str, rules: Sequence[RedactionRule]) -> str:
    """
    Apply every rule in one pass over `text`.

    When the rules cannot be combined, they are applied one after another instead and
    a rule that raises is skipped for this text only.
    """
    rules = tuple(rules)
    if not rules or not text:
        return text
    try:
        return _substitute(text, rules)
    except (re.error, TypeError) as exc:
        logger.warning("Could not combine redaction rules, applying them one by one: %s", exc)
    for rule in rules:
        try:
            text = rule.apply(text)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Redaction rule %s skipped: %s", rule.name, exc)
    return text


def redact_lines(lines: Iterable[str], rules: Sequence[RedactionRule]) -> Iterator[str]:
    for line in lines:
        yield redact(line, rules)


def redact_bytes(data: bytes, rules: Sequence[RedactionRule]) -> bytes:
    """Redact raw probe output; bytes that are not valid UTF-8 pass through untouched."""
    if not data:
        return data
    text = data.decode("utf-8", errors="surrogateescape")
    return redact(text, rules).encode("utf-8", errors="surrogateescape")


def redact_stream(source: BinaryIO, sink: BinaryIO, rules: Sequence[RedactionRule]) -> int:
    """Filter `source` into `sink` line by line without buffering the whole input. Returns bytes written."""
    written = 0
    for line in source:
        chunk = redact_bytes(line, rules)
        sink.write(chunk)
        written += len(chunk)
    return written


def redact_result(result: ProbeResult, rules: Sequence[RedactionRule]) -> ProbeResult:
    return replace(
        result,
        raw_output=redact_bytes(result.raw_output, rules),
        stderr=redact_bytes(result.stderr, rules),
        note=redact(result.note, rules) if result.note else result.note,
    )


class Redactor:
    """Binds a rule set so callers can pass a single callable around."""

    def __init__(self, rules: Sequence[RedactionRule]):
        self.rules = tuple(rules)

    def __call__(self, text: str) -> str:
        return redact(text, self.rules)

    def result(self, result: ProbeResult) -> ProbeResult:
        return redact_result(result, self.rules)


__all__ = ["Redactor", "redact", "redact_bytes", "redact_lines", "redact_result", "redact_stream"]

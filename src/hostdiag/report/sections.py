# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Best-effort structure recovery from free-form probe output.

Probe output stays opaque text; these helpers only look for layout the probes
already use: banner-delimited section titles, `key: value` lines and whitespace
or tab aligned tables.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

BANNER_RE = re.compile(r"^\s*={10,}\s*$")
KEY_VALUE_RE = re.compile(r"^\s*(?P<key>[^\s:][^:]{0,63}?)\s*:(?:\s+(?P<value>.*?))?\s*$")
_TWO_OR_MORE_SPACES = re.compile(r"\s{2,}")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class Section:
    title: str
    lines: list[str] = field(default_factory=list)

    def blocks(self) -> list[list[str]]:
        """Runs of consecutive non-blank lines."""
        blocks: list[list[str]] = []
        current: list[str] = []
        for line in self.lines:
            if line.strip():
                current.append(line)
            elif current:
                blocks.append(current)
                current = []
        if current:
            blocks.append(current)
        return blocks


@dataclass
class Table:
    header: list[str]
    rows: list[list[str]]


def _trim_blank(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def _is_banner_title(lines: list[str], index: int) -> bool:
    return (
        index + 2 < len(lines)
        and BANNER_RE.match(lines[index]) is not None
        and BANNER_RE.match(lines[index + 2]) is not None
        and BANNER_RE.match(lines[index + 1]) is None
        and bool(lines[index + 1].strip())
    )


def split_sections(text: str, default_title: str) -> list[Section]:
    """
    Split output on `=====` / title / `=====` banners.

    Text before the first banner (or all of it, when there are no banners) lands in a
    section called `default_title`; that section is dropped when it is blank.
    """
    lines = text.splitlines()
    sections: list[Section] = []
    current = Section(default_title)
    titled = False
    index = 0
    while index < len(lines):
        if _is_banner_title(lines, index):
            current.lines = _trim_blank(current.lines)
            if titled or current.lines:
                sections.append(current)
            current = Section(lines[index + 1].strip())
            titled = True
            index += 3
            continue
        current.lines.append(lines[index].rstrip("\r"))
        index += 1
    current.lines = _trim_blank(current.lines)
    if titled or current.lines:
        sections.append(current)
    return sections


def parse_key_value(line: str) -> tuple[str, str] | None:
    match = KEY_VALUE_RE.match(line)
    if not match:
        return None
    return match.group("key").strip(), (match.group("value") or "").strip()


def _splitter(header: str) -> re.Pattern[str] | None:
    if "\t" in header:
        return None
    if len(_TWO_OR_MORE_SPACES.split(header.strip())) >= 2:
        return _TWO_OR_MORE_SPACES
    return _WHITESPACE


def _split(line: str, splitter: re.Pattern[str] | None) -> list[str]:
    if splitter is None:
        return [cell.strip() for cell in line.strip("\r\n").split("\t")]
    return splitter.split(line.strip())


def parse_table(block: list[str]) -> Table | None:
    """
    Parse a column-aligned block: a header line followed by rows.

    Rows may carry one extra leading label cell (as `free` does with `Mem:`); shorter
    rows are padded at the end. The first row must line up with the header.
    """
    if len(block) < 2:
        return None
    splitter = _splitter(block[0])
    header = _split(block[0], splitter)
    width = len(header)
    if width < 2:
        return None
    rows = [_split(line, splitter) for line in block[1:]]
    if len(rows[0]) not in (width, width + 1):
        return None
    if any(len(row) < 2 or len(row) > width + 1 for row in rows):
        return None
    if any(len(row) == width + 1 for row in rows):
        header = ["", *header]
        width += 1
    padded = [row + [""] * (width - len(row)) for row in rows]
    return Table(header=header, rows=padded)


def extract_tables(section: Section) -> list[Table]:
    """Every tabular block in a section: `key: value` blocks first, then column tables."""
    tables: list[Table] = []
    for block in section.blocks():
        pairs = [parse_key_value(line) for line in block]
        if all(pairs):
            tables.append(Table(header=["key", "value"], rows=[list(pair) for pair in pairs if pair]))
            continue
        table = parse_table(block)
        if table is not None:
            tables.append(table)
    return tables


def section_record(section: Section) -> dict[str, Any]:
    """Nested record for one section; repeated keys collect into a list."""
    fields: dict[str, Any] = {}
    lines: list[str] = []
    for line in section.lines:
        if not line.strip():
            continue
        pair = parse_key_value(line)
        if pair is None:
            lines.append(line.rstrip())
            continue
        key, value = pair
        if key in fields:
            existing = fields[key]
            fields[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            fields[key] = value
    return {"title": section.title, "fields": fields, "lines": lines}


__all__ = [
    "Section",
    "Table",
    "extract_tables",
    "parse_key_value",
    "parse_table",
    "section_record",
    "split_sections",
]

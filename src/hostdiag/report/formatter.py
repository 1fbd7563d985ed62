# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Render a ProbeResult as human-readable text, CSV or a structured JSON record."""

from __future__ import annotations

import csv
import io
import json
import logging
from enum import Enum
from typing import Any

from ..models import ProbeResult
from .sections import Section, extract_tables, section_record, split_sections

logger = logging.getLogger(__name__)

BANNER = "=" * 78
NO_OUTPUT = "(no output)"
BINARY_PLACEHOLDER = "[hostdiag] output contains binary data; showing a lossy text rendering"
NOT_TABULAR_PLACEHOLDER = "[hostdiag] no tabular data found; showing human-readable output"


class OutputMode(str, Enum):
    HUMAN = "human"
    CSV = "csv"
    STRUCTURED = "structured"


def _looks_binary(data: bytes) -> bool:
    return b"\x00" in data


def _status_line(result: ProbeResult) -> str:
    parts = [result.probe_id, result.status.value]
    if result.exit_code is not None:
        parts.append(f"exit {result.exit_code}")
    parts.append(f"{result.duration:.2f}s")
    parts.append(f"started {result.started_at.isoformat(timespec='seconds')}")
    return " | ".join(parts)


def _banner(title: str) -> list[str]:
    return [BANNER, f" {title}", BANNER]


def result_sections(result: ProbeResult) -> list[Section]:
    sections = split_sections(result.text, result.probe_id)
    if result.stderr:
        sections.extend(split_sections(result.stderr_text, "stderr"))
    return sections


def render_human(result: ProbeResult, placeholder: str | None = None) -> str:
    lines = _banner(_status_line(result))
    if result.note:
        lines.append(f"note: {result.note}")
    if result.truncated:
        lines.append("note: output truncated at the capture limit")
    if placeholder:
        lines.append(placeholder)

    sections = result_sections(result)
    if not sections:
        lines.extend(["", NO_OUTPUT])
    for section in sections:
        lines.append("")
        lines.extend(_banner(section.title))
        lines.extend(section.lines or [NO_OUTPUT])
    return "\n".join(lines) + "\n"


def render_csv(result: ProbeResult) -> str | None:
    """One CSV table per tabular block, separated by blank lines. None when nothing is tabular."""
    tables = [table for section in result_sections(result) for table in extract_tables(section)]
    if not tables:
        return None
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for index, table in enumerate(tables):
        if index:
            buffer.write("\n")
        writer.writerow(table.header)
        writer.writerows(table.rows)
    return buffer.getvalue()


def structured_record(result: ProbeResult) -> dict[str, Any]:
    record = result.to_dict()
    record["sections"] = [section_record(section) for section in result_sections(result)]
    return record


def render_structured(result: ProbeResult) -> str:
    return json.dumps(structured_record(result), indent=2, sort_keys=True) + "\n"


def format_result(result: ProbeResult, mode: OutputMode | str = OutputMode.HUMAN) -> str:
    """
    Render `result` in `mode`. Rendering problems never raise.

    Binary output, or output with no tables in CSV mode, falls back to the human
    rendering with a placeholder note.
    """
    mode = OutputMode(mode)
    if _looks_binary(result.raw_output):
        return render_human(result, placeholder=BINARY_PLACEHOLDER)
    try:
        if mode == OutputMode.CSV:
            rendered = render_csv(result)
            if rendered is None:
                return render_human(result, placeholder=NOT_TABULAR_PLACEHOLDER)
            return rendered
        if mode == OutputMode.STRUCTURED:
            return render_structured(result)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not render %s as %s: %s", result.probe_id, mode.value, exc)
        return render_human(result, placeholder=f"[hostdiag] could not render as {mode.value}: {exc}")
    return render_human(result)


__all__ = [
    "OutputMode",
    "format_result",
    "render_csv",
    "render_human",
    "render_structured",
    "structured_record",
]

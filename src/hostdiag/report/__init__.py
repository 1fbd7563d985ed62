# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Single-probe report rendering."""

from .formatter import OutputMode, format_result, render_csv, render_human, render_structured, structured_record

__all__ = [
    "OutputMode",
    "format_result",
    "render_csv",
    "render_human",
    "render_structured",
    "structured_record",
]

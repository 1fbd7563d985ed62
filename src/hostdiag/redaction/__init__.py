# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Hostname and private-address redaction."""

from .redactor import Redactor, redact, redact_bytes, redact_lines, redact_result, redact_stream
from .rules import PRIVATE_IP_PLACEHOLDER, RedactionRule, build_rules, hostname_rule, private_ip_rule

__all__ = [
    "PRIVATE_IP_PLACEHOLDER",
    "RedactionRule",
    "Redactor",
    "build_rules",
    "hostname_rule",
    "private_ip_rule",
    "redact",
    "redact_bytes",
    "redact_lines",
    "redact_result",
    "redact_stream",
]

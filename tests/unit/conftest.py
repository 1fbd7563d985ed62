# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import sys

import pytest

from hostdiag.config import CollectorSettings
from hostdiag.models import ProbeSpec


def _python_probe(probe_id: str, code: str, **kwargs) -> ProbeSpec:
    """A probe that runs a Python snippet with the current interpreter."""
    return ProbeSpec(probe_id, (sys.executable, "-c", code), **kwargs)


@pytest.fixture
def settings(tmp_path):
    return CollectorSettings(
        max_workers=4,
        workdir_root=str(tmp_path / "work"),
        output_dir=str(tmp_path / "out"),
    )


@pytest.fixture
def python_probe():
    return _python_probe

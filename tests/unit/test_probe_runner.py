# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import io
import os
import sys
import threading
import time
from dataclasses import replace

import pytest

from hostdiag.config import CollectorSettings
from hostdiag.models import ProbeSpec, ProbeStatus
from hostdiag.probes import ProbeRunner
from hostdiag.probes.base import CommandProbe, ScriptProbe, probe_for
from hostdiag.probes.process import ProcessTracker, _BoundedReader, run_command

MISSING_COMMAND = "hostdiag-definitely-missing-tool"


@pytest.fixture
def runner(settings):
    return ProbeRunner(settings)


def test_successful_probe_captures_output(runner, python_probe):
    result = runner.run(python_probe("cpu", "print('Architecture: x86_64')"))
    assert result.status == ProbeStatus.SUCCESS
    assert result.exit_code == 0
    assert result.text.strip() == "Architecture: x86_64"
    assert result.note is None
    assert result.duration >= 0


def test_missing_optional_command_is_skipped_silently(runner):
    result = runner.run(ProbeSpec("gpu", (MISSING_COMMAND, "-nnk")))
    assert result.status == ProbeStatus.SKIPPED
    assert result.exit_code is None
    assert result.raw_output == b""
    assert result.note is None


def test_missing_required_command_carries_note(runner):
    result = runner.run(ProbeSpec("gpu", (MISSING_COMMAND,), required=True))
    assert result.status == ProbeStatus.SKIPPED
    assert MISSING_COMMAND in result.note


def test_non_executable_script_is_skipped(runner, tmp_path):
    script = tmp_path / "get-cpu-info.sh"
    script.write_text("#!/bin/sh\necho hi\n")
    os.chmod(script, 0o644)
    spec = ProbeSpec("get-cpu-info", (str(script),))
    assert isinstance(probe_for(spec), ScriptProbe)
    assert runner.run(spec).status == ProbeStatus.SKIPPED


def test_command_without_separator_uses_path_lookup():
    assert isinstance(probe_for(ProbeSpec("cpu", ("lscpu",))), CommandProbe)


def test_nonzero_exit_is_failed_and_keeps_output(runner, python_probe):
    result = runner.run(python_probe("net", "import sys; print('partial table'); sys.exit(3)"))
    assert result.status == ProbeStatus.FAILED
    assert result.exit_code == 3
    assert "partial table" in result.text


def test_ok_exit_codes_count_as_success(runner, python_probe):
    spec = python_probe("virtualization", "import sys; print('none'); sys.exit(1)", ok_exit_codes=(0, 1))
    result = runner.run(spec)
    assert result.status == ProbeStatus.SUCCESS
    assert result.exit_code == 1


def test_timeout_kills_probe_and_keeps_partial_output(runner, python_probe):
    spec = python_probe("io", "import time; print('sample 1', flush=True); time.sleep(30)", timeout_seconds=0.5)
    started = time.monotonic()
    result = runner.run(spec)
    assert time.monotonic() - started < 10
    assert result.status == ProbeStatus.TIMED_OUT
    assert result.exit_code is None
    assert "sample 1" in result.text
    assert "timeout" in result.note


def test_timeout_override_wins_over_probe_timeout(settings, python_probe):
    runner = ProbeRunner(replace(settings, timeout_override=0.5))
    spec = python_probe("mem", "import time; time.sleep(30)", timeout_seconds=120)
    assert runner.timeout_for(spec) == 0.5
    assert runner.run(spec).status == ProbeStatus.TIMED_OUT


def test_stderr_merged_by_default_and_separate_on_request(runner, python_probe):
    code = "import sys; print('out', flush=True); print('err', file=sys.stderr, flush=True)"
    merged = runner.run(python_probe("a", code))
    assert "out" in merged.text and "err" in merged.text
    assert merged.stderr == b""

    separate = runner.run(python_probe("b", code, merge_stderr=False))
    assert separate.text.strip() == "out"
    assert separate.stderr_text.strip() == "err"


def test_output_is_capped(settings, python_probe):
    runner = ProbeRunner(CollectorSettings(max_output_bytes=100, workdir_root=settings.workdir_root))
    result = runner.run(python_probe("sysctl", "print('x' * 5000)"))
    assert result.status == ProbeStatus.SUCCESS
    assert len(result.raw_output) == 100
    assert result.truncated is True


def test_large_output_is_drained_but_only_cap_is_kept():
    script = "import sys\nfor _ in range(320): sys.stdout.write('y' * 65536)\nsys.stderr.write('e' * 5000)"
    outcome = run_command([sys.executable, "-c", script], timeout=30, merge_stderr=False, max_output_bytes=100)
    assert outcome.exit_code == 0
    assert outcome.output == b"y" * 100
    assert outcome.stderr == b"e" * 100
    assert outcome.truncated is True


def test_pipe_reader_holds_at_most_the_limit():
    reader = _BoundedReader(io.BytesIO(b"z" * 1_000_000), 10)
    reader.run()
    assert reader.kept == 10
    assert sum(len(chunk) for chunk in reader.chunks) == 10
    assert reader.data() == b"z" * 10
    assert reader.truncated is True


def test_pipe_reader_without_limit_keeps_everything():
    reader = _BoundedReader(io.BytesIO(b"abc" * 50_000), None)
    reader.run()
    assert reader.data() == b"abc" * 50_000
    assert reader.truncated is False


def test_cancelled_runner_skips_new_probes(runner, python_probe):
    runner.cancel()
    result = runner.run(python_probe("cpu", "print('never')"))
    assert result.status == ProbeStatus.SKIPPED
    assert result.note == "Run cancelled"

    runner.reset()
    assert runner.run(python_probe("cpu", "print('again')")).status == ProbeStatus.SUCCESS


def test_cancel_terminates_in_flight_probe(runner, python_probe):
    spec = python_probe("io", "import time; time.sleep(30)", timeout_seconds=60)
    results = []
    worker = threading.Thread(target=lambda: results.append(runner.run(spec)))
    worker.start()

    deadline = time.monotonic() + 10
    while runner.tracker.active_count() == 0 and time.monotonic() < deadline:
        time.sleep(0.05)
    assert runner.cancel() == 1
    worker.join(timeout=10)

    assert not worker.is_alive()
    (result,) = results
    assert result.status == ProbeStatus.FAILED
    assert result.note == "Run cancelled"


def test_runner_reports_spawn_errors_instead_of_raising(runner, monkeypatch, python_probe):
    def boom(*_args, **_kwargs):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr("hostdiag.probes.base.run_command", boom)
    result = runner.run(python_probe("cpu", "print(1)"))
    assert result.status == ProbeStatus.FAILED
    assert "Permission denied" in result.note


def test_run_command_tracks_and_releases_processes(tmp_path):
    tracker = ProcessTracker()
    outcome = run_command([sys.executable, "-c", "print('hi')"], timeout=10, tracker=tracker)
    assert outcome.exit_code == 0
    assert outcome.output.strip() == b"hi"
    assert tracker.active_count() == 0


def test_run_command_propagates_missing_binary():
    with pytest.raises(FileNotFoundError):
        run_command([MISSING_COMMAND], timeout=5)

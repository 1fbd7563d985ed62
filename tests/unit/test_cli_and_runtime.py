# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import json
import os

import pytest

from hostdiag import __version__
from hostdiag.cli import main as cli_main
from hostdiag.cli.main import _progress_label, build_parser
from hostdiag.models import ProbeResult, ProbeSpec, ProbeStatus
from hostdiag.probes import ProbeRegistry
from hostdiag.runtime import HostDiag

MISSING_COMMAND = "hostdiag-definitely-missing-tool"


@pytest.fixture
def use_probes(monkeypatch, settings):
    test_settings = settings

    def install(*specs):
        registry = ProbeRegistry(specs)
        monkeypatch.setattr(cli_main, "HostDiag", lambda settings=None: HostDiag(settings=test_settings, registry=registry))
        return registry

    return install


@pytest.fixture
def sample_probes(use_probes, python_probe):
    return use_probes(
        python_probe("cpu", "print('Architecture: x86_64')"),
        ProbeSpec("gpu", (MISSING_COMMAND,), required=True),
        python_probe("io", "import sys; print('Device r/s'); sys.exit(1)"),
        python_probe("mem", "import time; print('total', flush=True); time.sleep(30)", timeout_seconds=0.5),
    )


def test_build_parser_subcommands():
    parser = build_parser()
    args = parser.parse_args(["bundle", "-o", "out.tar.gz", "-k"])
    assert (args.command, args.output, args.keep) == ("bundle", "out.tar.gz", True)
    args = parser.parse_args(["-vv", "probe", "cpu", "-f", "csv"])
    assert (args.command, args.probe_id, args.format, args.verbose) == ("probe", "cpu", "csv", 2)
    args = parser.parse_args(["list", "--json"])
    assert args.json is True


@pytest.mark.parametrize("argv", [["-V"], ["bundle", "-V"], ["probe", "-V"]])
def test_version_flag_exits_zero(argv, capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli_main.main(argv)
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


@pytest.mark.parametrize("argv", [[], ["bundle", "--bogus"], ["probe"], ["probe", "cpu", "-f", "xml"], ["explode"]])
def test_usage_errors_exit_three(argv, capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli_main.main(argv)
    assert excinfo.value.code == cli_main.EXIT_USAGE
    assert "usage:" in capsys.readouterr().err


def test_unknown_probe_is_a_usage_error(sample_probes, capsys):
    assert cli_main.main(["probe", "nope"]) == cli_main.EXIT_USAGE
    err = capsys.readouterr().err
    assert "unknown probe 'nope'" in err
    assert "cpu, gpu, io, mem" in err


def test_probe_command_exit_codes(sample_probes, capsys):
    assert cli_main.main(["probe", "cpu"]) == cli_main.EXIT_OK
    assert "Architecture: x86_64" in capsys.readouterr().out

    assert cli_main.main(["probe", "gpu"]) == cli_main.EXIT_MISSING_DEPENDENCY
    assert f"Missing tool: {MISSING_COMMAND}" in capsys.readouterr().err

    assert cli_main.main(["probe", "io"]) == cli_main.EXIT_PROBE_FAILED
    assert "Device r/s" in capsys.readouterr().out

    assert cli_main.main(["probe", "mem"]) == cli_main.EXIT_PROBE_TIMED_OUT
    assert "TIMED_OUT" in capsys.readouterr().out


def test_probe_command_formats_and_output_file(sample_probes, capsys, tmp_path):
    assert cli_main.main(["probe", "cpu", "-f", "csv"]) == 0
    assert capsys.readouterr().out == "key,value\nArchitecture,x86_64\n"

    assert cli_main.main(["probe", "cpu", "--format", "structured"]) == 0
    assert json.loads(capsys.readouterr().out)["status"] == "SUCCESS"

    target = tmp_path / "cpu.txt"
    assert cli_main.main(["probe", "cpu", "-o", str(target)]) == 0
    assert capsys.readouterr().out == ""
    assert "Architecture: x86_64" in target.read_text()


def test_probe_command_unwritable_output(sample_probes, capsys, tmp_path):
    assert cli_main.main(["probe", "cpu", "-o", str(tmp_path)]) == cli_main.EXIT_OUTPUT_FAILED
    assert "could not write" in capsys.readouterr().err


def test_standalone_probe_output_is_not_redacted(use_probes, python_probe, capsys):
    use_probes(python_probe("net", "print('inet 192.168.1.5/24')"))
    assert cli_main.main(["probe", "net"]) == 0
    assert "192.168.1.5" in capsys.readouterr().out


def test_bundle_command(sample_probes, capsys, tmp_path):
    target = tmp_path / "bundle.tar.gz"
    assert cli_main.main(["bundle", "-o", str(target)]) == cli_main.EXIT_OK
    out = capsys.readouterr().out
    lines = out.splitlines()
    assert lines[0] == "Collecting diagnostics from 4 probes"
    assert any(line.startswith("cpu ") and line.endswith("done") for line in lines)
    assert any(line.startswith("gpu ") and "skipped" in line for line in lines)
    assert any(line.startswith("io ") and "FAIL (exit 1, continuing)" in line for line in lines)
    assert any(line.startswith("mem ") and "TIMEOUT (continuing)" in line for line in lines)
    assert "4 probes: 1 success, 1 failed, 1 skipped, 1 timed_out" in out
    assert f"Support bundle written to: {target}" in out
    assert target.is_file()


def test_bundle_command_keep_reports_workdir(sample_probes, capsys, tmp_path):
    assert cli_main.main(["bundle", "-o", str(tmp_path / "b.tar.gz"), "--keep"]) == 0
    kept = [line for line in capsys.readouterr().out.splitlines() if line.startswith("Temporary files kept in ")]
    assert len(kept) == 1
    assert os.path.isdir(kept[0].split(" in ", 1)[1])


def test_bundle_command_packaging_failure(sample_probes, capsys, tmp_path):
    assert cli_main.main(["bundle", "-o", str(tmp_path)]) == cli_main.EXIT_OUTPUT_FAILED
    assert "hostdiag: could not write" in capsys.readouterr().err


def test_bundle_command_cancelled(monkeypatch, sample_probes, capsys, tmp_path):
    def interrupted(self, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(HostDiag, "collect_bundle", interrupted)
    assert cli_main.main(["bundle", "-o", str(tmp_path / "b.tar.gz")]) == cli_main.EXIT_CANCELLED
    assert "cancelled" in capsys.readouterr().err


def test_list_command(sample_probes, capsys):
    assert cli_main.main(["list"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert [line.split()[0] for line in lines] == ["cpu", "gpu", "io", "mem"]
    assert "required" in lines[1]


def test_list_uses_probe_directory_from_environment(monkeypatch, capsys, tmp_path):
    for name in ("get-numa-info.sh", "get-cpu-info.sh"):
        script = tmp_path / name
        script.write_text("#!/bin/sh\necho ok\n")
        script.chmod(0o755)
    monkeypatch.setenv("HOSTDIAG_PROBE_DIR", str(tmp_path))
    monkeypatch.setenv("HOSTDIAG_DEFAULT_TIMEOUT", "45")

    assert cli_main.main(["list", "--json"]) == 0
    listed = json.loads(capsys.readouterr().out)
    assert [entry["id"] for entry in listed] == ["get-cpu-info", "get-numa-info"]
    assert all(entry["timeout_seconds"] == 45 for entry in listed)


def test_unreadable_probe_directory_is_a_usage_error(monkeypatch, capsys, tmp_path):
    missing = tmp_path / "no-such-dir"
    monkeypatch.setenv("HOSTDIAG_PROBE_DIR", str(missing))

    assert cli_main.main(["list"]) == cli_main.EXIT_USAGE
    err = capsys.readouterr().err
    assert f"cannot read probe directory {missing}" in err
    assert "Traceback" not in err


@pytest.mark.parametrize(
    ("result", "label"),
    [
        (ProbeResult("a", ProbeStatus.SUCCESS, exit_code=0), "done"),
        (ProbeResult("a", ProbeStatus.FAILED, exit_code=2), "FAIL (exit 2, continuing)"),
        (ProbeResult("a", ProbeStatus.FAILED), "FAIL (continuing)"),
        (ProbeResult("a", ProbeStatus.TIMED_OUT), "TIMEOUT (continuing)"),
        (ProbeResult("a", ProbeStatus.SKIPPED), "skipped (not found or not executable)"),
    ],
)
def test_progress_labels(result, label):
    assert _progress_label(result) == label


def test_hostdiag_facade(settings, python_probe, tmp_path):
    registry = ProbeRegistry([python_probe("cpu", "print('Model name: Example')")])
    with HostDiag(settings=settings, registry=registry) as diag:
        assert [spec.id for spec in diag.probes()] == ["cpu"]
        with pytest.raises(KeyError):
            diag.run_probe("gpu")

        result, text = diag.report("cpu", "csv")
        assert result.status == ProbeStatus.SUCCESS
        assert text == "key,value\nModel name,Example\n"

        bundle = diag.collect_bundle(output_path=tmp_path / "b.tar.gz")
        assert bundle.completed
        assert bundle.to_dict()["manifest"]["probe_count"] == 1


def test_hostdiag_close_terminates_running_probes(settings):
    class FakeTracker:
        def active_count(self):
            return 2

    class FakeRunner:
        def __init__(self):
            self.tracker = FakeTracker()
            self.cancelled = 0

        def cancel(self):
            self.cancelled += 1

    runner = FakeRunner()
    HostDiag(settings=settings, registry=ProbeRegistry([]), runner=runner).close()
    assert runner.cancelled == 1

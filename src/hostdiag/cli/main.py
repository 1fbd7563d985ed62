# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""hostdiag CLI."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, TextIO

from ..config import load_settings
from ..errors import BundleCancelled, UsageError, error_category_to_reason
from ..log import setup_logging
from ..models import BundleResult, ProbeResult, ProbeSpec, ProbeStatus
from ..report import OutputMode, format_result
from ..runtime import HostDiag
from ..version import __version__

EXIT_OK = 0
EXIT_MISSING_DEPENDENCY = 1
EXIT_OUTPUT_FAILED = 2
EXIT_USAGE = 3
EXIT_PROBE_FAILED = 4
EXIT_PROBE_TIMED_OUT = 5
EXIT_CANCELLED = 130

_PROBE_EXIT_CODES = {
    ProbeStatus.SUCCESS: EXIT_OK,
    ProbeStatus.SKIPPED: EXIT_MISSING_DEPENDENCY,
    ProbeStatus.FAILED: EXIT_PROBE_FAILED,
    ProbeStatus.TIMED_OUT: EXIT_PROBE_TIMED_OUT,
}


class UsageExitParser(argparse.ArgumentParser):
    """ArgumentParser that reports usage errors with exit status 3."""

    def error(self, message: str):  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = UsageExitParser(
        prog="hostdiag",
        description="Host diagnostics collector: run hardware/kernel probes and build redacted support bundles",
    )
    parser.add_argument("-V", "--version", action="version", version=__version__)
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Log more on stderr (-vv for debug)")
    commands = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    bundle = commands.add_parser(
        "bundle",
        help="Run every probe and write a redacted support bundle",
        description="Run every registered probe, redact the output and pack it into a tar.gz support bundle",
    )
    bundle.add_argument("-o", "--output", metavar="FILE", help="Write the bundle to FILE (default: ./support-bundle-<host>-<stamp>.tar.gz)")
    bundle.add_argument("-k", "--keep", action="store_true", help="Keep the temporary working directory")
    bundle.add_argument("-V", "--version", action="version", version=__version__)

    probe = commands.add_parser(
        "probe",
        help="Run a single probe and print its report",
        description="Run one probe and render its output (not redacted)",
    )
    probe.add_argument("probe_id", metavar="PROBE", help="Probe id (see `hostdiag list`)")
    probe.add_argument("-o", "--output", metavar="FILE", help="Write the report to FILE instead of stdout")
    probe.add_argument(
        "-f",
        "--format",
        choices=[mode.value for mode in OutputMode],
        default=OutputMode.HUMAN.value,
        help="Report format (default: human)",
    )
    probe.add_argument("-V", "--version", action="version", version=__version__)

    listing = commands.add_parser("list", help="List registered probes", description="List registered probes")
    listing.add_argument("--json", action="store_true", help="Output JSON instead of a table")
    listing.add_argument("-V", "--version", action="version", version=__version__)
    return parser


def _progress_label(result: ProbeResult) -> str:
    if result.status == ProbeStatus.SUCCESS:
        return "done"
    if result.status == ProbeStatus.FAILED:
        return f"FAIL (exit {result.exit_code}, continuing)" if result.exit_code is not None else "FAIL (continuing)"
    if result.status == ProbeStatus.TIMED_OUT:
        return "TIMEOUT (continuing)"
    return "skipped (not found or not executable)"


def _print_progress(spec: ProbeSpec, result: ProbeResult) -> None:
    print(f"{spec.id:<30} {_progress_label(result)}", flush=True)


def _print_json(data: dict[str, Any] | list[Any], stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    json.dump(data, stream, indent=2, sort_keys=True)
    stream.write("\n")


def _cmd_list(diag: HostDiag, args: argparse.Namespace) -> int:
    specs = diag.probes()
    if args.json:
        _print_json(
            [
                {
                    "id": spec.id,
                    "command": list(spec.command),
                    "timeout_seconds": spec.timeout_seconds,
                    "required": spec.required,
                    "description": spec.description,
                }
                for spec in specs
            ]
        )
        return EXIT_OK
    for spec in specs:
        required = "required" if spec.required else "optional"
        print(f"{spec.id:<20} {spec.timeout_seconds:>6g}s  {required:<8}  {spec.command_line()}")
    return EXIT_OK


def _cmd_probe(diag: HostDiag, args: argparse.Namespace) -> int:
    if args.probe_id not in diag.registry:
        known = ", ".join(diag.registry.ids())
        raise UsageError(f"unknown probe {args.probe_id!r} (known: {known})")

    result, report = diag.report(args.probe_id, args.format)
    if result.status == ProbeStatus.SKIPPED:
        spec = diag.registry.get(args.probe_id)
        print(f"Missing tool: {spec.executable}", file=sys.stderr)

    if args.output:
        try:
            Path(args.output).write_text(report, encoding="utf-8")
        except OSError as exc:
            print(f"hostdiag: could not write {args.output}: {exc}", file=sys.stderr)
            return EXIT_OUTPUT_FAILED
    else:
        sys.stdout.write(report)
    return _PROBE_EXIT_CODES[result.status]


def _print_bundle_summary(result: BundleResult) -> None:
    if result.manifest is not None:
        counts = ", ".join(f"{count} {status.lower()}" for status, count in result.manifest.counts().items() if count)
        print(f"\n{len(result.manifest)} probes: {counts}")
    if result.completed:
        print(f"Support bundle written to: {result.archive_path}")
    else:
        print(f"hostdiag: {result.error}", file=sys.stderr)
    if result.workdir is not None:
        print(f"Temporary files kept in {result.workdir}")


def _cmd_bundle(diag: HostDiag, args: argparse.Namespace) -> int:
    print(f"Collecting diagnostics from {len(diag.probes())} probes", flush=True)
    try:
        result = diag.collect_bundle(output_path=args.output, keep=args.keep or None, progress=_print_progress)
    except BundleCancelled as exc:
        print(f"hostdiag: {exc}", file=sys.stderr)
        return EXIT_CANCELLED
    _print_bundle_summary(result)
    return EXIT_OK if result.completed else EXIT_OUTPUT_FAILED


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbosity=args.verbose)

    handlers = {"bundle": _cmd_bundle, "probe": _cmd_probe, "list": _cmd_list}
    try:
        with HostDiag(settings=load_settings()) as diag:
            return handlers[args.command](diag, args)
    except UsageError as exc:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {exc}", file=sys.stderr)
        return EXIT_USAGE
    except KeyboardInterrupt:
        print(f"hostdiag: {error_category_to_reason(BundleCancelled.category).lower()}", file=sys.stderr)
        return EXIT_CANCELLED


if __name__ == "__main__":
    raise SystemExit(main())

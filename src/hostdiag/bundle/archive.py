# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Reproducible tar.gz packaging of a bundle working directory."""

from __future__ import annotations

import gzip
import logging
import os
import tarfile
from collections.abc import Sequence
from pathlib import Path

from ..errors import PackagingError
from ..models import RunContext

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".tar.gz"


def default_archive_name(context: RunContext) -> str:
    return f"{context.bundle_basename}{ARCHIVE_SUFFIX}"


def default_archive_path(context: RunContext, output_dir: str | Path = ".") -> Path:
    return Path(output_dir) / default_archive_name(context)


def _tar_info(path: Path, arcname: str, mtime: int) -> tarfile.TarInfo:
    info = tarfile.TarInfo(arcname)
    info.size = path.stat().st_size
    info.mtime = mtime
    info.mode = 0o644
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


def _discard(partial: Path) -> None:
    try:
        partial.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove partial archive %s: %s", partial, exc)


def write_archive(
    workdir: Path,
    members: Sequence[str],
    output_path: Path,
    context: RunContext,
) -> Path:
    """
    Pack `members` (file names inside `workdir`) into `output_path`.

    Members are stored in the given order under `<bundle basename>/`, with owner and
    timestamps normalized to the run, so identical inputs give identical archives. The
    archive is written next to its destination and renamed into place; any failure
    raises PackagingError and leaves no partial file behind.
    """
    output_path = Path(output_path)
    partial = output_path.with_name(f".{output_path.name}.partial")
    mtime = int(context.generated_at.timestamp())
    root = context.bundle_basename
    replaced = False
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(partial, "wb") as raw:
            with gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=mtime) as compressed:
                with tarfile.open(fileobj=compressed, mode="w", format=tarfile.PAX_FORMAT) as tar:
                    for name in members:
                        path = workdir / name
                        with open(path, "rb") as handle:
                            tar.addfile(_tar_info(path, f"{root}/{name}", mtime), handle)
        os.replace(partial, output_path)
        replaced = True
    except (OSError, tarfile.TarError) as exc:
        raise PackagingError(f"could not write {output_path}: {exc}", output_path=str(output_path)) from exc
    finally:
        if not replaced:
            _discard(partial)
    logger.info("Wrote %s (%d members)", output_path, len(members))
    return output_path


__all__ = ["ARCHIVE_SUFFIX", "default_archive_name", "default_archive_path", "write_archive"]

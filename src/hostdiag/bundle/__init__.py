# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Support-bundle assembly."""

from .aggregator import BundleAggregator, ProgressCallback
from .archive import default_archive_name, default_archive_path, write_archive
from .manifest import MANIFEST_FILE_NAME, build_manifest, manifest_json, write_manifest

__all__ = [
    "MANIFEST_FILE_NAME",
    "BundleAggregator",
    "ProgressCallback",
    "build_manifest",
    "default_archive_name",
    "default_archive_path",
    "manifest_json",
    "write_archive",
    "write_manifest",
]

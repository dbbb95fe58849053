# FILE: sitesmith/builds/packager.py
"""
Build artifact packaging.

Produces a zip of a build's file set. Output is deterministic: entries are
written in sorted path order with a fixed timestamp and permissions and a
fixed DEFLATE level, so packaging the same build twice yields identical
bytes. Entry names follow sitesmith.builds.paths: nothing outside the
archive root, no duplicate names.
"""
from __future__ import annotations

import io
import json
import logging
import re
import zipfile
from typing import Dict, Iterator

from sitesmith.builds.paths import UnsafePathError, normalize_path

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_NAME = "project"
MANIFEST_PATH = "package.json"

_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_FILE_MODE = 0o100644  # regular file, rw-r--r--
_COMPRESS_LEVEL = 6
_CHUNK_SIZE = 64 * 1024

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def packable_files(files: Dict[str, str]) -> Dict[str, str]:
    """Drop entries whose content is empty or whitespace-only."""
    return {
        path: content
        for path, content in (files or {}).items()
        if isinstance(content, str) and content.strip()
    }


def archive_entries(files: Dict[str, str]) -> Dict[str, str]:
    """
    packable_files() keyed by normalised archive path.

    Paths that escape the archive root are dropped. When two stored paths
    normalise to the same entry, the first in sorted order wins, so the
    archive never holds duplicate names.
    """
    entries: Dict[str, str] = {}
    for path in sorted(packable_files(files)):
        try:
            name = normalize_path(path)
        except UnsafePathError as e:
            logger.warning(f"[packager] Skipping entry: {e}")
            continue
        if name in entries:
            logger.warning(f"[packager] Skipping {path!r}: duplicates archive entry {name!r}")
            continue
        entries[name] = files[path]
    return entries


def project_name(files: Dict[str, str]) -> str:
    """
    Human-friendly name from package.json, parsed leniently.

    Anything unusable (missing manifest, bad JSON, non-string name) falls back
    to DEFAULT_ARCHIVE_NAME.
    """
    raw = (files or {}).get(MANIFEST_PATH)
    if not raw:
        return DEFAULT_ARCHIVE_NAME
    try:
        manifest = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug("[packager] package.json is not valid JSON; using default name")
        return DEFAULT_ARCHIVE_NAME
    name = manifest.get("name") if isinstance(manifest, dict) else None
    if not isinstance(name, str):
        return DEFAULT_ARCHIVE_NAME

    # npm scoped names: "@scope/site" -> "scope-site"
    safe = _UNSAFE_NAME_CHARS.sub("-", name.strip().lstrip("@")).strip("-.")
    return safe or DEFAULT_ARCHIVE_NAME


class ArtifactPackager:
    def __init__(self, compress_level: int = _COMPRESS_LEVEL):
        self.compress_level = compress_level

    def archive_name(self, build) -> str:
        return f"{project_name(build.files)}-v{build.version}.zip"

    def package(self, build) -> bytes:
        files = archive_entries(build.files)
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=self.compress_level) as zf:
            for path in sorted(files):
                info = zipfile.ZipInfo(filename=path, date_time=_FIXED_DATE_TIME)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = _FILE_MODE << 16
                info.create_system = 3  # unix, independent of the host OS
                zf.writestr(info, files[path].encode("utf-8"), compresslevel=self.compress_level)

        skipped = len(build.files or {}) - len(files)
        logger.info(
            f"[packager] Packaged project={build.project_id} v{build.version}: "
            f"{len(files)} files ({skipped} skipped)"
        )
        return buffer.getvalue()

    def stream(self, build) -> Iterator[bytes]:
        """Chunked form of package() for streaming responses."""
        data = self.package(build)
        for start in range(0, len(data), _CHUNK_SIZE):
            yield data[start:start + _CHUNK_SIZE]

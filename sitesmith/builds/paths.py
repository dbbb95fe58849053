# FILE: sitesmith/builds/paths.py
"""
File path rules for build file sets.

Every path stored in a build (and written into a downloaded archive) is a
relative POSIX path that stays inside the project root: no leading slash,
no drive letter, no ``..`` segment, no empty name. ``./a//b`` normalises
to ``a/b``.
"""
from __future__ import annotations

import posixpath
import re
from typing import Dict, Iterable, List

_DRIVE = re.compile(r"^[A-Za-z]:")


class UnsafePathError(ValueError):
    """A file path escapes the project root or is otherwise unusable."""

    def __init__(self, path, reason: str):
        super().__init__(f"Unsafe file path {path!r}: {reason}")
        self.path = path
        self.reason = reason


def normalize_path(path: str) -> str:
    if not isinstance(path, str) or not path.strip():
        raise UnsafePathError(path, "empty path")
    candidate = path.strip().replace("\\", "/")
    if candidate.startswith("/") or _DRIVE.match(candidate):
        raise UnsafePathError(path, "absolute path")
    if ".." in candidate.split("/"):
        raise UnsafePathError(path, "parent directory reference")

    normalized = posixpath.normpath(candidate)
    if normalized in (".", ""):
        raise UnsafePathError(path, "empty path")
    return normalized


def normalize_files(files: Dict[str, str]) -> Dict[str, str]:
    """Normalise every key; two keys landing on the same path is an error."""
    out: Dict[str, str] = {}
    for path, content in files.items():
        normalized = normalize_path(path)
        if normalized in out:
            raise UnsafePathError(path, f"duplicates {normalized!r}")
        out[normalized] = content
    return out


def normalize_paths(paths: Iterable[str]) -> List[str]:
    return [normalize_path(p) for p in paths]

# FILE: sitesmith/pipeline/diffing.py
"""
File-set merging and diffing for edit mode.
"""
from __future__ import annotations

import difflib
from typing import Dict, Iterable, List, Tuple

from sitesmith.pipeline.schemas import FilePatch


def merge_files(base: Dict[str, str], changes: Dict[str, str], deleted: Iterable[str] = ()) -> Dict[str, str]:
    """Overlay ``changes`` on ``base`` and drop ``deleted``. Base order is kept; new paths go last."""
    merged = dict(base)
    merged.update(changes)
    for path in deleted:
        merged.pop(path, None)
    return merged


def changed_paths(base: Dict[str, str], result: Dict[str, str]) -> List[str]:
    """Paths that differ between the two sets: modified or removed (base order), then added."""
    changed = [p for p in base if p not in result or result[p] != base[p]]
    changed.extend(p for p in result if p not in base)
    return changed


def unified_diff(path: str, before: str, after: str) -> str:
    lines = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
    )
    out = []
    for line in lines:
        out.append(line if line.endswith("\n") else line + "\n\\ No newline at end of file\n")
    return "".join(out)


def _line_counts(diff: str) -> Tuple[int, int]:
    added = removed = 0
    for line in diff.splitlines():
        if line.startswith("+++") or line.startswith("---"):
            continue
        if line.startswith("+"):
            added += 1
        elif line.startswith("-"):
            removed += 1
    return added, removed


def build_patches(base: Dict[str, str], result: Dict[str, str], paths: Iterable[str]) -> List[FilePatch]:
    patches: List[FilePatch] = []
    for path in paths:
        before = base.get(path, "")
        after = result.get(path, "")
        diff = unified_diff(path, before, after)
        if path not in base:
            summary = f"Added {path}"
        elif path not in result:
            summary = f"Removed {path}"
        else:
            added, removed = _line_counts(diff)
            summary = f"Modified {path} (+{added} -{removed})"
        patches.append(FilePatch(path=path, diff=diff, summary=summary))
    return patches

# FILE: sitesmith/pipeline/orchestrator.py
"""
Pipeline orchestrator.

Runs a SitePipeline under a hard wall-clock budget and turns its draft into
a PipelineResult:

- generate: the draft's files are the new file set
- edit: the draft is overlaid on the base files; untouched files carry over,
  files_changed/patches are computed against the base

Draft paths are normalised (sitesmith.builds.paths); a path that escapes the
project root or collides with another fails the run. Timeouts and pipeline
exceptions come back as success=False with errors filled in. The
orchestrator never writes to the ledgers or touches the project lock;
persisting a successful result is the caller's job.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from sitesmith.builds.paths import UnsafePathError, normalize_files, normalize_paths
from sitesmith.pipeline.base import SitePipeline
from sitesmith.pipeline.diffing import build_patches, changed_paths, merge_files
from sitesmith.pipeline.preview import render_preview
from sitesmith.pipeline.schemas import PipelineDraft, PipelineMode, PipelineRequest, PipelineResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


class PipelineOrchestrator:
    def __init__(self, pipeline: SitePipeline, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.pipeline = pipeline
        self.timeout_seconds = timeout_seconds

    async def run(self, request: PipelineRequest) -> PipelineResult:
        mode = request.mode
        started = time.perf_counter()

        def _elapsed() -> int:
            return int((time.perf_counter() - started) * 1000)

        def _failed(errors, timed_out: bool = False) -> PipelineResult:
            return PipelineResult(
                success=False,
                mode=mode,
                errors=list(errors),
                base_version=request.base_version,
                timed_out=timed_out,
                elapsed_ms=_elapsed(),
            )

        logger.info(
            f"[pipeline] {mode.value} start: project={request.project_id} "
            f"base=v{request.base_version} context={len(request.context)} via={self.pipeline.name}"
        )

        if mode == PipelineMode.EDIT:
            coro = self.pipeline.edit(request.prompt, list(request.context), dict(request.base_files))
        else:
            coro = self.pipeline.generate(request.prompt, list(request.context))

        try:
            draft = await asyncio.wait_for(coro, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"[pipeline] {mode.value} timed out after {self.timeout_seconds:.0f}s: project={request.project_id}"
            )
            return _failed([f"Pipeline exceeded its {self.timeout_seconds:.0f}s time budget"], timed_out=True)
        except Exception as e:
            logger.exception(f"[pipeline] {mode.value} failed: project={request.project_id}")
            return _failed([f"Pipeline error: {e}"])

        if not isinstance(draft, PipelineDraft):
            return _failed([f"Pipeline returned {type(draft).__name__}, expected PipelineDraft"])
        if draft.errors:
            return _failed(draft.errors)
        try:
            draft = draft.model_copy(
                update={"files": normalize_files(draft.files), "deleted": normalize_paths(draft.deleted)}
            )
        except UnsafePathError as e:
            logger.warning(f"[pipeline] {mode.value} rejected: project={request.project_id}: {e}")
            return _failed([str(e)])

        if mode == PipelineMode.EDIT:
            result = self._finish_edit(request, draft)
        else:
            result = self._finish_generate(request, draft)
        result.elapsed_ms = _elapsed()

        logger.info(
            f"[pipeline] {mode.value} done: project={request.project_id} success={result.success} "
            f"files={len(result.files)} changed={len(result.files_changed)} elapsed_ms={result.elapsed_ms}"
        )
        return result

    def _finish_generate(self, request: PipelineRequest, draft: PipelineDraft) -> PipelineResult:
        files = dict(draft.files)
        if not any((content or "").strip() for content in files.values()):
            return PipelineResult(
                success=False,
                mode=PipelineMode.GENERATE,
                errors=["Pipeline produced no files"],
            )
        return PipelineResult(
            success=True,
            mode=PipelineMode.GENERATE,
            files=files,
            files_changed=list(files),
            summary=draft.summary or f"Generated {len(files)} file(s).",
            preview_html=self._preview(draft, files),
        )

    def _finish_edit(self, request: PipelineRequest, draft: PipelineDraft) -> PipelineResult:
        base = dict(request.base_files or {})
        files = merge_files(base, draft.files, draft.deleted)
        changed = changed_paths(base, files)
        if not changed:
            return PipelineResult(
                success=False,
                mode=PipelineMode.EDIT,
                base_version=request.base_version,
                errors=["No files were modified."],
            )

        patches = build_patches(base, files, changed)
        summary = draft.summary or (
            f"Edited {len(patches)} file(s): {', '.join(p.path for p in patches)}."
        )
        return PipelineResult(
            success=True,
            mode=PipelineMode.EDIT,
            files=files,
            files_changed=changed,
            patches=patches,
            summary=summary,
            preview_html=self._preview(draft, files),
            base_version=request.base_version,
        )

    @staticmethod
    def _preview(draft: PipelineDraft, files) -> Optional[str]:
        return draft.preview_html if draft.preview_html else render_preview(files)

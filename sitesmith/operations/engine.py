# FILE: sitesmith/operations/engine.py
"""
Generate/edit operation engine.

Flow for both operations:
1. Ownership check (ProjectNotFoundError / ProjectAccessError), no lock yet
2. LockManager.held() - ProjectLockedError if another operation is running
3. A retried operation_id returns the stored build; nothing else runs
   Edit only: resolve the base build (requested version or latest)
4. Resolve pipeline context (explicit HistorySource) and record the user turn
5. PipelineOrchestrator.run under its time budget
6. On success: BuildLedger.append, then the assistant turn tagged with the version
7. Lock released on every exit path

Steps 2-7 run in their own task and the caller awaits it through
asyncio.shield, so a disconnected client does not cancel the pipeline
halfway; the task still finishes (or times out) and releases the lock.

Ledger and lock calls are short synchronous SQLAlchemy statements made on
the event loop; only the pipeline call awaits. That holds for SQLite and a
nearby database. A slow networked database would need them moved to a
threadpool.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from sitesmith.builds.models import Build
from sitesmith.builds.service import BuildLedger
from sitesmith.conversation.service import (
    ConversationLedger,
    HistorySource,
    ROLE_ASSISTANT,
    ROLE_USER,
    DEFAULT_HISTORY_LIMIT,
)
from sitesmith.errors import PipelineFailedError
from sitesmith.locks.service import LockManager
from sitesmith.operations.schemas import EditRequest, GenerateRequest
from sitesmith.pipeline.orchestrator import PipelineOrchestrator
from sitesmith.pipeline.diffing import build_patches, changed_paths
from sitesmith.pipeline.schemas import PipelineMode, PipelineRequest, PipelineResult
from sitesmith.projects.service import ProjectService

logger = logging.getLogger(__name__)


@dataclass
class OperationOutcome:
    build: Build
    result: PipelineResult
    # True when a retried operation_id returned the build an earlier attempt stored
    replayed: bool = False


def _retrieve_outcome(task: "asyncio.Task") -> None:
    # Marks the exception retrieved when the awaiting request went away
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"[ops] Operation task ended with {type(exc).__name__}: {exc}")


class BuildOperations:
    def __init__(
        self,
        projects: ProjectService,
        locks: LockManager,
        builds: BuildLedger,
        conversation: ConversationLedger,
        orchestrator: PipelineOrchestrator,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.projects = projects
        self.locks = locks
        self.builds = builds
        self.conversation = conversation
        self.orchestrator = orchestrator
        self.history_limit = history_limit

    async def generate(self, owner_id: str, request: GenerateRequest) -> OperationOutcome:
        return await self._run(
            owner_id=owner_id,
            project_id=request.project_key,
            prompt=request.prompt,
            history=request.history_dicts(),
            history_source=request.history_source,
            operation_id=request.operation_id,
            edit=False,
        )

    async def edit(self, owner_id: str, request: EditRequest) -> OperationOutcome:
        return await self._run(
            owner_id=owner_id,
            project_id=request.project_key,
            prompt=request.prompt,
            history=request.history_dicts(),
            history_source=request.history_source,
            operation_id=request.operation_id,
            edit=True,
            base_version=request.base_version,
        )

    async def _run(self, *, owner_id: str, project_id: str, **kwargs) -> OperationOutcome:
        self.projects.get_owned(project_id, owner_id)

        task = asyncio.ensure_future(self._locked_operation(owner_id=owner_id, project_id=project_id, **kwargs))
        task.add_done_callback(_retrieve_outcome)
        return await asyncio.shield(task)

    async def _locked_operation(
        self,
        *,
        owner_id: str,
        project_id: str,
        prompt: str,
        history: Optional[List[Dict[str, str]]],
        history_source: HistorySource,
        operation_id: Optional[str],
        edit: bool,
        base_version: Optional[int] = None,
    ) -> OperationOutcome:
        op = "edit" if edit else "generate"

        with self.locks.held(project_id, owner_id) as grant:
            if grant.degraded:
                logger.warning(f"[ops] {op} on {project_id} running without mutual exclusion (fail-open)")

            if operation_id:
                stored = self.builds.get_by_operation(project_id, operation_id)
                if stored is not None:
                    logger.info(
                        f"[ops] {op} replayed: project={project_id} operation={operation_id} -> v{stored.version}"
                    )
                    return OperationOutcome(
                        build=stored,
                        result=self._replayed_result(project_id, stored, edit),
                        replayed=True,
                    )

            base: Optional[Build] = None
            if edit:
                base = self.builds.resolve(project_id, base_version)

            context = self.conversation.resolve_context(
                project_id, history, history_source, self.history_limit
            )
            self.conversation.append(project_id, ROLE_USER, prompt)

            result = await self.orchestrator.run(
                PipelineRequest(
                    project_id=project_id,
                    prompt=prompt,
                    context=context,
                    base_version=base.version if base is not None else None,
                    base_files=dict(base.files or {}) if base is not None else None,
                )
            )
            if not result.success:
                logger.warning(f"[ops] {op} failed for {project_id}: {result.errors}")
                raise PipelineFailedError(result)

            build = self.builds.append(
                project_id,
                result.files,
                result.summary,
                prompt=prompt,
                preview_html=result.preview_html,
                operation_id=operation_id,
                base_version=result.base_version,
            )
            self.conversation.append(
                project_id,
                ROLE_ASSISTANT,
                result.summary or ("Website edited successfully" if edit else "Website generated successfully"),
                build_version=build.version,
            )

        logger.info(
            f"[ops] {op} complete: project={project_id} v{build.version} "
            f"changed={len(result.files_changed)} elapsed_ms={result.elapsed_ms}"
        )
        return OperationOutcome(build=build, result=result)

    def _replayed_result(self, project_id: str, build: Build, edit: bool) -> PipelineResult:
        """Rebuild the result fields of a stored build, diffed against its recorded base."""
        files = dict(build.files or {})
        if not edit:
            return PipelineResult(
                success=True,
                mode=PipelineMode.GENERATE,
                files=files,
                files_changed=list(files),
                summary=build.summary,
                preview_html=build.preview_html,
            )

        base = self.builds.get_by_version(project_id, build.base_version) if build.base_version else None
        base_files = dict(base.files or {}) if base is not None else {}
        changed = changed_paths(base_files, files)
        return PipelineResult(
            success=True,
            mode=PipelineMode.EDIT,
            files=files,
            files_changed=changed,
            patches=build_patches(base_files, files, changed),
            summary=build.summary,
            preview_html=build.preview_html,
            base_version=build.base_version,
        )

# FILE: tests/conftest.py
"""
Pytest configuration for the SiteSmith test suite.

Configures:
- pytest-asyncio for async test support
- a SQLite database file per test (separate connections, like separate
  request handlers)
- FakePipeline, a scripted SitePipeline
"""
import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest

from sitesmith.db import init_db, make_engine, make_session_factory
from sitesmith.pipeline.base import SitePipeline
from sitesmith.pipeline.schemas import PipelineDraft

# Configure pytest-asyncio
pytest_plugins = ["pytest_asyncio"]

OWNER = "owner-alice"
OTHER_OWNER = "owner-bob"


class FakePipeline(SitePipeline):
    """
    Scripted pipeline.

    generate() returns ``files``; edit() returns ``edits`` (changed files only).
    ``delay`` simulates a long-running call, ``error`` is raised if set.
    """

    name = "fake"

    def __init__(
        self,
        files: Optional[Dict[str, str]] = None,
        edits: Optional[Dict[str, str]] = None,
        summary: str = "",
        delay: float = 0.0,
        error: Optional[Exception] = None,
        deleted: Optional[List[str]] = None,
    ):
        self.files = files if files is not None else {"index.html": "<h1>A</h1>"}
        self.edits = edits if edits is not None else {}
        self.summary = summary
        self.delay = delay
        self.error = error
        self.deleted = deleted or []
        self.calls: List[dict] = []

    async def _respond(self, draft: PipelineDraft) -> PipelineDraft:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return draft

    async def generate(self, prompt, context):
        self.calls.append({"mode": "generate", "prompt": prompt, "context": list(context)})
        return await self._respond(PipelineDraft(files=dict(self.files), summary=self.summary))

    async def edit(self, prompt, context, files):
        self.calls.append({"mode": "edit", "prompt": prompt, "context": list(context), "files": dict(files)})
        return await self._respond(
            PipelineDraft(files=dict(self.edits), deleted=list(self.deleted), summary=self.summary)
        )


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'sitesmith_test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def projects(session_factory):
    from sitesmith.projects.service import ProjectService
    return ProjectService(session_factory)


@pytest.fixture
def project(projects):
    """A project owned by OWNER."""
    return projects.create(OWNER, "Demo Site")

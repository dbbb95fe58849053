# FILE: sitesmith/pipeline/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List

from sitesmith.pipeline.schemas import PipelineDraft


class SitePipeline(ABC):
    """
    Generation/editing backend.

    Implementations only transform prompt + context (+ files) into a draft.
    They must not touch the database, the project lock or the ledgers.
    """

    name: str = "pipeline"

    @abstractmethod
    async def generate(self, prompt: str, context: List[Dict[str, str]]) -> PipelineDraft:
        """Produce a complete file set from scratch."""

    @abstractmethod
    async def edit(
        self,
        prompt: str,
        context: List[Dict[str, str]],
        files: Dict[str, str],
    ) -> PipelineDraft:
        """Return the files to add or rewrite (and paths to delete) for ``files``."""

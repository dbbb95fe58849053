# FILE: sitesmith/pipeline/__init__.py
"""
Generation/editing pipeline contract.

- base.py: SitePipeline interface implemented by backends
- orchestrator.py: time-bounded invocation, edit-base merging and diffing
- llm.py: OpenAI-backed SitePipeline
"""

from .base import SitePipeline
from .orchestrator import PipelineOrchestrator
from .schemas import (
    FilePatch,
    PipelineDraft,
    PipelineMode,
    PipelineRequest,
    PipelineResult,
)

__all__ = [
    "SitePipeline",
    "PipelineOrchestrator",
    "FilePatch",
    "PipelineDraft",
    "PipelineMode",
    "PipelineRequest",
    "PipelineResult",
]

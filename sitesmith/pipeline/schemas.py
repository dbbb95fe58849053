# FILE: sitesmith/pipeline/schemas.py
"""
Pipeline contract types.

PipelineDraft is what a SitePipeline returns; PipelineResult is what the
orchestrator hands back to the caller after diffing against the base and
enforcing the time budget. Neither is persisted here.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class PipelineMode(str, Enum):
    GENERATE = "generate"
    EDIT = "edit"


class FilePatch(BaseModel):
    path: str
    diff: str
    summary: str = ""


class PipelineDraft(BaseModel):
    """
    Raw pipeline output.

    For generate, ``files`` is the complete file set. For edit, ``files``
    holds only new or rewritten files; anything not mentioned is kept from
    the base, and ``deleted`` lists paths to drop.
    """
    files: Dict[str, str] = Field(default_factory=dict)
    deleted: List[str] = Field(default_factory=list)
    summary: str = ""
    preview_html: Optional[str] = None
    errors: List[str] = Field(default_factory=list)


class PipelineRequest(BaseModel):
    project_id: str
    prompt: str
    context: List[Dict[str, str]] = Field(default_factory=list)
    base_version: Optional[int] = None
    base_files: Optional[Dict[str, str]] = None

    @property
    def mode(self) -> PipelineMode:
        return PipelineMode.EDIT if self.base_files is not None else PipelineMode.GENERATE


class PipelineResult(BaseModel):
    success: bool
    mode: PipelineMode
    files: Dict[str, str] = Field(default_factory=dict)
    files_changed: List[str] = Field(default_factory=list)
    patches: List[FilePatch] = Field(default_factory=list)
    summary: str = ""
    preview_html: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    base_version: Optional[int] = None
    timed_out: bool = False
    elapsed_ms: int = 0

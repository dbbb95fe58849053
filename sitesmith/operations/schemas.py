# FILE: sitesmith/operations/schemas.py
"""
Request/response bodies for generate and edit.

Field names are camelCase on the wire (projectId, baseVersion, ...); the
snake_case names are accepted too. All limits are enforced here, before the
engine touches the lock.
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from sitesmith.conversation.service import HistorySource, MAX_HISTORY_ENTRIES, MAX_MESSAGE_CHARS
from sitesmith.pipeline.schemas import FilePatch


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HistoryEntry(_CamelModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., max_length=MAX_MESSAGE_CHARS)


class _OperationRequest(_CamelModel):
    project_id: UUID
    prompt: str = Field(
        ...,
        validation_alias=AliasChoices("prompt", "message"),
        description="Natural-language instruction (alias: message)",
    )
    history: Optional[List[HistoryEntry]] = Field(default=None, max_length=MAX_HISTORY_ENTRIES)
    history_source: Optional[HistorySource] = None
    operation_id: Optional[str] = Field(default=None, min_length=1, max_length=64)

    @field_validator("prompt")
    @classmethod
    def validate_prompt(cls, v: str) -> str:
        if len(v) > MAX_MESSAGE_CHARS:
            raise ValueError(f"Prompt is too long. Maximum {MAX_MESSAGE_CHARS:,} characters allowed.")
        v = v.strip()
        if not v:
            raise ValueError("Prompt must be a non-empty string")
        return v

    @model_validator(mode="after")
    def resolve_history_source(self):
        if self.history_source is None:
            self.history_source = HistorySource.CALLER if self.history is not None else HistorySource.LEDGER
        elif self.history_source == HistorySource.CALLER and self.history is None:
            raise ValueError("historySource 'caller' requires a history list")
        return self

    @property
    def project_key(self) -> str:
        return str(self.project_id)

    def history_dicts(self) -> Optional[List[Dict[str, str]]]:
        if self.history is None:
            return None
        return [{"role": h.role, "content": h.content} for h in self.history]


class GenerateRequest(_OperationRequest):
    pass


class EditRequest(_OperationRequest):
    base_version: Optional[int] = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("baseVersion", "base_version", "buildVersion"),
    )

    @field_validator("base_version", mode="before")
    @classmethod
    def validate_base_version(cls, v):
        if v is None:
            return v
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError("Invalid build version. Must be a positive integer.")
        return v


class GenerateResponse(_CamelModel):
    success: bool = True
    project_id: str
    version: int
    files: Dict[str, str]
    summary: str
    preview_html: Optional[str] = None
    created_at: datetime


class EditResponse(GenerateResponse):
    base_version: Optional[int] = None
    files_changed: List[str] = Field(default_factory=list)
    patches: List[FilePatch] = Field(default_factory=list)

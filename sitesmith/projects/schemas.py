# FILE: sitesmith/projects/schemas.py
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


# ============== PROJECT ==============

class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class ProjectUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class ProjectOut(_Out):
    id: str
    name: str
    build_status: str
    locked_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class LockStatusOut(_Out):
    project_id: str
    build_status: str
    locked: bool
    locked_by: Optional[str] = None
    locked_at: Optional[datetime] = None


# ============== BUILDS ==============

class BuildSummaryOut(_Out):
    version: int
    summary: str
    prompt: str
    file_count: int
    created_at: datetime


class BuildOut(_Out):
    project_id: str
    version: int
    base_version: Optional[int] = None
    prompt: str
    summary: str
    files: Dict[str, str]
    preview_html: Optional[str] = None
    created_at: datetime


# ============== MESSAGES ==============

class MessageOut(_Out):
    id: int
    role: str
    content: str
    build_version: Optional[int] = None
    created_at: datetime

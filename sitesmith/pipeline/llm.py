# FILE: sitesmith/pipeline/llm.py
"""
OpenAI-backed SitePipeline.

One chat completion per operation, JSON response format. The model is asked
for:

    {"files": {"path": "content", ...}, "deleted": ["path", ...], "summary": "..."}

Conversation context is sent as prior chat turns. In edit mode the current
file set is included in the final user message and the model returns only
the files it rewrites.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from sitesmith.pipeline.base import SitePipeline
from sitesmith.pipeline.schemas import PipelineDraft

logger = logging.getLogger(__name__)

GENERATE_SYSTEM_PROMPT = """You build small static websites.
Return ONLY a JSON object with keys:
  "files": object mapping relative file paths to full file contents
  "summary": one or two sentences describing what you built
Always include index.html. Put styles in styles.css and link it from index.html.
Include a package.json whose "name" is a short kebab-case project name."""

EDIT_SYSTEM_PROMPT = """You edit existing static websites with minimal changes.
You receive the current files and an edit request.
Return ONLY a JSON object with keys:
  "files": object mapping paths to the FULL new content of every file you change or add
  "deleted": list of paths to remove (usually empty)
  "summary": one or two sentences describing the change
Do not include files you did not change."""


def _coerce_draft(payload: Any) -> PipelineDraft:
    if not isinstance(payload, dict):
        return PipelineDraft(errors=["Model response is not a JSON object"])
    files = payload.get("files") or {}
    if not isinstance(files, dict):
        return PipelineDraft(errors=["Model response 'files' is not an object"])
    clean_files = {str(k): v if isinstance(v, str) else json.dumps(v, indent=2) for k, v in files.items()}
    deleted = [str(p) for p in (payload.get("deleted") or []) if isinstance(p, str)]
    summary = payload.get("summary") if isinstance(payload.get("summary"), str) else ""
    return PipelineDraft(files=clean_files, deleted=deleted, summary=summary)


class OpenAISitePipeline(SitePipeline):
    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str,
        client: Optional[AsyncOpenAI] = None,
        temperature: float = 0.4,
    ):
        if not api_key and client is None:
            raise ValueError("OPENAI_API_KEY is not set")
        self.model = model
        self.temperature = temperature
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def _complete(self, messages: List[Dict[str, str]]) -> PipelineDraft:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            response_format={"type": "json_object"},
        )
        content = (response.choices[0].message.content or "") if response.choices else ""
        try:
            payload = json.loads(content)
        except ValueError:
            logger.warning(f"[pipeline.openai] Non-JSON response ({len(content)} chars)")
            return PipelineDraft(errors=["Model returned invalid JSON"])
        return _coerce_draft(payload)

    async def generate(self, prompt: str, context: List[Dict[str, str]]) -> PipelineDraft:
        messages = [{"role": "system", "content": GENERATE_SYSTEM_PROMPT}]
        messages.extend(context)
        messages.append({"role": "user", "content": prompt})
        return await self._complete(messages)

    async def edit(self, prompt: str, context: List[Dict[str, str]], files: Dict[str, str]) -> PipelineDraft:
        messages = [{"role": "system", "content": EDIT_SYSTEM_PROMPT}]
        messages.extend(context)
        messages.append({
            "role": "user",
            "content": (
                "Current files (JSON):\n"
                f"{json.dumps(files, indent=2, sort_keys=True)}\n\n"
                f"Edit request: {prompt}"
            ),
        })
        return await self._complete(messages)

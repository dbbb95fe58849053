# FILE: sitesmith/config.py
"""
Runtime configuration for SiteSmith.

All values come from environment variables (a local .env file is loaded by
main.py through python-dotenv before settings are read). Settings are built
once by load_settings() and passed explicitly into create_app(), so tests
construct their own Settings instead of patching the environment.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

DEFAULT_DATABASE_URL = "sqlite:///./data/sitesmith.db"
DEFAULT_PIPELINE_TIMEOUT_SECONDS = 60.0
DEFAULT_HISTORY_LIMIT = 30
DEFAULT_LOCK_STALE_AFTER_SECONDS = 600
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def parse_api_tokens(raw: Optional[str]) -> Dict[str, str]:
    """
    Parse SITESMITH_API_TOKENS.

    Format: comma-separated ``token:owner_id`` pairs, e.g.
    ``"tok_abc:alice,tok_def:bob"``. Blank entries are ignored.
    """
    tokens: Dict[str, str] = {}
    if not raw:
        return tokens
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        token, sep, owner = entry.partition(":")
        if not sep or not token.strip() or not owner.strip():
            raise ValueError(f"Invalid SITESMITH_API_TOKENS entry: {entry!r} (expected token:owner)")
        tokens[token.strip()] = owner.strip()
    return tokens


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    pipeline_timeout_seconds: float = DEFAULT_PIPELINE_TIMEOUT_SECONDS
    history_limit: int = DEFAULT_HISTORY_LIMIT

    # Lock policy. fail_open trades mutual exclusion for availability when
    # the lock row cannot be evaluated; off unless explicitly enabled.
    lock_fail_open: bool = False
    lock_stale_after_seconds: Optional[int] = DEFAULT_LOCK_STALE_AFTER_SECONDS

    api_tokens: Dict[str, str] = field(default_factory=dict)

    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL


def load_settings() -> Settings:
    """Build Settings from the current process environment."""
    stale_after = _int_env("SITESMITH_LOCK_STALE_AFTER_SECONDS", DEFAULT_LOCK_STALE_AFTER_SECONDS)
    return Settings(
        database_url=os.getenv("SITESMITH_DATABASE_URL", DEFAULT_DATABASE_URL),
        pipeline_timeout_seconds=_float_env(
            "SITESMITH_PIPELINE_TIMEOUT_SECONDS", DEFAULT_PIPELINE_TIMEOUT_SECONDS
        ),
        history_limit=_int_env("SITESMITH_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT),
        lock_fail_open=_bool_env("SITESMITH_LOCK_FAIL_OPEN", False),
        lock_stale_after_seconds=stale_after if stale_after > 0 else None,
        api_tokens=parse_api_tokens(os.getenv("SITESMITH_API_TOKENS")),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("SITESMITH_OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
    )

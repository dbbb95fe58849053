# FILE: sitesmith/conversation/service.py
"""
Conversation ledger.

Append-only chat history per project, fed back to the pipeline as context.
Entries are ordered by their sequence id and never modified.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence

from sqlalchemy.orm import sessionmaker

from sitesmith.conversation.models import ConversationMessage

logger = logging.getLogger(__name__)

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLES = (ROLE_USER, ROLE_ASSISTANT)

DEFAULT_HISTORY_LIMIT = 30
MAX_HISTORY_ENTRIES = 50
MAX_MESSAGE_CHARS = 10_000


class HistorySource(str, Enum):
    """Where pipeline context comes from."""
    LEDGER = "ledger"  # persisted conversation for the project
    CALLER = "caller"  # history supplied with the request, used verbatim


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_HISTORY_LIMIT
    return max(1, min(int(limit), MAX_HISTORY_ENTRIES))


class ConversationLedger:
    def __init__(self, session_factory: sessionmaker):
        self._sessions = session_factory

    def append(
        self,
        project_id: str,
        role: str,
        content: str,
        build_version: Optional[int] = None,
    ) -> ConversationMessage:
        if role not in ROLES:
            raise ValueError(f"Invalid role: {role!r}. Must be one of {ROLES}")
        if build_version is not None and role != ROLE_ASSISTANT:
            raise ValueError("build_version is only recorded on assistant turns")

        message = ConversationMessage(
            project_id=project_id,
            role=role,
            content=content or "",
            build_version=build_version,
        )
        with self._sessions.begin() as db:
            db.add(message)
        logger.debug(f"[conversation] Appended {role} turn #{message.id} project={project_id}")
        return message

    def load_recent(self, project_id: str, limit: Optional[int] = DEFAULT_HISTORY_LIMIT) -> List[ConversationMessage]:
        """The ``limit`` most recent turns, oldest first. ``limit`` is clamped to 1..50."""
        limit = clamp_limit(limit)
        with self._sessions() as db:
            newest_first = (
                db.query(ConversationMessage)
                .filter(ConversationMessage.project_id == project_id)
                .order_by(ConversationMessage.id.desc())
                .limit(limit)
                .all()
            )
        newest_first.reverse()
        return newest_first

    def iter_history(
        self,
        project_id: str,
        after_id: Optional[int] = None,
        batch_size: int = 100,
    ) -> Iterator[ConversationMessage]:
        """
        Lazily walk the full history in chronological order.

        Reads one batch per query; restart from any point by passing the id
        of the last message already seen as ``after_id``.
        """
        cursor = after_id or 0
        while True:
            with self._sessions() as db:
                batch = (
                    db.query(ConversationMessage)
                    .filter(
                        ConversationMessage.project_id == project_id,
                        ConversationMessage.id > cursor,
                    )
                    .order_by(ConversationMessage.id.asc())
                    .limit(batch_size)
                    .all()
                )
            if not batch:
                return
            for message in batch:
                yield message
            cursor = batch[-1].id
            if len(batch) < batch_size:
                return

    def resolve_context(
        self,
        project_id: str,
        supplied: Optional[Sequence[Dict[str, str]]],
        source: HistorySource,
        limit: Optional[int] = DEFAULT_HISTORY_LIMIT,
    ) -> List[Dict[str, str]]:
        """
        Build the pipeline context as ``[{"role", "content"}, ...]``.

        The source is explicit: CALLER uses ``supplied`` as-is (an empty list
        means no context), LEDGER ignores ``supplied`` and reads the project's
        persisted turns.
        """
        if source == HistorySource.CALLER:
            if supplied is None:
                raise ValueError("history_source=caller requires a history list")
            return [{"role": m["role"], "content": m["content"]} for m in supplied]

        return [
            {"role": m.role, "content": m.content}
            for m in self.load_recent(project_id, limit)
        ]

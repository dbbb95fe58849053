# FILE: sitesmith/conversation/__init__.py
from .service import ConversationLedger, HistorySource

__all__ = ["ConversationLedger", "HistorySource"]

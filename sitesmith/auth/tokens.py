# sitesmith/auth/tokens.py
"""
Static bearer tokens from SITESMITH_API_TOKENS.
"""
import hmac
from typing import Dict, Optional


class StaticTokenAuthenticator:
    """Maps known tokens to owner ids. Callable: token -> owner id or None."""

    def __init__(self, tokens: Dict[str, str]):
        self._tokens = dict(tokens)

    @property
    def configured(self) -> bool:
        return bool(self._tokens)

    def __call__(self, token: str) -> Optional[str]:
        for known, owner_id in self._tokens.items():
            if hmac.compare_digest(known.encode("utf-8"), token.encode("utf-8")):
                return owner_id
        return None

# sitesmith/auth/__init__.py
"""
Authentication for SiteSmith.

Requests carry a bearer token; an authenticator configured on the app turns
it into the owner id every project operation is attributed to.
"""

from .middleware import require_principal, Principal
from .tokens import StaticTokenAuthenticator

__all__ = [
    "require_principal",
    "Principal",
    "StaticTokenAuthenticator",
]

# FILE: sitesmith/__init__.py
"""SiteSmith - prompt-driven website builder backend."""

__version__ = "0.3.0"

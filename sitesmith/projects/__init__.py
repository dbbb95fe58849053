# FILE: sitesmith/projects/__init__.py

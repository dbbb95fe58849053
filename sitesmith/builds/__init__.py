# FILE: sitesmith/builds/__init__.py
from .packager import ArtifactPackager
from .service import BuildLedger, BuildNotFoundError, VersionConflictError

__all__ = ["ArtifactPackager", "BuildLedger", "BuildNotFoundError", "VersionConflictError"]

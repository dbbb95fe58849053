# FILE: sitesmith/operations/__init__.py
from .engine import BuildOperations, OperationOutcome

__all__ = ["BuildOperations", "OperationOutcome"]

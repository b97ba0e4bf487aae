from .conflict_resolver import ConflictResolver

__all__ = ["ConflictResolver"]

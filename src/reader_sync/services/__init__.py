"""Service layer for Reader Sync."""

from .activity import ActivityItem, ActivityLog
from .state import ArticleStore, StateManager

__all__ = ["ActivityItem", "ActivityLog", "ArticleStore", "StateManager"]

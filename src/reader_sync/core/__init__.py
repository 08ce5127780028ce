"""Core synchronization functionality."""

from .auth import Authenticator
from .dispatch import Operation, RequestDispatcher
from .manager import ReaderManager, reset_shared_manager, shared_manager
from .refresh import NewArticleCounter, RefreshCoordinator, RefreshHandle
from .subscriptions import SubscriptionService
from .sync_state import SyncStateService
from .tokens import TokenStore
from .transport import HTTPRequest, RequestsTransport, Response, Transport

__all__ = [
    "Authenticator",
    "HTTPRequest",
    "NewArticleCounter",
    "Operation",
    "ReaderManager",
    "RefreshCoordinator",
    "RefreshHandle",
    "RequestDispatcher",
    "RequestsTransport",
    "Response",
    "SubscriptionService",
    "SyncStateService",
    "TokenStore",
    "Transport",
    "reset_shared_manager",
    "shared_manager",
]

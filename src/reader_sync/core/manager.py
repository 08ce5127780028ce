"""Public entry point of the sync core.

``ReaderManager`` wires the authenticator, dispatcher and the three
services together.  One instance is meant to live for the whole process:
build it at startup (or through ``shared_manager``), pass it to whoever
needs it, and ``close`` it at shutdown.
"""

import atexit
import logging
import threading
from concurrent.futures import Future
from typing import Any, List, Optional

from ..config import Config
from ..models import Article, Folder, Subscription
from ..services.activity import ActivityItem, ActivityLog
from ..services.state import ArticleStore, StateManager
from .auth import Authenticator
from .dispatch import RequestDispatcher
from .refresh import BatchResult, NewArticleCounter, RefreshCoordinator, RefreshHandle
from .subscriptions import SubscriptionService
from .sync_state import SyncStateService
from .transport import RequestsTransport, Response, Transport

logger = logging.getLogger(__name__)


class ReaderManager:
    """Facade over authentication, subscriptions, flags and refresh."""

    def __init__(
        self,
        config: Config,
        *,
        transport: Optional[Transport] = None,
        store: Optional[ArticleStore] = None,
        activity_log: Optional[ActivityLog] = None,
        authenticator: Optional[Authenticator] = None,
    ):
        self.config = config
        self.transport = transport or RequestsTransport(
            max_workers=config.max_concurrent_requests,
            timeout=config.request_timeout,
            retry_attempts=config.retry_attempts,
        )
        self.store = store if store is not None else StateManager()
        self.activity_log = activity_log or ActivityLog()
        self.authenticator = authenticator or Authenticator(
            config.server,
            self.transport,
            session_refresh_interval=config.session_refresh_interval,
            action_token_ttl=config.action_token_ttl,
        )
        self.dispatcher = RequestDispatcher(
            self.authenticator,
            self.transport,
            client_name=config.server.client_name,
            max_workers=config.max_concurrent_requests,
        )
        self.counter = NewArticleCounter()
        self.subscriptions = SubscriptionService(self.dispatcher)
        self.sync_state = SyncStateService(self.dispatcher, self.store)
        self.refresher = RefreshCoordinator(
            self.dispatcher,
            self.store,
            article_limit=config.article_limit,
            counter=self.counter,
        )
        self._closed = False

    @property
    def ready(self) -> bool:
        """True while a usable session token is held."""
        return self.authenticator.ready

    @property
    def count_of_new_articles(self) -> int:
        return self.counter.value

    def load_subscriptions(self, notification: Any = None) -> List[Subscription]:
        """Fetch the remote subscription list and hand it to the store."""
        if notification is not None:
            logger.debug(f"Loading subscriptions on {notification!r}")
        subscriptions = self.subscriptions.list_subscriptions()
        self.store.reconcile_subscriptions(subscriptions)
        return subscriptions

    def get_token(self) -> bool:
        return self.authenticator.get_token()

    def clear_authentication(self) -> None:
        self.authenticator.clear_authentication()

    def reset_authentication(self) -> bool:
        return self.authenticator.reset_authentication()

    def subscribe(self, feed_url: str) -> Response:
        return self.subscriptions.subscribe(feed_url, self.activity_log.item_for(feed_url))

    def unsubscribe(self, feed_url: str) -> Response:
        return self.subscriptions.unsubscribe(feed_url, self.activity_log.item_for(feed_url))

    def set_folder_name(self, folder_name: str, feed_url: str, flag: bool) -> Response:
        return self.subscriptions.set_folder_name(folder_name, feed_url, flag, self.activity_log.item_for(feed_url))

    def rename_feed(self, feed_url: str, title: str) -> Response:
        return self.subscriptions.rename_feed(feed_url, title, self.activity_log.item_for(feed_url))

    def mark_read(self, article: Article, flag: bool) -> "Future[Response]":
        return self.sync_state.mark_read(article, flag)

    def mark_starred(self, article: Article, flag: bool) -> "Future[Response]":
        return self.sync_state.mark_starred(article, flag)

    def mark_all_read(self, feed_url: str) -> Response:
        return self.sync_state.mark_all_read(feed_url)

    def refresh_feed(
        self,
        folder: Folder,
        activity: Optional[ActivityItem] = None,
        ignore_article_limit: bool = False,
    ) -> RefreshHandle:
        if activity is None:
            activity = self.activity_log.item_for(folder.name)
        return self.refresher.refresh_feed(folder, activity, ignore_article_limit)

    def refresh_all(self, folders: List[Folder], ignore_article_limit: bool = False) -> BatchResult:
        """Start a sync cycle over ``folders`` and wait for it to finish."""
        return self.refresher.refresh_folders(folders, ignore_article_limit, self.activity_log)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.authenticator.close()
        self.dispatcher.close()
        self.transport.close()
        logger.debug("Reader manager closed")


_shared: Optional[ReaderManager] = None
_shared_lock = threading.Lock()


def shared_manager(config: Optional[Config] = None, **kwargs: Any) -> ReaderManager:
    """
    Return the process-wide manager, creating it on first use.

    Args:
        config: Configuration used when the manager is created; ignored afterwards
        **kwargs: Collaborators passed to ``ReaderManager`` on creation

    Returns:
        The shared ReaderManager
    """
    global _shared
    with _shared_lock:
        if _shared is None:
            if config is None:
                from ..config import load_config
                config = load_config()
            _shared = ReaderManager(config, **kwargs)
        return _shared


def reset_shared_manager() -> None:
    """Close and forget the process-wide manager."""
    global _shared
    with _shared_lock:
        manager, _shared = _shared, None
    if manager is not None:
        manager.close()


atexit.register(reset_shared_manager)
